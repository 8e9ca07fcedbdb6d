# buildfs/__init__.py
"""
BuildFS - in-memory project file system used by the build agent.

Two generations of the project live side by side: the ``draft`` that tools
mutate during a turn and the ``live`` copy that only changes when a turn
commits.
"""

from .core.models import ContentKind, FileEntry, FileSystemDiff, BINARY_PREFIX, DIRECTORY_MARKER
from .core.snapshot import FileSnapshot, normalize_path
from .core.filesystem import FileSystemModel
from .core.diff import diff_snapshots, unified_file_diff
from .core.manifest import MANIFEST_PATH, manifest_hash, read_manifest, has_build_script
from .core.materialize import materialize, read_directory, classify_bytes

__all__ = [
    'ContentKind', 'FileEntry', 'FileSystemDiff', 'BINARY_PREFIX', 'DIRECTORY_MARKER',
    'FileSnapshot', 'normalize_path', 'FileSystemModel',
    'diff_snapshots', 'unified_file_diff',
    'MANIFEST_PATH', 'manifest_hash', 'read_manifest', 'has_build_script',
    'materialize', 'read_directory', 'classify_bytes',
]
