# buildfs/core/diff.py
import difflib
from typing import Mapping, Optional

from .models import FileEntry, FileSystemDiff


def diff_snapshots(old: Mapping[str, FileEntry], new: Mapping[str, FileEntry]) -> FileSystemDiff:
    """Structural diff: only in ``new`` is added, only in ``old`` is deleted, differing is modified."""
    added = {}
    modified = {}
    for path, entry in new.items():
        if path not in old:
            added[path] = entry
        elif old[path] != entry:
            modified[path] = entry
    deleted = [path for path in old if path not in new]
    return FileSystemDiff(added=added, modified=modified, deleted=deleted)


def unified_file_diff(path: str, old: Optional[FileEntry], new: Optional[FileEntry], context: int = 3) -> str:
    """Human-readable diff for one path. Binary content is summarized, not diffed."""
    if (old is not None and old.is_binary) or (new is not None and new.is_binary):
        old_size = old.size if old is not None else 0
        new_size = new.size if new is not None else 0
        return f"Binary file {path} changed ({old_size} -> {new_size} bytes)\n"

    old_lines = old.content.splitlines(keepends=True) if old is not None else []
    new_lines = new.content.splitlines(keepends=True) if new is not None else []
    return "".join(difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=f"a/{path}" if old is not None else "/dev/null",
        tofile=f"b/{path}" if new is not None else "/dev/null",
        n=context,
    ))
