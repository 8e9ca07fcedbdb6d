# buildfs/core/materialize.py
"""
Moving snapshots between memory and a real directory.

Used by the sandbox runtime (write the draft to a temp dir) and by the CLI
(import an existing project, export the live copy).
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from .models import FileEntry
from .snapshot import FileSnapshot

logger = logging.getLogger(__name__)

DEFAULT_IGNORES = ("node_modules", ".git", ".buildcoder", "dist", "__pycache__")


def materialize(snapshot: FileSnapshot, root: Union[str, Path]) -> Path:
    """Write every entry of ``snapshot`` under ``root``; returns the resolved root."""
    root = Path(root).resolve()
    root.mkdir(parents=True, exist_ok=True)
    for path, entry in snapshot.items():
        target = (root / path.rstrip("/")).resolve()
        if root not in target.parents and target != root:
            raise ValueError(f"Path escapes project root: {path}")
        if entry.is_directory:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(entry.as_bytes())
    return root


def classify_bytes(data: bytes) -> FileEntry:
    """TEXT when the bytes decode as UTF-8, BINARY otherwise."""
    try:
        return FileEntry.text(data.decode("utf-8"))
    except UnicodeDecodeError:
        return FileEntry.binary(data)


def read_directory(root: Union[str, Path], ignore: Optional[Iterable[str]] = None) -> FileSnapshot:
    """Build a snapshot from a directory tree. Empty directories become ``path/`` placeholders."""
    root = Path(root).resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Not a directory: {root}")
    ignored = set(DEFAULT_IGNORES if ignore is None else ignore)

    files: Dict[str, FileEntry] = {}
    for item in sorted(root.rglob("*")):
        relative = item.relative_to(root)
        if any(part in ignored for part in relative.parts):
            continue
        rel = relative.as_posix()
        if item.is_dir():
            if not any(item.iterdir()):
                files[f"{rel}/"] = FileEntry.directory()
            continue
        files[rel] = classify_bytes(item.read_bytes())

    logger.debug("Read %d entries from %s", len(files), root)
    return FileSnapshot(files)
