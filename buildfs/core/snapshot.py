# buildfs/core/snapshot.py
"""
Immutable path -> FileEntry mapping.

Every mutation returns a new snapshot, so a value handed to a collaborator
(sandbox, persistence, pending plan) can never change underneath it.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

from .models import FileEntry

WireValue = Union[str, FileEntry]


def normalize_path(path: str) -> str:
    """Strip leading './' and '/' so 'src/a.ts', './src/a.ts' and '/src/a.ts' are one file."""
    if not isinstance(path, str) or not path.strip():
        raise ValueError("File path must be a non-empty string")
    cleaned = path.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    cleaned = cleaned.lstrip("/")
    if not cleaned:
        raise ValueError(f"Invalid file path: {path!r}")
    return cleaned


class FileSnapshot(Mapping[str, FileEntry]):

    __slots__ = ("_files",)

    def __init__(self, files: Optional[Mapping[str, WireValue]] = None):
        entries: Dict[str, FileEntry] = {}
        for path, value in (files or {}).items():
            entries[normalize_path(path)] = FileEntry.from_wire(value)
        self._files = MappingProxyType(entries)

    @classmethod
    def from_wire_dict(cls, data: Optional[Mapping[str, str]]) -> 'FileSnapshot':
        return cls(data or {})

    def to_wire_dict(self) -> Dict[str, str]:
        return {path: entry.to_wire() for path, entry in self._files.items()}

    # --- Mapping protocol ---

    def __getitem__(self, path: str) -> FileEntry:
        return self._files[normalize_path(path)]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except ValueError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FileSnapshot):
            return dict(self._files) == dict(other._files)
        return NotImplemented

    def __hash__(self):
        return hash(frozenset(self._files.items()))

    def __repr__(self) -> str:
        return f"FileSnapshot({len(self._files)} files)"

    # --- derived snapshots ---

    def with_files(self, files: Mapping[str, WireValue]) -> 'FileSnapshot':
        merged: Dict[str, FileEntry] = dict(self._files)
        for path, value in files.items():
            merged[normalize_path(path)] = FileEntry.from_wire(value)
        return FileSnapshot(merged)

    def without(self, paths: Iterable[str]) -> 'FileSnapshot':
        drop = {normalize_path(p) for p in paths}
        return FileSnapshot({p: e for p, e in self._files.items() if p not in drop})

    # --- helpers ---

    def paths(self, include_directories: bool = False):
        return sorted(p for p, e in self._files.items() if include_directories or not e.is_directory)

    def read_text(self, path: str) -> Optional[str]:
        entry = self.get(path)
        if entry is None or entry.is_directory:
            return None
        return entry.to_wire()
