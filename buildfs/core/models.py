# buildfs/core/models.py
"""
BuildFS core data models.

A file's content kind is stored alongside the content instead of being guessed
from the file name every time it is read.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Union

BINARY_PREFIX = "base64:"
DIRECTORY_MARKER = "__DIR__"


class ContentKind(Enum):
    TEXT = "text"
    BINARY = "binary"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileEntry:
    """One path's content. Binary content is kept base64-encoded in ``content``."""
    content: str
    kind: ContentKind = ContentKind.TEXT

    @classmethod
    def text(cls, content: str) -> 'FileEntry':
        return cls(content=content, kind=ContentKind.TEXT)

    @classmethod
    def binary(cls, data: bytes) -> 'FileEntry':
        return cls(content=base64.b64encode(data).decode("ascii"), kind=ContentKind.BINARY)

    @classmethod
    def directory(cls) -> 'FileEntry':
        return cls(content="", kind=ContentKind.DIRECTORY)

    @classmethod
    def from_wire(cls, value: Union[str, 'FileEntry']) -> 'FileEntry':
        """
        Parse the serialized form used by the model and the storage layer.

        ``base64:<payload>`` marks binary content, ``__DIR__`` marks an empty
        directory placeholder, anything else is text.
        """
        if isinstance(value, FileEntry):
            return value
        if not isinstance(value, str):
            raise TypeError(f"File content must be a string, got {type(value).__name__}")
        if value == DIRECTORY_MARKER:
            return cls.directory()
        if value.startswith(BINARY_PREFIX):
            payload = value[len(BINARY_PREFIX):]
            try:
                base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError):
                # not real base64, keep the literal text
                return cls.text(value)
            return cls(content=payload, kind=ContentKind.BINARY)
        return cls.text(value)

    def to_wire(self) -> str:
        if self.kind is ContentKind.BINARY:
            return f"{BINARY_PREFIX}{self.content}"
        if self.kind is ContentKind.DIRECTORY:
            return DIRECTORY_MARKER
        return self.content

    def as_bytes(self) -> bytes:
        if self.kind is ContentKind.BINARY:
            return base64.b64decode(self.content)
        return self.content.encode("utf-8")

    @property
    def is_binary(self) -> bool:
        return self.kind is ContentKind.BINARY

    @property
    def is_directory(self) -> bool:
        return self.kind is ContentKind.DIRECTORY

    @property
    def size(self) -> int:
        if self.kind is ContentKind.BINARY:
            return len(self.as_bytes())
        return len(self.content)


@dataclass
class FileSystemDiff:
    """Structural difference between two snapshots (display and audit only)."""
    added: Dict[str, FileEntry] = field(default_factory=dict)
    modified: Dict[str, FileEntry] = field(default_factory=dict)
    deleted: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    def touched_paths(self) -> List[str]:
        return sorted(set(self.added) | set(self.modified) | set(self.deleted))

    def to_dict(self) -> Dict[str, object]:
        return {
            "added": {p: e.to_wire() for p, e in self.added.items()},
            "modified": {p: e.to_wire() for p, e in self.modified.items()},
            "deleted": list(self.deleted),
        }
