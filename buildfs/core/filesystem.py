# buildfs/core/filesystem.py
"""
Dual-generation project file system (draft / live).

``draft`` is what the agent works on; ``live`` is the last committed,
previewable copy. ``live`` is only ever replaced as a whole by ``commit``.
"""

import logging
from typing import Iterable, List, Mapping, Optional, Tuple

from .diff import diff_snapshots
from .models import FileSystemDiff
from .snapshot import FileSnapshot, WireValue, normalize_path

logger = logging.getLogger(__name__)


class FileSystemModel:
    def __init__(self, live: Optional[FileSnapshot] = None, draft: Optional[FileSnapshot] = None):
        self._live = live if live is not None else FileSnapshot()
        self._draft = draft if draft is not None else self._live
        self._generation = 0

    @classmethod
    def from_wire_dict(cls, files: Optional[Mapping[str, str]]) -> 'FileSystemModel':
        return cls(live=FileSnapshot.from_wire_dict(files))

    @property
    def draft(self) -> FileSnapshot:
        return self._draft

    @property
    def live(self) -> FileSnapshot:
        return self._live

    @property
    def generation(self) -> int:
        """Number of commits so far; bumps every time ``live`` is replaced."""
        return self._generation

    # ==================== draft mutation ====================

    def replace_draft(self, snapshot: FileSnapshot) -> None:
        self._draft = snapshot

    def write_files(self, files: Mapping[str, WireValue]) -> List[str]:
        self._draft = self._draft.with_files(files)
        return [normalize_path(p) for p in files]

    def delete_paths(self, paths: Iterable[str]) -> List[str]:
        removed = [normalize_path(p) for p in paths if p in self._draft]
        self._draft = self._draft.without(removed)
        return removed

    def revert_draft(self) -> None:
        """Throw away uncommitted work."""
        self._draft = self._live

    # ==================== commit ====================

    def commit(self, snapshot: Optional[FileSnapshot] = None) -> Tuple[FileSnapshot, FileSystemDiff]:
        """
        Replace ``live`` with the draft in one assignment.

        When ``snapshot`` is given it becomes both the draft and the new live
        copy. Returns the new live snapshot and what changed relative to the
        previous one.
        """
        if snapshot is not None:
            self._draft = snapshot
        previous = self._live
        self._live = self._draft
        self._generation += 1
        changes = diff_snapshots(previous, self._live)
        logger.info("Committed draft as live generation %d (%d paths changed)",
                    self._generation, len(changes.touched_paths()))
        return self._live, changes

    # ==================== queries ====================

    def pending_changes(self) -> FileSystemDiff:
        return diff_snapshots(self._live, self._draft)

    def has_pending_changes(self) -> bool:
        return self._draft != self._live
