# buildflow/core/accumulator.py
import logging
from typing import Dict, Optional

from buildfs import FileSnapshot, normalize_path

logger = logging.getLogger(__name__)


class FileWriteAccumulator:
    """
    Collects ``file-content`` fragments until a file is complete.

    A WRITE/EDIT action opens its target: the first fragment replaces the file
    and later fragments append. A fragment for a path that was never opened is
    appended to the file's current draft content. Buffers are handed back by
    ``flush()`` on the next action and at stream end.
    """

    def __init__(self):
        self._open: Optional[str] = None
        self._buffers: Dict[str, str] = {}

    def open(self, path: str) -> None:
        self._open = normalize_path(path)

    def append(self, path: str, fragment: str, draft: FileSnapshot) -> None:
        path = normalize_path(path)
        if path in self._buffers:
            self._buffers[path] += fragment
        elif path == self._open:
            self._buffers[path] = fragment
        else:
            logger.debug("Fragment for %s arrived without WRITE/EDIT; appending to draft content", path)
            self._buffers[path] = (draft.read_text(path) or "") + fragment

    def flush(self) -> Dict[str, str]:
        """Completed files as wire values; resets the accumulator."""
        completed, self._buffers = self._buffers, {}
        self._open = None
        return completed
