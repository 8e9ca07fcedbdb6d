# buildflow/storage/file_lock.py
"""
Lightweight cross-process file lock guarding the project store files.

- fcntl (Unix) / msvcrt (Windows) locking
- context manager syntax
- lock file directory is created on demand
- the lock is released on exit even when the body raises
"""

import logging
import sys
from pathlib import Path

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)


class FileLock:
    """
    Cross-platform exclusive file lock.

    Blocks in ``__enter__`` until the lock is acquired.
    """

    def __init__(self, lock_file_path: str):
        self.lock_file_path = Path(lock_file_path)
        self._lock_file = None

    def __enter__(self):
        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._lock_file = open(self.lock_file_path, "w")
            if sys.platform == "win32":
                msvcrt.locking(self._lock_file.fileno(), msvcrt.LK_LOCK, 1)
            else:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            if self._lock_file:
                self._lock_file.close()
                self._lock_file = None
            raise RuntimeError(f"Could not acquire file lock {self.lock_file_path}: {e}")

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._lock_file:
            try:
                if sys.platform == "win32":
                    msvcrt.locking(self._lock_file.fileno(), msvcrt.LK_UNLCK, 1)
                else:
                    fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                # unlock errors must not mask the body's outcome
                logger.warning("Error releasing file lock %s: %s", self.lock_file_path, e)
            finally:
                self._lock_file.close()
                self._lock_file = None
