# buildflow/storage/dependency_cache.py
import json
import logging
from pathlib import Path
from typing import Optional

from ..core.collaborators import DependencyCacheEntry, IDependencyCacheStore
from .file_lock import FileLock
from .project_store import write_json_atomic

logger = logging.getLogger(__name__)


class FileDependencyCache(IDependencyCacheStore):
    """One JSON file per project: ``{manifest_hash, files, updated_at}``."""

    def __init__(self, base_dir: str = ".buildcoder/dependency_cache"):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _entry_file(self, project_id: str) -> Path:
        return self.base_dir / f"{project_id}.json"

    def _lock(self, project_id: str) -> FileLock:
        return FileLock(str(self.base_dir / ".locks" / f"{project_id}.lock"))

    def get(self, project_id: str) -> Optional[DependencyCacheEntry]:
        entry_file = self._entry_file(project_id)
        with self._lock(project_id):
            if not entry_file.exists():
                return None
            try:
                data = json.loads(entry_file.read_text(encoding="utf-8"))
                return DependencyCacheEntry(**data)
            except (OSError, json.JSONDecodeError, TypeError) as e:
                logger.warning("Dropping unreadable dependency cache for %s: %s", project_id, e)
                entry_file.unlink(missing_ok=True)
                return None

    def put(self, project_id: str, entry: DependencyCacheEntry) -> None:
        with self._lock(project_id):
            write_json_atomic(self._entry_file(project_id), {
                "manifest_hash": entry.manifest_hash,
                "files": entry.files,
                "updated_at": entry.updated_at,
            })

    def invalidate(self, project_id: str) -> None:
        with self._lock(project_id):
            self._entry_file(project_id).unlink(missing_ok=True)
