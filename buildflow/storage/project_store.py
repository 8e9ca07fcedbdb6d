# buildflow/storage/project_store.py
"""
File-backed project store.

Layout under ``base_dir``::

    projects/<project_id>/live.json             current files (wire form)
    projects/<project_id>/meta.json             ProjectMetadata
    projects/<project_id>/versions/<id>.json    version snapshots
    .locks/<project_id>.lock
    .indexes/project_index.json
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from buildfs import FileSnapshot

from ..core.collaborators import IProjectStore, ProjectMetadata, VersionInfo
from ..utils.checksum import calculate_checksum
from ..utils.id_generator import generate_id, generate_timestamp
from .file_lock import FileLock

logger = logging.getLogger(__name__)


def snapshot_checksum(snapshot: FileSnapshot) -> str:
    return calculate_checksum(json.dumps(snapshot.to_wire_dict(), sort_keys=True))


def write_json_atomic(path: Path, data: Any) -> None:
    temp_file = path.with_suffix(path.suffix + ".tmp")
    try:
        temp_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        temp_file.replace(path)
    except Exception:
        temp_file.unlink(missing_ok=True)
        raise


class FileProjectStore(IProjectStore):
    def __init__(self, base_dir: str = ".buildcoder/projects"):
        self.base_dir = Path(base_dir).resolve()
        self.projects_dir = self.base_dir / "projects"
        self.locks_dir = self.base_dir / ".locks"
        self.indexes_dir = self.base_dir / ".indexes"

        for dir_path in [self.projects_dir, self.locks_dir, self.indexes_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        self._project_index = self._load_index("project_index.json")

    # ==================== index ====================

    def _load_index(self, filename: str) -> Dict:
        index_file = self.indexes_dir / filename
        if index_file.exists():
            try:
                return json.loads(index_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Ignoring unreadable index %s: %s", index_file, e)
        return {}

    def _persist_index(self) -> None:
        write_json_atomic(self.indexes_dir / "project_index.json", self._project_index)

    def _lock(self, project_id: str) -> FileLock:
        return FileLock(str(self.locks_dir / f"{project_id}.lock"))

    def _project_dir(self, project_id: str) -> Path:
        if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
            raise ValueError(f"Invalid project id: {project_id!r}")
        return self.projects_dir / project_id

    # ==================== IProjectStore ====================

    def save(self, project_id: str, snapshot: FileSnapshot, name: Optional[str] = None) -> ProjectMetadata:
        project_dir = self._project_dir(project_id)
        with self._lock(project_id):
            project_dir.mkdir(parents=True, exist_ok=True)
            now = generate_timestamp()
            previous = self._read_meta(project_dir)
            meta = ProjectMetadata(
                project_id=project_id,
                name=name or (previous.name if previous else project_id),
                file_count=len(snapshot),
                checksum=snapshot_checksum(snapshot),
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            write_json_atomic(project_dir / "live.json", snapshot.to_wire_dict())
            write_json_atomic(project_dir / "meta.json", meta.to_dict())

            self._project_index[project_id] = {"name": meta.name, "updated_at": meta.updated_at}
            self._persist_index()
        logger.info("Saved project %s (%d files)", project_id, meta.file_count)
        return meta

    def create_version(self, project_id: str, snapshot: FileSnapshot,
                       summary: Optional[str] = None) -> VersionInfo:
        versions_dir = self._project_dir(project_id) / "versions"
        with self._lock(project_id):
            versions_dir.mkdir(parents=True, exist_ok=True)
            info = VersionInfo(
                version_id=generate_id(),
                project_id=project_id,
                summary=summary or "",
                file_count=len(snapshot),
                checksum=snapshot_checksum(snapshot),
                created_at=generate_timestamp(),
            )
            write_json_atomic(versions_dir / f"{info.version_id}.json",
                               {"info": info.to_dict(), "files": snapshot.to_wire_dict()})
        logger.info("Created version %s of project %s", info.version_id, project_id)
        return info

    def load(self, project_id: str) -> Optional[FileSnapshot]:
        live_file = self._project_dir(project_id) / "live.json"
        with self._lock(project_id):
            if not live_file.exists():
                return None
            try:
                data = json.loads(live_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Error loading project %s: %s", project_id, e)
                return None
        return FileSnapshot.from_wire_dict(data)

    def list_versions(self, project_id: str) -> List[VersionInfo]:
        versions_dir = self._project_dir(project_id) / "versions"
        if not versions_dir.exists():
            return []
        versions = []
        for version_file in versions_dir.glob("*.json"):
            try:
                data = json.loads(version_file.read_text(encoding="utf-8"))
                versions.append(VersionInfo(**data["info"]))
            except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning("Skipping unreadable version file %s: %s", version_file, e)
        return sorted(versions, key=lambda v: v.created_at)

    # ==================== extras ====================

    def load_version(self, project_id: str, version_id: str) -> Optional[FileSnapshot]:
        version_file = self._project_dir(project_id) / "versions" / f"{version_id}.json"
        if not version_file.exists():
            return None
        data = json.loads(version_file.read_text(encoding="utf-8"))
        return FileSnapshot.from_wire_dict(data.get("files"))

    def get_metadata(self, project_id: str) -> Optional[ProjectMetadata]:
        return self._read_meta(self._project_dir(project_id))

    def list_projects(self) -> List[str]:
        return sorted(self._project_index.keys())

    def _read_meta(self, project_dir: Path) -> Optional[ProjectMetadata]:
        meta_file = project_dir / "meta.json"
        if not meta_file.exists():
            return None
        try:
            return ProjectMetadata(**json.loads(meta_file.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning("Ignoring unreadable metadata %s: %s", meta_file, e)
            return None
