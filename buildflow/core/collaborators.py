# buildflow/core/collaborators.py
"""
Interfaces of the collaborators the orchestration core talks to.

Concrete implementations live in ``buildflow.backends`` and
``buildflow.storage``; tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from buildfs import FileSnapshot

from .models import HistoryEntry


# ==================== results ====================

@dataclass
class SandboxResult:
    success: bool
    exit_code: int
    output: str = ""
    cache_files: Dict[str, str] = field(default_factory=dict)


@dataclass
class ImageResult:
    image_url: str
    attribution: str


@dataclass
class DependencyCacheEntry:
    manifest_hash: str
    files: Dict[str, str] = field(default_factory=dict)
    updated_at: float = 0.0


@dataclass
class ProjectMetadata:
    project_id: str
    name: str
    file_count: int
    checksum: str
    created_at: float
    updated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class VersionInfo:
    version_id: str
    project_id: str
    summary: str
    file_count: int
    checksum: str
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


# ==================== interfaces ====================

class IModelBackend(ABC):
    """Language model behind the agent; speaks the line-delimited event protocol."""

    @abstractmethod
    def stream(self, history: Sequence[HistoryEntry], snapshot: FileSnapshot,
               tools: List[Dict[str, Any]], system: Optional[str] = None) -> AsyncIterator[str]:
        """Incremental raw text. Raises ModelBackendError subclasses on fatal failures."""

    @abstractmethod
    async def complete(self, history: Sequence[HistoryEntry], snapshot: FileSnapshot,
                       tools: Optional[List[Dict[str, Any]]] = None,
                       model: Optional[str] = None, system: Optional[str] = None) -> str:
        """Single, non-streamed response."""


class ISandboxRuntime(ABC):
    @abstractmethod
    async def verify(self, snapshot: FileSnapshot,
                     dependency_cache: Optional[Dict[str, str]] = None) -> SandboxResult:
        """Mount ``snapshot``, install dependencies and run the build script."""


class IProjectStore(ABC):
    @abstractmethod
    def save(self, project_id: str, snapshot: FileSnapshot) -> ProjectMetadata:
        pass

    @abstractmethod
    def create_version(self, project_id: str, snapshot: FileSnapshot,
                       summary: Optional[str] = None) -> VersionInfo:
        pass

    @abstractmethod
    def load(self, project_id: str) -> Optional[FileSnapshot]:
        pass

    @abstractmethod
    def list_versions(self, project_id: str) -> List[VersionInfo]:
        pass


class IImageSearch(ABC):
    @abstractmethod
    async def search(self, query: str, orientation: str = "landscape") -> ImageResult:
        """Raises ImageSearchError when no credential is configured or nothing matched."""


class IDependencyCacheStore(ABC):
    @abstractmethod
    def get(self, project_id: str) -> Optional[DependencyCacheEntry]:
        pass

    @abstractmethod
    def put(self, project_id: str, entry: DependencyCacheEntry) -> None:
        pass

    @abstractmethod
    def invalidate(self, project_id: str) -> None:
        pass
