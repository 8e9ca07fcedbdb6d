from .file_lock import FileLock
from .project_store import FileProjectStore
from .dependency_cache import FileDependencyCache

__all__ = ['FileLock', 'FileProjectStore', 'FileDependencyCache']
