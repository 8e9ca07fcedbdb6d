from .proxy_model import ProxyModelBackend
from .pexels import PexelsImageSearch
from .sandbox import NpmSandboxRuntime

__all__ = ['ProxyModelBackend', 'PexelsImageSearch', 'NpmSandboxRuntime']
