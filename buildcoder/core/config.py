# buildcoder/core/config.py
"""
Application configuration loaded from ``.buildcoder/config.yaml``.

Credentials never live in the file; the file names the environment variables
that hold them.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from buildflow.backends.pexels import PEXELS_SEARCH_URL

CONFIG_DIR = Path(".buildcoder")
CONFIG_FILE = CONFIG_DIR / "config.yaml"


class ConfigError(ValueError):
    pass


@dataclass
class ProjectConfig:
    id: str = "default"
    name: str = "default"


# provider name -> environment variable holding its key
PROVIDER_TOKEN_ENVS = {
    "gemini": "GEMINI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


@dataclass
class ProviderConfig:
    endpoint: str
    token_env: str
    model: Optional[str] = None


@dataclass
class ModelConfig:
    """
    Model backend settings.

    ``endpoint``/``token_env``/``model`` describe the default route. When
    ``provider`` names an entry of ``providers``, that entry's endpoint and
    credential are used instead; its ``model`` falls back to the default one.
    """
    provider: Optional[str] = None
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    endpoint: str = "http://localhost:8787/generate"
    token_env: str = "BUILDCODER_MODEL_TOKEN"
    timeout: float = 120.0
    model: Optional[str] = None
    audit_model: Optional[str] = None
    summary_model: Optional[str] = None

    def resolve(self) -> ProviderConfig:
        """Endpoint, credential variable and model of the selected provider."""
        if self.provider is None:
            return ProviderConfig(self.endpoint, self.token_env, self.model)
        chosen = self.providers[self.provider]
        return ProviderConfig(chosen.endpoint, chosen.token_env, chosen.model or self.model)


@dataclass
class AgentConfig:
    max_continuations: int = 3
    max_iterations: int = 25
    auto_validate: bool = True


@dataclass
class SandboxConfig:
    npm: str = "npm"
    timeout: float = 300.0
    build_script: str = "build"


@dataclass
class ImagesConfig:
    api_key_env: str = "PEXELS_API_KEY"
    endpoint: str = PEXELS_SEARCH_URL


@dataclass
class StorageConfig:
    dir: str = ".buildcoder/store"


_SECTIONS = {
    "project": ProjectConfig,
    "model": ModelConfig,
    "agent": AgentConfig,
    "sandbox": SandboxConfig,
    "images": ImagesConfig,
    "storage": StorageConfig,
}

# minimum accepted value per integer setting
_INT_MINIMUMS = {("agent", "max_continuations"): 0, ("agent", "max_iterations"): 1}


def _build_providers(raw: Any) -> Dict[str, ProviderConfig]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("'model.providers' must be a mapping of provider names")
    known = {f.name for f in fields(ProviderConfig)}
    providers = {}
    for provider, entry in raw.items():
        where = f"model.providers.{provider}"
        if not isinstance(entry, dict):
            raise ConfigError(f"'{where}' must be a mapping")
        unknown = sorted(set(entry) - known)
        if unknown:
            raise ConfigError(f"Unknown keys in '{where}': {', '.join(unknown)}")
        for key in ("endpoint", "token_env"):
            if not isinstance(entry.get(key), str) or not entry[key]:
                raise ConfigError(f"'{where}.{key}' must be a non-empty string")
        if entry.get("model") is not None and not isinstance(entry["model"], str):
            raise ConfigError(f"'{where}.model' must be a string")
        providers[str(provider)] = ProviderConfig(**entry)
    return providers


def _build_section(name: str, raw: Any):
    cls = _SECTIONS[name]
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(raw).__name__}")
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {', '.join(unknown)}")

    values = {}
    for key, value in raw.items():
        default = known[key].default
        if (name, key) == ("model", "providers"):
            value = _build_providers(value)
        elif isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"'{name}.{key}' must be true or false")
        elif isinstance(default, int) and not isinstance(default, bool):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"'{name}.{key}' must be an integer")
            minimum = _INT_MINIMUMS.get((name, key))
            if minimum is not None and value < minimum:
                raise ConfigError(f"'{name}.{key}' must be at least {minimum}")
        elif isinstance(default, float):
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"'{name}.{key}' must be a positive number")
            value = float(value)
        elif value is not None and not isinstance(value, str):
            raise ConfigError(f"'{name}.{key}' must be a string")
        values[key] = value
    return cls(**values)


@dataclass
class AppConfig:
    project: ProjectConfig = field(default_factory=ProjectConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    images: ImagesConfig = field(default_factory=ImagesConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AppConfig':
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a YAML mapping")
        unknown = sorted(set(data) - set(_SECTIONS))
        if unknown:
            raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")
        config = cls(**{name: _build_section(name, data.get(name)) for name in _SECTIONS})
        provider = config.model.provider
        if provider is not None and provider not in config.model.providers:
            available = ", ".join(sorted(config.model.providers)) or "none configured"
            raise ConfigError(f"'model.provider' {provider!r} is not in model.providers ({available})")
        return config

    @classmethod
    def load(cls, path: Path = CONFIG_FILE) -> 'AppConfig':
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"{path} not found. Run `buildcoder init` first.")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        return cls.from_dict(data)

    def model_token(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        environ = os.environ if environ is None else environ
        return environ.get(self.model.resolve().token_env) or None

    def image_api_key(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        environ = os.environ if environ is None else environ
        return environ.get(self.images.api_key_env) or None

    def to_dict(self) -> Dict[str, Any]:
        return {name: asdict(getattr(self, name)) for name in _SECTIONS}


def validate_config_content(content: str) -> AppConfig:
    """Parse and validate YAML text; raises ConfigError describing the first problem."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML syntax error: {e}")
    if data is None:
        raise ConfigError("Configuration is empty")
    return AppConfig.from_dict(data)
