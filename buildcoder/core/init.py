# buildcoder/core/init.py
"""
Project initialization.
"""
import re
from pathlib import Path

import jinja2

from .config import CONFIG_DIR, CONFIG_FILE, PROVIDER_TOKEN_ENVS, validate_config_content

# ------------------------------
# constants
# ------------------------------

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
DEFAULT_ENDPOINT = "http://localhost:8787/generate"
DEFAULT_TOKEN_ENV = "BUILDCODER_MODEL_TOKEN"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "project"


def render_template(template_name: str, **values) -> str:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    return env.get_template(template_name).render(**values)


def render_config(project_name: str, endpoint: str = DEFAULT_ENDPOINT, token_env: str = DEFAULT_TOKEN_ENV,
                  model: str = None, provider: str = None, auto_validate: bool = True) -> str:
    content = render_template(
        "config.yaml.j2",
        project_id=slugify(project_name),
        project_name=project_name.replace('"', "'"),
        endpoint=endpoint,
        token_env=token_env,
        model=model,
        provider=provider,
        providers=PROVIDER_TOKEN_ENVS,
        auto_validate=auto_validate,
    )
    validate_config_content(content)
    return content


def init_project(config_content: str, base_dir: Path = Path(".")) -> Path:
    """Write the rendered config and create the storage layout; returns the config path."""
    state_dir = base_dir / CONFIG_DIR
    state_dir.mkdir(parents=True, exist_ok=True)
    config = validate_config_content(config_content)
    (base_dir / config.storage.dir).mkdir(parents=True, exist_ok=True)
    config_file = base_dir / CONFIG_FILE
    config_file.write_text(config_content, encoding="utf-8")
    return config_file
