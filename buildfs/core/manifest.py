# buildfs/core/manifest.py
"""Helpers around the project manifest (package.json)."""

import hashlib
import json
import logging
from typing import Any, Dict, Mapping, Optional

from .models import FileEntry

logger = logging.getLogger(__name__)

MANIFEST_PATH = "package.json"


def manifest_hash(files: Mapping[str, FileEntry], manifest_path: str = MANIFEST_PATH) -> Optional[str]:
    """SHA256 of the manifest content; ``None`` when the project has no manifest."""
    entry = files.get(manifest_path)
    if entry is None or entry.is_directory:
        return None
    return hashlib.sha256(entry.as_bytes()).hexdigest()


def read_manifest(files: Mapping[str, FileEntry], manifest_path: str = MANIFEST_PATH) -> Optional[Dict[str, Any]]:
    entry = files.get(manifest_path)
    if entry is None or entry.is_binary or entry.is_directory:
        return None
    try:
        data = json.loads(entry.content)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse %s: %s", manifest_path, e)
        return None
    return data if isinstance(data, dict) else None


def has_build_script(files: Mapping[str, FileEntry], script: str = "build",
                     manifest_path: str = MANIFEST_PATH) -> bool:
    manifest = read_manifest(files, manifest_path)
    if not manifest:
        return False
    scripts = manifest.get("scripts") or {}
    return isinstance(scripts, dict) and bool(scripts.get(script))
