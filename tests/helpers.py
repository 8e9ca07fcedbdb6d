# tests/helpers.py
"""
In-memory collaborators and stream builders shared by the test modules.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from buildfs import FileSnapshot
from buildflow.core.collaborators import (
    DependencyCacheEntry, IDependencyCacheStore, IImageSearch, IModelBackend, IProjectStore,
    ISandboxRuntime, ImageResult, ProjectMetadata, SandboxResult, VersionInfo,
)
from buildflow.core.exceptions import ImageSearchError

PACKAGE_JSON = json.dumps({"name": "app", "scripts": {"build": "vite build"}})


# --- stream builders ---

def action(kind: str, target: Optional[str] = None) -> Dict[str, Any]:
    data = {"type": kind}
    if target is not None:
        data["target"] = target
    return {"type": "action", "data": data}


def file_content(path: str, content: str) -> Dict[str, Any]:
    return {"type": "file-content", "data": {"path": path, "content": content}}


def message(text: str) -> Dict[str, Any]:
    return {"type": "message", "data": {"role": "assistant", "content": text}}


def task_list(*tasks) -> Dict[str, Any]:
    return {"type": "task_list", "data": [{"id": i, "description": d} for i, d in tasks]}


def tool_call(name: str, **args) -> Dict[str, Any]:
    return {"type": "tool_call", "data": {"name": name, "args": args}}


def plan_request(*steps: str) -> Dict[str, Any]:
    return {"type": "plan_request", "data": {"steps": list(steps)}}


def script(*events) -> str:
    """Protocol text: dicts become JSON lines, strings are taken verbatim."""
    return "".join((e if isinstance(e, str) else json.dumps(e)) + "\n" for e in events)


# --- collaborators ---

@dataclass
class StreamCall:
    history: list
    snapshot: FileSnapshot
    tools: list
    system: Optional[str]
    model: Optional[str] = None


class ScriptedModelBackend(IModelBackend):
    """Replays one scripted response per ``stream`` call; an Exception item is raised instead."""

    def __init__(self, turns=(), completions=(), chunk_size: Optional[int] = None):
        self.turns = list(turns)
        self.completions = list(completions)
        self.chunk_size = chunk_size
        self.stream_calls: List[StreamCall] = []
        self.complete_calls: List[StreamCall] = []
        self.closed = False

    async def stream(self, history, snapshot, tools, system=None):
        self.stream_calls.append(StreamCall(list(history), snapshot, tools, system))
        if not self.turns:
            raise AssertionError("Model streamed more often than scripted")
        item = self.turns.pop(0)
        if isinstance(item, Exception):
            raise item
        size = self.chunk_size or max(len(item), 1)
        for start in range(0, len(item), size):
            yield item[start:start + size]

    async def complete(self, history, snapshot, tools=None, model=None, system=None):
        self.complete_calls.append(StreamCall(list(history), snapshot, tools or [], system, model))
        if not self.completions:
            raise AssertionError("Model completed more often than scripted")
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self):
        self.closed = True


class FakeSandbox(ISandboxRuntime):
    def __init__(self, results=None, error: Optional[Exception] = None):
        self.results = list(results or [SandboxResult(True, 0, "build ok")])
        self.error = error
        self.calls = []

    async def verify(self, snapshot, dependency_cache=None):
        self.calls.append((snapshot, dependency_cache))
        if self.error is not None:
            raise self.error
        return self.results.pop(0) if len(self.results) > 1 else self.results[0]


class FakeImageSearch(IImageSearch):
    def __init__(self, api_key: Optional[str] = "key"):
        self.api_key = api_key
        self.queries = []

    async def search(self, query, orientation="landscape"):
        self.queries.append((query, orientation))
        if not self.api_key:
            raise ImageSearchError("Image search credential is not configured.")
        if query == "nothing":
            raise ImageSearchError(f"No images found for '{query}'.")
        return ImageResult(image_url=f"https://img.example/{query}.jpg", attribution="Photo by Ann on Pexels")


class InMemoryProjectStore(IProjectStore):
    def __init__(self, files: Optional[FileSnapshot] = None, project_id: str = "demo"):
        self.projects = {project_id: files} if files is not None else {}
        self.versions: Dict[str, List[VersionInfo]] = {}
        self.saves = []

    def save(self, project_id, snapshot):
        self.projects[project_id] = snapshot
        self.saves.append(snapshot)
        return ProjectMetadata(project_id, project_id, len(snapshot), "x", 0.0, 0.0)

    def create_version(self, project_id, snapshot, summary=None):
        info = VersionInfo(f"v{len(self.versions.get(project_id, [])) + 1}", project_id,
                           summary or "", len(snapshot), "x", 0.0)
        self.versions.setdefault(project_id, []).append(info)
        return info

    def load(self, project_id):
        return self.projects.get(project_id)

    def list_versions(self, project_id):
        return list(self.versions.get(project_id, []))


class InMemoryDependencyCache(IDependencyCacheStore):
    def __init__(self):
        self.entries: Dict[str, DependencyCacheEntry] = {}
        self.invalidated = []

    def get(self, project_id):
        return self.entries.get(project_id)

    def put(self, project_id, entry):
        self.entries[project_id] = entry

    def invalidate(self, project_id):
        self.invalidated.append(project_id)
        self.entries.pop(project_id, None)
