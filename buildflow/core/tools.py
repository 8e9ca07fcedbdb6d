# buildflow/core/tools.py
"""
Tool execution engine.

Each tool reads or mutates the draft in the ``FileSystemModel`` or calls one
collaborator, and always answers with a JSON-able result for the model.
Collaborator exceptions are converted into ``{"success": False, "error": ...}``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from buildfs import FileSystemModel, has_build_script, manifest_hash, normalize_path, MANIFEST_PATH

from .collaborators import DependencyCacheEntry, IDependencyCacheStore, IImageSearch, ISandboxRuntime
from .models import ToolCall, ToolResult
from ..utils.id_generator import generate_timestamp

logger = logging.getLogger(__name__)

TERMINAL_TOOLS = ("chat", "finish_task")
PLAN_TOOL = "plan_steps"

TOOL_CATALOG: List[Dict[str, Any]] = [
    {
        "name": "list_files",
        "description": "List every path in the current project.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "read_file",
        "description": "Read one file. Binary files are returned base64-encoded with a 'base64:' prefix.",
        "parameters": {
            "type": "object",
            "properties": {"path": {"type": "string", "description": "Project-relative path."}},
            "required": ["path"],
        },
    },
    {
        "name": "create_or_update_files",
        "description": "Create or overwrite files. Takes a mapping of path to full file content.",
        "parameters": {
            "type": "object",
            "properties": {
                "files": {
                    "type": "object",
                    "description": "Mapping of project-relative path to the complete new content.",
                    "additionalProperties": {"type": "string"},
                }
            },
            "required": ["files"],
        },
    },
    {
        "name": "delete_file",
        "description": "Delete one file from the project.",
        "parameters": {
            "type": "object",
            "properties": {"path": {"type": "string"}},
            "required": ["path"],
        },
    },
    {
        "name": "run_build_and_lint",
        "description": "Install dependencies and run the 'build' script of package.json in a sandbox.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "search_external_images",
        "description": "Find a stock photo for the given query.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "orientation": {"type": "string", "enum": ["landscape", "portrait", "square"]},
            },
            "required": ["query"],
        },
    },
    {
        "name": "plan_steps",
        "description": "Propose a step-by-step plan. Work stops until the user approves or rejects it.",
        "parameters": {
            "type": "object",
            "properties": {"steps": {"type": "array", "items": {"type": "string"}}},
            "required": ["steps"],
        },
    },
    {
        "name": "chat",
        "description": "Reply to the user without changing the project. Ends the turn.",
        "parameters": {
            "type": "object",
            "properties": {"message": {"type": "string"}},
            "required": ["message"],
        },
    },
    {
        "name": "finish_task",
        "description": "Declare the work done. Publishes the draft and ends the turn.",
        "parameters": {
            "type": "object",
            "properties": {"summary": {"type": "string"}},
            "required": ["summary"],
        },
    },
]

TOOL_NAMES = tuple(t["name"] for t in TOOL_CATALOG)


@dataclass
class ToolOutcome:
    result: Optional[ToolResult]
    terminal: bool = False
    committed: bool = False
    summary: Optional[str] = None
    written_paths: List[str] = field(default_factory=list)
    deleted_paths: List[str] = field(default_factory=list)
    plan_steps: Optional[List[str]] = None

    @property
    def edited_paths(self) -> List[str]:
        return self.written_paths + self.deleted_paths


def _failure(name: str, message: str) -> ToolResult:
    return ToolResult(name=name, response={"success": False, "error": message})


class ToolExecutor:
    def __init__(
        self,
        fs: FileSystemModel,
        project_id: str,
        sandbox: Optional[ISandboxRuntime] = None,
        image_search: Optional[IImageSearch] = None,
        dependency_cache: Optional[IDependencyCacheStore] = None,
        build_script: str = "build",
    ):
        self.fs = fs
        self.project_id = project_id
        self.sandbox = sandbox
        self.image_search = image_search
        self.dependency_cache = dependency_cache
        self.build_script = build_script
        self._captured_cache: Optional[DependencyCacheEntry] = None

    async def execute(self, call: ToolCall) -> ToolOutcome:
        handler = getattr(self, f"_tool_{call.name}", None) if call.name in TOOL_NAMES else None
        if handler is None:
            logger.warning("Model called unknown tool %r", call.name)
            return ToolOutcome(result=ToolResult(name=call.name, response={"error": "Unknown tool"}))
        try:
            return await handler(call.args or {})
        except Exception as e:
            logger.exception("Tool %s failed", call.name)
            return ToolOutcome(result=_failure(call.name, str(e) or type(e).__name__))

    # ==================== read only ====================

    async def _tool_list_files(self, args: Dict[str, Any]) -> ToolOutcome:
        paths = self.fs.draft.paths(include_directories=True)
        return ToolOutcome(result=ToolResult("list_files", {"success": True, "files": paths}))

    async def _tool_read_file(self, args: Dict[str, Any]) -> ToolOutcome:
        path = args.get("path")
        if not isinstance(path, str) or not path.strip():
            return ToolOutcome(result=_failure("read_file", "Missing 'path' argument."))
        entry = self.fs.draft.get(normalize_path(path))
        if entry is None or entry.is_directory:
            return ToolOutcome(result=ToolResult("read_file", {"content": "File not found."}))
        return ToolOutcome(result=ToolResult("read_file", {"content": entry.to_wire()}))

    # ==================== draft mutation ====================

    async def _tool_create_or_update_files(self, args: Dict[str, Any]) -> ToolOutcome:
        files = args.get("files")
        if not isinstance(files, dict):
            return ToolOutcome(result=_failure(
                "create_or_update_files", "Invalid 'files' argument. Expected an object."))
        bad = [p for p, c in files.items() if not isinstance(c, str)]
        if bad:
            return ToolOutcome(result=_failure(
                "create_or_update_files", f"File content must be a string: {', '.join(sorted(bad))}"))
        written = self.fs.write_files(files)
        logger.info("Draft updated: %s", ", ".join(written))
        return ToolOutcome(
            result=ToolResult("create_or_update_files", {"success": True, "files": written}),
            written_paths=written,
        )

    async def _tool_delete_file(self, args: Dict[str, Any]) -> ToolOutcome:
        path = args.get("path")
        if not isinstance(path, str) or not path.strip():
            return ToolOutcome(result=_failure("delete_file", "Missing 'path' argument."))
        path = normalize_path(path)
        if path not in self.fs.draft:
            return ToolOutcome(result=_failure("delete_file", f"File not found: {path}"))
        removed = self.fs.delete_paths([path])
        return ToolOutcome(
            result=ToolResult("delete_file", {"success": True, "path": path}),
            deleted_paths=removed,
        )

    # ==================== collaborators ====================

    def _cached_dependencies(self, current_hash: str) -> Optional[Dict[str, str]]:
        if self.dependency_cache is None:
            return None
        entry = self.dependency_cache.get(self.project_id)
        if entry is None:
            logger.debug("No dependency cache for project %s", self.project_id)
            return None
        if entry.manifest_hash != current_hash:
            logger.info("Manifest changed; invalidating dependency cache for %s", self.project_id)
            self.dependency_cache.invalidate(self.project_id)
            return None
        logger.info("Dependency cache hit for %s (%d files)", self.project_id, len(entry.files))
        return entry.files

    async def _tool_run_build_and_lint(self, args: Dict[str, Any]) -> ToolOutcome:
        name = "run_build_and_lint"
        snapshot = self.fs.draft
        current_hash = manifest_hash(snapshot)
        if current_hash is None:
            return ToolOutcome(result=_failure(name, f"No {MANIFEST_PATH} found in the project."))
        if not has_build_script(snapshot, self.build_script):
            return ToolOutcome(result=_failure(
                name, f"{MANIFEST_PATH} does not declare a '{self.build_script}' script."))
        if self.sandbox is None:
            return ToolOutcome(result=_failure(name, "No build sandbox is configured."))

        try:
            result = await self.sandbox.verify(snapshot, self._cached_dependencies(current_hash))
        except Exception as e:
            logger.warning("Sandbox verification failed: %s", e)
            return ToolOutcome(result=_failure(name, f"Sandbox error: {e}"))

        if result.cache_files:
            self._captured_cache = DependencyCacheEntry(
                manifest_hash=current_hash, files=dict(result.cache_files), updated_at=generate_timestamp()
            )
        if result.success:
            return ToolOutcome(result=ToolResult(name, {"success": True, "output": result.output}))
        error = result.output or f"Build exited with code {result.exit_code}"
        return ToolOutcome(result=_failure(name, error))

    async def _tool_search_external_images(self, args: Dict[str, Any]) -> ToolOutcome:
        name = "search_external_images"
        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            return ToolOutcome(result=_failure(name, "Missing 'query' argument."))
        orientation = args.get("orientation") or "landscape"
        if self.image_search is None:
            return ToolOutcome(result=_failure(name, "Image search is not configured."))
        try:
            found = await self.image_search.search(query, orientation)
        except Exception as e:
            logger.warning("Image search for %r failed: %s", query, e)
            return ToolOutcome(result=_failure(name, str(e) or "Image search failed."))
        return ToolOutcome(result=ToolResult(name, {
            "success": True, "imageUrl": found.image_url, "attribution": found.attribution,
        }))

    # ==================== control ====================

    async def _tool_plan_steps(self, args: Dict[str, Any]) -> ToolOutcome:
        steps = args.get("steps")
        if not isinstance(steps, list) or not steps or not all(isinstance(s, str) for s in steps):
            return ToolOutcome(result=_failure("plan_steps", "Invalid 'steps' argument. Expected a list of strings."))
        return ToolOutcome(result=None, plan_steps=list(steps))

    async def _tool_chat(self, args: Dict[str, Any]) -> ToolOutcome:
        message = args.get("message")
        message = message if isinstance(message, str) else ""
        return ToolOutcome(result=ToolResult("chat", {"success": True}), terminal=True, summary=message)

    async def _tool_finish_task(self, args: Dict[str, Any]) -> ToolOutcome:
        summary = args.get("summary")
        summary = summary if isinstance(summary, str) and summary.strip() else "Task finished."
        live, changes = self.fs.commit()
        self._refresh_dependency_cache(live)
        return ToolOutcome(
            result=ToolResult("finish_task", {"success": True, "summary": summary,
                                              "changed": changes.touched_paths()}),
            terminal=True,
            committed=True,
            summary=summary,
        )

    def _refresh_dependency_cache(self, live) -> None:
        captured, self._captured_cache = self._captured_cache, None
        if captured is None or self.dependency_cache is None:
            return
        if captured.manifest_hash != manifest_hash(live):
            logger.info("Captured dependency cache is stale for the committed manifest; discarding")
            return
        self.dependency_cache.put(self.project_id, captured)
        logger.info("Dependency cache refreshed for %s (%d files)", self.project_id, len(captured.files))
