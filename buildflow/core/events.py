# buildflow/core/events.py
"""
Typed events of the line-delimited stream protocol.

Every line is one JSON object ``{"type": ..., "data": ...}``. ``parse_event``
turns a decoded object into one of the dataclasses below or raises
``ProtocolError``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from buildfs import normalize_path

from .exceptions import ProtocolError
from .models import ActionKind, ToolCall


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    target: Optional[str] = None


@dataclass(frozen=True)
class FileContent:
    path: str
    content: str


@dataclass(frozen=True)
class Message:
    text: str
    role: str = "assistant"


@dataclass(frozen=True)
class TaskSpec:
    id: str
    description: str


@dataclass(frozen=True)
class TaskList:
    tasks: Tuple[TaskSpec, ...]


@dataclass(frozen=True)
class PlanRequest:
    steps: Tuple[str, ...]


@dataclass(frozen=True)
class RoutingDecision:
    phase: str
    topic: Optional[str] = None


@dataclass(frozen=True)
class UsageMetadata:
    token_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return int(self.token_counts.get("totalTokenCount", 0))


@dataclass(frozen=True)
class SearchSource:
    uri: str
    title: str = ""


@dataclass(frozen=True)
class SearchSources:
    sources: Tuple[SearchSource, ...]


@dataclass(frozen=True)
class ToolCallEvent:
    call: ToolCall


Event = Union[Action, FileContent, Message, TaskList, PlanRequest, RoutingDecision,
              UsageMetadata, SearchSources, ToolCallEvent]


# ==================== parsing ====================

def _require_dict(data: Any, event_type: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ProtocolError(f"'{event_type}' data must be an object")
    return data


def _require_str(data: Dict[str, Any], key: str, event_type: str, allow_empty: bool = False) -> str:
    value = data.get(key)
    if not isinstance(value, str) or (not allow_empty and not value):
        raise ProtocolError(f"'{event_type}' requires a string '{key}'")
    return value


def _require_path(value: str, event_type: str) -> str:
    try:
        return normalize_path(value)
    except ValueError as e:
        raise ProtocolError(f"'{event_type}' has no usable path: {e}")


def _parse_action(data: Any) -> Action:
    data = _require_dict(data, "action")
    raw_kind = _require_str(data, "type", "action")
    try:
        kind = ActionKind(raw_kind.upper())
    except ValueError:
        raise ProtocolError(f"Unknown action kind: {raw_kind}")
    target = data.get("target")
    if target is not None and not isinstance(target, (str, int)):
        raise ProtocolError("'action' target must be a string")
    if target is None:
        return Action(kind=kind)
    target = str(target)
    if kind.opens_file:
        target = _require_path(target, "action")
    return Action(kind=kind, target=target)


def _parse_file_content(data: Any) -> FileContent:
    data = _require_dict(data, "file-content")
    path = _require_path(_require_str(data, "path", "file-content"), "file-content")
    return FileContent(path=path,
                       content=_require_str(data, "content", "file-content", allow_empty=True))


def _parse_message(data: Any) -> Message:
    data = _require_dict(data, "message")
    role = data.get("role", "assistant")
    return Message(text=_require_str(data, "content", "message", allow_empty=True),
                   role=role if isinstance(role, str) else "assistant")


def _parse_task_list(data: Any) -> TaskList:
    if isinstance(data, dict) and "tasks" in data:
        data = data["tasks"]
    if not isinstance(data, list):
        raise ProtocolError("'task_list' data must be a list")
    tasks = []
    for item in data:
        if not isinstance(item, dict) or "id" not in item:
            raise ProtocolError("'task_list' items need an 'id'")
        description = item.get("description", "")
        if not isinstance(description, str):
            raise ProtocolError("'task_list' description must be a string")
        tasks.append(TaskSpec(id=str(item["id"]), description=description))
    return TaskList(tasks=tuple(tasks))


def _parse_plan_request(data: Any) -> PlanRequest:
    data = _require_dict(data, "plan_request")
    steps = data.get("steps")
    if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
        raise ProtocolError("'plan_request' steps must be a list of strings")
    return PlanRequest(steps=tuple(steps))


def _parse_routing(data: Any) -> RoutingDecision:
    data = _require_dict(data, "routing_decision")
    topic = data.get("topic")
    return RoutingDecision(phase=_require_str(data, "phase", "routing_decision"),
                           topic=topic if isinstance(topic, str) else None)


def _parse_usage(data: Any) -> UsageMetadata:
    data = _require_dict(data, "usage_metadata")
    counts = {k: v for k, v in data.items() if isinstance(v, int) and not isinstance(v, bool)}
    return UsageMetadata(token_counts=counts)


def _parse_sources(data: Any) -> SearchSources:
    if not isinstance(data, list):
        raise ProtocolError("'search_sources' data must be a list")
    sources = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("uri"), str):
            raise ProtocolError("'search_sources' items need a 'uri'")
        title = item.get("title")
        sources.append(SearchSource(uri=item["uri"], title=title if isinstance(title, str) else ""))
    return SearchSources(sources=tuple(sources))


def _parse_tool_call(data: Any) -> ToolCallEvent:
    data = _require_dict(data, "tool_call")
    name = _require_str(data, "name", "tool_call")
    args = data.get("args", {})
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ProtocolError("'tool_call' args must be an object")
    return ToolCallEvent(call=ToolCall(name=name, args=args))


_PARSERS = {
    "action": _parse_action,
    "file-content": _parse_file_content,
    "message": _parse_message,
    "task_list": _parse_task_list,
    "plan_request": _parse_plan_request,
    "routing_decision": _parse_routing,
    "usage_metadata": _parse_usage,
    "search_sources": _parse_sources,
    "tool_call": _parse_tool_call,
}


def parse_event(obj: Any) -> Event:
    """Turn one decoded JSON object into an event, or raise ``ProtocolError``."""
    if not isinstance(obj, dict):
        raise ProtocolError("Event line must be a JSON object")
    event_type = obj.get("type")
    parser = _PARSERS.get(event_type) if isinstance(event_type, str) else None
    if parser is None:
        raise ProtocolError(f"Unknown event type: {event_type!r}")
    if "data" not in obj:
        raise ProtocolError(f"'{event_type}' event has no data")
    return parser(obj["data"])
