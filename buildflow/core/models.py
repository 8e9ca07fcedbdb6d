# buildflow/core/models.py
"""
Buildflow core data models.

History entries are frozen; the orchestrator only ever appends new ones (the
single exception is the plan rejection rollback).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from buildfs import FileSnapshot

from ..utils.id_generator import generate_id


class ActionKind(Enum):
    THINKING = "THINKING"
    PLANNING = "PLANNING"
    PLAN_GENERATE = "PLAN_GENERATE"
    RESEARCH = "RESEARCH"
    SEARCH = "SEARCH"
    INSTALL = "INSTALL"
    READ = "READ"
    WRITE = "WRITE"
    EDIT = "EDIT"
    BUILD = "BUILD"
    FIXING = "FIXING"
    VALIDATING = "VALIDATING"
    COMMAND = "COMMAND"
    COMPLETE = "COMPLETE"
    TASK_START = "TASK_START"
    TASK_COMPLETE = "TASK_COMPLETE"
    TASK_FAIL = "TASK_FAIL"

    @property
    def is_task_transition(self) -> bool:
        return self in (ActionKind.TASK_START, ActionKind.TASK_COMPLETE, ActionKind.TASK_FAIL)

    @property
    def opens_file(self) -> bool:
        return self in (ActionKind.WRITE, ActionKind.EDIT)

    @property
    def attaches_to_task(self) -> bool:
        return self in (ActionKind.WRITE, ActionKind.EDIT, ActionKind.READ,
                        ActionKind.INSTALL, ActionKind.COMMAND)


class TaskStatus(Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# action kind -> (required current status, next status)
TASK_TRANSITIONS = {
    ActionKind.TASK_START: (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
    ActionKind.TASK_COMPLETE: (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
    ActionKind.TASK_FAIL: (TaskStatus.IN_PROGRESS, TaskStatus.FAILED),
}


class TurnState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DISPATCHING = "dispatching"
    AWAITING_PLAN_APPROVAL = "awaiting_plan_approval"


class Role(Enum):
    USER = "user"
    MODEL = "model"
    TOOL_RESULT = "tool-result"


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    AWAITING_PLAN_APPROVAL = "awaiting_plan_approval"
    REJECTED = "rejected"
    FAILED = "failed"
    INCOMPLETE = "incomplete"


@dataclass
class Task:
    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "description": self.description, "status": self.status.value}


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_part(self) -> Dict[str, Any]:
        return {"functionCall": {"name": self.name, "args": self.args}}


@dataclass(frozen=True)
class ToolResult:
    name: str
    response: Dict[str, Any]

    @property
    def succeeded(self) -> bool:
        return self.response.get("success", "error" not in self.response) is True

    def to_part(self) -> Dict[str, Any]:
        return {"functionResponse": {"name": self.name, "response": self.response}}


@dataclass(frozen=True)
class Attachment:
    mime_type: str
    data: str  # base64

    def to_part(self) -> Dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class HistoryEntry:
    role: Role
    text: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_results: Tuple[ToolResult, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    entry_id: str = field(default_factory=generate_id)

    @classmethod
    def user(cls, text: str, attachments=()) -> 'HistoryEntry':
        return cls(role=Role.USER, text=text, attachments=tuple(attachments))

    @classmethod
    def model(cls, text: Optional[str] = None, tool_calls=()) -> 'HistoryEntry':
        return cls(role=Role.MODEL, text=text or None, tool_calls=tuple(tool_calls))

    @classmethod
    def results(cls, tool_results) -> 'HistoryEntry':
        return cls(role=Role.TOOL_RESULT, tool_results=tuple(tool_results))

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form sent to the model backend."""
        parts: List[Dict[str, Any]] = []
        if self.text:
            parts.append({"text": self.text})
        parts.extend(a.to_part() for a in self.attachments)
        parts.extend(c.to_part() for c in self.tool_calls)
        parts.extend(r.to_part() for r in self.tool_results)
        return {"role": self.role.value, "parts": parts}


@dataclass
class PendingPlan:
    """Exists only between a plan request and the user's decision."""
    turn_anchor_id: str
    plan_entry_id: str
    steps: List[str]
    draft_snapshot: FileSnapshot


@dataclass
class TurnOutcome:
    status: OutcomeStatus
    summary: str = ""
    error: Optional[str] = None
    edited_paths: List[str] = field(default_factory=list)
    incomplete_tasks: List[Task] = field(default_factory=list)
    committed: bool = False
    plan_steps: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.COMPLETED, OutcomeStatus.AWAITING_PLAN_APPROVAL,
                               OutcomeStatus.REJECTED)


class NoticeLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """One message on the session's notification channel."""
    kind: str
    message: str = ""
    level: NoticeLevel = NoticeLevel.INFO
    data: Dict[str, Any] = field(default_factory=dict)
