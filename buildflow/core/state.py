# buildflow/core/state.py
"""
Display state of a turn.

``reduce_event`` is a pure ``(view, event) -> view`` function; the orchestrator
keeps the latest view and announces changes through a ``NoticeChannel``.
Nothing in here knows how the state is rendered.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .events import (
    Action, Event, Message, PlanRequest, RoutingDecision, SearchSource, SearchSources,
    TaskList, UsageMetadata,
)
from .models import ActionKind, Notice, Task, TaskStatus, TASK_TRANSITIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JournalEntry:
    kind: ActionKind
    target: Optional[str] = None

    def describe(self) -> str:
        return f"{self.kind.value} {self.target}" if self.target else self.kind.value


@dataclass(frozen=True)
class TurnView:
    journal: Tuple[JournalEntry, ...] = ()
    tasks: Tuple[Task, ...] = ()
    message: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    sources: Tuple[SearchSource, ...] = ()
    routing: Optional[RoutingDecision] = None
    plan_steps: Tuple[str, ...] = ()

    @property
    def has_tasks(self) -> bool:
        return bool(self.tasks)

    def incomplete_tasks(self) -> List[Task]:
        return [t for t in self.tasks if t.status is not TaskStatus.COMPLETED]

    def task(self, task_id: str) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def in_progress_task(self) -> Optional[Task]:
        for t in self.tasks:
            if t.status is TaskStatus.IN_PROGRESS:
                return t
        return None


def _replace_task(tasks: Tuple[Task, ...], updated: Task) -> Tuple[Task, ...]:
    return tuple(updated if t.id == updated.id else t for t in tasks)


def _apply_task_transition(view: TurnView, action: Action) -> TurnView:
    task = view.task(action.target) if action.target else None
    if task is None:
        logger.warning("Ignoring %s for unknown task %r", action.kind.value, action.target)
        return view
    required, next_status = TASK_TRANSITIONS[action.kind]
    if task.status is not required:
        logger.warning("Ignoring %s for task %s: status is %s, expected %s",
                       action.kind.value, task.id, task.status.value, required.value)
        return view
    return dataclasses.replace(
        view, tasks=_replace_task(view.tasks, dataclasses.replace(task, status=next_status))
    )


def _apply_action(view: TurnView, action: Action) -> TurnView:
    if action.kind.is_task_transition:
        return _apply_task_transition(view, action)

    view = dataclasses.replace(view, journal=view.journal + (JournalEntry(action.kind, action.target),))
    if action.kind.attaches_to_task:
        active = view.in_progress_task()
        if active is not None:
            entry = JournalEntry(action.kind, action.target).describe()
            attached = dataclasses.replace(active, actions=active.actions + [entry])
            view = dataclasses.replace(view, tasks=_replace_task(view.tasks, attached))
    return view


def reduce_event(view: TurnView, event: Event) -> TurnView:
    """Fold one event into the display state. Events that carry no display state return ``view`` as is."""
    if isinstance(event, Action):
        return _apply_action(view, event)
    if isinstance(event, Message):
        return dataclasses.replace(view, message=view.message + event.text)
    if isinstance(event, TaskList):
        tasks = tuple(Task(id=spec.id, description=spec.description) for spec in event.tasks)
        return dataclasses.replace(view, tasks=tasks)
    if isinstance(event, PlanRequest):
        return dataclasses.replace(view, plan_steps=event.steps)
    if isinstance(event, RoutingDecision):
        return dataclasses.replace(view, routing=event)
    if isinstance(event, UsageMetadata):
        usage = dict(view.usage)
        usage.update(event.token_counts)
        return dataclasses.replace(view, usage=usage)
    if isinstance(event, SearchSources):
        return dataclasses.replace(view, sources=view.sources + event.sources)
    return view


def record_action(view: TurnView, kind: ActionKind, target: Optional[str] = None) -> TurnView:
    """Journal an action raised by the supervisors rather than by the model."""
    return reduce_event(view, Action(kind=kind, target=target))


Subscriber = Callable[[Notice], None]


class NoticeChannel:
    """Fan-out of notices to subscribers (a console, a UI bridge, a test)."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def emit(self, notice: Notice) -> None:
        for callback in list(self._subscribers):
            try:
                callback(notice)
            except Exception:
                logger.exception("Notice subscriber failed on %s", notice.kind)
