# buildflow/core/turn_loop.py
"""
Conversation orchestrator: the tool-calling turn loop.

One ``run_loop`` call streams from the model, decodes the stream, dispatches
the decoded tool calls and repeats until a terminal tool, a plain-text answer,
a plan request or the iteration budget stops it.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from buildfs import FileSystemModel

from .accumulator import FileWriteAccumulator
from .collaborators import IModelBackend
from .decoder import decode_stream
from .events import Action, FileContent, Message, PlanRequest, ToolCallEvent
from .exceptions import SessionBusyError
from .models import (
    ActionKind, Attachment, HistoryEntry, Notice, NoticeLevel, PendingPlan, ToolCall, TurnState,
)
from .plan_gate import PlanApprovalGate
from .prompts import PromptRenderer
from .state import NoticeChannel, TurnView, reduce_event, record_action
from .tools import PLAN_TOOL, TOOL_CATALOG, ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 25


class LoopStop:
    TERMINAL = "terminal"
    AWAITING_PLAN = "awaiting_plan"
    BUDGET_EXHAUSTED = "budget_exhausted"


@dataclass
class LoopResult:
    stop: str
    summary: str = ""
    committed: bool = False
    iterations: int = 0
    plan: Optional[PendingPlan] = None

    @property
    def is_terminal(self) -> bool:
        return self.stop == LoopStop.TERMINAL


@dataclass
class _StreamResult:
    text: str = ""
    calls: List[ToolCall] = field(default_factory=list)


class ConversationOrchestrator:
    def __init__(
        self,
        backend: IModelBackend,
        executor: ToolExecutor,
        prompts: Optional[PromptRenderer] = None,
        notices: Optional[NoticeChannel] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.backend = backend
        self.executor = executor
        self.prompts = prompts or PromptRenderer()
        self.notices = notices or NoticeChannel()
        self.max_iterations = max_iterations
        self.gate = PlanApprovalGate()

        self.state = TurnState.IDLE
        self.view = TurnView()
        self._history: List[HistoryEntry] = []
        self._turn_anchor_id: Optional[str] = None
        self._turn_edits: List[str] = []

    # ==================== accessors ====================

    @property
    def fs(self) -> FileSystemModel:
        return self.executor.fs

    @property
    def history(self) -> Sequence[HistoryEntry]:
        return tuple(self._history)

    @property
    def turn_edited_paths(self) -> List[str]:
        """Paths written or deleted since the current user turn began."""
        return list(self._turn_edits)

    @property
    def is_busy(self) -> bool:
        return self.state is not TurnState.IDLE

    # ==================== history ====================

    def begin_user_turn(self, text: str, attachments: Sequence[Attachment] = ()) -> HistoryEntry:
        if self.is_busy:
            raise SessionBusyError(f"A turn is already in progress ({self.state.value})")
        entry = HistoryEntry.user(text, attachments)
        self._history.append(entry)
        self._turn_anchor_id = entry.entry_id
        self._turn_edits = []
        self.view = TurnView()
        return entry

    def append_user_text(self, text: str) -> HistoryEntry:
        """Framing message sent on the user's behalf (continuations)."""
        entry = HistoryEntry.user(text)
        self._history.append(entry)
        return entry

    def append_model_text(self, text: str) -> HistoryEntry:
        entry = HistoryEntry.model(text)
        self._history.append(entry)
        return entry

    def journal(self, kind: ActionKind, target: Optional[str] = None) -> None:
        self.view = record_action(self.view, kind, target)
        self._notify("view", data={"view": self.view})

    # ==================== the loop ====================

    async def run_loop(self) -> LoopResult:
        """
        Stream, dispatch, repeat.

        Fatal model errors propagate to the caller with the state reset to IDLE;
        the draft keeps what was written so far and ``live`` is untouched.
        """
        try:
            for iteration in range(1, self.max_iterations + 1):
                self.state = TurnState.STREAMING
                streamed = await self._stream_once()

                self.state = TurnState.DISPATCHING
                if not streamed.calls:
                    if streamed.text:
                        self._history.append(HistoryEntry.model(streamed.text))
                    self.state = TurnState.IDLE
                    return LoopResult(LoopStop.TERMINAL, summary=streamed.text, iterations=iteration)

                plan = await self._maybe_suspend_for_plan(streamed)
                if plan is not None:
                    self.state = TurnState.AWAITING_PLAN_APPROVAL
                    return LoopResult(LoopStop.AWAITING_PLAN, iterations=iteration, plan=plan)

                result = await self._dispatch(streamed)
                if result is not None:
                    result.iterations = iteration
                    self.state = TurnState.IDLE
                    return result

            logger.warning("Turn stopped after %d model round-trips without finishing", self.max_iterations)
            self.state = TurnState.IDLE
            return LoopResult(LoopStop.BUDGET_EXHAUSTED, iterations=self.max_iterations)
        except BaseException:
            self.state = TurnState.IDLE
            raise

    async def _stream_once(self) -> _StreamResult:
        result = _StreamResult()
        text_parts: List[str] = []
        accumulator = FileWriteAccumulator()
        draft = self.fs.draft
        chunks = self.backend.stream(
            self.history, draft, TOOL_CATALOG, system=self.prompts.system(draft, TOOL_CATALOG)
        )

        async for event in decode_stream(chunks):
            if isinstance(event, Action):
                self._flush_files(accumulator)
            self.view = reduce_event(self.view, event)

            if isinstance(event, Action):
                if event.kind.opens_file and event.target:
                    accumulator.open(event.target)
            elif isinstance(event, FileContent):
                accumulator.append(event.path, event.content, self.fs.draft)
            elif isinstance(event, Message):
                text_parts.append(event.text)
            elif isinstance(event, ToolCallEvent):
                result.calls.append(event.call)
            elif isinstance(event, PlanRequest):
                result.calls.append(ToolCall(PLAN_TOOL, {"steps": list(event.steps)}))

            self._notify("view", data={"view": self.view, "event": event})

        self._flush_files(accumulator)
        result.text = "".join(text_parts)
        return result

    def _flush_files(self, accumulator: FileWriteAccumulator) -> None:
        completed = accumulator.flush()
        if not completed:
            return
        written = self.fs.write_files(completed)
        self._record_edits(written)
        self._notify("files_written", data={"paths": written})

    async def _maybe_suspend_for_plan(self, streamed: _StreamResult) -> Optional[PendingPlan]:
        plan_call = next((c for c in streamed.calls if c.name == PLAN_TOOL), None)
        if plan_call is None:
            return None
        outcome = await self.executor.execute(plan_call)
        if outcome.plan_steps is None:
            # malformed plan; report it to the model like any other failed call
            return None

        plan_entry = HistoryEntry.model(streamed.text, [plan_call])
        self._history.append(plan_entry)
        dropped = len(streamed.calls) - 1
        if dropped:
            logger.info("Ignoring %d tool calls batched with a plan request", dropped)
        pending = self.gate.open(self._turn_anchor_id, plan_entry, outcome.plan_steps, self.fs.draft)
        self._notify("plan_requested", "The agent proposed a plan.", data={"steps": pending.steps})
        return pending

    async def _dispatch(self, streamed: _StreamResult) -> Optional[LoopResult]:
        """Run the calls in order; a LoopResult when a terminal tool ended the turn."""
        dispatched: List[ToolCall] = []
        results = []
        terminal = None
        for call in streamed.calls:
            outcome = await self.executor.execute(call)
            dispatched.append(call)
            if outcome.result is not None:
                results.append(outcome.result)
            self._record_edits(outcome.edited_paths)
            if outcome.written_paths:
                self._notify("files_written", data={"paths": outcome.written_paths})
            if outcome.deleted_paths:
                self._notify("files_deleted", data={"paths": outcome.deleted_paths})
            if outcome.terminal:
                terminal = outcome
                break

        skipped = len(streamed.calls) - len(dispatched)
        if skipped:
            logger.info("Skipping %d tool calls after terminal %s", skipped, terminal.result.name)
        self._history.append(HistoryEntry.model(streamed.text, dispatched))
        self._history.append(HistoryEntry.results(results))

        if terminal is None:
            return None
        if terminal.committed:
            self._notify("committed", "Changes published.", NoticeLevel.SUCCESS,
                         data={"summary": terminal.summary})
        return LoopResult(LoopStop.TERMINAL, summary=terminal.summary or streamed.text,
                          committed=terminal.committed)

    # ==================== plan resolution ====================

    async def approve_plan(self) -> LoopResult:
        plan, result_entry = self.gate.approve()
        self._history.append(result_entry)
        self.fs.replace_draft(plan.draft_snapshot)
        self._notify("plan_approved", "Plan approved.", data={"steps": plan.steps})
        self.state = TurnState.IDLE
        return await self.run_loop()

    def reject_plan(self) -> PendingPlan:
        plan = self.gate.pending
        self._history = self.gate.reject(self._history)
        self._turn_anchor_id = None
        self.state = TurnState.IDLE
        self._notify("plan_rejected", "Plan rejected.", NoticeLevel.WARNING)
        return plan

    def cancel(self) -> None:
        """Session exit: drop a pending plan without touching history or files."""
        self.gate.discard()
        self.state = TurnState.IDLE

    # ==================== helpers ====================

    def _record_edits(self, paths: Sequence[str]) -> None:
        for path in paths:
            if path not in self._turn_edits:
                self._turn_edits.append(path)

    def _notify(self, kind: str, message: str = "", level: NoticeLevel = NoticeLevel.INFO, data=None) -> None:
        self.notices.emit(Notice(kind=kind, message=message, level=level, data=data or {}))
