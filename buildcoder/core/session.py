# buildcoder/core/session.py
"""
AgentSession - the command surface of the build agent.

Wires the buildflow orchestrator, its supervisors and the collaborators
together for one project and exposes the five commands a front end needs:
submit_prompt, approve_plan, reject_plan, select_file and exit_session.
Only one turn runs at a time; the project is autosaved whenever the session
goes idle with unsaved live changes.
"""

import logging
from typing import List, Optional, Sequence

from buildfs import FileEntry, FileSnapshot, FileSystemModel, normalize_path
from buildflow.backends import NpmSandboxRuntime, PexelsImageSearch, ProxyModelBackend
from buildflow.core.collaborators import (
    IDependencyCacheStore, IImageSearch, IModelBackend, IProjectStore, ISandboxRuntime,
)
from buildflow.core.continuation import ContinuationSupervisor
from buildflow.core.exceptions import (
    ModelBackendError, NoPendingPlanError, SessionBusyError, SessionClosedError,
)
from buildflow.core.models import (
    ActionKind, Attachment, HistoryEntry, Notice, NoticeLevel, OutcomeStatus, PendingPlan, TurnOutcome,
)
from buildflow.core.prompts import PromptRenderer
from buildflow.core.state import NoticeChannel, TurnView
from buildflow.core.tools import ToolExecutor
from buildflow.core.turn_loop import ConversationOrchestrator, LoopStop
from buildflow.core.validation import AutoValidationSupervisor
from buildflow.storage import FileDependencyCache, FileProjectStore

from .config import AppConfig

logger = logging.getLogger(__name__)


class AgentSession:
    def __init__(
        self,
        project_id: str,
        backend: IModelBackend,
        store: IProjectStore,
        sandbox: Optional[ISandboxRuntime] = None,
        image_search: Optional[IImageSearch] = None,
        dependency_cache: Optional[IDependencyCacheStore] = None,
        notices: Optional[NoticeChannel] = None,
        prompts: Optional[PromptRenderer] = None,
        initial_files: Optional[FileSnapshot] = None,
        max_iterations: int = 25,
        max_continuations: int = 3,
        auto_validate: bool = True,
        audit_model: Optional[str] = None,
        summary_model: Optional[str] = None,
        build_script: str = "build",
    ):
        self.project_id = project_id
        self.backend = backend
        self.store = store
        self.image_search = image_search
        self.notices = notices or NoticeChannel()
        prompts = prompts or PromptRenderer()

        stored = store.load(project_id)
        live = stored if stored is not None else (initial_files or FileSnapshot())
        self.fs = FileSystemModel(live=live)
        # imported files count as unsaved until the first autosave
        self._persisted = stored

        executor = ToolExecutor(
            self.fs, project_id,
            sandbox=sandbox, image_search=image_search,
            dependency_cache=dependency_cache, build_script=build_script,
        )
        self.orchestrator = ConversationOrchestrator(
            backend, executor, prompts=prompts, notices=self.notices, max_iterations=max_iterations
        )
        self.continuation = ContinuationSupervisor(self.orchestrator, max_attempts=max_continuations)
        self.validator = AutoValidationSupervisor(
            backend, prompts=prompts, audit_model=audit_model, summary_model=summary_model
        ) if auto_validate else None

        self.active_file: Optional[str] = None
        self.closed = False
        self._running = False
        self._turn_generation = self.fs.generation
        self._last_summary = ""
        self.notices.subscribe(self._track_selection)

    @classmethod
    def from_config(cls, config: AppConfig, notices: Optional[NoticeChannel] = None,
                    initial_files: Optional[FileSnapshot] = None, environ=None) -> 'AgentSession':
        route = config.model.resolve()
        backend = ProxyModelBackend(
            endpoint=route.endpoint,
            token=config.model_token(environ),
            model=route.model,
            timeout=config.model.timeout,
        )
        return cls(
            project_id=config.project.id,
            backend=backend,
            store=FileProjectStore(config.storage.dir),
            sandbox=NpmSandboxRuntime(
                npm=config.sandbox.npm, timeout=config.sandbox.timeout,
                build_script=config.sandbox.build_script,
            ),
            image_search=PexelsImageSearch(config.image_api_key(environ), endpoint=config.images.endpoint),
            dependency_cache=FileDependencyCache(f"{config.storage.dir}/dependency_cache"),
            notices=notices,
            initial_files=initial_files,
            max_iterations=config.agent.max_iterations,
            max_continuations=config.agent.max_continuations,
            auto_validate=config.agent.auto_validate,
            audit_model=config.model.audit_model,
            summary_model=config.model.summary_model,
            build_script=config.sandbox.build_script,
        )

    # ==================== state ====================

    @property
    def is_busy(self) -> bool:
        return self._running or self.orchestrator.gate.is_waiting

    @property
    def pending_plan(self) -> Optional[PendingPlan]:
        return self.orchestrator.gate.pending

    @property
    def history(self) -> Sequence[HistoryEntry]:
        return self.orchestrator.history

    @property
    def view(self) -> TurnView:
        return self.orchestrator.view

    # ==================== commands ====================

    async def submit_prompt(self, text: str, attachments: Sequence[Attachment] = ()) -> TurnOutcome:
        self._ensure_open()
        if self.is_busy:
            raise SessionBusyError("Wait for the current turn (or plan decision) before sending new input")
        if not text or not text.strip():
            raise ValueError("Prompt must not be empty")

        self._turn_generation = self.fs.generation
        self.orchestrator.begin_user_turn(text.strip(), attachments)
        return await self._run_turn(self.orchestrator.run_loop)

    async def approve_plan(self) -> TurnOutcome:
        self._ensure_open()
        if self._running:
            raise SessionBusyError("A turn is already running")
        if not self.orchestrator.gate.is_waiting:
            raise NoPendingPlanError("There is no plan awaiting approval")
        return await self._run_turn(self.orchestrator.approve_plan)

    def reject_plan(self) -> TurnOutcome:
        self._ensure_open()
        if self._running:
            raise SessionBusyError("A turn is already running")
        plan = self.orchestrator.reject_plan()
        return TurnOutcome(
            OutcomeStatus.REJECTED,
            summary="Plan rejected.",
            edited_paths=self.orchestrator.turn_edited_paths,
            plan_steps=list(plan.steps) if plan else [],
        )

    def select_file(self, path: Optional[str]) -> Optional[FileEntry]:
        """Open a draft file in the editor; ``None`` clears the selection."""
        self._ensure_open()
        if path is None:
            self.active_file = None
            return None
        path = normalize_path(path)
        entry = self.fs.draft.get(path)
        if entry is None or entry.is_directory:
            raise FileNotFoundError(f"No such file in the project: {path}")
        self.active_file = path
        return entry

    async def exit_session(self) -> None:
        """
        Discard a pending plan, save what is live and close the backends.

        Refused while a turn is streaming or dispatching; a plan waiting for
        approval does not block the exit.
        """
        if self.closed:
            return
        if self._running:
            raise SessionBusyError("Wait for the current turn to finish before closing the session")
        self.orchestrator.cancel()
        self._autosave()
        self.closed = True
        for collaborator in (self.backend, self.image_search):
            aclose = getattr(collaborator, "aclose", None)
            if aclose is not None:
                await aclose()
        self._notify("session_closed", "Session closed.")

    # ==================== turn driving ====================

    async def _run_turn(self, start) -> TurnOutcome:
        self._running = True
        try:
            outcome = await self._drive(start)
        finally:
            self._running = False
        self._last_summary = outcome.summary or self._last_summary
        self._autosave()
        return outcome

    async def _drive(self, start) -> TurnOutcome:
        try:
            result = await start()
            if result.is_terminal:
                report = await self.continuation.supervise(result)
                result = report.result
                incomplete = report.incomplete_tasks
            else:
                incomplete = []
        except ModelBackendError as e:
            message = f"{e} {e.hint}"
            logger.error("Turn halted: %s", e)
            self._notify("error", message, NoticeLevel.ERROR)
            return self._outcome(OutcomeStatus.FAILED, error=message)

        if result.stop == LoopStop.AWAITING_PLAN:
            return self._outcome(OutcomeStatus.AWAITING_PLAN_APPROVAL, plan_steps=list(result.plan.steps))
        if result.stop == LoopStop.BUDGET_EXHAUSTED:
            message = f"The agent stopped after {result.iterations} model round-trips without finishing."
            self._notify("error", message, NoticeLevel.ERROR)
            return self._outcome(OutcomeStatus.FAILED, error=message)

        if incomplete:
            status = OutcomeStatus.INCOMPLETE
            names = ", ".join(f"{t.id} ({t.description})" for t in incomplete)
            self._notify("incomplete", f"Some tasks did not finish: {names}", NoticeLevel.WARNING,
                         data={"tasks": [t.to_dict() for t in incomplete]})
        else:
            status = OutcomeStatus.COMPLETED

        await self._validate()
        return self._outcome(status, summary=result.summary, incomplete_tasks=incomplete)

    async def _validate(self) -> None:
        if self.validator is None or not self.orchestrator.turn_edited_paths:
            return
        self.orchestrator.journal(ActionKind.VALIDATING)
        report = await self.validator.validate(self.fs.draft)
        self.orchestrator.append_model_text(report.message)
        level = NoticeLevel.INFO if report.succeeded else NoticeLevel.WARNING
        self._notify("validation", report.message, level, data={"findings": report.finding_count})

    def _outcome(self, status: OutcomeStatus, **kwargs) -> TurnOutcome:
        return TurnOutcome(
            status,
            edited_paths=self.orchestrator.turn_edited_paths,
            committed=self.fs.generation > self._turn_generation,
            **kwargs,
        )

    # ==================== persistence ====================

    def _autosave(self) -> None:
        if self._running or self.orchestrator.gate.is_waiting:
            return
        live = self.fs.live
        if self._persisted is not None and live == self._persisted:
            return
        if self._persisted is None and not live:
            return
        try:
            meta = self.store.save(self.project_id, live)
            self.store.create_version(self.project_id, live, summary=self._last_summary or None)
        except Exception as e:
            logger.warning("Autosave of project %s failed: %s", self.project_id, e)
            self._notify("save_failed", f"Could not save the project: {e}", NoticeLevel.WARNING)
            return
        self._persisted = live
        self._notify("saved", f"Saved {meta.file_count} files.", NoticeLevel.SUCCESS)

    # ==================== helpers ====================

    def _track_selection(self, notice: Notice) -> None:
        paths: List[str] = notice.data.get("paths") or []
        if notice.kind == "files_written" and self.active_file is None and paths:
            self.active_file = paths[0]
        elif notice.kind == "files_deleted" and self.active_file in paths:
            self.active_file = None

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("The session has been closed")

    def _notify(self, kind: str, message: str = "", level: NoticeLevel = NoticeLevel.INFO, data=None) -> None:
        self.notices.emit(Notice(kind=kind, message=message, level=level, data=data or {}))
