# buildflow/core/continuation.py
import logging
from dataclasses import dataclass, field
from typing import List

from .models import ActionKind, NoticeLevel, Notice, Task
from .turn_loop import ConversationOrchestrator, LoopResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTINUATIONS = 3


@dataclass
class ContinuationReport:
    result: LoopResult
    attempts: int = 0
    incomplete_tasks: List[Task] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return bool(self.incomplete_tasks)


class ContinuationSupervisor:
    """
    Re-runs the turn loop while tasks from the turn's task list are unfinished.

    Attempts are sequential and capped at ``max_attempts``. A continuation that
    ends in a plan request or a budget failure stops the supervisor at once.
    """

    def __init__(self, orchestrator: ConversationOrchestrator, max_attempts: int = DEFAULT_MAX_CONTINUATIONS):
        self.orchestrator = orchestrator
        self.max_attempts = max_attempts

    async def supervise(self, result: LoopResult) -> ContinuationReport:
        attempts = 0
        while result.is_terminal and self.orchestrator.view.has_tasks:
            incomplete = self.orchestrator.view.incomplete_tasks()
            if not incomplete:
                break
            if attempts >= self.max_attempts:
                logger.warning("Giving up after %d continuations; unfinished tasks: %s",
                               attempts, ", ".join(t.id for t in incomplete))
                return ContinuationReport(result, attempts, incomplete)

            attempts += 1
            logger.info("Continuation %d/%d for tasks %s", attempts, self.max_attempts,
                        ", ".join(t.id for t in incomplete))
            self.orchestrator.journal(ActionKind.FIXING, f"continuation {attempts}/{self.max_attempts}")
            self.orchestrator.notices.emit(Notice(
                kind="continuation",
                message=f"Resuming {len(incomplete)} unfinished task(s) (attempt {attempts}/{self.max_attempts}).",
                level=NoticeLevel.WARNING,
                data={"attempt": attempts, "tasks": [t.to_dict() for t in incomplete]},
            ))
            self.orchestrator.append_user_text(self.orchestrator.prompts.continuation(incomplete))
            result = await self.orchestrator.run_loop()

        return ContinuationReport(result, attempts)
