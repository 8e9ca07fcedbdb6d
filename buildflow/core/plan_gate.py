# buildflow/core/plan_gate.py
"""
Plan approval gate.

While a plan is pending the turn loop is suspended; the only ways out are
``approve``, ``reject`` and ``discard`` (session exit).
"""

import logging
from typing import List, Optional, Tuple

from buildfs import FileSnapshot

from .exceptions import NoPendingPlanError
from .models import HistoryEntry, PendingPlan, ToolResult
from .tools import PLAN_TOOL

logger = logging.getLogger(__name__)


class PlanApprovalGate:
    def __init__(self):
        self._pending: Optional[PendingPlan] = None

    @property
    def pending(self) -> Optional[PendingPlan]:
        return self._pending

    @property
    def is_waiting(self) -> bool:
        return self._pending is not None

    def open(self, turn_anchor_id: str, plan_entry: HistoryEntry, steps: List[str],
             draft: FileSnapshot) -> PendingPlan:
        if self._pending is not None:
            raise RuntimeError("A plan is already awaiting approval")
        self._pending = PendingPlan(
            turn_anchor_id=turn_anchor_id,
            plan_entry_id=plan_entry.entry_id,
            steps=list(steps),
            draft_snapshot=draft,
        )
        logger.info("Plan with %d steps awaiting approval", len(steps))
        return self._pending

    def approve(self) -> Tuple[PendingPlan, HistoryEntry]:
        """Resolve the plan; returns it with the synthetic tool result to append."""
        plan = self._take()
        result = HistoryEntry.results([ToolResult(PLAN_TOOL, {"success": True, "plan": plan.steps})])
        logger.info("Plan approved")
        return plan, result

    def reject(self, history: List[HistoryEntry]) -> List[HistoryEntry]:
        """
        History cut back to just before the user message that started the turn.

        A plan requested in the first response removes exactly two entries:
        the user message and the plan request. A plan requested later in the
        turn also takes the turn's earlier call/result pairs and continuation
        messages with it.
        """
        plan = self._take()
        ids = [entry.entry_id for entry in history]
        if plan.turn_anchor_id not in ids:
            logger.warning("Turn anchor %s is not in history; removing only the plan request",
                           plan.turn_anchor_id)
            kept = [entry for entry in history if entry.entry_id != plan.plan_entry_id]
        else:
            kept = list(history[:ids.index(plan.turn_anchor_id)])
            removed = len(history) - len(kept)
            if removed > 2:
                logger.info("Plan rejection rolled back %d history entries of the turn", removed)
        logger.info("Plan rejected")
        return kept

    def discard(self) -> None:
        if self._pending is not None:
            logger.info("Discarding pending plan")
        self._pending = None

    def _take(self) -> PendingPlan:
        if self._pending is None:
            raise NoPendingPlanError("There is no plan awaiting approval")
        plan, self._pending = self._pending, None
        return plan
