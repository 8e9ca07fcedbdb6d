# tests/test_plan_gate.py
import logging

import pytest

from buildfs import FileSnapshot
from buildflow.core.exceptions import NoPendingPlanError, SessionBusyError
from buildflow.core.models import HistoryEntry, Role, TurnState
from buildflow.core.plan_gate import PlanApprovalGate
from buildflow.core.turn_loop import LoopStop

from helpers import message, plan_request, script, tool_call

STEPS = ("Create a theme context", "Add the toggle button")


class TestGate:
    def test_open_and_approve(self):
        gate = PlanApprovalGate()
        anchor, plan_entry = HistoryEntry.user("go"), HistoryEntry.model(tool_calls=())
        gate.open(anchor.entry_id, plan_entry, list(STEPS), FileSnapshot())

        assert gate.is_waiting
        plan, result = gate.approve()

        assert plan.steps == list(STEPS)
        assert result.role is Role.TOOL_RESULT
        assert result.tool_results[0].response == {"success": True, "plan": list(STEPS)}
        assert not gate.is_waiting

    def test_only_one_plan_at_a_time(self):
        gate = PlanApprovalGate()
        gate.open("a", HistoryEntry.model("x"), ["s"], FileSnapshot())
        with pytest.raises(RuntimeError):
            gate.open("b", HistoryEntry.model("y"), ["s"], FileSnapshot())

    def test_resolving_without_a_plan(self):
        gate = PlanApprovalGate()
        with pytest.raises(NoPendingPlanError):
            gate.approve()
        with pytest.raises(NoPendingPlanError):
            gate.reject([])

    def test_reject_removes_exactly_the_prompt_and_the_plan(self):
        gate = PlanApprovalGate()
        earlier = [HistoryEntry.user("hi"), HistoryEntry.model("Hello!")]
        anchor, plan_entry = HistoryEntry.user("go"), HistoryEntry.model(tool_calls=())
        gate.open(anchor.entry_id, plan_entry, ["s"], FileSnapshot())

        assert gate.reject(earlier + [anchor, plan_entry]) == earlier

    def test_reject_rolls_back_the_whole_turn(self, caplog):
        gate = PlanApprovalGate()
        earlier = [HistoryEntry.user("hi"), HistoryEntry.model("Hello!")]
        anchor = HistoryEntry.user("go")
        turn = [anchor, HistoryEntry.model("listing"), HistoryEntry.results([]),
                HistoryEntry.user("continue with task 2")]
        plan_entry = HistoryEntry.model("plan")
        gate.open(anchor.entry_id, plan_entry, ["s"], FileSnapshot())

        with caplog.at_level(logging.INFO, logger="buildflow.core.plan_gate"):
            kept = gate.reject(earlier + turn + [plan_entry])

        assert kept == earlier
        assert "rolled back 5 history entries" in caplog.text

    def test_reject_warns_when_the_anchor_is_missing(self, caplog):
        gate = PlanApprovalGate()
        other, plan_entry = HistoryEntry.user("other"), HistoryEntry.model("plan")
        gate.open("gone", plan_entry, ["s"], FileSnapshot())

        with caplog.at_level(logging.WARNING, logger="buildflow.core.plan_gate"):
            kept = gate.reject([other, plan_entry])

        assert kept == [other]
        assert "not in history" in caplog.text


@pytest.mark.anyio
class TestSuspension:
    async def test_plan_request_suspends_the_turn(self, make_orchestrator, fs, notices):
        orchestrator, backend = make_orchestrator(script(
            plan_request(*STEPS),
            tool_call("create_or_update_files", files={"early.ts": "x"}),
        ))
        orchestrator.begin_user_turn("add dark mode")

        result = await orchestrator.run_loop()

        assert result.stop == LoopStop.AWAITING_PLAN
        assert result.plan.steps == list(STEPS)
        assert orchestrator.state is TurnState.AWAITING_PLAN_APPROVAL
        assert "early.ts" not in fs.draft
        assert [e.role for e in orchestrator.history] == [Role.USER, Role.MODEL]
        assert orchestrator.history[-1].tool_calls[0].name == "plan_steps"
        assert "plan_requested" in [n.kind for n in notices.received]

    async def test_no_new_input_while_waiting(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(script(tool_call("plan_steps", steps=list(STEPS))))
        orchestrator.begin_user_turn("plan it")
        await orchestrator.run_loop()

        with pytest.raises(SessionBusyError):
            orchestrator.begin_user_turn("something else")

    async def test_approve_resumes_with_plan_result(self, make_orchestrator, fs):
        orchestrator, backend = make_orchestrator(
            script(plan_request(*STEPS)),
            script(tool_call("create_or_update_files", files={"src/theme.ts": "dark"}),
                   tool_call("finish_task", summary="Dark mode added")),
        )
        orchestrator.begin_user_turn("add dark mode")
        await orchestrator.run_loop()

        result = await orchestrator.approve_plan()

        resumed_history = backend.stream_calls[1].history
        assert resumed_history[-1].tool_results[0].response == {"success": True, "plan": list(STEPS)}
        assert result.committed
        assert fs.live["src/theme.ts"].content == "dark"
        assert not orchestrator.gate.is_waiting

    async def test_approve_restores_the_draft_seen_by_the_plan(self, make_orchestrator, fs):
        orchestrator, _ = make_orchestrator(
            script(tool_call("create_or_update_files", files={"a.ts": "1"})),
            script(plan_request("one")),
            script(message("ok")),
        )
        orchestrator.begin_user_turn("go")
        await orchestrator.run_loop()
        planned = fs.draft
        fs.replace_draft(FileSnapshot())

        await orchestrator.approve_plan()

        assert fs.draft == planned

    async def test_reject_removes_the_prompt_and_the_plan(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(
            script(message("Hello!")),
            script(plan_request(*STEPS)),
        )
        orchestrator.begin_user_turn("hi")
        await orchestrator.run_loop()
        earlier = orchestrator.history

        orchestrator.begin_user_turn("rewrite everything")
        await orchestrator.run_loop()
        plan = orchestrator.reject_plan()

        assert plan.steps == list(STEPS)
        assert orchestrator.history == earlier
        assert orchestrator.state is TurnState.IDLE
        assert len(backend.stream_calls) == 2

    async def test_reject_after_earlier_iterations_leaves_no_orphans(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            script(message("Hello!")),
            script(tool_call("list_files")),
            script(plan_request(*STEPS)),
        )
        orchestrator.begin_user_turn("hi")
        await orchestrator.run_loop()
        earlier = orchestrator.history

        orchestrator.begin_user_turn("look around, then plan")
        await orchestrator.run_loop()
        assert len(orchestrator.history) == len(earlier) + 4
        orchestrator.reject_plan()

        assert orchestrator.history == earlier
        assert orchestrator.state is TurnState.IDLE

    async def test_malformed_plan_is_reported_as_a_failed_call(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(
            script(tool_call("plan_steps", steps=[])),
            script(message("Sorry.")),
        )
        orchestrator.begin_user_turn("plan")

        result = await orchestrator.run_loop()

        assert result.stop == LoopStop.TERMINAL
        response = backend.stream_calls[1].history[-1].tool_results[0].response
        assert response["success"] is False
