"""Tests for tool dispatch and the destructive-action confirmation gate."""

from __future__ import annotations

import dataclasses

import pytest

from conftest import FakeServices
from gymzy_agent.libs.llm import ToolCall
from gymzy_agent.shell.dispatcher import EXECUTED, PENDING_CONFIRMATION, REJECTED, ToolDispatcher
from gymzy_agent.shell.safety_gate import (
    ConfirmationError,
    ConfirmationGate,
    is_cancellation_reply,
    is_confirmation_reply,
)
from gymzy_agent.shell.streaming import AbortSignal, StreamSession, TurnAborted
from gymzy_agent.shell.tools import TOOL_DECLARATIONS, get_tool, validate_tool_args


@pytest.fixture
def dispatcher(services):
    return ToolDispatcher(services)


# ============================================================================
# TOOL SCHEMA
# ============================================================================

class TestValidateToolArgs:

    def test_enum_coerced_case_insensitively(self):
        result = validate_tool_args(get_tool("navigateTo"), {"page": "Stats"})
        assert result.valid
        assert result.args == {"page": "stats"}

    def test_enum_rejected(self):
        result = validate_tool_args(get_tool("navigateTo"), {"page": "admin-panel"})
        assert not result.valid
        assert "page must be one of" in result.errors[0]

    def test_missing_required(self):
        result = validate_tool_args(get_tool("searchUsers"), {"limit": 5})
        assert result.errors == ["Missing required parameter: query"]

    def test_type_coercion(self):
        result = validate_tool_args(get_tool("viewWorkoutHistory"), {"limit": "5"})
        assert result.args == {"limit": 5}
        result = validate_tool_args(get_tool("updateSettings"), {"notificationsEnabled": "false"})
        assert result.args == {"notificationsEnabled": False}

    def test_undeclared_args_dropped(self):
        result = validate_tool_args(get_tool("viewFeed"), {"limit": 3, "sql": "DROP TABLE"})
        assert result.args == {"limit": 3}

    def test_non_object_args(self):
        assert not validate_tool_args(get_tool("viewFeed"), ["a"]).valid

    def test_only_delete_is_destructive(self):
        assert [t.name for t in TOOL_DECLARATIONS if t.destructive] == ["deleteWorkout"]


# ============================================================================
# DISPATCH
# ============================================================================

class TestDispatch:

    def test_unknown_tool_rejected(self, dispatcher, services):
        outcome = dispatcher.dispatch(ToolCall(name="hack_database", args={"drop": True}), "u1")
        assert outcome.status == REJECTED
        assert outcome.error == "Unknown function: hack_database"
        assert services.calls == []

    def test_invalid_args_rejected(self, dispatcher, services):
        outcome = dispatcher.dispatch(ToolCall(name="viewStats", args={"timeframe": "decade"}), "u1")
        assert outcome.status == REJECTED
        assert "timeframe must be one of" in outcome.error
        assert services.calls == []

    def test_navigation(self, dispatcher, services):
        outcome = dispatcher.dispatch(ToolCall(name="navigateTo", args={"page": "stats"}), "u1")
        assert outcome.executed
        assert outcome.result.message == "Navigating to stats"
        assert outcome.result.navigation_target == "/stats"
        assert services.calls == []

    def test_service_call(self, dispatcher, services):
        outcome = dispatcher.dispatch(ToolCall(name="viewStats", args={"timeframe": "week"}), "u1")
        assert outcome.status == EXECUTED
        assert outcome.result.message == "Here are your stats for the week"
        assert services.called("get_stats") == [
            ("get_stats", "u1", (), {"timeframe": "week", "metric": "overview"}),
        ]

    def test_service_failure_reported(self):
        services = FakeServices({"get_stats": {"success": False, "error": "backend down"}})
        outcome = ToolDispatcher(services).dispatch(ToolCall(name="viewStats"), "u1")
        assert outcome.executed
        assert not outcome.result.success
        assert outcome.result.error == "backend down"

    def test_skill_exception_becomes_failed_result(self):
        services = FakeServices({"list_workouts": RuntimeError("boom")})
        outcome = ToolDispatcher(services).dispatch(ToolCall(name="viewWorkoutHistory"), "u1")
        assert outcome.executed
        assert not outcome.result.success
        assert outcome.result.message == "Could not complete viewWorkoutHistory"

    def test_aborted_stream_stops_execution(self, dispatcher, services):
        signal = AbortSignal()
        signal.abort("user_cancelled")
        with pytest.raises(TurnAborted):
            dispatcher.dispatch(ToolCall(name="viewStats"), "u1", StreamSession(abort_signal=signal))
        assert services.calls == []

    def test_dispatch_all_keeps_order(self, dispatcher):
        outcomes = dispatcher.dispatch_all([
            ToolCall(name="navigateTo", args={"page": "feed"}),
            ToolCall(name="nope"),
        ], "u1")
        assert [o.status for o in outcomes] == [EXECUTED, REJECTED]

    def test_to_dict(self, dispatcher):
        record = dispatcher.dispatch(ToolCall(name="deleteWorkout", args={"workoutId": "w1"}), "u1").to_dict()
        assert record["status"] == PENDING_CONFIRMATION
        assert record["confirmation_prompt"].startswith("Are you sure")
        assert "token" not in record


# ============================================================================
# CONFIRMATION PROTOCOL
# ============================================================================

class TestConfirmationProtocol:

    def _propose_delete(self, dispatcher):
        return dispatcher.dispatch(ToolCall(name="deleteWorkout", args={"workoutId": "w42"}), "u1")

    def test_destructive_call_is_held(self, dispatcher, services):
        outcome = self._propose_delete(dispatcher)
        assert outcome.status == PENDING_CONFIRMATION
        assert outcome.pending.target_function == "deleteWorkout"
        assert outcome.pending.args == {"workoutId": "w42"}
        assert outcome.pending.token
        assert services.called("delete_workout") == []

    def test_confirm_runs_once(self, dispatcher, services):
        pending = self._propose_delete(dispatcher).pending
        first = dispatcher.confirm_action(pending)
        assert first.success
        assert first.message == "Workout deleted successfully"
        assert services.called("delete_workout") == [("delete_workout", "u1", ("w42",), {})]

        replay = dispatcher.confirm_action(pending)
        assert not replay.success
        assert len(services.called("delete_workout")) == 1

    def test_tampered_args_refused(self, dispatcher, services):
        pending = self._propose_delete(dispatcher).pending
        forged = dataclasses.replace(pending, args={"workoutId": "someone-elses"})
        result = dispatcher.confirm_action(forged)
        assert not result.success
        assert "does not match" in result.message
        assert services.called("delete_workout") == []

    def test_args_mutated_in_place_refused(self, dispatcher, services):
        pending = self._propose_delete(dispatcher).pending
        pending.args["workoutId"] = "someone-elses"
        result = dispatcher.confirm_action(pending)
        assert not result.success
        assert "does not match" in result.message
        assert services.called("delete_workout") == []

    def test_never_issued_refused(self, dispatcher, services):
        pending = self._propose_delete(dispatcher).pending
        other = ToolDispatcher(services)
        assert not other.confirm_action(pending).success
        unsigned = dataclasses.replace(pending, token="")
        assert not dispatcher.confirm_action(unsigned).success
        assert services.called("delete_workout") == []

    def test_cancel(self, dispatcher, services):
        pending = self._propose_delete(dispatcher).pending
        assert dispatcher.cancel_action(pending)
        assert not dispatcher.cancel_action(pending)
        assert not dispatcher.confirm_action(pending).success
        assert services.called("delete_workout") == []


class TestConfirmationGate:

    def test_bounded_registry(self):
        gate = ConfirmationGate(max_pending=2)
        first = gate.propose("deleteWorkout", {"workoutId": "a"}, "u1")
        gate.propose("deleteWorkout", {"workoutId": "b"}, "u1")
        gate.propose("deleteWorkout", {"workoutId": "c"}, "u1")
        assert len(gate) == 2
        assert not gate.is_pending(first)
        with pytest.raises(ConfirmationError):
            gate.confirm(first)

    def test_proposal_args_are_copied(self):
        gate = ConfirmationGate()
        args = {"workoutId": "a"}
        pending = gate.propose("deleteWorkout", args, "u1")
        args["workoutId"] = "b"
        assert pending.args == {"workoutId": "a"}

    def test_confirm_returns_issued_record(self):
        gate = ConfirmationGate()
        pending = gate.propose("deleteWorkout", {"workoutId": "a"}, "u1")
        assert gate.confirm(pending) == pending

    def test_issued_record_independent_of_caller(self):
        gate = ConfirmationGate()
        pending = gate.propose("deleteWorkout", {"workoutId": "a"}, "u1")
        pending.args["workoutId"] = "b"
        with pytest.raises(ConfirmationError):
            gate.confirm(pending)
        assert gate.is_pending(pending)


class TestReplies:

    @pytest.mark.parametrize("text", ["yes", "Confirm", "yes delete it", "ok!", "go ahead"])
    def test_confirmation(self, text):
        assert is_confirmation_reply(text)

    @pytest.mark.parametrize("text", ["no", "cancel", "no, keep it", "yes... no", "delete my account"])
    def test_not_confirmation(self, text):
        assert not is_confirmation_reply(text)

    def test_cancellation(self):
        assert is_cancellation_reply("Never mind")
        assert not is_cancellation_reply("sure")
