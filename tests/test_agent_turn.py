"""
End-to-end turn tests for CoachAgent.

Every turn runs against FakeGenerator and FakeServices: routing, reasoning,
tool dispatch, confirmation and streaming are real.
"""

from __future__ import annotations

import json
import threading

import pytest

from conftest import FakeGenerator, FakeServices, StallingGenerator, run, tool_call
from gymzy_agent.libs.llm import GeneratorError
from gymzy_agent.shell.agent import CoachAgent
from gymzy_agent.shell.context import ConversationSession
from gymzy_agent.shell.instruction import GENERAL_ERROR_RESPONSE
from gymzy_agent.shell.streaming import AbortSignal

VOLUMES = {"chest": 1200, "back": 150, "legs": 500}

WORKOUT_REPLIES = {
    "Analyze": json.dumps({"intent": "create_workout", "target_muscles": ["back"], "confidence": 0.85}),
    "Extract": json.dumps({"exercise_count": 4, "difficulty": "beginner"}),
    "Create": json.dumps({"workout_name": "Back Builder", "exercises": [
        {"name": "Pull-ups", "sets": 3, "reps": 8},
        {"name": "Bench Press", "sets": 3, "reps": 8},
        {"name": "Inverted Rows", "sets": 3, "reps": 10},
        {"name": "Superman", "sets": 3, "reps": 12},
    ]}),
    "Present": ["Back day! ", "Pull-ups, rows and supermans."],
}


def workout_generator():
    return FakeGenerator(responder=lambda prompt, options: WORKOUT_REPLIES[prompt.split(" ", 1)[0]])


@pytest.fixture
def services():
    return FakeServices()


# ============================================================================
# WORKOUT TURNS
# ============================================================================

class TestWorkoutTurn:

    def test_workout_request(self, services):
        agent = CoachAgent(workout_generator(), services=services)
        received = []
        result = run(agent.process_turn(
            "u1", "Build me a back workout", on_chunk=received.append, muscle_volumes=VOLUMES,
        ))

        assert result.intent == "workout"
        assert result.success
        assert result.content == "Back day! Pull-ups, rows and supermans."
        assert received == WORKOUT_REPLIES["Present"]
        assert result.workout_data["name"] == "Back Builder"
        assert [e["catalog_id"] for e in result.workout_data["exercises"]] == [
            "pull-up", "inverted-row", "superman",
        ]
        assert result.steps_completed[-1] == "generate_response"
        assert result.reasoning
        assert services.calls == []

    def test_volume_provider(self):
        looked_up = []

        def provider(user_id):
            looked_up.append(user_id)
            return VOLUMES

        agent = CoachAgent(workout_generator(), volume_provider=provider)
        result = run(agent.process_turn("u7", "Build me a back workout"))
        assert looked_up == ["u7"]
        assert all("chest" not in e["primary_muscles"] for e in result.workout_data["exercises"])

    def test_volume_provider_failure_is_not_fatal(self):
        def provider(user_id):
            raise ConnectionError("stats service down")

        agent = CoachAgent(workout_generator(), volume_provider=provider)
        result = run(agent.process_turn("u1", "Build me a back workout"))
        assert result.success

    def test_generator_down(self):
        agent = CoachAgent(FakeGenerator(default=GeneratorError("503")))
        result = run(agent.process_turn("u1", "Create a chest workout for me"))
        assert result.intent == "workout"
        assert not result.success
        assert result.workout_data is None
        assert result.confidence == pytest.approx(0.2)
        assert "try again" in result.content


# ============================================================================
# APP CONTROL TURNS
# ============================================================================

class TestAppControlTurn:

    def test_delete_needs_confirmation(self, services):
        generator = FakeGenerator(script=[tool_call("deleteWorkout", workoutId="w1")])
        agent = CoachAgent(generator, services=services)
        result = run(agent.process_turn("u1", "Delete my last workout"))

        assert result.intent == "app_control"
        assert result.requires_confirmation
        assert result.content == result.confirmation_prompt
        assert result.pending_confirmation.args == {"workoutId": "w1"}
        assert result.to_dict()["requires_confirmation"] is True
        assert services.called("delete_workout") == []

        confirmed = agent.confirm_action(result.pending_confirmation)
        assert confirmed.success
        assert len(services.called("delete_workout")) == 1

        assert not agent.confirm_action(result.pending_confirmation).success
        assert len(services.called("delete_workout")) == 1

    def test_cancel_pending(self, services):
        generator = FakeGenerator(script=[tool_call("deleteWorkout", workoutId="w1")])
        agent = CoachAgent(generator, services=services)
        result = run(agent.process_turn("u1", "Delete my last workout"))
        assert agent.cancel_action(result.pending_confirmation)
        assert not agent.confirm_action(result.pending_confirmation).success
        assert services.called("delete_workout") == []

    def test_navigation(self, services):
        generator = FakeGenerator(script=[tool_call("navigateTo", page="stats"), "Opening your stats."])
        agent = CoachAgent(generator, services=services)
        result = run(agent.process_turn("u1", "take me to my stats page"))

        assert result.success
        assert result.navigation_target == "/stats"
        assert result.content == "Opening your stats."
        assert result.confidence == pytest.approx(0.9)
        assert result.tool_calls[0]["status"] == "executed"
        assert generator.calls[0]["tools"]

    def test_unknown_tool(self, services):
        generator = FakeGenerator(script=[tool_call("hack_database"), GeneratorError("summary failed")])
        agent = CoachAgent(generator, services=services)
        result = run(agent.process_turn("u1", "open my settings"))

        assert not result.success
        assert result.content == "I couldn't do that: Unknown function: hack_database"
        assert result.tool_calls[0]["status"] == "rejected"
        assert services.calls == []

    def test_prose_instead_of_tool_call(self, services):
        generator = FakeGenerator(script=["Your settings live under Profile."])
        agent = CoachAgent(generator, services=services)
        result = run(agent.process_turn("u1", "open my settings"))
        assert result.success
        assert result.content == "Your settings live under Profile."
        assert result.confidence == pytest.approx(0.6)


# ============================================================================
# GENERAL TURNS
# ============================================================================

class TestGeneralTurn:

    def test_chat(self):
        generator = FakeGenerator(script=[["Aim for ", "2-3 liters a day."]])
        result = run(CoachAgent(generator).process_turn("u1", "How much water should I drink per day?"))
        assert result.intent == "general"
        assert result.success
        assert result.content == "Aim for 2-3 liters a day."
        assert result.confidence == pytest.approx(0.8)

    def test_generator_failure(self):
        generator = FakeGenerator(script=[GeneratorError("timeout")])
        result = run(CoachAgent(generator).process_turn("u1", "How much water should I drink per day?"))
        assert not result.success
        assert result.content == GENERAL_ERROR_RESPONSE
        assert result.confidence == pytest.approx(0.2)

    def test_failing_callback_never_raises(self):
        def on_chunk(text):
            raise RuntimeError("client went away")

        generator = FakeGenerator(script=["hi"])
        result = run(CoachAgent(generator).process_turn("u1", "hello there", on_chunk=on_chunk))
        assert not result.success
        assert result.content == GENERAL_ERROR_RESPONSE


# ============================================================================
# CANCELLATION AND MEMORY
# ============================================================================

class TestAbortAndSession:

    def test_abort_mid_stream(self):
        upstream = StallingGenerator(first_chunk="Hydration matters")
        session = ConversationSession()
        signal = AbortSignal()
        received = []

        timer = threading.Timer(0.05, signal.abort, args=("user_cancelled",))
        timer.start()
        try:
            result = run(CoachAgent(upstream).process_turn(
                "u1", "How much water should I drink per day?",
                on_chunk=received.append, abort_signal=signal, session=session,
            ))
        finally:
            timer.cancel()

        assert result.aborted
        assert not result.success
        assert result.content == ""
        assert received == ["Hydration matters"]
        assert upstream.closed
        assert len(session) == 0

    def test_history_passed_to_next_turn(self):
        generator = FakeGenerator(script=["First answer.", "Second answer."])
        agent = CoachAgent(generator)
        session = ConversationSession(user_id="u1")

        run(agent.process_turn("u1", "hello there", session=session))
        run(agent.process_turn("u1", "and another thing", session=session))

        assert generator.calls[0]["history"] == []
        assert generator.calls[1]["history"] == [
            {"role": "user", "content": "hello there"},
            {"role": "assistant", "content": "First answer."},
        ]
        assert len(session) == 4

    def test_session_is_bounded(self):
        generator = FakeGenerator(default="ok")
        agent = CoachAgent(generator)
        session = ConversationSession(max_turns=2)
        for i in range(5):
            run(agent.process_turn("u1", f"message {i}", session=session))
        assert len(session) == 4
        assert session.history()[0] == {"role": "user", "content": "message 3"}
