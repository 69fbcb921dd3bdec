"""Tests for lexical intent routing."""

from __future__ import annotations

from gymzy_agent.shell.router import Intent, classify, route_message


class TestWorkoutIntent:

    def test_create_workout_request(self):
        assert classify("Create a chest workout for me") == Intent.WORKOUT

    def test_muscle_and_exercise_terms(self):
        result = route_message("I want to train legs with squats and lunges")
        assert result.intent == Intent.WORKOUT
        assert "muscle" in result.signals
        assert "exercise" in result.signals

    def test_generation_verb_signal(self):
        result = route_message("build me a full body routine")
        assert result.intent == Intent.WORKOUT
        assert "generation_verb" in result.signals

    def test_tie_goes_to_workout(self):
        # "workout" is both a fitness noun and a tool keyword
        result = route_message("workout")
        assert result.intent == Intent.WORKOUT
        assert result.matched_rule == "tie:workout"


class TestAppControlIntent:

    def test_delete_workout(self):
        result = route_message("Delete my last workout")
        assert result.intent == Intent.APP_CONTROL
        assert "delete" in result.app_hits

    def test_stats(self):
        assert classify("show me my stats") == Intent.APP_CONTROL

    def test_settings(self):
        assert classify("switch to dark mode in settings") == Intent.APP_CONTROL

    def test_notifications(self):
        result = route_message("any new notifications?")
        assert result.intent == Intent.APP_CONTROL
        assert result.matched_rule == "score:app_control"


class TestGeneralIntent:

    def test_small_talk(self):
        result = route_message("How much water should I drink per day?")
        assert result.intent == Intent.GENERAL
        assert result.matched_rule == "default:general"
        assert result.workout_hits == []
        assert result.app_hits == []

    def test_empty_text(self):
        assert classify("") == Intent.GENERAL
        assert classify(None) == Intent.GENERAL


class TestDeterminism:

    def test_same_input_same_result(self):
        text = "Plan a back and biceps session"
        first = route_message(text)
        second = route_message(text)
        assert first.intent == second.intent
        assert first.workout_hits == second.workout_hits

    def test_whole_word_matching(self):
        # "pr" is a tool keyword but must not fire inside "program" or "press"
        result = route_message("program")
        assert "pr" not in result.app_hits
