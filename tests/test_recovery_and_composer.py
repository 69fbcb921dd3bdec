"""Tests for recovery classification and the workout composer."""

from __future__ import annotations

import math

import pytest

from gymzy_agent.models import GeneratedWorkout, RecoveryClassification
from gymzy_agent.skills.recovery_skills import RecoveryThresholds, analyze_muscle_recovery
from gymzy_agent.skills.workout_skills import (
    build_workout,
    enforce_workout_bounds,
    estimate_duration,
    fallback_workout,
    generate_workout,
    prescription_for,
    select_exercises,
    select_target_muscles,
)


# ============================================================================
# RECOVERY ANALYZER
# ============================================================================

class TestAnalyzeMuscleRecovery:

    def test_thresholds(self):
        result = analyze_muscle_recovery({"chest": 1200, "back": 150, "legs": 500})
        assert result.overworked == {"chest"}
        assert result.undertrained == {"back"}
        assert result.recovered == {"legs"}

    def test_boundaries_are_recovered(self):
        result = analyze_muscle_recovery({"chest": 1000, "back": 200})
        assert result.recovered == {"chest", "back"}

    def test_sets_are_disjoint(self):
        volumes = {"chest": 5000, "back": 0, "legs": 300, "core": 999, "biceps": 10}
        result = analyze_muscle_recovery(volumes)
        assert not (result.overworked & result.recovered)
        assert not (result.overworked & result.undertrained)
        assert not (result.recovered & result.undertrained)
        assert result.overworked | result.recovered | result.undertrained == set(volumes)

    def test_extra_muscles_default_to_undertrained(self):
        result = analyze_muscle_recovery({"chest": 500}, muscles=["calves"])
        assert "calves" in result.undertrained

    def test_bad_volumes_treated_as_zero(self):
        result = analyze_muscle_recovery({"chest": -50, "back": "lots", "legs": math.nan})
        assert result.undertrained == {"chest", "back", "legs"}

    def test_custom_thresholds(self):
        result = analyze_muscle_recovery({"chest": 600}, RecoveryThresholds(high=500, low=100))
        assert result.is_overworked(["chest"])

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            RecoveryThresholds(high=100, low=200)

    def test_empty_map(self):
        result = analyze_muscle_recovery(None)
        assert result == RecoveryClassification()


# ============================================================================
# TARGET SELECTION
# ============================================================================

class TestSelectTargetMuscles:

    def test_recovery_priority_scenario(self):
        volumes = {"chest": 1200, "back": 150, "legs": 500}
        classification = analyze_muscle_recovery(volumes)
        assert select_target_muscles(classification, volumes=volumes) == ["back", "legs"]

    def test_explicit_overworked_muscle_filtered(self):
        classification = analyze_muscle_recovery({"chest": 1500, "back": 400})
        assert select_target_muscles(classification, ["chest", "triceps"]) == ["triceps"]

    def test_all_explicit_overworked_falls_back_to_recovery(self):
        volumes = {"chest": 1500, "back": 100}
        classification = analyze_muscle_recovery(volumes)
        targets = select_target_muscles(classification, ["chest"], volumes)
        assert "chest" not in targets
        assert targets == ["back"]

    def test_capped_at_three(self):
        classification = analyze_muscle_recovery({})
        targets = select_target_muscles(classification, ["chest", "back", "legs", "core"])
        assert targets == ["chest", "back", "legs"]

    def test_default_set_when_nothing_qualifies(self):
        assert select_target_muscles(RecoveryClassification()) == ["chest", "legs", "back"]

    def test_default_set_skips_overworked(self):
        classification = RecoveryClassification(overworked=frozenset({"chest", "legs", "back"}))
        assert select_target_muscles(classification) == []

    def test_undertrained_ordered_by_volume(self):
        volumes = {"biceps": 150, "calves": 10, "core": 100, "legs": 600}
        classification = analyze_muscle_recovery(volumes)
        assert select_target_muscles(classification, volumes=volumes) == ["calves", "core", "legs"]


# ============================================================================
# EXERCISE SELECTION
# ============================================================================

class TestSelectExercises:

    def test_two_per_muscle(self, catalog):
        selected = select_exercises(catalog, ["chest", "back"], equipment=["barbell", "dumbbell", "cable"])
        assert len(selected) == 4
        assert all(("chest" in e.primary_muscles | e.secondary_muscles)
                   or ("back" in e.primary_muscles | e.secondary_muscles) for e in selected)

    def test_bodyweight_always_allowed(self, catalog):
        selected = select_exercises(catalog, ["chest", "legs"], equipment=[])
        assert selected
        assert all(e.equipment == "bodyweight" for e in selected)

    def test_backfill_to_minimum(self, catalog):
        selected = select_exercises(catalog, ["calves"], equipment=[])
        assert len(selected) >= 3
        assert len({e.id for e in selected}) == len(selected)

    def test_truncated_to_six(self, catalog):
        selected = select_exercises(
            catalog, ["chest", "back", "legs", "core"], equipment=["barbell", "dumbbell", "cable", "machine"],
        )
        assert len(selected) == 6

    def test_backfill_avoids_overworked(self, catalog):
        selected = select_exercises(catalog, ["calves"], equipment=[], avoid_muscles=["chest", "legs"])
        assert not any(e.primary_muscles & {"chest", "legs"} for e in selected)

    def test_level_preference(self, catalog):
        selected = select_exercises(catalog, ["back"], equipment=["barbell", "cable", "dumbbell"], level="beginner")
        assert all(e.difficulty == "beginner" for e in selected)


# ============================================================================
# WORKOUT BUILDING
# ============================================================================

class TestBuildWorkout:

    @pytest.mark.parametrize("level,expected", [
        ("beginner", (3, 8)),
        ("intermediate", (3, 10)),
        ("advanced", (4, 12)),
        ("unknown", (3, 8)),
    ])
    def test_prescriptions(self, level, expected):
        assert prescription_for(level) == expected

    def test_duration_formula(self, catalog):
        entries = select_exercises(catalog, ["chest", "back"], equipment=["barbell"])
        workout = build_workout(entries, ["chest", "back"], "advanced")
        # 5 per exercise + 2 per set
        assert workout.estimated_duration_minutes == 5 * len(entries) + 2 * len(entries) * 4
        assert workout.difficulty == "advanced"

    def test_reasoning_mentions_decisions(self, catalog):
        volumes = {"chest": 1200, "back": 150}
        classification = analyze_muscle_recovery(volumes)
        targets = select_target_muscles(classification, ["chest", "back"], volumes)
        entries = select_exercises(catalog, targets)
        workout = build_workout(entries, targets, "beginner", None, classification, ["chest", "back"])
        assert "Focusing on undertrained muscle groups: back" in workout.reasoning
        assert "Skipping overworked muscle groups: chest" in workout.reasoning
        assert "Based on your request: chest, back" in workout.reasoning
        assert "Targeting: back" in workout.reasoning

    def test_naming(self, catalog):
        entries = select_exercises(catalog, ["legs"])
        assert build_workout(entries, ["legs"]).name == "Legs Focus"
        assert build_workout(entries, ["legs", "core"]).name == "Legs & Core Workout"
        assert build_workout(entries, ["legs"], workout_type="hiit").name == "Hiit Workout"


class TestGenerateWorkout:

    def test_scenario_excludes_overworked_chest(self, catalog):
        workout = generate_workout(catalog, {"chest": 1200, "back": 150, "legs": 500})
        assert workout.target_muscles == ("back", "legs")
        assert 3 <= workout.exercise_count <= 6
        assert not any("chest" in e.primary_muscles for e in workout.exercises)

    def test_bounds_for_many_inputs(self, catalog):
        for volumes in ({}, {"chest": 5000}, {"core": 10, "calves": 20}, {"legs": 300, "back": 2000}):
            workout = generate_workout(catalog, volumes)
            assert 3 <= workout.exercise_count <= 6

    def test_never_raises(self):
        workout = generate_workout(None, {"chest": 100})
        assert workout.source == "fallback"
        assert workout.name == "Quick Bodyweight Workout"

    def test_fallback_shape(self):
        workout = fallback_workout()
        assert [e.name for e in workout.exercises] == ["Push-ups", "Squat", "Plank"]
        assert workout.estimated_duration_minutes == 20
        assert workout.difficulty == "beginner"


class TestEnforceWorkoutBounds:

    def test_backfills_short_workout(self):
        base = fallback_workout()
        short = GeneratedWorkout(name="Short", exercises=base.exercises[:1], estimated_duration_minutes=5)
        fixed = enforce_workout_bounds(short)
        assert fixed.exercise_count == 3
        assert fixed.estimated_duration_minutes == estimate_duration(fixed.exercises)

    def test_trims_long_workout(self, catalog):
        entries = list(catalog.entries[:8])
        long_workout = build_workout(entries, ["chest"])
        assert enforce_workout_bounds(long_workout).exercise_count == 6

    def test_in_bounds_unchanged(self):
        workout = fallback_workout()
        assert enforce_workout_bounds(workout) is workout
