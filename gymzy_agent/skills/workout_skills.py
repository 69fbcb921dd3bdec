"""
Workout Skills - Recovery-aware workout composition.

Pipeline:
1. select_target_muscles: explicit request (minus overworked muscles), else
   undertrained then recovered muscles, else a balanced default
2. select_exercises: up to 2 catalog exercises per target muscle, filtered by
   available equipment (bodyweight always allowed), backfilled with
   bodyweight movements to a minimum of 3 and truncated to 6
3. build_workout: sets/reps from fitness level, duration estimate, name and
   a readable reasoning string

generate_workout() runs the whole pipeline and never raises: any failure
returns the fixed bodyweight fallback workout.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from gymzy_agent import config
from gymzy_agent.models import (
    ExerciseCatalogEntry,
    GeneratedWorkout,
    RecoveryClassification,
    WorkoutExercise,
    difficulty_rank,
    uniform_sets,
)
from gymzy_agent.skills.catalog_skills import ExerciseCatalog
from gymzy_agent.skills.recovery_skills import RecoveryThresholds, analyze_muscle_recovery

logger = logging.getLogger(__name__)

# (sets, reps) per fitness level
LEVEL_PRESCRIPTIONS: Dict[str, Tuple[int, int]] = {
    "beginner": (3, 8),
    "intermediate": (3, 10),
    "advanced": (4, 12),
}

FALLBACK_WORKOUT_NAME = "Quick Bodyweight Workout"
FALLBACK_DURATION_MINUTES = 20


def prescription_for(level: Optional[str]) -> Tuple[int, int]:
    return LEVEL_PRESCRIPTIONS.get((level or "").lower(), LEVEL_PRESCRIPTIONS["beginner"])


def estimate_duration(exercises: Sequence[WorkoutExercise]) -> int:
    """5 minutes per exercise plus 2 minutes per set."""
    return sum(5 + 2 * e.set_count for e in exercises)


def _by_volume(muscles: Iterable[str], volumes: Optional[Dict[str, float]]) -> List[str]:
    """Least-trained first; ties by name so ordering is deterministic."""
    volumes = volumes or {}

    def key(m: str):
        try:
            v = float(volumes.get(m, 0) or 0)
        except (TypeError, ValueError):
            v = 0.0
        return (v, m)

    return sorted(muscles, key=key)


def select_target_muscles(
    classification: RecoveryClassification,
    explicit_muscles: Optional[Sequence[str]] = None,
    volumes: Optional[Dict[str, float]] = None,
) -> List[str]:
    """
    Choose at most 3 muscles to train.

    Explicit muscles are honored minus any that are overworked. When the user
    named no muscles (or every named muscle is overworked), undertrained
    muscles come first (up to 2), then recovered ones (up to 2).
    """
    cap = config.MAX_TARGET_MUSCLES

    if explicit_muscles:
        allowed: List[str] = []
        for m in explicit_muscles:
            if m not in classification.overworked and m not in allowed:
                allowed.append(m)
        if allowed:
            return allowed[:cap]
        logger.info(
            "All requested muscles are overworked, choosing by recovery instead: %s",
            list(explicit_muscles),
        )

    undertrained = _by_volume(classification.undertrained, volumes)[:2]
    recovered = _by_volume(classification.recovered, volumes)[:2]
    targets = (undertrained + recovered)[:cap]
    if targets:
        return targets

    defaults = [m for m in config.DEFAULT_TARGET_MUSCLES if m not in classification.overworked]
    return defaults[:cap]


def _level_preference(entry: ExerciseCatalogEntry, level: Optional[str]) -> int:
    if level is None:
        return 0
    return 0 if difficulty_rank(entry.difficulty) <= difficulty_rank(level) else 1


def select_exercises(
    catalog: ExerciseCatalog,
    target_muscles: Sequence[str],
    equipment: Optional[Iterable[str]] = None,
    level: Optional[str] = None,
    avoid_muscles: Iterable[str] = (),
) -> List[ExerciseCatalogEntry]:
    """
    Pick catalog exercises for the target muscles.

    Args:
        catalog: Exercise catalog
        target_muscles: Muscles to train, in priority order
        equipment: Available equipment; bodyweight is always allowed
        level: Fitness level; exercises at or below it are preferred
        avoid_muscles: Exercises whose primary muscles touch these are skipped

    Returns:
        Between 0 and 6 distinct catalog entries (0 only for an empty catalog)
    """
    available: Set[str] = {e.lower() for e in (equipment or [])} | {"bodyweight"}
    avoid = set(avoid_muscles) - set(target_muscles)
    chosen: List[ExerciseCatalogEntry] = []
    chosen_ids: Set[str] = set()

    def usable(entry: ExerciseCatalogEntry) -> bool:
        return (
            entry.id not in chosen_ids
            and entry.equipment in available
            and not (entry.primary_muscles & avoid)
        )

    for muscle in target_muscles:
        candidates = [
            e for e in catalog
            if (muscle in e.primary_muscles or muscle in e.secondary_muscles) and usable(e)
        ]
        # Primary movers first, then exercises suited to the user's level
        candidates.sort(key=lambda e: (0 if muscle in e.primary_muscles else 1, _level_preference(e, level)))
        for entry in candidates[:config.EXERCISES_PER_MUSCLE]:
            chosen.append(entry)
            chosen_ids.add(entry.id)

    if len(chosen) < config.MIN_EXERCISES:
        backfill = [e for e in catalog if e.equipment == "bodyweight" and usable(e)]
        backfill.sort(key=lambda e: _level_preference(e, level))
        for entry in backfill[:config.MIN_EXERCISES - len(chosen)]:
            chosen.append(entry)
            chosen_ids.add(entry.id)
        logger.debug("Backfilled bodyweight exercises, now %d", len(chosen))

    return chosen[:config.MAX_EXERCISES]


def _workout_name(target_muscles: Sequence[str], workout_type: Optional[str]) -> str:
    if workout_type:
        return f"{workout_type.strip().title()} Workout"
    if len(target_muscles) == 1:
        return f"{target_muscles[0].title()} Focus"
    if len(target_muscles) == 2:
        return f"{target_muscles[0].title()} & {target_muscles[1].title()} Workout"
    return "Full Body Workout"


def build_workout(
    exercises: Sequence[ExerciseCatalogEntry],
    target_muscles: Sequence[str],
    level: Optional[str] = "beginner",
    workout_type: Optional[str] = None,
    classification: Optional[RecoveryClassification] = None,
    explicit_muscles: Optional[Sequence[str]] = None,
) -> GeneratedWorkout:
    """Turn selected catalog entries into a prescribed workout."""
    sets, reps = prescription_for(level)
    difficulty = (level or "").lower()
    if difficulty not in LEVEL_PRESCRIPTIONS:
        difficulty = "beginner"
    workout_exercises = tuple(WorkoutExercise.from_entry(e, sets, reps) for e in exercises)

    reasons: List[str] = []
    if classification is not None:
        addressed = [m for m in target_muscles if m in classification.undertrained]
        if addressed:
            reasons.append(f"Focusing on undertrained muscle groups: {', '.join(addressed)}")
        skipped = [m for m in (explicit_muscles or []) if m in classification.overworked]
        if skipped:
            reasons.append(f"Skipping overworked muscle groups: {', '.join(skipped)}")
    if explicit_muscles:
        reasons.append(f"Based on your request: {', '.join(explicit_muscles)}")
    reasons.append(f"Targeting: {', '.join(target_muscles)}")

    return GeneratedWorkout(
        name=_workout_name(target_muscles, workout_type),
        exercises=workout_exercises,
        estimated_duration_minutes=estimate_duration(workout_exercises),
        target_muscles=tuple(target_muscles),
        difficulty=difficulty,
        reasoning=". ".join(reasons),
        source="composer",
    )


def fallback_workout() -> GeneratedWorkout:
    """Fixed 3-exercise bodyweight routine. Has no dependencies and cannot fail."""
    exercises = (
        WorkoutExercise("push-ups", "Push-ups", uniform_sets(3, 10), ("chest",), ("shoulders", "triceps")),
        WorkoutExercise("squat", "Squat", uniform_sets(3, 12), ("legs",), ("core", "glutes")),
        WorkoutExercise("plank", "Plank", uniform_sets(3, 30), ("core",), ("shoulders",)),
    )
    return GeneratedWorkout(
        name=FALLBACK_WORKOUT_NAME,
        exercises=exercises,
        estimated_duration_minutes=FALLBACK_DURATION_MINUTES,
        target_muscles=("chest", "legs", "core"),
        difficulty="beginner",
        reasoning="A simple, effective bodyweight workout you can do anywhere",
        source="fallback",
    )


def generate_workout(
    catalog: ExerciseCatalog,
    volumes: Optional[Dict[str, float]] = None,
    explicit_muscles: Optional[Sequence[str]] = None,
    equipment: Optional[Iterable[str]] = None,
    level: Optional[str] = "beginner",
    workout_type: Optional[str] = None,
    thresholds: Optional[RecoveryThresholds] = None,
) -> GeneratedWorkout:
    """
    Compose a recovery-aware workout. Never raises.

    Returns the fallback workout if any stage fails or the selection comes
    back outside the 3..6 exercise bounds.
    """
    try:
        classification = analyze_muscle_recovery(volumes, thresholds)
        targets = select_target_muscles(classification, explicit_muscles, volumes)
        selected = select_exercises(
            catalog, targets, equipment, level, avoid_muscles=classification.overworked,
        )
        if not config.MIN_EXERCISES <= len(selected) <= config.MAX_EXERCISES:
            logger.warning("Composer selected %d exercises, using fallback workout", len(selected))
            return fallback_workout()
        workout = build_workout(
            selected, targets, level, workout_type, classification, explicit_muscles,
        )
        logger.info(
            "WORKOUT_COMPOSED: name='%s' targets=%s exercises=%d",
            workout.name, list(targets), workout.exercise_count,
        )
        return workout
    except Exception as e:
        logger.exception("Workout composition failed, using fallback: %s", e)
        return fallback_workout()


def enforce_workout_bounds(
    workout: GeneratedWorkout,
    backfill: Optional[GeneratedWorkout] = None,
) -> GeneratedWorkout:
    """
    Clamp a workout to 3..6 exercises.

    Extra exercises are dropped from the end. Missing ones are taken from
    `backfill` (typically the composed workout), then from the fallback
    routine, skipping catalog ids already present.
    """
    exercises = list(workout.exercises[:config.MAX_EXERCISES])
    if len(exercises) < config.MIN_EXERCISES:
        present = {e.catalog_id for e in exercises}
        pools = [backfill.exercises if backfill else (), fallback_workout().exercises]
        for pool in pools:
            for candidate in pool:
                if len(exercises) >= config.MIN_EXERCISES:
                    break
                if candidate.catalog_id not in present:
                    exercises.append(candidate)
                    present.add(candidate.catalog_id)

    if len(exercises) == len(workout.exercises):
        return workout

    logger.info("Adjusted workout from %d to %d exercises", len(workout.exercises), len(exercises))
    return replace(
        workout,
        exercises=tuple(exercises),
        estimated_duration_minutes=estimate_duration(exercises),
    )


__all__ = [
    "LEVEL_PRESCRIPTIONS",
    "build_workout",
    "enforce_workout_bounds",
    "estimate_duration",
    "fallback_workout",
    "generate_workout",
    "prescription_for",
    "select_exercises",
    "select_target_muscles",
]
