"""
Workout Extractor - Turn unreliable model text into a GeneratedWorkout.

The model is asked for a JSON workout, but what comes back ranges from clean
JSON to markdown prose to a response cut off mid-array. extract_workout()
applies an ordered chain of strategies and stops at the first one that
produces exercises:

1. fenced_json        - fenced or embedded JSON, parsed as-is
2. normalized_json    - JSON after syntax fixups (comments, quotes, commas)
3. truncation_repair  - JSON closed after truncation
4. tabular_regex      - line-oriented prose patterns ("3 sets of 10 reps Squats")
5. keyword_fallback   - canned workout chosen by body-part keywords

Each strategy is a plain function (text, resolver) -> Optional[GeneratedWorkout]
so tiers can be tested in isolation. Strategies 1-4 return None when they find
nothing; strategy 5 always returns a workout.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from gymzy_agent.models import DIFFICULTY_LEVELS, GeneratedWorkout, WorkoutExercise
from gymzy_agent.skills.catalog_skills import (
    ExerciseResolver,
    load_catalog,
    normalize_muscles,
    normalize_name,
)
from gymzy_agent.skills.json_repair import (
    fenced_payloads,
    normalized_payloads,
    truncated_payloads,
)
from gymzy_agent.skills.workout_skills import estimate_duration

logger = logging.getLogger(__name__)

DEFAULT_WORKOUT_NAME = "AI Generated Workout"
DEFAULT_DIFFICULTY = "beginner"
DEFAULT_SETS = 3
DEFAULT_REPS = 10
MAX_TEXT_EXERCISES = 6

Strategy = Callable[[str, ExerciseResolver], Optional[GeneratedWorkout]]


# ============================================================================
# PAYLOAD -> WORKOUT
# ============================================================================

def _first_int(value: Any) -> Optional[int]:
    """Leading integer of a value: 10 -> 10, "8-12" -> 8, "25-30 minutes" -> 25."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        m = re.search(r"\d+", value)
        if m:
            return int(m.group(0))
    return None


def _as_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if isinstance(v, str)]
    return []


def _clamp(value: Optional[int], low: int, high: int, default: int) -> int:
    if value is None or value <= 0:
        return default
    return max(low, min(high, value))


def _parse_prescription(item: Dict[str, Any]) -> Tuple[int, int, float]:
    """(sets, reps, weight) from the many shapes the model uses."""
    raw_sets = item.get("sets")
    reps = _first_int(item.get("reps") or item.get("repetitions"))
    weight = item.get("weight") or 0

    if isinstance(raw_sets, list):
        sets = len(raw_sets)
        first = raw_sets[0] if raw_sets else None
        if isinstance(first, dict):
            reps = reps or _first_int(first.get("reps"))
            weight = weight or first.get("weight") or 0
    else:
        sets = _first_int(raw_sets)

    try:
        weight = float(weight)
    except (TypeError, ValueError):
        weight = 0.0
    return (
        _clamp(sets, 1, 10, DEFAULT_SETS),
        _clamp(reps, 1, 100, DEFAULT_REPS),
        max(0.0, weight),
    )


def _has_exercises(payload: Any) -> bool:
    if isinstance(payload, list):
        return bool(payload)
    if not isinstance(payload, dict):
        return False
    if isinstance(payload.get("workout"), dict):
        payload = payload["workout"]
    exercises = payload.get("exercises")
    return isinstance(exercises, list) and bool(exercises)


def _derive_targets(exercises: Sequence[WorkoutExercise]) -> Tuple[str, ...]:
    targets: List[str] = []
    for e in exercises:
        for m in e.primary_muscles:
            if m not in targets:
                targets.append(m)
    return tuple(targets)


def payload_to_workout(
    payload: Any,
    resolver: ExerciseResolver,
    source: str,
) -> Optional[GeneratedWorkout]:
    """
    Convert a parsed JSON payload into a workout.

    Accepts {"exercises": [...]}, {"workout": {...}} and a bare exercise list.
    Returns None when no named exercise can be read.
    """
    if isinstance(payload, list):
        payload = {"exercises": payload}
    if not _has_exercises(payload):
        return None
    if isinstance(payload.get("workout"), dict):
        payload = payload["workout"]

    target_muscles = normalize_muscles(
        _as_list(payload.get("target_muscles") or payload.get("targetMuscles"))
    )
    exercises: List[WorkoutExercise] = []
    for item in payload["exercises"]:
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        name = item.get("name") or item.get("exercise") or item.get("exerciseName")
        if not isinstance(name, str) or not name.strip():
            continue
        sets, reps, weight = _parse_prescription(item)
        muscles = _as_list(
            item.get("target_muscles") or item.get("primaryMuscles") or item.get("muscles")
        ) or target_muscles
        exercises.append(resolver.to_workout_exercise(name, sets, reps, muscles, weight))

    if not exercises:
        return None

    duration = _first_int(
        payload.get("estimated_duration_minutes")
        or payload.get("estimated_duration")
        or payload.get("estimatedDuration")
        or payload.get("duration")
    )
    difficulty = str(payload.get("difficulty") or DEFAULT_DIFFICULTY).lower()
    if difficulty not in DIFFICULTY_LEVELS:
        difficulty = DEFAULT_DIFFICULTY
    name = payload.get("workout_name") or payload.get("name") or payload.get("title")

    return GeneratedWorkout(
        name=name.strip() if isinstance(name, str) and name.strip() else DEFAULT_WORKOUT_NAME,
        exercises=tuple(exercises),
        estimated_duration_minutes=duration if duration and duration > 0 else estimate_duration(exercises),
        target_muscles=tuple(target_muscles) or _derive_targets(exercises),
        difficulty=difficulty,
        reasoning=str(payload.get("reasoning") or payload.get("notes") or ""),
        source=source,
    )


# ============================================================================
# TIERS 1-3: JSON
# ============================================================================

def _from_payloads(payloads, resolver: ExerciseResolver, source: str) -> Optional[GeneratedWorkout]:
    for payload in payloads:
        workout = payload_to_workout(payload, resolver, source)
        if workout is not None:
            return workout
    return None


def extract_fenced_json(text: str, resolver: ExerciseResolver) -> Optional[GeneratedWorkout]:
    return _from_payloads(fenced_payloads(text), resolver, "extract:fenced_json")


def extract_normalized_json(text: str, resolver: ExerciseResolver) -> Optional[GeneratedWorkout]:
    return _from_payloads(normalized_payloads(text), resolver, "extract:normalized_json")


def extract_truncated_json(text: str, resolver: ExerciseResolver) -> Optional[GeneratedWorkout]:
    return _from_payloads(truncated_payloads(text), resolver, "extract:truncation_repair")


# ============================================================================
# TIER 4: TABULAR PROSE
# Each pattern captures name / sets / reps from a single line. Patterns are
# tried in order per line; the first match wins for that line.
# ============================================================================

_NAME = r"(?P<name>[A-Za-z][A-Za-z0-9 \-'/&]*?)"
_SETS_REPS = r"(?P<sets>\d+)\s*sets?\s*(?:of|x|×)\s*(?P<reps>\d+)"
_SEP = r"\s*[:\-–]\s*"

TABULAR_PATTERNS: List[Tuple[re.Pattern, str]] = [
    # "Exercise: Push-ups, Sets: 3, Reps: 10"
    (re.compile(r"exercise\s*:\s*" + _NAME + r"\s*,\s*sets\s*:\s*(?P<sets>\d+)\s*,\s*reps\s*:\s*(?P<reps>\d+)", re.I),
     "pattern:labeled"),
    # "**1. Push-ups**: 3 sets of 10 reps"
    (re.compile(r"^\s*\*\*\s*\d+[.)]\s*" + _NAME + r"\s*\*\*" + r"\s*[:\-–]?\s*" + _SETS_REPS, re.I),
     "pattern:bold_numbered"),
    # "1. **Push-ups**: 3 sets of 10 reps"
    (re.compile(r"^\s*\d+[.)]\s*\*\*\s*" + _NAME + r"\s*\*\*" + r"\s*[:\-–]?\s*" + _SETS_REPS, re.I),
     "pattern:numbered_bold"),
    # "Do 3 sets of 10 reps Push-ups"
    (re.compile(_SETS_REPS + r"\s*(?:reps?|repetitions)\s+(?:of\s+)?" + _NAME + r"\s*[.!,]?\s*$", re.I),
     "pattern:sets_reps_name"),
    # "Squats: 3 sets x 12 reps", "- Bench Press - 4 sets of 8"
    (re.compile(r"^[\W_]*" + _NAME + _SEP + _SETS_REPS, re.I),
     "pattern:name_sets_reps"),
    # "- Lunges: 3 sets, 10 reps"
    (re.compile(r"^[\W_]*" + _NAME + _SEP + r"(?P<sets>\d+)\s*sets?\s*,\s*(?P<reps>\d+)\s*reps?", re.I),
     "pattern:name_sets_comma_reps"),
    # "1. Squats - 3 x 12"
    (re.compile(r"^\s*\d+[.)]\s*" + _NAME + _SEP + r"(?P<sets>\d+)\s*(?:sets?)?\s*(?:x|×)\s*(?P<reps>\d+)", re.I),
     "pattern:numbered_dash"),
    # "Push-ups (3x10)", "2. Plank (3 x 30 sec)"
    (re.compile(r"^[\W_]*(?:\d+[.)]\s*)?" + _NAME + r"\s*\(\s*(?P<sets>\d+)\s*(?:x|×|\*)\s*(?P<reps>\d+)[^)]*\)", re.I),
     "pattern:name_paren"),
    # "Squats 3x12"
    (re.compile(r"^[\W_]*(?:\d+[.)]\s*)?" + _NAME + r"\s+(?P<sets>\d+)\s*(?:x|×)\s*(?P<reps>\d+)\b", re.I),
     "pattern:name_nxm"),
]

# Headings that name an exercise without a prescription. Only kept when the
# name resolves to the catalog.
HEADING_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^\s*\*\*\s*exercise\s*\d+\s*[:.\-–]\s*" + _NAME + r"\s*\*\*\s*:?\s*$", re.I),
     "heading:exercise_n"),
    (re.compile(r"^\s*\*\*\s*\d+[.)]\s*" + _NAME + r"\s*\*\*\s*:?\s*$", re.I),
     "heading:bold_numbered"),
    (re.compile(r"^\s*#{2,4}\s*(?:\d+[.)]\s*)?" + _NAME + r"\s*$", re.I),
     "heading:markdown"),
]

# "3 sets of 12 reps" on its own line, applied to the preceding heading
_BARE_PRESCRIPTION = re.compile(
    r"^[\W_]*(?:sets?\s*[:\-]?\s*)?" + _SETS_REPS + r"\s*(?:reps?|repetitions|seconds|secs?)?[\W_]*$", re.I
)

_TITLE = re.compile(r"^\s*(?:#+\s*|\*\*\s*)(?P<title>[^*#\n]*\bworkout\b[^*#\n]*?)\s*\**\s*:?\s*$", re.I | re.M)

_NOT_EXERCISES = {"reps", "rep", "sets", "set", "rest", "warm up", "warmup", "cool down", "workout", "exercise"}
_LEADING_FILLER = ("for ", "each ", "per ", "with ", "and ", "then ", "the ", "your ")


def _clean_name(raw: str) -> Optional[str]:
    name = re.sub(r"\s+", " ", raw.strip(" *_-–:.,"))
    key = normalize_name(name)
    if len(key) < 2 or key in _NOT_EXERCISES or key.startswith(_LEADING_FILLER):
        return None
    return name


def extract_tabular(text: str, resolver: ExerciseResolver) -> Optional[GeneratedWorkout]:
    """Assemble a workout from prose lines like "3 sets of 10 reps Push-ups"."""
    exercises: List[WorkoutExercise] = []
    seen: set = set()
    pending_heading: Optional[int] = None

    for line in text.splitlines():
        if len(exercises) >= MAX_TEXT_EXERCISES:
            break
        if not line.strip():
            continue

        matched = False
        for pattern, rule in TABULAR_PATTERNS:
            m = pattern.search(line)
            if not m:
                continue
            name = _clean_name(m.group("name"))
            if name is None:
                continue
            matched = True
            pending_heading = None
            key = normalize_name(name)
            if key not in seen:
                seen.add(key)
                sets = _clamp(int(m.group("sets")), 1, 10, DEFAULT_SETS)
                reps = _clamp(int(m.group("reps")), 1, 100, DEFAULT_REPS)
                exercises.append(resolver.to_workout_exercise(name, sets, reps))
                logger.debug("Tabular match %s: %s %dx%d", rule, name, sets, reps)
            break
        if matched:
            continue

        bare = _BARE_PRESCRIPTION.match(line)
        if bare and pending_heading is not None:
            sets = _clamp(int(bare.group("sets")), 1, 10, DEFAULT_SETS)
            reps = _clamp(int(bare.group("reps")), 1, 100, DEFAULT_REPS)
            heading = exercises[pending_heading]
            exercises[pending_heading] = resolver.to_workout_exercise(heading.name, sets, reps)
            pending_heading = None
            continue

        for pattern, rule in HEADING_PATTERNS:
            m = pattern.match(line)
            if not m:
                continue
            name = _clean_name(m.group("name"))
            if name is None or resolver.resolve(name) is None:
                continue
            key = normalize_name(name)
            if key not in seen:
                seen.add(key)
                exercises.append(resolver.to_workout_exercise(name, DEFAULT_SETS, DEFAULT_REPS))
                pending_heading = len(exercises) - 1
                logger.debug("Heading match %s: %s", rule, name)
            break

    if not exercises:
        return None

    title = _TITLE.search(text)
    return GeneratedWorkout(
        name=title.group("title").strip() if title else DEFAULT_WORKOUT_NAME,
        exercises=tuple(exercises),
        estimated_duration_minutes=estimate_duration(exercises),
        target_muscles=_derive_targets(exercises),
        difficulty=DEFAULT_DIFFICULTY,
        source="extract:tabular_regex",
    )


# ============================================================================
# TIER 5: KEYWORD FALLBACK
# First keyword group found in the text wins; back is the default.
# ============================================================================

KEYWORD_WORKOUTS: List[Tuple[str, Tuple[str, ...], str, Tuple[Tuple[str, int, int], ...]]] = [
    ("full_body", ("full body", "total body", "whole body"), "Full Body Workout",
     (("Squats", 3, 12), ("Push-ups", 3, 10), ("Pull-ups", 3, 8), ("Deadlifts", 3, 8), ("Overhead Press", 3, 10))),
    ("chest", ("chest", "push", "pec"), "Chest Workout",
     (("Push-ups", 3, 12), ("Bench Press", 3, 10), ("Incline Dumbbell Press", 3, 10), ("Dips", 3, 8))),
    ("legs", ("leg", "squat", "lower body", "quad", "hamstring", "glute"), "Leg Workout",
     (("Squats", 4, 12), ("Deadlifts", 3, 8), ("Leg Curls", 3, 12), ("Calf Raises", 3, 15))),
    ("shoulders", ("shoulder", "delt"), "Shoulder Workout",
     (("Overhead Press", 3, 10), ("Lateral Raises", 3, 12), ("Reverse Flyes", 3, 12), ("Dumbbell Shoulder Press", 3, 10))),
    ("arms", ("arm", "bicep", "tricep"), "Arm Workout",
     (("Bicep Curls", 3, 12), ("Tricep Extensions", 3, 12), ("Hammer Curls", 3, 10), ("Tricep Pushdowns", 3, 12))),
]

DEFAULT_KEYWORD_WORKOUT: Tuple[str, str, Tuple[Tuple[str, int, int], ...]] = (
    "back", "Back Workout",
    (("Pull-ups", 3, 8), ("Bent-over Rows", 3, 10), ("Lat Pulldowns", 3, 12), ("Deadlifts", 3, 8)),
)


def infer_workout_type(text: str) -> str:
    lower = (text or "").lower()
    for workout_type, keywords, _, _ in KEYWORD_WORKOUTS:
        if any(k in lower for k in keywords):
            return workout_type
    return DEFAULT_KEYWORD_WORKOUT[0]


def extract_keyword_fallback(text: str, resolver: ExerciseResolver) -> GeneratedWorkout:
    """Canned workout for the body part the text talks about."""
    workout_type = infer_workout_type(text)
    name, template = DEFAULT_KEYWORD_WORKOUT[1], DEFAULT_KEYWORD_WORKOUT[2]
    for candidate, _, candidate_name, candidate_template in KEYWORD_WORKOUTS:
        if candidate == workout_type:
            name, template = candidate_name, candidate_template
            break

    exercises = tuple(resolver.to_workout_exercise(n, s, r) for n, s, r in template)
    return GeneratedWorkout(
        name=name,
        exercises=exercises,
        estimated_duration_minutes=estimate_duration(exercises),
        target_muscles=_derive_targets(exercises),
        difficulty=DEFAULT_DIFFICULTY,
        reasoning=f"Standard {workout_type.replace('_', ' ')} routine",
        source="extract:keyword_fallback",
    )


STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("fenced_json", extract_fenced_json),
    ("normalized_json", extract_normalized_json),
    ("truncation_repair", extract_truncated_json),
    ("tabular_regex", extract_tabular),
    ("keyword_fallback", extract_keyword_fallback),
)


def extract_workout(
    raw_text: Optional[str],
    resolver: Optional[ExerciseResolver] = None,
    *,
    allow_fallback: bool = True,
) -> Optional[GeneratedWorkout]:
    """
    Recover a workout from model text. Never raises.

    Args:
        raw_text: Model output
        resolver: Catalog resolver (defaults to the packaged catalog)
        allow_fallback: When False, stop after tier 4 and return None instead
            of a keyword-inferred canned workout

    Returns:
        The first strategy's workout, or None when every enabled strategy
        came back empty
    """
    text = raw_text if isinstance(raw_text, str) else ""
    if resolver is None:
        resolver = ExerciseResolver(load_catalog())

    for name, strategy in STRATEGIES:
        if name == "keyword_fallback" and not allow_fallback:
            break
        try:
            workout = strategy(text, resolver)
        except Exception as e:
            logger.exception("WORKOUT_EXTRACT: strategy %s failed: %s", name, e)
            continue
        if workout is not None:
            unmapped = sum(1 for ex in workout.exercises if ex.unmapped)
            logger.info(
                "WORKOUT_EXTRACT: strategy=%s exercises=%d unmapped=%d",
                name, workout.exercise_count, unmapped,
            )
            return workout

    logger.info("WORKOUT_EXTRACT: no strategy produced a workout")
    return None


__all__ = [
    "STRATEGIES",
    "TABULAR_PATTERNS",
    "KEYWORD_WORKOUTS",
    "extract_fenced_json",
    "extract_keyword_fallback",
    "extract_normalized_json",
    "extract_tabular",
    "extract_truncated_json",
    "extract_workout",
    "infer_workout_type",
    "payload_to_workout",
]
