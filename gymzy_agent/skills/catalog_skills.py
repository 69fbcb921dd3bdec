"""
Catalog Skills - Exercise catalog loading and free-text name resolution.

The catalog is read-only reference data shipped with the package
(data/exercises.json). Every exercise that leaves the agent is either linked
to a catalog entry or explicitly flagged as ad hoc (unmapped).

Resolution order for a free-text exercise name:
1. Exact alias match ("bent-over rows" -> barbell-row)
2. Alias substring match in either direction (skipped for inputs < 3 chars)
3. Catalog display name / id equality or containment in either direction
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from gymzy_agent.models import ExerciseCatalogEntry, WorkoutExercise, uniform_sets

logger = logging.getLogger(__name__)

CATALOG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "exercises.json")

MIN_SUBSTRING_MATCH_LENGTH = 3

# Curated spellings the model commonly produces -> catalog id
EXERCISE_ALIASES: Dict[str, str] = {
    # Back
    "bent-over rows": "barbell-row",
    "bent over rows": "barbell-row",
    "barbell rows": "barbell-row",
    "pull-ups": "pull-up",
    "pullups": "pull-up",
    "chin-ups": "chin-up",
    "lat pulldowns": "lat-pulldown",
    "dumbbell rows": "dumbbell-row",
    "one-arm rows": "dumbbell-row",
    "inverted rows": "inverted-row",
    "australian pull-ups": "inverted-row",
    "supermans": "superman",
    # Chest
    "pushups": "push-ups",
    "press-ups": "push-ups",
    "barbell bench press": "bench-press",
    "incline press": "incline-dumbbell-press",
    "chest flyes": "dumbbell-fly",
    "dumbbell flyes": "dumbbell-fly",
    "chest dips": "dips",
    "tricep dips": "dips",
    # Shoulders
    "military press": "overhead-press",
    "shoulder press": "overhead-press",
    "dumbbell shoulder press": "seated-dumbbell-shoulder-press",
    "side raises": "lateral-raises",
    "reverse flyes": "reverse-dumbbell-fly",
    "rear delt flyes": "reverse-dumbbell-fly",
    "face pulls": "face-pull",
    "pike push-ups": "pike-push-up",
    # Legs
    "squats": "squat",
    "air squats": "squat",
    "bodyweight squats": "squat",
    "back squats": "barbell-back-squat",
    "barbell squats": "barbell-back-squat",
    "deadlifts": "deadlift",
    "romanian deadlifts": "romanian-deadlift",
    "rdl": "romanian-deadlift",
    "walking lunges": "lunges",
    "split squats": "bulgarian-split-squat",
    "bulgarian split squats": "bulgarian-split-squat",
    "leg curls": "seated-leg-curl",
    "hamstring curls": "seated-leg-curl",
    "leg extensions": "leg-extension",
    "glute bridges": "glute-bridge",
    "hip thrusts": "hip-thrust",
    "jump squats": "jump-squats",
    "standing calf raises": "calf-raises",
    "seated calf raises": "seated-calf-raise",
    # Arms
    "bicep curls": "dumbbell-curl",
    "biceps curls": "dumbbell-curl",
    "dumbbell curls": "dumbbell-curl",
    "barbell curls": "barbell-curl",
    "hammer curls": "hammer-curl",
    "tricep extensions": "tricep-extension",
    "overhead tricep extension": "tricep-extension",
    "skull crushers": "tricep-extension",
    "tricep pushdowns": "tricep-pushdown",
    "rope pushdowns": "tricep-pushdown",
    "close grip bench press": "close-grip-bench-press",
    # Core / conditioning
    "planks": "plank",
    "plank hold": "plank",
    "crunches": "crunch",
    "sit-ups": "crunch",
    "leg raises": "hanging-leg-raise",
    "hanging leg raises": "hanging-leg-raise",
}

# Free-text muscle names -> catalog muscle groups
MUSCLE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "chest": ("chest",), "pecs": ("chest",), "pectorals": ("chest",), "pec": ("chest",),
    "back": ("back",), "lats": ("back",), "lat": ("back",), "upper back": ("back",),
    "lower back": ("back",), "traps": ("back",), "rhomboids": ("back",),
    "shoulders": ("shoulders",), "shoulder": ("shoulders",), "delts": ("shoulders",),
    "deltoids": ("shoulders",), "delt": ("shoulders",),
    "biceps": ("biceps",), "bicep": ("biceps",),
    "triceps": ("triceps",), "tricep": ("triceps",),
    "arms": ("biceps", "triceps"), "arm": ("biceps", "triceps"),
    "core": ("core",), "abs": ("core",), "abdominals": ("core",), "obliques": ("core",),
    "legs": ("legs",), "leg": ("legs",), "quads": ("legs",), "quadriceps": ("legs",),
    "hamstrings": ("legs",), "thighs": ("legs",), "lower body": ("legs",),
    "glutes": ("glutes",), "glute": ("glutes",), "hips": ("glutes",),
    "calves": ("calves",), "calf": ("calves",),
    "upper body": ("chest", "back", "shoulders"),
    "full body": ("chest", "legs", "back"),
}


def normalize_name(text: str) -> str:
    """Lowercase, treat -/_ as spaces, collapse whitespace."""
    text = re.sub(r"[-_]+", " ", (text or "").lower())
    text = re.sub(r"[^a-z0-9 ]+", "", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_muscles(names: Iterable[str]) -> List[str]:
    """
    Map free-text muscle names onto catalog muscle groups.

    Unknown names are dropped. Order of first appearance is preserved and
    duplicates removed.
    """
    result: List[str] = []
    for raw in names or []:
        if not isinstance(raw, str):
            continue
        key = normalize_name(raw)
        groups = MUSCLE_ALIASES.get(key)
        if groups is None and key.endswith("s"):
            groups = MUSCLE_ALIASES.get(key[:-1])
        if groups is None:
            logger.debug("Unknown muscle name dropped: %s", raw)
            continue
        for group in groups:
            if group not in result:
                result.append(group)
    return result


class ExerciseCatalog:
    """Immutable, id-indexed set of canonical exercises."""

    def __init__(
        self,
        entries: Sequence[ExerciseCatalogEntry],
        muscles: Optional[Sequence[str]] = None,
        equipment: Optional[Sequence[str]] = None,
    ):
        self._entries: Tuple[ExerciseCatalogEntry, ...] = tuple(entries)
        self._by_id: Dict[str, ExerciseCatalogEntry] = {e.id: e for e in self._entries}
        if len(self._by_id) != len(self._entries):
            raise ValueError("Exercise catalog contains duplicate ids")

        if muscles is None:
            seen: List[str] = []
            for e in self._entries:
                for m in sorted(e.primary_muscles):
                    if m not in seen:
                        seen.append(m)
            muscles = seen
        self._muscles: Tuple[str, ...] = tuple(muscles)
        self._equipment: Tuple[str, ...] = tuple(
            equipment if equipment is not None
            else sorted({e.equipment for e in self._entries})
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "ExerciseCatalog":
        entries = [ExerciseCatalogEntry.from_dict(d) for d in data.get("exercises", [])]
        return cls(entries, muscles=data.get("muscles"), equipment=data.get("equipment"))

    @property
    def entries(self) -> Tuple[ExerciseCatalogEntry, ...]:
        return self._entries

    @property
    def muscles(self) -> Tuple[str, ...]:
        return self._muscles

    @property
    def equipment(self) -> Tuple[str, ...]:
        return self._equipment

    def get(self, exercise_id: str) -> Optional[ExerciseCatalogEntry]:
        return self._by_id.get(exercise_id)

    def by_muscle(self, muscle: str) -> List[ExerciseCatalogEntry]:
        """Entries whose primary muscles include `muscle`, in catalog order."""
        return [e for e in self._entries if muscle in e.primary_muscles]

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._by_id

    def __iter__(self) -> Iterator[ExerciseCatalogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


_default_catalog: Optional[ExerciseCatalog] = None


def load_catalog(path: Optional[str] = None) -> ExerciseCatalog:
    """Load the catalog from JSON. The packaged catalog is loaded once and reused."""
    global _default_catalog
    if path is None and _default_catalog is not None:
        return _default_catalog

    with open(path or CATALOG_PATH, "r", encoding="utf-8") as f:
        catalog = ExerciseCatalog.from_dict(json.load(f))
    logger.info("Loaded exercise catalog: %d exercises from %s", len(catalog), path or CATALOG_PATH)

    if path is None:
        _default_catalog = catalog
    return catalog


class ExerciseResolver:
    """Maps free-text exercise names onto catalog entries."""

    def __init__(self, catalog: ExerciseCatalog, aliases: Optional[Dict[str, str]] = None):
        self.catalog = catalog
        self._aliases: Dict[str, str] = {}
        for alias, exercise_id in (aliases if aliases is not None else EXERCISE_ALIASES).items():
            if exercise_id in catalog:
                self._aliases[normalize_name(alias)] = exercise_id
            else:
                logger.warning("Alias '%s' points at unknown exercise id '%s'", alias, exercise_id)
        # Display names and ids are exact aliases of themselves
        for entry in catalog:
            self._aliases.setdefault(normalize_name(entry.name), entry.id)
            self._aliases.setdefault(normalize_name(entry.id), entry.id)

        # Longest first so "seated calf raises" beats "calf raises"
        self._alias_items: List[Tuple[str, str]] = sorted(
            self._aliases.items(), key=lambda kv: (-len(kv[0]), kv[0])
        )
        self._names: List[Tuple[str, ExerciseCatalogEntry]] = [
            (normalize_name(e.name), e) for e in catalog
        ] + [(normalize_name(e.id), e) for e in catalog]

    def resolve(self, name: str) -> Optional[ExerciseCatalogEntry]:
        """Return the catalog entry for `name`, or None if nothing matches."""
        key = normalize_name(name)
        if not key:
            return None

        exercise_id = self._aliases.get(key)
        if exercise_id:
            return self.catalog.get(exercise_id)

        if len(key) < MIN_SUBSTRING_MATCH_LENGTH:
            return None

        # Alias contained in the input (longest alias wins)
        for alias, exercise_id in self._alias_items:
            if alias in key:
                return self.catalog.get(exercise_id)

        # Input contained in an alias (shortest alias wins)
        for alias, exercise_id in reversed(self._alias_items):
            if key in alias:
                return self.catalog.get(exercise_id)

        for display, entry in self._names:
            if display in key or key in display:
                return entry

        return None

    def to_workout_exercise(
        self,
        name: str,
        sets: int,
        reps: int,
        fallback_muscles: Sequence[str] = (),
        weight: float = 0.0,
    ) -> WorkoutExercise:
        """
        Build a WorkoutExercise for a free-text name.

        Resolved names link to their catalog entry and keep the name as given.
        Unresolved names become ad hoc exercises with muscles taken from
        `fallback_muscles` (or "back" when none are known).
        """
        entry = self.resolve(name)
        if entry is not None:
            return WorkoutExercise.from_entry(entry, sets, reps, name=name.strip(), weight=weight)

        muscles = tuple(normalize_muscles(fallback_muscles)) or ("back",)
        slug = normalize_name(name).replace(" ", "_") or "exercise"
        logger.warning("Exercise not in catalog, using ad hoc entry: %s", name)
        return WorkoutExercise(
            catalog_id=f"ai_{slug}",
            name=name.strip(),
            sets=uniform_sets(sets, reps, weight),
            primary_muscles=muscles,
            unmapped=True,
        )


__all__ = [
    "ExerciseCatalog",
    "ExerciseResolver",
    "EXERCISE_ALIASES",
    "MUSCLE_ALIASES",
    "load_catalog",
    "normalize_muscles",
    "normalize_name",
]
