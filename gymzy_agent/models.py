"""
Workout data model.

Value types shared by the composer, the output extractor and the reasoning
machine. All of them are immutable; build new instances with
dataclasses.replace() instead of mutating.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

DIFFICULTY_LEVELS: Tuple[str, ...] = ("beginner", "intermediate", "advanced")


def difficulty_rank(level: Optional[str]) -> int:
    """Position of a difficulty level; unknown levels rank as beginner."""
    try:
        return DIFFICULTY_LEVELS.index((level or "").lower())
    except ValueError:
        return 0


@dataclass(frozen=True)
class ExerciseCatalogEntry:
    """A canonical exercise from the catalog."""
    id: str
    name: str
    primary_muscles: FrozenSet[str]
    secondary_muscles: FrozenSet[str] = frozenset()
    equipment: str = "bodyweight"
    difficulty: str = "beginner"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExerciseCatalogEntry":
        return cls(
            id=data["id"],
            name=data["name"],
            primary_muscles=frozenset(data.get("primary_muscles", [])),
            secondary_muscles=frozenset(data.get("secondary_muscles", [])),
            equipment=data.get("equipment", "bodyweight"),
            difficulty=data.get("difficulty", "beginner"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "primary_muscles": sorted(self.primary_muscles),
            "secondary_muscles": sorted(self.secondary_muscles),
            "equipment": self.equipment,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class WorkoutSet:
    """A single prescribed set."""
    reps: int
    weight: float = 0.0
    rpe: int = 8
    is_warmup: bool = False
    is_executed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reps": self.reps,
            "weight": self.weight,
            "rpe": self.rpe,
            "is_warmup": self.is_warmup,
            "is_executed": self.is_executed,
        }


@dataclass(frozen=True)
class WorkoutExercise:
    """
    An exercise inside a generated workout.

    catalog_id links back to the canonical entry. When the name could not be
    resolved the exercise is ad hoc: unmapped=True and catalog_id is a
    synthetic "ai_" identifier.
    """
    catalog_id: str
    name: str
    sets: Tuple[WorkoutSet, ...]
    primary_muscles: Tuple[str, ...] = ()
    secondary_muscles: Tuple[str, ...] = ()
    unmapped: bool = False

    @classmethod
    def from_entry(
        cls,
        entry: ExerciseCatalogEntry,
        sets: int,
        reps: int,
        name: Optional[str] = None,
        weight: float = 0.0,
    ) -> "WorkoutExercise":
        return cls(
            catalog_id=entry.id,
            name=name or entry.name,
            sets=uniform_sets(sets, reps, weight),
            primary_muscles=tuple(sorted(entry.primary_muscles)),
            secondary_muscles=tuple(sorted(entry.secondary_muscles)),
        )

    @property
    def set_count(self) -> int:
        return len(self.sets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "name": self.name,
            "sets": [s.to_dict() for s in self.sets],
            "primary_muscles": list(self.primary_muscles),
            "secondary_muscles": list(self.secondary_muscles),
            "unmapped": self.unmapped,
        }


def uniform_sets(count: int, reps: int, weight: float = 0.0) -> Tuple[WorkoutSet, ...]:
    """Build `count` identical working sets."""
    return tuple(WorkoutSet(reps=reps, weight=weight) for _ in range(max(1, count)))


@dataclass(frozen=True)
class GeneratedWorkout:
    """A complete workout ready to hand to the client."""
    name: str
    exercises: Tuple[WorkoutExercise, ...]
    estimated_duration_minutes: int
    target_muscles: Tuple[str, ...] = ()
    difficulty: str = "beginner"
    reasoning: str = ""
    source: str = "composer"  # composer | fallback | extract:<strategy>

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "exercises": [e.to_dict() for e in self.exercises],
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "target_muscles": list(self.target_muscles),
            "difficulty": self.difficulty,
            "reasoning": self.reasoning,
            "source": self.source,
        }


@dataclass(frozen=True)
class RecoveryClassification:
    """Disjoint split of muscles by recent training volume."""
    overworked: FrozenSet[str] = field(default_factory=frozenset)
    recovered: FrozenSet[str] = field(default_factory=frozenset)
    undertrained: FrozenSet[str] = field(default_factory=frozenset)

    def is_overworked(self, muscles: Iterable[str]) -> bool:
        """True if any of the given muscles is overworked."""
        return any(m in self.overworked for m in muscles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overworked": sorted(self.overworked),
            "recovered": sorted(self.recovered),
            "undertrained": sorted(self.undertrained),
        }
