"""
Router - Lexical intent classification for incoming turns.

Intents:
- workout: build/modify a workout -> Reasoning State Machine
- app_control: navigate, view or change app data -> Tool Dispatcher
- general: anything else -> plain coach chat

Classification is keyword counting, no LLM: every distinct workout term
and every distinct tool keyword found in the text scores one point for its
class. Higher score wins. Ties go to workout if any workout term was seen,
else to app_control if any tool keyword was seen, else general.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from gymzy_agent.shell.tools import app_control_keywords
from gymzy_agent.skills.catalog_skills import EXERCISE_ALIASES, MUSCLE_ALIASES, normalize_name

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """Turn intents."""
    WORKOUT = "workout"
    GENERAL = "general"
    APP_CONTROL = "app_control"


@dataclass
class RoutingResult:
    """Result of routing decision."""
    intent: Intent
    workout_hits: List[str] = field(default_factory=list)
    app_hits: List[str] = field(default_factory=list)
    matched_rule: Optional[str] = None
    signals: List[str] = field(default_factory=list)


# ============================================================================
# VOCABULARY
# ============================================================================

GENERATION_VERBS: FrozenSet[str] = frozenset([
    "create", "generate", "build", "design", "make me", "plan", "program",
    "modify", "change", "adjust", "double", "swap", "replace", "train",
])

FITNESS_NOUNS: FrozenSet[str] = frozenset([
    "workout", "workouts", "exercise", "exercises", "training", "fitness",
    "routine", "session", "sets", "reps", "hiit", "circuit", "split",
])

EXERCISE_TERMS: FrozenSet[str] = frozenset(
    list(EXERCISE_ALIASES.keys()) + [
        "squat", "deadlift", "bench press", "curl", "curls", "push up", "pull up",
        "plank", "lunge", "row", "rows", "dips", "burpees",
    ]
)

MUSCLE_TERMS: FrozenSet[str] = frozenset(MUSCLE_ALIASES.keys())

WORKOUT_VOCABULARY: FrozenSet[str] = GENERATION_VERBS | FITNESS_NOUNS | EXERCISE_TERMS | MUSCLE_TERMS


def _normalize_terms(terms: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t for t in (normalize_name(term) for term in terms) if t)


_WORKOUT_TERMS = _normalize_terms(WORKOUT_VOCABULARY)
_APP_TERMS = _normalize_terms(app_control_keywords())
_VERB_TERMS = _normalize_terms(GENERATION_VERBS)
_MUSCLE_TERMS = _normalize_terms(MUSCLE_TERMS)
_EXERCISE_TERMS = _normalize_terms(EXERCISE_TERMS)


def _hits(padded_text: str, terms: FrozenSet[str]) -> List[str]:
    return sorted(t for t in terms if f" {t} " in padded_text)


def route_message(text: str) -> RoutingResult:
    """Classify a user message and report which terms decided it."""
    normalized = normalize_name(text or "")
    padded = f" {normalized} "

    workout_hits = _hits(padded, _WORKOUT_TERMS)
    app_hits = _hits(padded, _APP_TERMS)

    signals: List[str] = []
    if any(t in _VERB_TERMS for t in workout_hits):
        signals.append("generation_verb")
    if any(t in _MUSCLE_TERMS for t in workout_hits):
        signals.append("muscle")
    if any(t in _EXERCISE_TERMS for t in workout_hits):
        signals.append("exercise")
    if app_hits:
        signals.append("tool_keyword")

    if len(workout_hits) > len(app_hits):
        intent, rule = Intent.WORKOUT, "score:workout"
    elif len(app_hits) > len(workout_hits):
        intent, rule = Intent.APP_CONTROL, "score:app_control"
    elif workout_hits:
        intent, rule = Intent.WORKOUT, "tie:workout"
    elif app_hits:
        intent, rule = Intent.APP_CONTROL, "tie:app_control"
    else:
        intent, rule = Intent.GENERAL, "default:general"

    logger.info(
        "ROUTER: '%s' → %s (%s, workout=%d app=%d)",
        (text or "")[:40], intent.value, rule, len(workout_hits), len(app_hits),
    )
    return RoutingResult(
        intent=intent,
        workout_hits=workout_hits,
        app_hits=app_hits,
        matched_rule=rule,
        signals=signals,
    )


def classify(text: str) -> Intent:
    """Deterministic intent for `text`."""
    return route_message(text).intent


__all__ = [
    "Intent",
    "RoutingResult",
    "WORKOUT_VOCABULARY",
    "classify",
    "route_message",
]
