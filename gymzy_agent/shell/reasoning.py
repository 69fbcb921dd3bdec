"""
Reasoning - Step-wise state machine for workout requests.

Flow:
    analyze_intent -> extract_parameters -> validate_and_correct
        -> execute_workout_creation -> generate_response -> complete

Each step is an async reducer (state, ctx) -> state over a frozen
ReasoningState. A step either advances to the next step or records an
error_state, in which case the machine jumps straight to generate_response.
Edges depend on error_state only.

Boundary rules:
- Exceptions raised inside a step become error_state "<step>_failed".
- A run that uses up the step budget gets error_state "step_budget_exceeded".
- TurnAborted is never converted; cancellation ends the run immediately.
- generate_response always produces user-facing text.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from gymzy_agent import config
from gymzy_agent.libs.llm import BaseGenerator, GeneratorError
from gymzy_agent.models import GeneratedWorkout
from gymzy_agent.shell.instruction import (
    COACH_INSTRUCTION,
    ERROR_RESPONSE,
    INTENT_PROMPT,
    PARAMETERS_PROMPT,
    RESPONSE_PROMPT,
    WORKOUT_PROMPT,
)
from gymzy_agent.shell.streaming import StreamSession, TurnAborted
from gymzy_agent.skills.catalog_skills import (
    MUSCLE_ALIASES,
    ExerciseCatalog,
    ExerciseResolver,
    normalize_muscles,
    normalize_name,
)
from gymzy_agent.skills.json_repair import parse_json_payload
from gymzy_agent.skills.recovery_skills import RecoveryThresholds, analyze_muscle_recovery
from gymzy_agent.skills.workout_extractor import extract_workout
from gymzy_agent.skills.workout_skills import (
    LEVEL_PRESCRIPTIONS,
    enforce_workout_bounds,
    estimate_duration,
    generate_workout,
    select_exercises,
    select_target_muscles,
)

logger = logging.getLogger(__name__)


class Step(str, Enum):
    ANALYZE_INTENT = "analyze_intent"
    EXTRACT_PARAMETERS = "extract_parameters"
    VALIDATE_AND_CORRECT = "validate_and_correct"
    EXECUTE_WORKOUT_CREATION = "execute_workout_creation"
    GENERATE_RESPONSE = "generate_response"
    COMPLETE = "complete"


# Confidence assigned to each workout source
EXTRACTION_CONFIDENCE: Dict[str, float] = {
    "extract:fenced_json": 0.9,
    "extract:normalized_json": 0.8,
    "extract:truncation_repair": 0.7,
    "extract:tabular_regex": 0.6,
}
COMPOSED_CONFIDENCE = 0.5
RESPONSE_FALLBACK_CONFIDENCE = 0.6

WORKOUT_TYPES: Dict[str, Tuple[str, ...]] = {
    "hiit": ("hiit", "interval", "intervals", "tabata"),
    "strength": ("strength", "strong", "stronger", "heavy", "power"),
    "hypertrophy": ("hypertrophy", "muscle building", "build muscle", "bulk", "size"),
    "endurance": ("endurance", "stamina", "conditioning", "cardio"),
}

MIN_DURATION_MINUTES = 10
MAX_DURATION_MINUTES = 120


@dataclass(frozen=True)
class ReasoningState:
    """Everything the machine knows about one workout request."""
    user_input: str
    user_id: str
    conversation_history: Tuple[Dict[str, str], ...] = ()
    intent_analysis: Optional[Dict[str, Any]] = None
    extracted_parameters: Optional[Dict[str, Any]] = None
    validated_parameters: Optional[Dict[str, Any]] = None
    workout_data: Optional[GeneratedWorkout] = None
    response_content: str = ""
    confidence_score: float = 0.0
    error_state: Optional[str] = None
    current_step: Step = Step.ANALYZE_INTENT
    steps_completed: Tuple[str, ...] = ()
    needs_correction: bool = False
    step_confidences: Tuple[float, ...] = ()
    transitions: int = 0

    def advance(self, next_step: Step, confidence: Optional[float] = None, **changes: Any) -> "ReasoningState":
        """Record the current step as done and move to `next_step`."""
        confidences = self.step_confidences
        if confidence is not None:
            confidences = confidences + (max(0.0, min(1.0, float(confidence))),)
        return replace(
            self,
            current_step=next_step,
            steps_completed=self.steps_completed + (self.current_step.value,),
            step_confidences=confidences,
            transitions=self.transitions + 1,
            **changes,
        )

    def fail(self, reason: str) -> "ReasoningState":
        """Short-circuit to generate_response. The first recorded error wins."""
        return replace(
            self,
            error_state=self.error_state or reason,
            current_step=Step.GENERATE_RESPONSE,
            transitions=self.transitions + 1,
        )

    @property
    def is_complete(self) -> bool:
        return self.current_step == Step.COMPLETE


@dataclass
class ReasoningContext:
    """Collaborators and per-turn inputs shared by every step."""
    generator: BaseGenerator
    catalog: ExerciseCatalog
    resolver: ExerciseResolver
    output: StreamSession
    muscle_volumes: Dict[str, float] = field(default_factory=dict)
    preferences: Dict[str, Any] = field(default_factory=dict)
    thresholds: Optional[RecoveryThresholds] = None

    async def ask(self, prompt: str, history: Sequence[Dict[str, str]] = ()) -> str:
        """Structured generator call; its text is not shown to the user."""
        result = await self.generator.generate(
            prompt,
            list(history),
            abort_signal=self.output.abort_signal,
            system_instruction=COACH_INSTRUCTION,
            json_mode=True,
            temperature=config.STRUCTURED_TEMPERATURE,
        )
        return result.text


def _recent_history(state: ReasoningState) -> List[Dict[str, str]]:
    return list(state.conversation_history[-config.PROMPT_HISTORY_MESSAGES:])


def _format_history(history: Sequence[Dict[str, str]]) -> str:
    if not history:
        return "(none)"
    return "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in history)


def _muscles_in_text(text: str) -> List[str]:
    """Muscle groups mentioned in free text, in order of appearance."""
    padded = f" {normalize_name(text)} "
    found: List[Tuple[int, str]] = []
    for alias in MUSCLE_ALIASES:
        idx = padded.find(f" {alias} ")
        if idx >= 0:
            found.append((idx, alias))
    return normalize_muscles(alias for _, alias in sorted(found))


def _workout_type_in_text(text: str) -> Optional[str]:
    padded = f" {normalize_name(text)} "
    for workout_type, keywords in WORKOUT_TYPES.items():
        if any(f" {k} " in padded for k in keywords):
            return workout_type
    return None


def lexical_intent(text: str) -> Dict[str, Any]:
    """Intent analysis from keywords alone."""
    return {
        "intent": "create_workout",
        "target_muscles": _muscles_in_text(text),
        "workout_type": _workout_type_in_text(text),
        "confidence": 0.6,
        "source": "lexical",
    }


def _as_confidence(value: Any, default: float) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


# ============================================================================
# STEPS
# ============================================================================

async def analyze_intent(state: ReasoningState, ctx: ReasoningContext) -> ReasoningState:
    analysis = lexical_intent(state.user_input)
    history = _recent_history(state)
    raw = await ctx.ask(
        INTENT_PROMPT.format(history=_format_history(history), user_input=state.user_input),
    )
    payload, tier = parse_json_payload(raw, accept=lambda p: isinstance(p, dict))

    confidence = analysis["confidence"]
    if payload is not None:
        model_muscles = normalize_muscles(payload.get("target_muscles") or [])
        analysis.update({
            "intent": payload.get("intent") or analysis["intent"],
            "target_muscles": analysis["target_muscles"] or model_muscles,
            "workout_type": payload.get("workout_type") or analysis["workout_type"],
            "source": tier,
        })
        confidence = _as_confidence(payload.get("confidence"), 0.7)
        analysis["confidence"] = confidence
    else:
        logger.info("REASONING: intent reply unparseable, using lexical analysis")

    return state.advance(Step.EXTRACT_PARAMETERS, confidence, intent_analysis=analysis)


async def extract_parameters(state: ReasoningState, ctx: ReasoningContext) -> ReasoningState:
    analysis = state.intent_analysis or {}
    prefs = ctx.preferences or {}
    params: Dict[str, Any] = {
        "target_muscles": list(analysis.get("target_muscles") or []),
        "exercise_count": 4,
        "difficulty": prefs.get("fitness_level") or "beginner",
        "equipment": list(prefs.get("equipment") or ["bodyweight"]),
        "duration_minutes": None,
        "workout_type": analysis.get("workout_type"),
    }

    raw = await ctx.ask(PARAMETERS_PROMPT.format(
        user_input=state.user_input,
        intent_analysis=json.dumps(analysis, default=str),
        preferences=json.dumps(prefs, default=str),
    ))
    payload, _ = parse_json_payload(raw, accept=lambda p: isinstance(p, dict))

    confidence = 0.6
    if payload is not None:
        for key in params:
            value = payload.get(key)
            if value in (None, "", []):
                continue
            # Muscles the user actually named beat the model's guess
            if key == "target_muscles" and params["target_muscles"]:
                continue
            params[key] = value
        confidence = 0.8

    return state.advance(Step.VALIDATE_AND_CORRECT, confidence, extracted_parameters=params)


def _clamp_int(value: Any, low: int, high: int, default: int) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


async def validate_and_correct(state: ReasoningState, ctx: ReasoningContext) -> ReasoningState:
    params = dict(state.extracted_parameters or {})
    corrections: List[str] = []

    raw_muscles = params.get("target_muscles") or []
    if isinstance(raw_muscles, str):
        raw_muscles = [m.strip() for m in raw_muscles.split(",")]
    known = set(ctx.catalog.muscles)
    muscles = [m for m in normalize_muscles(raw_muscles) if m in known]
    if len(muscles) != len(raw_muscles):
        corrections.append(f"target_muscles {list(raw_muscles)} -> {muscles}")

    count = _clamp_int(params.get("exercise_count"), config.MIN_EXERCISES, config.MAX_EXERCISES, 4)
    if count != params.get("exercise_count"):
        corrections.append(f"exercise_count {params.get('exercise_count')!r} -> {count}")

    difficulty = str(params.get("difficulty") or "").strip().lower()
    if difficulty not in LEVEL_PRESCRIPTIONS:
        corrections.append(f"difficulty {params.get('difficulty')!r} -> beginner")
        difficulty = "beginner"

    raw_equipment = params.get("equipment") or []
    if isinstance(raw_equipment, str):
        raw_equipment = [raw_equipment]
    known_equipment = set(ctx.catalog.equipment) | {"bodyweight"}
    equipment = ["bodyweight"]
    for item in raw_equipment:
        name = str(item).strip().lower()
        if name in known_equipment and name not in equipment:
            equipment.append(name)
    dropped = [e for e in raw_equipment if str(e).strip().lower() not in known_equipment]
    if dropped:
        corrections.append(f"unknown equipment dropped: {dropped}")

    duration = params.get("duration_minutes")
    if duration is not None:
        duration = _clamp_int(duration, MIN_DURATION_MINUTES, MAX_DURATION_MINUTES, None)
        if duration != params.get("duration_minutes"):
            corrections.append(f"duration_minutes {params.get('duration_minutes')!r} -> {duration}")

    workout_type = params.get("workout_type")
    validated = {
        "target_muscles": muscles,
        "exercise_count": count,
        "difficulty": difficulty,
        "equipment": equipment,
        "duration_minutes": duration,
        "workout_type": str(workout_type).strip() if workout_type else None,
        "corrections": corrections,
    }
    if corrections:
        logger.info("REASONING: corrected parameters: %s", "; ".join(corrections))

    return state.advance(
        Step.EXECUTE_WORKOUT_CREATION,
        0.8 if corrections else 0.9,
        validated_parameters=validated,
        needs_correction=bool(corrections),
    )


async def execute_workout_creation(state: ReasoningState, ctx: ReasoningContext) -> ReasoningState:
    params = state.validated_parameters or {}
    explicit = params.get("target_muscles") or []
    equipment = params.get("equipment") or ["bodyweight"]
    difficulty = params.get("difficulty") or "beginner"
    count = params.get("exercise_count") or config.MIN_EXERCISES

    classification = analyze_muscle_recovery(ctx.muscle_volumes, ctx.thresholds)
    targets = select_target_muscles(classification, explicit, ctx.muscle_volumes)
    composed = generate_workout(
        ctx.catalog,
        ctx.muscle_volumes,
        explicit_muscles=explicit,
        equipment=equipment,
        level=difficulty,
        workout_type=params.get("workout_type"),
        thresholds=ctx.thresholds,
    )

    candidates = select_exercises(
        ctx.catalog, targets, equipment, difficulty, avoid_muscles=classification.overworked,
    )
    prompt = WORKOUT_PROMPT.format(
        user_input=state.user_input,
        target_muscles=", ".join(targets) or "balanced full body",
        exercise_count=count,
        difficulty=difficulty,
        equipment=", ".join(equipment),
        overworked=", ".join(sorted(classification.overworked)) or "none",
        candidates="\n".join(f"- {e.name} ({', '.join(sorted(e.primary_muscles))})" for e in candidates)
        or "- any bodyweight exercise",
    )
    raw = await ctx.ask(prompt, _recent_history(state))
    extracted = extract_workout(raw, ctx.resolver, allow_fallback=False)

    avoid = set(classification.overworked) - set(targets)
    workout: Optional[GeneratedWorkout] = None
    confidence = COMPOSED_CONFIDENCE
    if extracted is not None:
        kept = tuple(e for e in extracted.exercises if not (set(e.primary_muscles) & avoid))
        if len(kept) != extracted.exercise_count:
            logger.info(
                "REASONING: dropped %d exercises hitting overworked muscles %s",
                extracted.exercise_count - len(kept), sorted(avoid),
            )
        if kept:
            workout = enforce_workout_bounds(
                replace(
                    extracted,
                    exercises=kept,
                    target_muscles=tuple(m for m in extracted.target_muscles if m not in avoid) or tuple(targets),
                    reasoning=extracted.reasoning or composed.reasoning,
                    estimated_duration_minutes=estimate_duration(kept),
                ),
                composed,
            )
            confidence = EXTRACTION_CONFIDENCE.get(extracted.source, COMPOSED_CONFIDENCE)

    if workout is None:
        logger.info("REASONING: using composed workout (%s)", composed.source)
        workout = composed

    if workout.exercise_count > count:
        trimmed = workout.exercises[:count]
        workout = replace(workout, exercises=trimmed, estimated_duration_minutes=estimate_duration(trimmed))

    logger.info(
        "REASONING: workout '%s' source=%s exercises=%d",
        workout.name, workout.source, workout.exercise_count,
    )
    return state.advance(Step.GENERATE_RESPONSE, confidence, workout_data=workout)


def summarize_workout(workout: GeneratedWorkout) -> str:
    """Plain-text rendering used when the generator cannot write the reply."""
    lines = [f"Here's your {workout.name}:"]
    for exercise in workout.exercises:
        reps = exercise.sets[0].reps if exercise.sets else 0
        lines.append(f"- {exercise.name}: {exercise.set_count} x {reps}")
    lines.append(f"Estimated duration: {workout.estimated_duration_minutes} minutes.")
    if workout.reasoning:
        lines.append(workout.reasoning)
    return "\n".join(lines)


def _final_confidence(confidences: Sequence[float]) -> float:
    if not confidences:
        return config.ERROR_CONFIDENCE
    return min(config.MAX_CONFIDENCE, sum(confidences) / len(confidences))


async def generate_response(state: ReasoningState, ctx: ReasoningContext) -> ReasoningState:
    if state.error_state or state.workout_data is None:
        await ctx.output.emit(ERROR_RESPONSE)
        return replace(
            state.advance(Step.COMPLETE),
            error_state=state.error_state or "no_workout",
            response_content=ctx.output.text,
            confidence_score=config.ERROR_CONFIDENCE,
        )

    workout = state.workout_data
    prompt = RESPONSE_PROMPT.format(
        user_input=state.user_input,
        workout=json.dumps(workout.to_dict(), default=str),
        reasoning=workout.reasoning or "balanced selection",
    )
    confidence = 0.9
    try:
        await ctx.generator.generate(
            prompt,
            _recent_history(state),
            on_chunk=ctx.output.emit,
            abort_signal=ctx.output.abort_signal,
            system_instruction=COACH_INSTRUCTION,
            temperature=config.CHAT_TEMPERATURE,
        )
    except GeneratorError as e:
        logger.warning("REASONING: response generation failed, using summary: %s", e)
        prefix = "\n\n" if ctx.output.chunks_emitted else ""
        await ctx.output.emit(prefix + summarize_workout(workout))
        confidence = RESPONSE_FALLBACK_CONFIDENCE

    if not ctx.output.chunks_emitted:
        await ctx.output.emit(summarize_workout(workout))
        confidence = RESPONSE_FALLBACK_CONFIDENCE

    done = state.advance(Step.COMPLETE, confidence)
    return replace(
        done,
        response_content=ctx.output.text,
        confidence_score=_final_confidence(done.step_confidences),
    )


STEP_HANDLERS = {
    Step.ANALYZE_INTENT: analyze_intent,
    Step.EXTRACT_PARAMETERS: extract_parameters,
    Step.VALIDATE_AND_CORRECT: validate_and_correct,
    Step.EXECUTE_WORKOUT_CREATION: execute_workout_creation,
    Step.GENERATE_RESPONSE: generate_response,
}


# ============================================================================
# MACHINE
# ============================================================================

async def _emit_error(state: ReasoningState, ctx: ReasoningContext, reason: str) -> ReasoningState:
    """Last-resort completion when generate_response itself failed."""
    if not ctx.output.chunks_emitted:
        try:
            await ctx.output.emit(ERROR_RESPONSE)
        except TurnAborted:
            raise
        except Exception as e:
            logger.warning("REASONING: could not deliver error message: %s", e)
    return replace(
        state,
        error_state=state.error_state or reason,
        response_content=ctx.output.text or ERROR_RESPONSE,
        confidence_score=config.ERROR_CONFIDENCE,
        current_step=Step.COMPLETE,
        steps_completed=state.steps_completed + (Step.GENERATE_RESPONSE.value,),
        transitions=state.transitions + 1,
    )


async def run_reasoning(
    state: ReasoningState,
    ctx: ReasoningContext,
    step_budget: int = config.REASONING_STEP_BUDGET,
) -> ReasoningState:
    """
    Drive the machine from state.current_step to completion.

    Returns:
        A completed state with response_content and confidence_score set

    Raises:
        TurnAborted: the caller cancelled the turn
    """
    while not state.is_complete:
        ctx.output.check()
        step = state.current_step

        if state.transitions >= step_budget and step != Step.GENERATE_RESPONSE:
            logger.warning("REASONING: step budget %d exhausted at %s", step_budget, step.value)
            state = state.fail("step_budget_exceeded")
            continue

        handler = STEP_HANDLERS[step]
        logger.debug("REASONING: %s (transition %d)", step.value, state.transitions)
        try:
            state = await handler(state, ctx)
        except TurnAborted:
            raise
        except Exception as e:
            logger.exception("REASONING: step %s failed: %s", step.value, e)
            if step == Step.GENERATE_RESPONSE:
                state = await _emit_error(state, ctx, f"{step.value}_failed")
            else:
                state = state.fail(f"{step.value}_failed")

    logger.info(
        "REASONING: complete steps=%s error=%s confidence=%.2f",
        list(state.steps_completed), state.error_state, state.confidence_score,
    )
    return state


def build_reasoning_explanation(state: ReasoningState) -> str:
    """Short human-readable trace of what the machine did."""
    parts: List[str] = []
    analysis = state.intent_analysis or {}
    if analysis:
        muscles = ", ".join(analysis.get("target_muscles") or []) or "none named"
        parts.append(f"Understood request as {analysis.get('intent', 'create_workout')} (muscles: {muscles})")
    params = state.validated_parameters or {}
    if params:
        parts.append(
            f"Planned {params.get('exercise_count')} exercises at {params.get('difficulty')} level "
            f"with {', '.join(params.get('equipment') or [])}"
        )
        if params.get("corrections"):
            parts.append(f"Adjusted {len(params['corrections'])} parameter(s)")
    if state.workout_data is not None:
        parts.append(f"Built '{state.workout_data.name}' from {state.workout_data.source}")
    if state.error_state:
        parts.append(f"Stopped early: {state.error_state}")
    return ". ".join(parts)


__all__ = [
    "ReasoningContext",
    "ReasoningState",
    "STEP_HANDLERS",
    "Step",
    "build_reasoning_explanation",
    "lexical_intent",
    "run_reasoning",
    "summarize_workout",
]
