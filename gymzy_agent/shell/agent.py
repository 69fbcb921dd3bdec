"""
Coach Agent - Turn entry point for the Gymzy coach.

process_turn() routes each message:
- workout      -> reasoning state machine (structured workout + coach reply)
- app_control  -> function-calling generator + ToolDispatcher
- general      -> streamed coach chat

A turn never raises. Upstream failures become apologetic replies,
cancellation becomes TurnResult(aborted=True), and destructive tools come
back as a PendingConfirmation for the caller to confirm_action() later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from gymzy_agent import config
from gymzy_agent.libs.llm import BaseGenerator, GeneratorError
from gymzy_agent.shell.context import (
    ConversationSession,
    TurnContext,
    log_event,
    reset_current_turn,
    set_current_turn,
)
from gymzy_agent.shell.dispatcher import ActionResult, DispatchOutcome, ToolDispatcher
from gymzy_agent.shell.instruction import (
    APP_CONTROL_INSTRUCTION,
    COACH_INSTRUCTION,
    GENERAL_ERROR_RESPONSE,
    TOOL_SUMMARY_PROMPT,
)
from gymzy_agent.shell.reasoning import (
    ReasoningContext,
    ReasoningState,
    build_reasoning_explanation,
    run_reasoning,
)
from gymzy_agent.shell.router import Intent, route_message
from gymzy_agent.shell.safety_gate import PendingConfirmation
from gymzy_agent.shell.streaming import AbortSignal, ChunkCallback, StreamSession, TurnAborted
from gymzy_agent.shell.tools import TOOL_DECLARATIONS
from gymzy_agent.skills.catalog_skills import ExerciseCatalog, ExerciseResolver, load_catalog
from gymzy_agent.skills.recovery_skills import RecoveryThresholds

logger = logging.getLogger(__name__)

VolumeProvider = Callable[[str], Dict[str, float]]


@dataclass
class TurnResult:
    """Everything the caller needs to render one turn."""
    content: str
    success: bool
    confidence: float
    intent: str
    workout_data: Optional[Dict[str, Any]] = None
    navigation_target: Optional[str] = None
    steps_completed: List[str] = field(default_factory=list)
    requires_confirmation: bool = False
    confirmation_prompt: Optional[str] = None
    pending_confirmation: Optional[PendingConfirmation] = None
    aborted: bool = False
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    reasoning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "content": self.content,
            "success": self.success,
            "confidence": self.confidence,
            "intent": self.intent,
            "steps_completed": list(self.steps_completed),
            "aborted": self.aborted,
        }
        if self.workout_data is not None:
            result["workout_data"] = self.workout_data
        if self.navigation_target:
            result["navigation_target"] = self.navigation_target
        if self.requires_confirmation:
            result["requires_confirmation"] = True
            result["confirmation_prompt"] = self.confirmation_prompt
        if self.tool_calls:
            result["tool_calls"] = list(self.tool_calls)
        if self.reasoning:
            result["reasoning"] = self.reasoning
        return result


def _summarize_outcomes(outcomes: Sequence[DispatchOutcome]) -> str:
    """Deterministic reply built from the skill messages."""
    lines: List[str] = []
    for outcome in outcomes:
        if outcome.result is not None:
            lines.append(outcome.result.message)
        elif outcome.error:
            lines.append(f"I couldn't do that: {outcome.error}")
    return "\n".join(lines) or "Done."


class CoachAgent:
    """Routes user turns to workout reasoning, app control or coach chat."""

    def __init__(
        self,
        generator: BaseGenerator,
        catalog: Optional[ExerciseCatalog] = None,
        services: Any = None,
        *,
        dispatcher: Optional[ToolDispatcher] = None,
        volume_provider: Optional[VolumeProvider] = None,
        thresholds: Optional[RecoveryThresholds] = None,
        step_budget: int = config.REASONING_STEP_BUDGET,
    ):
        self.generator = generator
        self.catalog = catalog or load_catalog()
        self.resolver = ExerciseResolver(self.catalog)
        self.dispatcher = dispatcher or ToolDispatcher(services)
        self.volume_provider = volume_provider
        self.thresholds = thresholds
        self.step_budget = step_budget

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_turn(
        self,
        user_id: str,
        text: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        on_chunk: Optional[ChunkCallback] = None,
        abort_signal: Optional[AbortSignal] = None,
        *,
        session: Optional[ConversationSession] = None,
        muscle_volumes: Optional[Dict[str, float]] = None,
        preferences: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        """
        Process one user message.

        Args:
            user_id: Caller's user id
            text: The user's message
            history: Prior messages ({"role", "content"}); ignored when
                `session` is given
            on_chunk: Receives response text as it streams
            abort_signal: Cooperative cancellation for this turn
            session: Conversation memory; the turn is appended on completion
            muscle_volumes: Muscle -> trailing-week volume for recovery checks
            preferences: fitness_level / equipment hints

        Returns:
            TurnResult. Never raises.
        """
        if session is not None:
            history = session.history()
        history = list(history or [])
        turn = TurnContext(user_id=user_id, session_id=session.session_id if session else None)
        token = set_current_turn(turn)
        output = StreamSession(on_chunk=on_chunk, abort_signal=abort_signal)
        intent = Intent.GENERAL

        try:
            routing = route_message(text)
            intent = routing.intent
            log_event("turn_started", intent=intent.value, rule=routing.matched_rule)

            if intent == Intent.WORKOUT:
                result = await self._workout_turn(user_id, text, history, output, muscle_volumes, preferences)
            elif intent == Intent.APP_CONTROL:
                result = await self._app_control_turn(user_id, text, history, output)
            else:
                result = await self._general_turn(text, history, output)

        except TurnAborted as e:
            logger.info("Turn aborted for user %s: %s", user_id, e)
            log_event("turn_aborted", intent=intent.value, chunks=output.chunks_emitted)
            return TurnResult(content="", success=False, confidence=0.0, intent=intent.value, aborted=True)
        except Exception as e:
            logger.exception("Turn failed for user %s: %s", user_id, e)
            result = TurnResult(
                content=output.text or GENERAL_ERROR_RESPONSE,
                success=False,
                confidence=config.ERROR_CONFIDENCE,
                intent=intent.value,
            )
        finally:
            reset_current_turn(token)

        if session is not None:
            session.record_turn(text, result.content)
        log_event("turn_completed", intent=result.intent, success=result.success, confidence=result.confidence)
        return result

    def confirm_action(self, pending: PendingConfirmation) -> ActionResult:
        """Run a destructive action the user approved. Refuses replays and forgeries."""
        return self.dispatcher.confirm_action(pending)

    def cancel_action(self, pending: PendingConfirmation) -> bool:
        return self.dispatcher.cancel_action(pending)

    # ------------------------------------------------------------------
    # Turn kinds
    # ------------------------------------------------------------------

    async def _workout_turn(
        self,
        user_id: str,
        text: str,
        history: List[Dict[str, str]],
        output: StreamSession,
        muscle_volumes: Optional[Dict[str, float]],
        preferences: Optional[Dict[str, Any]],
    ) -> TurnResult:
        volumes = muscle_volumes
        if volumes is None and self.volume_provider is not None:
            try:
                volumes = self.volume_provider(user_id)
            except Exception as e:
                logger.warning("Volume lookup failed for %s, assuming no recent training: %s", user_id, e)
                volumes = None

        ctx = ReasoningContext(
            generator=self.generator,
            catalog=self.catalog,
            resolver=self.resolver,
            output=output,
            muscle_volumes=dict(volumes or {}),
            preferences=dict(preferences or {}),
            thresholds=self.thresholds,
        )
        state = ReasoningState(user_input=text, user_id=user_id, conversation_history=tuple(history))
        state = await run_reasoning(state, ctx, self.step_budget)

        workout = state.workout_data
        return TurnResult(
            content=state.response_content,
            success=state.error_state is None,
            confidence=state.confidence_score,
            intent=Intent.WORKOUT.value,
            workout_data=workout.to_dict() if workout is not None and state.error_state is None else None,
            steps_completed=list(state.steps_completed),
            reasoning=build_reasoning_explanation(state),
        )

    async def _app_control_turn(
        self,
        user_id: str,
        text: str,
        history: List[Dict[str, str]],
        output: StreamSession,
    ) -> TurnResult:
        try:
            planned = await self.generator.generate(
                text,
                history[-config.PROMPT_HISTORY_MESSAGES:],
                abort_signal=output.abort_signal,
                system_instruction=APP_CONTROL_INSTRUCTION,
                tools=TOOL_DECLARATIONS,
                temperature=config.STRUCTURED_TEMPERATURE,
            )
        except GeneratorError as e:
            logger.warning("App-control generation failed: %s", e)
            await output.emit(GENERAL_ERROR_RESPONSE)
            return TurnResult(
                content=output.text, success=False, confidence=config.ERROR_CONFIDENCE,
                intent=Intent.APP_CONTROL.value,
            )

        if not planned.tool_calls:
            # Model answered in prose instead of calling a tool
            await output.emit(planned.text or GENERAL_ERROR_RESPONSE)
            return TurnResult(
                content=output.text, success=bool(planned.text), confidence=0.6,
                intent=Intent.APP_CONTROL.value,
            )

        outcomes = self.dispatcher.dispatch_all(planned.tool_calls, user_id, output)
        records = [o.to_dict() for o in outcomes]

        pending = next((o.pending for o in outcomes if o.pending is not None), None)
        if pending is not None:
            await output.emit(pending.confirmation_prompt)
            return TurnResult(
                content=output.text,
                success=True,
                confidence=0.9,
                intent=Intent.APP_CONTROL.value,
                requires_confirmation=True,
                confirmation_prompt=pending.confirmation_prompt,
                pending_confirmation=pending,
                tool_calls=records,
            )

        navigation = next(
            (o.result.navigation_target for o in outcomes if o.result is not None and o.result.navigation_target),
            None,
        )
        executed = [o for o in outcomes if o.executed]
        success = bool(executed) and all(o.result.success for o in executed)

        try:
            await self.generator.generate(
                TOOL_SUMMARY_PROMPT.format(user_input=text, results="\n".join(str(r) for r in records)),
                history[-config.PROMPT_HISTORY_MESSAGES:],
                on_chunk=output.emit,
                abort_signal=output.abort_signal,
                system_instruction=COACH_INSTRUCTION,
                temperature=config.CHAT_TEMPERATURE,
            )
        except GeneratorError as e:
            logger.warning("Tool summary generation failed, using skill messages: %s", e)
            prefix = "\n\n" if output.chunks_emitted else ""
            await output.emit(prefix + _summarize_outcomes(outcomes))
        if not output.chunks_emitted:
            await output.emit(_summarize_outcomes(outcomes))

        return TurnResult(
            content=output.text,
            success=success,
            confidence=0.9 if success else 0.5,
            intent=Intent.APP_CONTROL.value,
            navigation_target=navigation,
            tool_calls=records,
        )

    async def _general_turn(self, text: str, history: List[Dict[str, str]], output: StreamSession) -> TurnResult:
        try:
            await self.generator.generate(
                text,
                history[-config.PROMPT_HISTORY_MESSAGES:],
                on_chunk=output.emit,
                abort_signal=output.abort_signal,
                system_instruction=COACH_INSTRUCTION,
                temperature=config.CHAT_TEMPERATURE,
            )
        except GeneratorError as e:
            logger.warning("Coach chat generation failed: %s", e)
            prefix = "\n\n" if output.chunks_emitted else ""
            await output.emit(prefix + GENERAL_ERROR_RESPONSE)
            return TurnResult(
                content=output.text, success=False, confidence=config.ERROR_CONFIDENCE,
                intent=Intent.GENERAL.value,
            )

        if not output.chunks_emitted:
            await output.emit(GENERAL_ERROR_RESPONSE)
            return TurnResult(
                content=output.text, success=False, confidence=config.ERROR_CONFIDENCE,
                intent=Intent.GENERAL.value,
            )
        return TurnResult(content=output.text, success=True, confidence=0.8, intent=Intent.GENERAL.value)


def create_coach_agent(**kwargs: Any) -> CoachAgent:
    """CoachAgent wired to Gemini and the Gymzy domain services."""
    from gymzy_agent.libs.llm.gemini import GeminiGenerator
    from gymzy_agent.libs.tools_app import default_client

    return CoachAgent(GeminiGenerator(), services=default_client(), **kwargs)


__all__ = ["CoachAgent", "TurnResult", "create_coach_agent"]
