"""
Dispatcher - Executes model-proposed app-control tool calls.

For each call:
1. Unknown tool name -> rejected, logged, nothing runs.
2. Arguments failing the tool schema -> rejected, nothing runs.
3. Destructive tool -> PendingConfirmation from the safety gate, nothing runs.
4. Otherwise the matching skill runs against the domain services.

confirm_action() is the only path that executes a destructive tool, and it
does so at most once per issued confirmation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from gymzy_agent.libs.llm import ToolCall
from gymzy_agent.shell.context import log_event
from gymzy_agent.shell.safety_gate import ConfirmationError, ConfirmationGate, PendingConfirmation
from gymzy_agent.shell.streaming import StreamSession
from gymzy_agent.shell.tools import get_tool, validate_tool_args
from gymzy_agent.skills.app_skills import APP_SKILLS, SkillResult

logger = logging.getLogger(__name__)

EXECUTED = "executed"
REJECTED = "rejected"
PENDING_CONFIRMATION = "pending_confirmation"


@dataclass
class DispatchOutcome:
    """What happened to one tool call."""
    tool: str
    status: str  # executed | rejected | pending_confirmation
    args: Dict[str, Any]
    result: Optional[SkillResult] = None
    pending: Optional[PendingConfirmation] = None
    error: Optional[str] = None

    @property
    def executed(self) -> bool:
        return self.status == EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"tool": self.tool, "status": self.status, "args": dict(self.args)}
        if self.result is not None:
            record["result"] = self.result.to_dict()
        if self.pending is not None:
            record["confirmation_prompt"] = self.pending.confirmation_prompt
        if self.error:
            record["error"] = self.error
        return record


@dataclass
class ActionResult:
    """Result of executing a confirmed destructive action."""
    success: bool
    message: str
    result: Optional[SkillResult] = None


class ToolDispatcher:
    """Routes tool calls to skills, holding destructive ones at the gate."""

    def __init__(self, services: Any, gate: Optional[ConfirmationGate] = None):
        self.services = services
        self.gate = gate or ConfirmationGate()

    def _run_skill(self, name: str, user_id: str, args: Dict[str, Any]) -> SkillResult:
        skill = APP_SKILLS[name]
        try:
            return skill(self.services, user_id, args)
        except Exception as e:
            logger.exception("DISPATCH: skill %s failed: %s", name, e)
            return SkillResult(success=False, message=f"Could not complete {name}", error=str(e))

    def dispatch(
        self,
        call: ToolCall,
        user_id: str,
        stream: Optional[StreamSession] = None,
    ) -> DispatchOutcome:
        """
        Handle one model-proposed call.

        Raises:
            TurnAborted: `stream` was cancelled before the call ran
        """
        name = call.name
        tool = get_tool(name)
        if tool is None or name not in APP_SKILLS:
            logger.warning("DISPATCH: Unknown function: %s", name)
            log_event("tool_rejected", tool=name, reason="unknown_function")
            return DispatchOutcome(
                tool=name, status=REJECTED, args=dict(call.args or {}),
                error=f"Unknown function: {name}",
            )

        validation = validate_tool_args(tool, call.args)
        if not validation.valid:
            logger.warning("DISPATCH: invalid args for %s: %s", name, validation.errors)
            log_event("tool_rejected", tool=name, reason="invalid_args", errors=validation.errors)
            return DispatchOutcome(
                tool=name, status=REJECTED, args=validation.args,
                error="; ".join(validation.errors),
            )

        if tool.destructive:
            pending = self.gate.propose(name, validation.args, user_id)
            log_event("tool_pending_confirmation", tool=name)
            return DispatchOutcome(
                tool=name, status=PENDING_CONFIRMATION, args=validation.args, pending=pending,
            )

        if stream is not None:
            stream.check()

        result = self._run_skill(name, user_id, validation.args)
        logger.info("DISPATCH: %s -> success=%s", name, result.success)
        log_event("tool_executed", tool=name, success=result.success)
        return DispatchOutcome(tool=name, status=EXECUTED, args=validation.args, result=result)

    def dispatch_all(
        self,
        calls: List[ToolCall],
        user_id: str,
        stream: Optional[StreamSession] = None,
    ) -> List[DispatchOutcome]:
        return [self.dispatch(call, user_id, stream) for call in calls]

    def confirm_action(self, pending: PendingConfirmation) -> ActionResult:
        """Execute a previously proposed destructive call exactly once."""
        try:
            issued = self.gate.confirm(pending)
        except ConfirmationError as e:
            logger.warning("DISPATCH: confirmation refused: %s", e)
            return ActionResult(success=False, message=str(e))

        result = self._run_skill(issued.target_function, issued.user_id, dict(issued.args))
        log_event("tool_confirmed", tool=issued.target_function, success=result.success)
        return ActionResult(success=result.success, message=result.message, result=result)

    def cancel_action(self, pending: PendingConfirmation) -> bool:
        """Drop a pending confirmation the user declined."""
        dropped = self.gate.discard(pending)
        if dropped:
            log_event("tool_cancelled", tool=pending.target_function)
        return dropped


__all__ = [
    "ActionResult",
    "DispatchOutcome",
    "EXECUTED",
    "PENDING_CONFIRMATION",
    "REJECTED",
    "ToolDispatcher",
]
