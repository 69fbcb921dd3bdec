"""
Safety Gate - Two-phase confirmation for destructive tool calls.

Destructive tools (deleteWorkout) never execute on the model's say-so:

1. propose(): the dispatcher registers the call and gets back a
   PendingConfirmation carrying a random token. Nothing is executed.
2. confirm(): the caller hands the PendingConfirmation back after the user
   approved it. The token is consumed; the action may run exactly once.

A PendingConfirmation that was never issued, was already consumed, or whose
function/args were altered after issue is refused. The registry is bounded;
the oldest unconfirmed entries are evicted first.
"""

from __future__ import annotations

import copy
import logging
import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict

from gymzy_agent import config

logger = logging.getLogger(__name__)

CONFIRMATION_PROMPTS: Dict[str, str] = {
    "deleteWorkout": "Are you sure you want to delete this workout? This cannot be undone.",
}

# Replies that approve / decline a pending confirmation
CONFIRM_KEYWORDS = frozenset([
    "confirm", "yes", "y", "do it", "go ahead", "delete it", "yes delete", "sure", "ok",
])
CANCEL_KEYWORDS = frozenset([
    "cancel", "no", "n", "stop", "don't", "never mind", "nevermind", "keep it",
])


class ConfirmationError(Exception):
    """A confirmation was refused by the gate."""


@dataclass(frozen=True)
class PendingConfirmation:
    """A proposed destructive action awaiting explicit user approval."""
    target_function: str
    args: Dict[str, Any]
    confirmation_prompt: str
    user_id: str
    token: str = field(repr=False, default="")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_function": self.target_function,
            "args": dict(self.args),
            "confirmation_prompt": self.confirmation_prompt,
            "user_id": self.user_id,
            "token": self.token,
        }


def format_confirmation_prompt(target_function: str, args: Dict[str, Any]) -> str:
    prompt = CONFIRMATION_PROMPTS.get(target_function)
    if prompt:
        return prompt
    details = ", ".join(f"{k}={v}" for k, v in sorted(args.items()))
    return f"Are you sure you want to run {target_function}({details})? Say 'confirm' to proceed."


class ConfirmationGate:
    """Issued-token registry for the propose -> confirm protocol."""

    def __init__(self, max_pending: int = config.MAX_PENDING_CONFIRMATIONS):
        self._issued: "OrderedDict[str, PendingConfirmation]" = OrderedDict()
        self._lock = threading.Lock()
        self._max_pending = max_pending

    def propose(self, target_function: str, args: Dict[str, Any], user_id: str) -> PendingConfirmation:
        """Register a destructive call and return its PendingConfirmation."""
        pending = PendingConfirmation(
            target_function=target_function,
            args=copy.deepcopy(args),
            confirmation_prompt=format_confirmation_prompt(target_function, args),
            user_id=user_id,
            token=secrets.token_urlsafe(16),
        )
        # The registry keeps its own copy of args, independent of the caller's
        issued = replace(pending, args=copy.deepcopy(pending.args))
        with self._lock:
            self._issued[issued.token] = issued
            while len(self._issued) > self._max_pending:
                _, evicted = self._issued.popitem(last=False)
                logger.warning(
                    "SAFETY_GATE: Evicted unconfirmed %s for user %s", evicted.target_function, evicted.user_id,
                )
        logger.info("SAFETY_GATE: Confirmation required for %s (user=%s)", target_function, user_id)
        return pending

    def confirm(self, pending: PendingConfirmation) -> PendingConfirmation:
        """
        Consume a previously issued confirmation.

        Returns the issued record (not the caller's copy) so execution uses
        exactly what was shown to the user.

        Raises:
            ConfirmationError: unknown, replayed or tampered confirmation
        """
        token = getattr(pending, "token", None)
        if not token:
            raise ConfirmationError("Confirmation was not issued by this agent")
        with self._lock:
            issued = self._issued.get(token)
            if issued is None:
                raise ConfirmationError("Confirmation is unknown, expired or already used")
            if (
                issued.target_function != pending.target_function
                or issued.args != pending.args
                or issued.user_id != pending.user_id
            ):
                raise ConfirmationError("Confirmation does not match the proposed action")
            del self._issued[token]
        logger.info("SAFETY_GATE: Confirmed %s (user=%s)", issued.target_function, issued.user_id)
        return issued

    def discard(self, pending: PendingConfirmation) -> bool:
        """Drop a pending confirmation the user declined. True if it was pending."""
        with self._lock:
            return self._issued.pop(getattr(pending, "token", ""), None) is not None

    def is_pending(self, pending: PendingConfirmation) -> bool:
        with self._lock:
            return getattr(pending, "token", "") in self._issued

    def __len__(self) -> int:
        with self._lock:
            return len(self._issued)


def _matches(message: str, keywords) -> bool:
    lower = (message or "").lower().strip().rstrip(".!")
    for keyword in keywords:
        if lower == keyword or lower.startswith(f"{keyword} ") or lower.endswith(f" {keyword}"):
            return True
    return False


def is_confirmation_reply(message: str) -> bool:
    """True if the user's reply approves a pending action."""
    return _matches(message, CONFIRM_KEYWORDS) and not _matches(message, CANCEL_KEYWORDS)


def is_cancellation_reply(message: str) -> bool:
    return _matches(message, CANCEL_KEYWORDS)


__all__ = [
    "ConfirmationError",
    "ConfirmationGate",
    "PendingConfirmation",
    "format_confirmation_prompt",
    "is_cancellation_reply",
    "is_confirmation_reply",
]
