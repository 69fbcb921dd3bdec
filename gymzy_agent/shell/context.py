"""
Context - Per-turn request context and bounded conversation memory.

TurnContext lives in a ContextVar so concurrent turns (separate asyncio
tasks) never see each other's identifiers. ConversationSession is the only
state carried across turns; the caller owns it and passes it in.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from gymzy_agent import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnContext:
    """Identifiers for the turn being processed."""
    user_id: str
    session_id: Optional[str] = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


_turn_context_var: ContextVar[Optional[TurnContext]] = ContextVar("turn_context", default=None)


def set_current_turn(ctx: TurnContext):
    """Set the context for the current turn. Returns a token for reset_current_turn."""
    return _turn_context_var.set(ctx)


def reset_current_turn(token) -> None:
    _turn_context_var.reset(token)


def get_current_turn() -> Optional[TurnContext]:
    return _turn_context_var.get()


def log_event(event: str, **kwargs: Any) -> None:
    """Log a structured JSON event tagged with the current turn's identifiers."""
    record: Dict[str, Any] = {"event": event}
    ctx = _turn_context_var.get()
    if ctx is not None:
        record["user_id"] = ctx.user_id
        record["session_id"] = ctx.session_id
        record["correlation_id"] = ctx.correlation_id
    record.update(kwargs)
    logger.info(json.dumps(record, default=str))


class ConversationSession:
    """
    Bounded conversation memory for one chat session.

    Holds at most `max_turns` user/assistant exchanges in a ring buffer; the
    oldest messages are evicted first. Turns are serialized by the caller, so
    history is read at turn start and appended once at turn end.
    """

    def __init__(self, session_id: Optional[str] = None, user_id: Optional[str] = None,
                 max_turns: int = config.MAX_HISTORY_TURNS):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.session_id = session_id or uuid.uuid4().hex
        self.user_id = user_id
        self.max_turns = max_turns
        self._messages: Deque[Dict[str, str]] = deque(maxlen=2 * max_turns)

    def history(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """Snapshot of the retained messages, oldest first."""
        messages = [dict(m) for m in self._messages]
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    def append(self, role: str, content: str) -> None:
        self._messages.append({"role": role, "content": content})

    def record_turn(self, user_text: str, assistant_text: str) -> None:
        self.append("user", user_text)
        self.append("assistant", assistant_text)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)


__all__ = [
    "ConversationSession",
    "TurnContext",
    "get_current_turn",
    "log_event",
    "reset_current_turn",
    "set_current_turn",
]
