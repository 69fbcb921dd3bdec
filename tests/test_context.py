"""Tests for turn context, structured events and conversation memory."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from conftest import run
from gymzy_agent.shell.context import (
    ConversationSession,
    TurnContext,
    get_current_turn,
    log_event,
    reset_current_turn,
    set_current_turn,
)


class TestConversationSession:

    def test_records_turns_in_order(self):
        session = ConversationSession(session_id="s1")
        session.record_turn("hi", "hello!")
        assert session.history() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello!"},
        ]
        assert session.session_id == "s1"

    def test_oldest_evicted_first(self):
        session = ConversationSession(max_turns=2)
        for i in range(3):
            session.record_turn(f"q{i}", f"a{i}")
        assert len(session) == 4
        assert [m["content"] for m in session.history()] == ["q1", "a1", "q2", "a2"]

    def test_history_limit(self):
        session = ConversationSession()
        session.record_turn("q", "a")
        assert session.history(limit=1) == [{"role": "assistant", "content": "a"}]
        assert session.history(limit=0) == []

    def test_history_is_a_copy(self):
        session = ConversationSession()
        session.record_turn("q", "a")
        session.history()[0]["content"] = "changed"
        assert session.history()[0]["content"] == "q"

    def test_clear(self):
        session = ConversationSession()
        session.record_turn("q", "a")
        session.clear()
        assert len(session) == 0

    def test_invalid_bound(self):
        with pytest.raises(ValueError):
            ConversationSession(max_turns=0)

    def test_generated_session_ids_differ(self):
        assert ConversationSession().session_id != ConversationSession().session_id


class TestTurnContext:

    def test_set_and_reset(self):
        token = set_current_turn(TurnContext(user_id="u1"))
        try:
            assert get_current_turn().user_id == "u1"
        finally:
            reset_current_turn(token)
        assert get_current_turn() is None

    def test_concurrent_turns_are_isolated(self):
        async def turn(user_id):
            token = set_current_turn(TurnContext(user_id=user_id))
            try:
                await asyncio.sleep(0.01)
                return get_current_turn().user_id
            finally:
                reset_current_turn(token)

        async def both():
            return await asyncio.gather(turn("a"), turn("b"))

        assert run(both()) == ["a", "b"]


class TestLogEvent:

    def test_includes_turn_identifiers(self, caplog):
        caplog.set_level(logging.INFO, logger="gymzy_agent.shell.context")
        turn = TurnContext(user_id="u1", session_id="s1")
        token = set_current_turn(turn)
        try:
            log_event("tool_executed", tool="viewStats", success=True)
        finally:
            reset_current_turn(token)

        record = json.loads(caplog.records[-1].getMessage())
        assert record == {
            "event": "tool_executed",
            "user_id": "u1",
            "session_id": "s1",
            "correlation_id": turn.correlation_id,
            "tool": "viewStats",
            "success": True,
        }

    def test_without_turn(self, caplog):
        caplog.set_level(logging.INFO, logger="gymzy_agent.shell.context")
        log_event("startup")
        assert json.loads(caplog.records[-1].getMessage()) == {"event": "startup"}
