"""Tests for chunk delivery and cooperative cancellation."""

from __future__ import annotations

import asyncio
import threading

import pytest

from conftest import FakeGenerator, StallingGenerator, run
from gymzy_agent.libs.llm import GenerationChunk, GeneratorError
from gymzy_agent.shell.streaming import AbortSignal, StreamSession, TurnAborted


async def _items(*values):
    for v in values:
        yield v


class TestAbortSignal:

    def test_fires_once(self):
        signal = AbortSignal()
        calls = []
        signal.add_listener(lambda: calls.append(1))
        signal.abort("first")
        signal.abort("second")
        assert signal.aborted
        assert signal.reason == "first"
        assert calls == [1]

    def test_late_listener_fires_immediately(self):
        signal = AbortSignal()
        signal.abort()
        calls = []
        signal.add_listener(lambda: calls.append(1))
        assert calls == [1]

    def test_removed_listener_not_called(self):
        signal = AbortSignal()
        calls = []
        remove = signal.add_listener(lambda: calls.append(1))
        remove()
        signal.abort()
        assert calls == []

    def test_failing_listener_does_not_block_others(self):
        signal = AbortSignal()
        calls = []

        def bad():
            raise RuntimeError("listener bug")

        signal.add_listener(bad)
        signal.add_listener(lambda: calls.append(1))
        signal.abort()
        assert calls == [1]


class TestStreamSession:

    def test_relay_delivers_in_order(self):
        received = []
        session = StreamSession(on_chunk=received.append)
        items = run(session.relay(_items("a", "b", "", "c")))
        assert items == ["a", "b", "", "c"]
        assert received == ["a", "b", "c"]
        assert session.text == "abc"
        assert session.chunks_emitted == 3

    def test_async_callback(self):
        received = []

        async def on_chunk(text):
            await asyncio.sleep(0)
            received.append(text)

        session = StreamSession(on_chunk=on_chunk)
        run(session.relay(_items("x", "y")))
        assert received == ["x", "y"]

    def test_abort_before_start(self):
        signal = AbortSignal()
        signal.abort("user_cancelled")
        received = []
        session = StreamSession(on_chunk=received.append, abort_signal=signal)
        with pytest.raises(TurnAborted):
            run(session.relay(_items("a")))
        assert received == []
        assert session.aborted

    def test_emit_after_abort_raises(self):
        signal = AbortSignal()
        session = StreamSession(abort_signal=signal)
        run(session.emit("one"))
        signal.abort()
        with pytest.raises(TurnAborted):
            run(session.emit("two"))
        assert session.text == "one"

    def test_callback_abort_stops_delivery(self):
        signal = AbortSignal()
        received = []

        def on_chunk(text):
            received.append(text)
            signal.abort("seen enough")

        session = StreamSession(on_chunk=on_chunk, abort_signal=signal)
        with pytest.raises(TurnAborted):
            run(session.relay(_items("a", "b", "c")))
        assert received == ["a"]


class TestStalledUpstream:

    def test_abort_from_another_thread(self):
        upstream = StallingGenerator()
        signal = AbortSignal()
        received = []
        session = StreamSession(on_chunk=received.append, abort_signal=signal)

        timer = threading.Timer(0.05, signal.abort, args=("user_cancelled",))
        timer.start()
        try:
            with pytest.raises(TurnAborted) as exc:
                run(session.relay(upstream.stream("hi"), text_of=lambda c: c.text))
        finally:
            timer.cancel()

        assert str(exc.value) == "user_cancelled"
        assert received == ["Hello"]
        assert upstream.cancelled
        assert upstream.closed

    def test_abort_from_event_loop(self):
        upstream = StallingGenerator()
        signal = AbortSignal()
        received = []

        async def scenario():
            asyncio.get_running_loop().call_later(0.05, signal.abort)
            return await upstream.generate("hi", on_chunk=received.append, abort_signal=signal)

        with pytest.raises(TurnAborted):
            run(scenario())
        assert received == ["Hello"]
        assert upstream.closed


class TestGenerate:

    def test_collects_text_and_tool_calls(self):
        generator = FakeGenerator(script=[[
            "Sure, ",
            GenerationChunk(text="opening stats."),
            GenerationChunk(tool_calls=[]),
        ]])
        received = []
        result = run(generator.generate("go", on_chunk=received.append))
        assert result.text == "Sure, opening stats."
        assert received == ["Sure, ", "opening stats."]

    def test_upstream_error_wrapped(self):
        generator = FakeGenerator(script=[ValueError("quota")])
        with pytest.raises(GeneratorError) as exc:
            run(generator.generate("go"))
        assert "quota" in str(exc.value)

    def test_generator_error_passes_through(self):
        generator = FakeGenerator(script=[GeneratorError("upstream 503")])
        with pytest.raises(GeneratorError) as exc:
            run(generator.generate("go"))
        assert str(exc.value) == "upstream 503"
