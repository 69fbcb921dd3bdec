"""
Shared fixtures: a scripted generator, in-memory domain services, the catalog.

No test touches the network or needs Gemini credentials.
"""

from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

# Ensure gymzy_agent is importable without installing
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gymzy_agent.libs.llm import BaseGenerator, GenerationChunk, GeneratorError, ToolCall  # noqa: E402
from gymzy_agent.skills.catalog_skills import ExerciseResolver, load_catalog  # noqa: E402

Reply = Union[str, List[str], List[GenerationChunk], GenerationChunk, Exception]


class FakeGenerator(BaseGenerator):
    """
    Generator that replays scripted replies.

    `script` is consumed one reply per call. A reply may be a string (one
    chunk), a list of strings or GenerationChunks (one chunk each), a single
    GenerationChunk, or an exception (raised when the stream starts).
    Alternatively `responder(prompt, options)` computes the reply.
    """

    def __init__(
        self,
        script: Optional[List[Reply]] = None,
        responder: Optional[Callable[[str, Dict[str, Any]], Reply]] = None,
        default: Reply = "",
        chunk_delay: float = 0.0,
    ):
        self.script = list(script or [])
        self.responder = responder
        self.default = default
        self.chunk_delay = chunk_delay
        self.calls: List[Dict[str, Any]] = []

    def _next_reply(self, prompt: str, options: Dict[str, Any]) -> Reply:
        if self.responder is not None:
            return self.responder(prompt, options)
        if self.script:
            return self.script.pop(0)
        return self.default

    async def stream(self, prompt, history=None, *, system_instruction=None, tools=None,
                     json_mode=False, temperature=None):
        options = {
            "history": list(history or []),
            "system_instruction": system_instruction,
            "tools": tools,
            "json_mode": json_mode,
            "temperature": temperature,
        }
        self.calls.append({"prompt": prompt, **options})
        reply = self._next_reply(prompt, options)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (str, GenerationChunk)):
            reply = [reply]
        for item in reply:
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield item if isinstance(item, GenerationChunk) else GenerationChunk(text=item)


class StallingGenerator(BaseGenerator):
    """Emits one chunk, then blocks until cancelled."""

    def __init__(self, first_chunk: str = "Hello"):
        self.first_chunk = first_chunk
        self.cancelled = False
        self.closed = False

    async def stream(self, prompt, history=None, **options):
        try:
            yield GenerationChunk(text=self.first_chunk)
            await asyncio.sleep(3600)
            yield GenerationChunk(text="never delivered")
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.closed = True


class FakeServices:
    """In-memory stand-in for AppServicesClient that records every call."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.calls: List[tuple] = []
        self.responses = responses or {}

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(user_id, *args, **kwargs):
            self.calls.append((name, user_id, args, kwargs))
            response = self.responses.get(name, {"success": True, "data": {}})
            if isinstance(response, Exception):
                raise response
            return response

        return method

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


def tool_call(name: str, **args: Any) -> GenerationChunk:
    return GenerationChunk(tool_calls=[ToolCall(name=name, args=args)])


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def resolver(catalog):
    return ExerciseResolver(catalog)


@pytest.fixture
def services():
    return FakeServices()


__all__ = [
    "FakeGenerator",
    "FakeServices",
    "GeneratorError",
    "StallingGenerator",
    "run",
    "tool_call",
]
