"""
Generator interface - the text-generation capability the agent consumes.

Implementations provide stream(), an async iterator of GenerationChunk.
generate() is shared: it relays the stream through a StreamSession so every
generator supports chunk delivery and cooperative abort the same way.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from gymzy_agent.shell.streaming import AbortSignal, ChunkCallback, StreamSession, TurnAborted

logger = logging.getLogger(__name__)


class GeneratorError(Exception):
    """Upstream generation failed (timeout, network, quota, bad response)."""


@dataclass
class ToolCall:
    """A function call proposed by the model."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": dict(self.args)}


@dataclass
class GenerationChunk:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass
class GenerationResult:
    text: str
    tool_calls: List[ToolCall] = field(default_factory=list)


class BaseGenerator(abc.ABC):
    """Streaming text generator with optional function calling."""

    @abc.abstractmethod
    def stream(
        self,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        *,
        system_instruction: Optional[str] = None,
        tools: Optional[Sequence[Any]] = None,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[GenerationChunk]:
        """Yield chunks of the model's response to `prompt`."""

    async def generate(
        self,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        on_chunk: Optional[ChunkCallback] = None,
        abort_signal: Optional[AbortSignal] = None,
        **options: Any,
    ) -> GenerationResult:
        """
        Run one generation, delivering text chunks to `on_chunk` as they arrive.

        Raises:
            TurnAborted: `abort_signal` fired before the response completed
            GeneratorError: the upstream call failed
        """
        session = StreamSession(on_chunk=on_chunk, abort_signal=abort_signal)
        try:
            chunks = await session.relay(
                self.stream(prompt, history, **options),
                text_of=lambda c: c.text,
            )
        except (TurnAborted, GeneratorError):
            raise
        except Exception as e:
            raise GeneratorError(f"{type(e).__name__}: {e}") from e

        return GenerationResult(
            text="".join(c.text for c in chunks if c.text),
            tool_calls=[call for c in chunks for call in c.tool_calls],
        )


__all__ = [
    "BaseGenerator",
    "GenerationChunk",
    "GenerationResult",
    "GeneratorError",
    "ToolCall",
]
