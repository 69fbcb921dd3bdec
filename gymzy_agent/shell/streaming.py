"""
Streaming - Chunk delivery with cooperative cancellation.

AbortSignal is the caller's cancellation token. It may be fired from any
thread (a UI thread, a signal handler, another task). StreamSession owns one
response: it relays upstream chunks to the caller's on_chunk callback and
stops the moment the signal fires.

Guarantees:
- No on_chunk call happens after the signal has fired.
- The upstream iterator is not awaited further after an abort; its pending
  read is cancelled and the iterator closed.
- An abort surfaces as TurnAborted, never as a partial success.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]


class TurnAborted(Exception):
    """The caller cancelled the turn. Not an error."""


class AbortSignal:
    """Thread-safe, fire-once cancellation token."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._listeners: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            listeners = list(self._listeners)
            self._listeners.clear()
        logger.info("STREAM: abort signalled (%s)", reason)
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.warning("STREAM: abort listener failed: %s", e)

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """
        Call `listener` once when the signal fires (immediately if it already
        has). Returns a function that unregisters the listener.
        """
        with self._lock:
            fire_now = self._event.is_set()
            if not fire_now:
                self._listeners.append(listener)
        if fire_now:
            listener()

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove


class StreamSession:
    """Delivery state for one streamed response."""

    def __init__(self, on_chunk: Optional[ChunkCallback] = None, abort_signal: Optional[AbortSignal] = None):
        self.on_chunk = on_chunk
        self.abort_signal = abort_signal
        self.chunks_emitted = 0
        self.aborted = False
        self._delivered: List[str] = []

    @property
    def text(self) -> str:
        """Everything delivered to the caller so far."""
        return "".join(self._delivered)

    def check(self) -> None:
        """Raise TurnAborted if the caller has cancelled."""
        if self.aborted or (self.abort_signal is not None and self.abort_signal.aborted):
            self.aborted = True
            raise TurnAborted(self.abort_signal.reason if self.abort_signal else "cancelled")

    async def emit(self, text: str) -> None:
        self.check()
        if not text:
            return
        if self.on_chunk is not None:
            result = self.on_chunk(text)
            if inspect.isawaitable(result):
                await result
        self._delivered.append(text)
        self.chunks_emitted += 1

    async def relay(
        self,
        upstream: AsyncIterator[Any],
        text_of: Optional[Callable[[Any], Optional[str]]] = None,
    ) -> List[Any]:
        """
        Drain `upstream`, delivering each item's text to on_chunk.

        Each read is raced against the abort signal, so a stalled upstream
        does not delay cancellation.

        Returns:
            Every item received, in order

        Raises:
            TurnAborted: the signal fired before the upstream finished
        """
        self.check()
        loop = asyncio.get_running_loop()
        abort_waiter: asyncio.Future = loop.create_future()
        remove_listener = None

        def _wake() -> None:
            if not abort_waiter.done():
                abort_waiter.set_result(None)

        if self.abort_signal is not None:
            remove_listener = self.abort_signal.add_listener(lambda: loop.call_soon_threadsafe(_wake))

        iterator = upstream.__aiter__()
        items: List[Any] = []
        exhausted = False
        try:
            while True:
                self.check()
                next_item = asyncio.ensure_future(iterator.__anext__())
                done, _ = await asyncio.wait({next_item, abort_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if next_item not in done:
                    next_item.cancel()
                    try:
                        await next_item
                    except (asyncio.CancelledError, StopAsyncIteration):
                        pass
                    except Exception as e:
                        logger.debug("STREAM: upstream raised while cancelling: %s", e)
                    self.aborted = True
                    logger.info("STREAM: aborted after %d chunks", self.chunks_emitted)
                    raise TurnAborted(self.abort_signal.reason if self.abort_signal else "cancelled")

                try:
                    item = next_item.result()
                except StopAsyncIteration:
                    exhausted = True
                    break

                self.check()
                items.append(item)
                text = text_of(item) if text_of is not None else item
                if text:
                    await self.emit(text)
        finally:
            if remove_listener is not None:
                remove_listener()
            if not abort_waiter.done():
                abort_waiter.cancel()
            if not exhausted:
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    try:
                        await aclose()
                    except Exception as e:
                        logger.debug("STREAM: closing upstream failed: %s", e)
        return items


__all__ = ["AbortSignal", "ChunkCallback", "StreamSession", "TurnAborted"]
