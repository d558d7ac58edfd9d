"""
agent/streaming.py - Stream Consumer

Bridges a chunk producer running at network speed to a UI that should
only be touched at a fixed cadence. Two tasks share one accumulator:

- ingest: drains the chunk source as fast as it produces
- flush: every interval, copies the accumulated state into the message

The accumulator has a single writer (ingest) and a single reader (flush),
which is safe under asyncio's cooperative scheduling.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from cadence.agent.context.logic import estimate_tokens
from cadence.agent.structs import Message, StreamChunk, StreamOutcome

logger = logging.getLogger("StreamConsumer")

FlushCallback = Callable[[Message], Awaitable[None]]

DEFAULT_FLUSH_INTERVAL = 0.033


class StreamAccumulator:
    """Append-only text buffer with a version counter."""

    def __init__(self):
        self._parts: List[str] = []
        self._text_cache = ""
        self._cache_len = 0
        self.token_count = 0
        self.version = 0
        self.finish_reason: Optional[str] = None

    def append(self, chunk: StreamChunk) -> None:
        if chunk.delta:
            self._parts.append(chunk.delta)
            self.version += 1
        if chunk.token_count is not None and chunk.token_count != self.token_count:
            self.token_count = chunk.token_count
            self.version += 1
        elif chunk.token_count is None and chunk.delta:
            self.token_count = estimate_tokens(self.text)
        if chunk.done:
            self.finish_reason = chunk.finish_reason

    @property
    def text(self) -> str:
        if self._cache_len != len(self._parts):
            self._text_cache = "".join(self._parts)
            self._cache_len = len(self._parts)
        return self._text_cache


class StreamConsumer:
    def __init__(
        self,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        on_flush: Optional[FlushCallback] = None,
    ):
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        self.flush_interval = flush_interval
        self.on_flush = on_flush

    async def consume(
        self, chunks: AsyncIterator[StreamChunk], message: Message
    ) -> StreamOutcome:
        """
        Drain `chunks` into `message`, publishing at most once per interval.

        The terminal chunk (or plain exhaustion) triggers one final flush
        after the timer stops. A failing source stops the timer without a
        final flush; content flushed so far stays on the message.
        Cancellation closes the source and re-raises.
        """
        acc = StreamAccumulator()
        stop = asyncio.Event()
        flushed = {"version": 0, "count": 0}

        async def flush() -> None:
            if acc.version == flushed["version"]:
                return
            message.content = acc.text
            message.token_count = acc.token_count
            flushed["version"] = acc.version
            flushed["count"] += 1
            if self.on_flush is not None:
                try:
                    await self.on_flush(message)
                except Exception as exc:
                    logger.error("Flush callback failed: %s", exc, exc_info=True)

        async def flush_loop() -> None:
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.flush_interval)
                except asyncio.TimeoutError:
                    if stop.is_set():
                        break
                    await flush()

        async def ingest() -> None:
            async for chunk in chunks:
                acc.append(chunk)
                if chunk.done:
                    return

        flush_task = asyncio.create_task(flush_loop())
        try:
            await ingest()
        except asyncio.CancelledError:
            stop.set()
            flush_task.cancel()
            try:
                await flush_task
            except asyncio.CancelledError:
                pass
            await self._close(chunks)
            raise
        except Exception as exc:
            stop.set()
            await flush_task
            await self._close(chunks)
            logger.warning("Stream failed after %d flushes: %s", flushed["count"], exc)
            return StreamOutcome(
                status="error", error=str(exc), flushes=flushed["count"]
            )

        stop.set()
        await flush_task
        await flush()
        await self._close(chunks)
        return StreamOutcome(
            status="complete",
            finish_reason=acc.finish_reason or "stop",
            flushes=flushed["count"],
        )

    @staticmethod
    async def _close(chunks) -> None:
        closer = getattr(chunks, "aclose", None)
        if callable(closer):
            await closer()
