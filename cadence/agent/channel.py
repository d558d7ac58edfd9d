"""
Bounded producer/consumer channel between a provider adapter and the
stream consumer.

The adapter runs as its own task and pushes StreamChunk values into an
asyncio.Queue; the consumer pulls them with `async for`. A full queue
pauses the adapter, so a slow consumer applies backpressure all the way
to the HTTP response.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from cadence.agent.structs import StreamChunk

logger = logging.getLogger("ChunkChannel")


class _End:
    pass


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


_END = _End()


class ChunkChannel:
    def __init__(self, maxsize: int = 64):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._finished = False

    @classmethod
    def start(cls, source: AsyncIterator[StreamChunk], maxsize: int = 64) -> "ChunkChannel":
        """Spawn the producer task. Must be called with a running loop."""
        channel = cls(maxsize=maxsize)
        channel._task = asyncio.create_task(channel._produce(source))
        return channel

    @property
    def producer(self) -> Optional[asyncio.Task]:
        return self._task

    async def _produce(self, source: AsyncIterator[StreamChunk]) -> None:
        try:
            async for chunk in source:
                await self._queue.put(chunk)
                if chunk.done:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._queue.put(_Failure(exc))
            return
        finally:
            closer = getattr(source, "aclose", None)
            if callable(closer):
                await closer()
        await self._queue.put(_END)

    def __aiter__(self) -> "ChunkChannel":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        return item

    async def aclose(self) -> None:
        """Stop the producer. Cancels the in-flight provider request."""
        self._finished = True
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "ChunkChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
