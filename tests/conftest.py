import asyncio
from typing import List, Optional, Sequence

import pytest

from cadence.agent.structs import Message, StreamChunk
from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings
from cadence.providers.base import BaseProvider


class ScriptedProvider(BaseProvider):
    """Adapter double that replays a fixed list of deltas."""

    def __init__(
        self,
        registry: ModelRegistry,
        provider: str,
        deltas: Sequence[str] = (),
        error: Optional[Exception] = None,
        delay: float = 0.0,
        valid: bool = True,
    ):
        super().__init__(registry)
        self.provider = provider
        self.deltas = list(deltas)
        self.error = error
        self.delay = delay
        self.valid = valid
        self.calls: List[tuple] = []
        self.closed = False

    async def stream_completion(self, messages, model_id):
        self.resolve_model(model_id)
        self.calls.append((list(messages), model_id))
        text = ""
        try:
            for delta in self.deltas:
                if self.delay:
                    await asyncio.sleep(self.delay)
                text += delta
                yield StreamChunk(delta=delta, token_count=len(text))
            if self.error is not None:
                if self.delay:
                    await asyncio.sleep(self.delay)
                raise self.error
            yield StreamChunk(
                delta="", done=True, token_count=len(text), finish_reason="stop"
            )
        finally:
            self.closed = True

    async def validate_config(self) -> bool:
        return self.valid


async def iterate(items):
    for item in items:
        yield item


def make_history(count: int, chars: int = 40, start: float = 1000.0) -> List[Message]:
    history = []
    for i in range(count):
        role = "user" if i % 2 == 0 else "assistant"
        history.append(
            Message(
                role=role,
                content=str(i % 10) * chars,
                id=f"m{i}",
                timestamp=start + i,
            )
        )
    return history


@pytest.fixture
def registry():
    return ModelRegistry.builtin()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        state_dir=tmp_path / "state",
        workspace=tmp_path,
        flush_interval_ms=5,
        log_level="INFO",
        default_model="claude-sonnet-4.5",
    )


class EventRecorder:
    """Collects every payload emitted for the attached event types."""

    def __init__(self):
        self.items = []

    async def attach(self, bus, *event_types):
        for event_type in event_types:
            await bus.subscribe(event_type, self._handler(event_type))

    def _handler(self, event_type):
        async def record(data):
            self.items.append((event_type, data))

        return record

    def of(self, event_type):
        return [data for kind, data in self.items if kind == event_type]
