import asyncio

import pytest

from cadence.agent.streaming import StreamAccumulator, StreamConsumer
from cadence.agent.structs import Message, StreamChunk

from conftest import iterate


def hello_chunks():
    return [
        StreamChunk(delta="Hel", token_count=1),
        StreamChunk(delta="lo, ", token_count=2),
        StreamChunk(delta="world", token_count=3),
        StreamChunk(delta="", done=True, token_count=3, finish_reason="stop"),
    ]


async def paced(chunks, delay):
    for chunk in chunks:
        await asyncio.sleep(delay)
        yield chunk


class Recorder:
    def __init__(self):
        self.contents = []

    async def __call__(self, message):
        self.contents.append(message.content)


@pytest.mark.asyncio
@pytest.mark.parametrize("interval", [0.001, 0.033, 10.0])
async def test_final_content_independent_of_timer_phase(interval):
    message = Message(role="assistant", content="")
    consumer = StreamConsumer(flush_interval=interval)

    outcome = await consumer.consume(iterate(hello_chunks()), message)

    assert message.content == "Hello, world"
    assert message.token_count == 3
    assert outcome.status == "complete"
    assert outcome.finish_reason == "stop"


@pytest.mark.asyncio
async def test_fast_producer_is_flushed_once_when_timer_never_fires():
    recorder = Recorder()
    consumer = StreamConsumer(flush_interval=10.0, on_flush=recorder)
    message = Message(role="assistant", content="")

    outcome = await consumer.consume(iterate(hello_chunks()), message)

    assert recorder.contents == ["Hello, world"]
    assert outcome.flushes == 1


@pytest.mark.asyncio
async def test_flushes_are_rate_limited_and_monotonic():
    recorder = Recorder()
    consumer = StreamConsumer(flush_interval=0.02, on_flush=recorder)
    message = Message(role="assistant", content="")
    chunks = [StreamChunk(delta="x") for _ in range(40)]
    chunks.append(StreamChunk(delta="", done=True))

    await consumer.consume(paced(chunks, 0.002), message)

    assert recorder.contents[-1] == "x" * 40
    assert len(recorder.contents) < 40
    lengths = [len(c) for c in recorder.contents]
    assert lengths == sorted(lengths)
    assert len(set(lengths)) == len(lengths)


@pytest.mark.asyncio
async def test_unchanged_state_is_not_reflushed():
    recorder = Recorder()
    consumer = StreamConsumer(flush_interval=0.005, on_flush=recorder)
    message = Message(role="assistant", content="")

    async def slow():
        yield StreamChunk(delta="only")
        await asyncio.sleep(0.1)
        yield StreamChunk(delta="", done=True)

    await consumer.consume(slow(), message)
    assert recorder.contents == ["only"]


@pytest.mark.asyncio
async def test_error_stops_flushing_and_keeps_partial_content():
    recorder = Recorder()
    consumer = StreamConsumer(flush_interval=0.005, on_flush=recorder)
    message = Message(role="assistant", content="")

    async def failing():
        yield StreamChunk(delta="partial")
        await asyncio.sleep(0.05)
        yield StreamChunk(delta=" never flushed")
        raise RuntimeError("anthropic API error: overloaded")

    outcome = await consumer.consume(failing(), message)

    assert outcome.status == "error"
    assert outcome.error == "anthropic API error: overloaded"
    assert message.content == "partial"
    assert recorder.contents == ["partial"]


@pytest.mark.asyncio
async def test_exhausted_source_without_terminal_chunk_is_complete():
    message = Message(role="assistant", content="")
    consumer = StreamConsumer(flush_interval=10.0)
    outcome = await consumer.consume(iterate([StreamChunk(delta="abc")]), message)
    assert outcome.status == "complete"
    assert message.content == "abc"


@pytest.mark.asyncio
async def test_cancellation_closes_source_and_reraises():
    closed = asyncio.Event()

    async def endless():
        try:
            while True:
                yield StreamChunk(delta="tick")
                await asyncio.sleep(0.002)
        finally:
            closed.set()

    message = Message(role="assistant", content="")
    consumer = StreamConsumer(flush_interval=0.005)
    task = asyncio.create_task(consumer.consume(endless(), message))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert closed.is_set()
    assert message.content.startswith("tick")


@pytest.mark.asyncio
async def test_flush_callback_failure_does_not_break_stream():
    async def broken(_message):
        raise ValueError("ui exploded")

    message = Message(role="assistant", content="")
    consumer = StreamConsumer(flush_interval=10.0, on_flush=broken)
    outcome = await consumer.consume(iterate(hello_chunks()), message)
    assert outcome.status == "complete"
    assert message.content == "Hello, world"


def test_accumulator_estimates_when_count_missing():
    acc = StreamAccumulator()
    acc.append(StreamChunk(delta="abcde"))
    assert acc.text == "abcde"
    assert acc.token_count == 2


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        StreamConsumer(flush_interval=0)
