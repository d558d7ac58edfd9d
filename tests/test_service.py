import asyncio
import json

import pytest
import pytest_asyncio

from cadence.agent.conversations import ConversationBook
from cadence.agent.service import ChatService
from cadence.agent.structs import FileContent, UserRequest
from cadence.config.settings import Settings
from cadence.exceptions import (
    ConfigurationError,
    NoClientForProviderError,
    ProviderStreamError,
    TurnInProgressError,
    UnknownModelError,
)
from cadence.protocol.bus import EventBus
from cadence.protocol.events import EventTypes
from cadence.providers.anthropic import AnthropicProvider
from cadence.providers.router import ClientRouter
from cadence.storage.manager import StateStore

from conftest import EventRecorder, ScriptedProvider


@pytest.fixture
def adapters(registry):
    return {
        "anthropic": ScriptedProvider(
            registry, "anthropic", ["Hel", "lo, ", "world"], delay=0.01
        ),
        "openai": ScriptedProvider(registry, "openai", ["gpt says hi"]),
    }


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(settings):
    return StateStore(settings.state_file)


@pytest.fixture
def service(bus, adapters, registry, settings, store):
    return ChatService(
        bus=bus,
        router=ClientRouter(registry, adapters),
        registry=registry,
        settings=settings,
        conversations=ConversationBook(),
        store=store,
    )


@pytest_asyncio.fixture
async def events(bus, service):
    recorder = EventRecorder()
    await recorder.attach(bus, *EventTypes)
    await service.start()
    return recorder


def keyless_service(bus, registry, settings, store=None):
    keyless = AnthropicProvider(
        Settings(_env_file=None, anthropic_api_key=None), registry
    )
    return ChatService(
        bus=bus,
        router=ClientRouter(registry, {"anthropic": keyless}),
        registry=registry,
        settings=settings,
        conversations=ConversationBook(),
        store=store,
    )


async def run_turn(service, text, model_id="claude-sonnet-4.5", history=None, files=None):
    history = [] if history is None else history
    updates = [
        u async for u in service.handle_send(text, model_id, history, files)
    ]
    return history, updates


class TestHandleSend:
    @pytest.mark.asyncio
    async def test_streams_into_assistant_placeholder(self, service, adapters):
        history, updates = await run_turn(service, "hi")

        assert [m.role for m in history] == ["user", "assistant"]
        assert history[1].content == "Hello, world"
        assert history[1].model_id == "claude-sonnet-4.5"
        assert updates[-1].status == "complete"
        assert updates[-1].message is history[1]
        assert all(u.status == "streaming" for u in updates[:-1])

        sent, model_id = adapters["anthropic"].calls[0]
        assert sent[0].role == "system"
        assert sent[-1].content == "hi"
        assert all(m.content for m in sent)

    @pytest.mark.asyncio
    async def test_unknown_model_is_static_error(self, service):
        history = []
        with pytest.raises(UnknownModelError):
            await run_turn(service, "hi", "gpt-9", history)
        assert history == []

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_static_error(self, service):
        history = []
        with pytest.raises(NoClientForProviderError):
            await run_turn(service, "hi", "Mistral-Large-3", history)
        assert history == []

    @pytest.mark.asyncio
    async def test_missing_credentials_is_static_error(self, bus, registry, settings):
        service = keyless_service(bus, registry, settings)
        history = []
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY") as excinfo:
            await run_turn(service, "hi", history=history)
        assert history == []
        assert excinfo.value.user_hint.startswith("Check your .env file")

    @pytest.mark.asyncio
    async def test_second_send_rejected_while_streaming(self, service):
        history = []
        first = asyncio.create_task(run_turn(service, "one", history=history))
        await asyncio.sleep(0.005)

        with pytest.raises(TurnInProgressError):
            await service.handle_send("two", "claude-sonnet-4.5", history).__anext__()

        await first
        assert [m.content for m in history if m.role == "user"] == ["one"]

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_partial_content(self, service, adapters):
        adapters["anthropic"].deltas = ["par"]
        adapters["anthropic"].delay = 0.03
        adapters["anthropic"].error = ProviderStreamError("anthropic API error: down")

        history, updates = await run_turn(service, "hi")

        final = updates[-1]
        assert final.status == "error"
        assert final.error == "anthropic API error: down"
        assert history[1].content == "par"
        assert history[1].metadata["status"] == "error"

    @pytest.mark.asyncio
    async def test_file_contents_reach_the_provider(self, service, adapters):
        files = [FileContent(path="app.py", content="x = 1", size=5, language="python")]
        history, _ = await run_turn(service, "explain", files=files)

        sent, _ = adapters["anthropic"].calls[0]
        file_messages = [m for m in sent if m.metadata.get("type") == "file-context"]
        assert len(file_messages) == 1
        assert "File: app.py\n```python\nx = 1\n```" in file_messages[0].content
        assert history[0].metadata["files"] == ["app.py"]



class TestEventFlow:
    @pytest.mark.asyncio
    async def test_submitted_input_streams_and_persists(self, bus, service, events, store):
        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="hi"))
        await service._turn_task

        complete = events.of(EventTypes.RESPONSE_COMPLETE)
        assert len(complete) == 1
        assert complete[0].status == "complete"
        assert complete[0].message.content == "Hello, world"
        assert events.of(EventTypes.STREAM_UPDATE)

        state = await store.load()
        saved = state["conversations"]["claude-sonnet-4.5"]
        assert saved["message_count"] == 2
        assert saved["messages"][1]["content"] == "Hello, world"
        assert saved["total_tokens"] > 0

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_reply(self, bus, service, events, adapters):
        adapters["anthropic"].deltas = ["tick "] * 200
        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="count"))
        await asyncio.sleep(0.08)

        assert await service.cancel_turn() is True
        assert adapters["anthropic"].closed

        final = events.of(EventTypes.RESPONSE_COMPLETE)[-1]
        assert final.status == "cancelled"
        assert final.message.content.startswith("tick")
        assert len(final.message.content) < len("tick " * 200)
        assert not service.is_streaming

    @pytest.mark.asyncio
    async def test_missing_credentials_reported_with_hint(
        self, bus, registry, settings, store
    ):
        service = keyless_service(bus, registry, settings, store)
        recorder = EventRecorder()
        await recorder.attach(bus, *EventTypes)
        await service.start()

        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="hi"))
        await service._turn_task

        error = recorder.of(EventTypes.ERROR)[-1]
        assert error["message"] == "Missing ANTHROPIC_API_KEY environment variable"
        assert error["hint"].startswith("Check your .env file")
        assert recorder.of(EventTypes.RESPONSE_COMPLETE) == [None]
        assert recorder.of(EventTypes.STREAM_UPDATE) == []
        assert service.conversations.get("claude-sonnet-4.5").messages == []

    @pytest.mark.asyncio
    async def test_switching_model_swaps_conversation(self, bus, service, events):
        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="hi"))
        await service._turn_task

        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="/model gpt-4o-mini"))
        switched = events.of(EventTypes.MODEL_SWITCHED)[-1]
        assert switched["model"] == "gpt-4o-mini"
        assert switched["messages"] == 0
        assert service.active_model == "gpt-4o-mini"

        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text="yo"))
        await service._turn_task

        assert service.conversations.get("gpt-4o-mini").message_count == 2
        assert service.conversations.get("claude-sonnet-4.5").message_count == 2


class TestCommands:
    async def send(self, bus, text):
        await bus.emit(EventTypes.USER_INPUT_SUBMITTED, UserRequest(text=text))

    @pytest.mark.asyncio
    async def test_unknown_command(self, bus, events):
        await self.send(bus, "/bogus")
        assert events.of(EventTypes.ERROR)[-1]["message"] == "Unknown command: /bogus"

    @pytest.mark.asyncio
    async def test_missing_arguments(self, bus, events):
        await self.send(bus, "/file")
        assert "Missing arguments" in events.of(EventTypes.ERROR)[-1]["message"]

    @pytest.mark.asyncio
    async def test_unknown_model_switch(self, bus, service, events):
        await self.send(bus, "/model gpt-9")
        assert events.of(EventTypes.ERROR)[-1]["message"] == "Unknown model: gpt-9"
        assert service.active_model == "claude-sonnet-4.5"

    @pytest.mark.asyncio
    async def test_model_listing_marks_active(self, bus, events):
        await self.send(bus, "/model")
        listing = events.of(EventTypes.COMMAND_RESULT)[-1]["message"]
        assert "* claude-sonnet-4.5" in listing
        assert "MoonShot AI" in listing

    @pytest.mark.asyncio
    async def test_file_is_attached_to_next_send(
        self, bus, service, events, settings, adapters
    ):
        (settings.workspace / "notes.md").write_text("remember this", encoding="utf-8")
        await self.send(bus, "/file notes.md")
        assert [f.path for f in service.pending_files] == ["notes.md"]

        await self.send(bus, "summarize")
        await service._turn_task

        sent, _ = adapters["anthropic"].calls[-1]
        assert any("remember this" in m.content for m in sent)
        assert service.pending_files == []

    @pytest.mark.asyncio
    async def test_missing_file(self, bus, events):
        await self.send(bus, "/file nowhere.txt")
        assert "File not found" in events.of(EventTypes.ERROR)[-1]["message"]

    @pytest.mark.asyncio
    async def test_clear_and_clearall(self, bus, service, events):
        await self.send(bus, "hi")
        await service._turn_task
        service.conversations.get("gpt-4o-mini").messages.append(
            service.conversations.get("claude-sonnet-4.5").messages[0]
        )

        await self.send(bus, "/clear")
        assert service.conversations.get("claude-sonnet-4.5").message_count == 0
        assert service.conversations.get("gpt-4o-mini").message_count == 1

        await self.send(bus, "/clearall")
        assert service.conversations.get("gpt-4o-mini").message_count == 0

    @pytest.mark.asyncio
    async def test_tokens_toggle_is_saved(self, bus, service, events, store):
        await self.send(bus, "/tokens")
        assert service.show_tokens is True
        assert events.of(EventTypes.COMMAND_RESULT)[-1]["show_tokens"] is True
        state = await store.load()
        assert state["preferences"]["show_tokens"] is True

    @pytest.mark.asyncio
    async def test_export_writes_json(self, bus, service, events, settings):
        await self.send(bus, "hi")
        await service._turn_task
        await self.send(bus, "/export out.json")

        data = json.loads((settings.workspace / "out.json").read_text(encoding="utf-8"))
        assert data["model"] == "claude-sonnet-4.5"
        assert [m["role"] for m in data["messages"]] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_providers_reports_validation(self, bus, events):
        await self.send(bus, "/providers")
        result = events.of(EventTypes.COMMAND_RESULT)[-1]
        assert result["results"] == {"anthropic": True, "openai": True}

    @pytest.mark.asyncio
    async def test_help_and_alias(self, bus, events):
        await self.send(bus, "/?")
        assert "/model" in events.of(EventTypes.COMMAND_RESULT)[-1]["message"]

    @pytest.mark.asyncio
    async def test_exit_requests_shutdown(self, bus, events):
        await self.send(bus, "/q")
        assert len(events.of(EventTypes.SHUTDOWN_REQUESTED)) == 1

    @pytest.mark.asyncio
    async def test_status(self, bus, events):
        await self.send(bus, "/status")
        text = events.of(EventTypes.COMMAND_RESULT)[-1]["message"]
        assert "Model: claude-sonnet-4.5 (Anthropic)" in text
        assert "/ 128,000" in text

    @pytest.mark.asyncio
    async def test_status_and_export_do_not_modify_conversation(
        self, bus, service, events, settings
    ):
        await self.send(bus, "hi")
        await service._turn_task
        conversation = service.conversations.get("claude-sonnet-4.5")
        stamp = conversation.last_modified
        await asyncio.sleep(0.01)

        await self.send(bus, "/status")
        await self.send(bus, "/export out.json")

        assert conversation.last_modified == stamp
        status = [
            r["message"]
            for r in events.of(EventTypes.COMMAND_RESULT)
            if r["message"].startswith("Model:")
        ][-1]
        assert f"Tokens: {conversation.total_tokens:,} /" in status
        data = json.loads((settings.workspace / "out.json").read_text(encoding="utf-8"))
        assert data["total_tokens"] == conversation.total_tokens
