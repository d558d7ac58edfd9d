"""
Cadence Chat Service
====================
Turns submitted input into streamed assistant replies.
Event-driven: the UI only talks to it through the EventBus.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Sequence

from cadence.agent.commands import CommandParser, ParsedCommand
from cadence.agent.context.logic import calculate_total_tokens, estimate_tokens
from cadence.agent.context.manager import ContextWindowManager
from cadence.agent.conversations import ConversationBook
from cadence.agent.streaming import StreamConsumer
from cadence.agent.structs import (
    AgentStatus,
    FileContent,
    Message,
    TurnUpdate,
    UserRequest,
)
from cadence.config.models import PROVIDER_NAMES, ModelRegistry
from cadence.config.settings import Settings
from cadence.config.system_prompts import get_system_prompt
from cadence.exceptions import (
    CadenceBaseError,
    TurnInProgressError,
    UnknownModelError,
)
from cadence.protocol.bus import EventBus
from cadence.protocol.events import EventTypes
from cadence.providers.router import ClientRouter
from cadence.storage.manager import STATE_VERSION, StateStore
from cadence.utils.files import read_file_content

logger = logging.getLogger("ChatService")

_TURN_DONE = object()


class ChatService:
    """
    Background service that processes USER_INPUT_SUBMITTED events and
    emits STREAM_UPDATE / RESPONSE_COMPLETE events.
    """

    def __init__(
        self,
        bus: EventBus,
        router: ClientRouter,
        registry: ModelRegistry,
        settings: Settings,
        conversations: Optional[ConversationBook] = None,
        store: Optional[StateStore] = None,
        active_model: Optional[str] = None,
        show_tokens: Optional[bool] = None,
    ):
        self.bus = bus
        self.router = router
        self.registry = registry
        self.settings = settings
        self.conversations = conversations or ConversationBook()
        self.store = store
        self.parser = CommandParser()

        self.active_model = active_model or registry.default_model
        if self.active_model not in registry:
            self.active_model = registry.default_model
        self.show_tokens = settings.show_tokens if show_tokens is None else show_tokens

        self._pending_files: List[FileContent] = []
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._turn_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Subscribe to input events."""
        await self.bus.subscribe(EventTypes.USER_INPUT_SUBMITTED, self.on_user_input)
        await self.bus.subscribe(EventTypes.USER_INPUT_CANCELLED, self.on_user_cancel)
        logger.info("ChatService listening (model=%s)", self.active_model)

    async def shutdown(self) -> None:
        await self.cancel_turn()
        await self.router.close()

    # --- Public state ---

    @property
    def is_streaming(self) -> bool:
        return self._turn_task is not None and not self._turn_task.done()

    @property
    def pending_files(self) -> List[FileContent]:
        return list(self._pending_files)

    # --- Core entry point ---

    def _lock_for(self, model_id: str) -> asyncio.Lock:
        if model_id not in self._turn_locks:
            self._turn_locks[model_id] = asyncio.Lock()
        return self._turn_locks[model_id]

    async def handle_send(
        self,
        content: str,
        model_id: str,
        history: List[Message],
        file_contents: Optional[Sequence[FileContent]] = None,
    ) -> AsyncIterator[TurnUpdate]:
        """
        Run one turn and yield the assistant message's visible state.

        Appends the user message and an assistant placeholder to `history`.
        One update is yielded per flush, then a final one whose status is
        "complete" or "error". Unknown models, unconfigured providers and
        missing credentials raise before anything is appended. A turn
        cancelled mid-stream keeps its partial content and re-raises
        CancelledError.
        """
        model = self.registry.lookup(model_id)
        if model is None:
            raise UnknownModelError(f"Unknown model: {model_id}", model_name=model_id)
        self.router.resolve(model_id).check_config()

        lock = self._lock_for(model_id)
        if lock.locked():
            raise TurnInProgressError(
                f"A response is already streaming for {model_id}", model_id=model_id
            )

        async with lock:
            user_message = Message(
                role="user",
                content=content,
                model_id=model_id,
                token_count=estimate_tokens(content),
            )
            if file_contents:
                user_message.metadata["files"] = [f.path for f in file_contents]
            history.append(user_message)

            manager = ContextWindowManager.for_model(
                model, **self.settings.context_overrides()
            )
            bounded = manager.prepare_context(
                get_system_prompt(model_id), history, file_contents
            )

            assistant = Message(role="assistant", content="", model_id=model_id)
            history.append(assistant)

            updates: asyncio.Queue = asyncio.Queue()

            async def on_flush(message: Message) -> None:
                updates.put_nowait(TurnUpdate(message=message, status="streaming"))

            consumer = StreamConsumer(self.settings.flush_interval, on_flush=on_flush)
            channel = self.router.open_channel(
                bounded, model_id, maxsize=self.settings.stream_channel_size
            )

            async def run():
                try:
                    return await consumer.consume(channel, assistant)
                finally:
                    updates.put_nowait(_TURN_DONE)

            task = asyncio.create_task(run())
            try:
                while True:
                    update = await updates.get()
                    if update is _TURN_DONE:
                        break
                    yield update
                outcome = await task
            except asyncio.CancelledError:
                assistant.metadata["status"] = "cancelled"
                raise
            finally:
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass

            assistant.metadata["status"] = outcome.status
            if outcome.status == "error":
                assistant.metadata["error"] = outcome.error
                yield TurnUpdate(message=assistant, status="error", error=outcome.error)
            else:
                assistant.metadata["finish_reason"] = outcome.finish_reason
                yield TurnUpdate(message=assistant, status="complete")

    async def cancel_turn(self) -> bool:
        """Cancel the running turn, if any. Partial content is kept."""
        task = self._turn_task
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    # --- Event Handlers ---

    async def on_user_input(self, request) -> None:
        text = request.text if isinstance(request, UserRequest) else str(request)
        text = text.strip()
        if not text:
            return

        if self.parser.is_command(text):
            await self.execute_command(self.parser.parse(text))
            return

        if self.is_streaming:
            await self.bus.emit(
                EventTypes.WARNING,
                {"message": "Still streaming. Press Ctrl-C to stop the current reply."},
            )
            return

        self._turn_task = asyncio.create_task(self._run_turn(text))

    async def on_user_cancel(self, _data=None) -> None:
        if await self.cancel_turn():
            logger.info("Turn cancelled by user")

    async def _run_turn(self, text: str) -> None:
        model_id = self.active_model
        conversation = self.conversations.get(model_id)
        files = self._pending_files
        self._pending_files = []

        await self.bus.emit(
            EventTypes.STATUS_CHANGED,
            AgentStatus(status="streaming", message=f"Asking {model_id}..."),
        )

        final: Optional[TurnUpdate] = None
        try:
            async for update in self.handle_send(
                text, model_id, conversation.messages, files or None
            ):
                final = update
                if update.status == "streaming":
                    await self.bus.emit(EventTypes.STREAM_UPDATE, update)
        except asyncio.CancelledError:
            # cancel_turn() is the only canceller; the partial reply stays.
            last = conversation.messages[-1] if conversation.messages else None
            if last is not None and last.role == "assistant":
                final = TurnUpdate(message=last, status="cancelled")
        except CadenceBaseError as e:
            logger.warning("Turn rejected: %s", e.message)
            self._pending_files = files
            await self.bus.emit(
                EventTypes.ERROR, {"message": e.message, "hint": e.user_hint}
            )
        except Exception as e:
            logger.error("Turn failed: %s", e, exc_info=True)
            await self.bus.emit(EventTypes.ERROR, {"message": f"Unexpected error: {e}"})

        self.conversations.touch(model_id)
        await self._persist()

        if final is not None:
            if final.status == "error":
                await self.bus.emit(EventTypes.ERROR, {"message": final.error})
            await self.bus.emit(EventTypes.RESPONSE_COMPLETE, final)
        else:
            await self.bus.emit(EventTypes.RESPONSE_COMPLETE, None)
        await self.bus.emit(
            EventTypes.STATUS_CHANGED, AgentStatus(status="idle", message="Ready")
        )

    # --- Commands ---

    async def execute_command(self, parsed: ParsedCommand) -> None:
        if parsed.definition is None:
            await self.bus.emit(
                EventTypes.ERROR,
                {
                    "message": f"Unknown command: /{parsed.command}",
                    "hint": "Type /help to see the available commands.",
                },
            )
            return
        if parsed.missing_args:
            await self.bus.emit(
                EventTypes.ERROR,
                {"message": f"Missing arguments. Usage: {parsed.definition.usage}"},
            )
            return

        handler = getattr(self, f"_cmd_{parsed.name}")
        try:
            await handler(parsed.args)
        except CadenceBaseError as e:
            await self.bus.emit(
                EventTypes.ERROR, {"message": e.message, "hint": e.user_hint}
            )

    async def _reply(self, command: str, message: str, **extra) -> None:
        payload = {"command": command, "message": message}
        payload.update(extra)
        await self.bus.emit(EventTypes.COMMAND_RESULT, payload)

    async def _cmd_model(self, args: List[str]) -> None:
        if not args:
            await self._cmd_models(args)
            return

        model_id = args[0]
        model = self.registry.lookup(model_id)
        if model is None:
            raise UnknownModelError(f"Unknown model: {model_id}", model_name=model_id)
        if self.is_streaming:
            raise TurnInProgressError(
                "Cannot switch models while a response is streaming",
                model_id=self.active_model,
            )

        previous = self.active_model
        self.active_model = model_id
        await self._persist()
        await self.bus.emit(
            EventTypes.MODEL_SWITCHED,
            {
                "previous": previous,
                "model": model_id,
                "provider": PROVIDER_NAMES.get(model.provider, model.provider),
                "messages": self.conversations.get(model_id).message_count,
            },
        )

    async def _cmd_models(self, args: List[str]) -> None:
        lines = []
        for provider, models in self.registry.by_provider().items():
            lines.append(PROVIDER_NAMES.get(provider, provider))
            for model in models:
                marker = "*" if model.id == self.active_model else " "
                lines.append(f"  {marker} {model.id:<28} {model.description}")
        await self._reply("models", "\n".join(lines))

    async def _cmd_clear(self, args: List[str]) -> None:
        self.conversations.clear(self.active_model)
        await self._persist()
        await self._reply("clear", f"Cleared conversation for {self.active_model}")

    async def _cmd_clearall(self, args: List[str]) -> None:
        self.conversations.clear_all()
        await self._persist()
        await self._reply("clearall", "Cleared all conversations")

    async def _cmd_file(self, args: List[str]) -> None:
        await self._attach(args, "file")

    async def _cmd_files(self, args: List[str]) -> None:
        await self._attach(args, "files")

    async def _attach(self, paths: List[str], command: str) -> None:
        loaded = []
        for path in paths:
            loaded.append(
                await asyncio.to_thread(
                    read_file_content,
                    path,
                    self.settings.workspace,
                    self.settings.max_file_bytes,
                )
            )
        self._pending_files.extend(loaded)
        summary = ", ".join(
            f"{f.path}{' (truncated)' if f.truncated else ''}" for f in loaded
        )
        await self._reply(
            command,
            f"Attached {summary}. They will be sent with your next message.",
            files=[f.path for f in loaded],
        )

    async def _cmd_tokens(self, args: List[str]) -> None:
        self.show_tokens = not self.show_tokens
        await self._persist()
        await self._reply(
            "tokens",
            f"Token display {'on' if self.show_tokens else 'off'}",
            show_tokens=self.show_tokens,
        )

    async def _cmd_status(self, args: List[str]) -> None:
        model = self.registry.lookup(self.active_model)
        conversation = self.conversations.get(self.active_model)
        total = calculate_total_tokens(conversation.messages)
        window = model.context_window if model else 0
        pct = (total / window * 100) if window else 0.0
        provider = PROVIDER_NAMES.get(model.provider, model.provider) if model else "?"
        lines = [
            f"Model: {self.active_model} ({provider})",
            f"Messages: {conversation.message_count}",
            f"Tokens: {total:,} / {window:,} ({pct:.1f}%)",
            f"Workspace: {self.settings.workspace}",
        ]
        if self._pending_files:
            lines.append(
                "Attached: " + ", ".join(f.path for f in self._pending_files)
            )
        await self._reply("status", "\n".join(lines))

    async def _cmd_providers(self, args: List[str]) -> None:
        results = await self.router.validate_all_clients()
        lines = [
            f"  {'ok  ' if ok else 'FAIL'} {PROVIDER_NAMES.get(name, name)}"
            for name, ok in results.items()
        ]
        await self._reply("providers", "\n".join(lines), results=results)

    async def _cmd_export(self, args: List[str]) -> None:
        conversation = self.conversations.get(self.active_model)
        if args:
            target = Path(args[0]).expanduser()
            if not target.is_absolute():
                target = self.settings.workspace / target
        else:
            stamp = time.strftime("%Y%m%d-%H%M%S")
            target = self.settings.workspace / f"cadence-{self.active_model}-{stamp}.json"

        payload = {
            "model": self.active_model,
            "exported_at": time.time(),
            "total_tokens": calculate_total_tokens(conversation.messages),
            "messages": [m.to_dict() for m in conversation.messages],
        }
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(target.write_text, text, encoding="utf-8")
        except OSError as e:
            await self.bus.emit(
                EventTypes.ERROR, {"message": f"Export failed: {e}"}
            )
            return
        await self._reply(
            "export",
            f"Exported {conversation.message_count} messages to {target}",
            path=str(target),
        )

    async def _cmd_help(self, args: List[str]) -> None:
        if args:
            text = self.parser.get_help(args[0]) or f"No such command: {args[0]}"
        else:
            text = self.parser.generate_help_text()
        await self._reply("help", text)

    async def _cmd_exit(self, args: List[str]) -> None:
        await self.bus.emit(EventTypes.SHUTDOWN_REQUESTED, None)

    # --- Persistence ---

    def snapshot(self) -> dict:
        return {
            "version": STATE_VERSION,
            "active_model": self.active_model,
            "conversations": self.conversations.to_dict(),
            "preferences": {"show_tokens": self.show_tokens},
        }

    async def _persist(self) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(self.snapshot())
        except CadenceBaseError as e:
            # Persistence is best-effort; the session keeps running.
            await self.bus.emit(EventTypes.WARNING, {"message": e.message})
