"""
ui/plain/interface.py
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from cadence.agent.commands import SLASH_COMMANDS
from cadence.agent.structs import TurnUpdate, UserRequest
from cadence.config.models import PROVIDER_NAMES, ModelRegistry
from cadence.protocol.bus import EventBus
from cadence.protocol.events import EventTypes

from .input import InputManager
from .renderer import PlainRenderer

logger = logging.getLogger("PlainUI")


class PlainUI:
    """
    Line-oriented terminal UI.

    Streamed updates carry the whole assistant message; only the part not
    yet printed is written, so a reply appears at the flush cadence.
    """

    def __init__(
        self,
        bus: EventBus,
        registry: ModelRegistry,
        renderer: Optional[PlainRenderer] = None,
        input_manager: Optional[InputManager] = None,
    ):
        self._bus = bus
        self._registry = registry
        self.renderer = renderer or PlainRenderer()
        self.input = input_manager

        self.model = registry.default_model
        self.show_tokens = False
        self.running = False
        self.turn_complete = asyncio.Event()
        self.turn_complete.set()
        self._printed = 0

    async def start(self):
        await self._bus.subscribe(EventTypes.STREAM_UPDATE, self._on_stream_update)
        await self._bus.subscribe(EventTypes.RESPONSE_COMPLETE, self._on_response_complete)
        await self._bus.subscribe(EventTypes.ERROR, self._on_error)
        await self._bus.subscribe(EventTypes.WARNING, self._on_warning)
        await self._bus.subscribe(EventTypes.INFO, self._on_info)
        await self._bus.subscribe(EventTypes.COMMAND_RESULT, self._on_command_result)
        await self._bus.subscribe(EventTypes.MODEL_SWITCHED, self._on_model_switched)
        await self._bus.subscribe(EventTypes.SHUTDOWN_REQUESTED, self._on_shutdown)

    def show_banner(self, workspace: str):
        model = self._registry.lookup(self.model)
        provider = PROVIDER_NAMES.get(model.provider, model.provider) if model else "?"
        self.renderer.print_banner(self.model, provider, workspace)

    # --- MAIN LOOP ---

    async def run_loop(self):
        """The main blocking loop for the application."""
        if self.input is None:
            self.input = InputManager(f"/{c.name}" for c in SLASH_COMMANDS)

        self.running = True
        while self.running:
            await self.turn_complete.wait()
            if not self.running:
                break

            user_input = await self.input.read_input(self.model)
            if user_input is None:  # EOF/Interrupt
                break
            if not user_input.strip():
                continue

            if not user_input.strip().startswith("/"):
                self.turn_complete.clear()
                self._printed = 0
            await self._bus.emit(
                EventTypes.USER_INPUT_SUBMITTED, UserRequest(text=user_input)
            )
        self.running = False

    async def stop(self):
        self.running = False
        self.turn_complete.set()

    # --- Event handlers ---

    async def _on_stream_update(self, update: TurnUpdate):
        content = update.message.content
        if len(content) <= self._printed:
            return
        self.renderer.start_stream(self.model)
        self.renderer.print_stream(content[self._printed:])
        self._printed = len(content)

    async def _on_response_complete(self, update: Optional[TurnUpdate]):
        if update is not None:
            await self._on_stream_update(update)
            self.renderer.end_stream()
            if self.show_tokens or update.status != "complete":
                count = update.message.token_count if self.show_tokens else None
                self.renderer.print_footer(count, update.status)
        self._printed = 0
        self.turn_complete.set()

    async def _on_error(self, data: Dict[str, Any]):
        self.renderer.print_error(data.get("message", "Unknown error"), data.get("hint"))

    async def _on_warning(self, data: Dict[str, Any]):
        self.renderer.print_warning(data.get("message", ""))

    async def _on_info(self, data: Dict[str, Any]):
        self.renderer.print_system(data.get("message", ""))

    async def _on_command_result(self, data: Dict[str, Any]):
        if "show_tokens" in data:
            self.show_tokens = data["show_tokens"]
        message = data.get("message", "")
        if "\n" in message:
            self.renderer.print_block(message)
        else:
            self.renderer.print_system(message)

    async def _on_model_switched(self, data: Dict[str, Any]):
        self.model = data["model"]
        self.renderer.print_system(
            f"Switched to {data['model']} ({data['provider']}), "
            f"{data['messages']} messages in history"
        )

    async def _on_shutdown(self, _data=None):
        self.renderer.print_system("Goodbye.")
        await self.stop()
