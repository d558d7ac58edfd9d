#!/usr/bin/env python3
"""
Application Starter for Cadence
===============================

1. Loads settings and configures logging
2. Builds the registry, router, store and service
3. Runs the terminal UI until exit
4. Handles graceful shutdown
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from cadence.agent.conversations import ConversationBook
from cadence.agent.service import ChatService
from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings, load_settings
from cadence.exceptions import CadenceBaseError, ConfigurationError
from cadence.protocol.bus import EventBus
from cadence.protocol.events import EventTypes
from cadence.providers.factory import build_router
from cadence.storage.manager import StateStore
from cadence.ui.plain import PlainUI

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings):
    """File logging when LOG_FILE is set; otherwise only warnings on stderr."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if settings.log_file:
        log_path = settings.log_file.expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(log_path), mode="a")
        root_logger.setLevel(settings.log_level)
    else:
        handler = logging.StreamHandler(sys.stderr)
        root_logger.setLevel(logging.WARNING)

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    # SDK transports are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class Application:
    """Main application container."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.bus = EventBus()
        self.registry = ModelRegistry.from_settings(settings)
        self.router = build_router(settings, self.registry)
        self.store = StateStore(settings.state_file)
        self.service: Optional[ChatService] = None
        self.ui: Optional[PlainUI] = None
        self._stopped = False
        self.logger = logging.getLogger("Application")

    async def start(self):
        state = await self.store.load()
        conversations = ConversationBook.from_dict(state["conversations"])

        self.service = ChatService(
            bus=self.bus,
            router=self.router,
            registry=self.registry,
            settings=self.settings,
            conversations=conversations,
            store=self.store,
            active_model=state.get("active_model"),
            show_tokens=state["preferences"].get("show_tokens"),
        )
        self.ui = PlainUI(self.bus, self.registry)
        self.ui.model = self.service.active_model
        self.ui.show_tokens = self.service.show_tokens

        await self.ui.start()
        await self.service.start()
        self._install_signal_handlers()

        self.ui.show_banner(str(self.settings.workspace))
        self.logger.info("Cadence started with %s", self.service.active_model)
        await self.ui.run_loop()

    def _install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self._on_interrupt)
            loop.add_signal_handler(signal.SIGTERM, self._on_terminate)
        except NotImplementedError:
            # Windows event loops do not support signal handlers.
            self.logger.debug("Signal handlers unavailable on this platform")

    def _on_interrupt(self):
        # First Ctrl-C stops a streaming reply; at the prompt, prompt_toolkit
        # turns it into KeyboardInterrupt and the UI loop exits.
        if self.service is not None and self.service.is_streaming:
            asyncio.create_task(self.bus.emit(EventTypes.USER_INPUT_CANCELLED))
        else:
            asyncio.create_task(self.stop())

    def _on_terminate(self):
        asyncio.create_task(self.stop())

    async def stop(self):
        """Stop the application gracefully."""
        if self._stopped:
            return
        self._stopped = True
        if self.ui:
            await self.ui.stop()
        if self.service:
            try:
                await self.service.shutdown()
            except Exception as e:
                self.logger.error(f"Error stopping service: {e}", exc_info=True)


async def main() -> int:
    load_dotenv()
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    setup_logging(settings)
    app = Application(settings)
    try:
        await app.start()
    except CadenceBaseError as e:
        print(f"Error: {e.message}\n{e.user_hint}", file=sys.stderr)
        logging.getLogger("Application").error("Startup failed", exc_info=True)
        return 1
    finally:
        await app.stop()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n[Cadence] Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
