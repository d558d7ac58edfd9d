import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from cadence.agent.structs import ContextConfig, FileContent, Message, ModelConfig
from .logic import (
    build_file_context_message,
    build_system_message,
    calculate_total_tokens,
    estimate_tokens,
    latest_timestamp,
    select_backfill,
    select_sliding_window,
)

logger = logging.getLogger("ContextWindowManager")


class ContextWindowManager:
    """
    Builds the bounded message list that is actually sent to a model.

    Recency wins: the sliding window of newest messages is always filled
    first, and older history only enters through whatever budget is left.
    The manager owns no messages and performs no I/O.
    """

    def __init__(self, config: Optional[ContextConfig] = None):
        self._config = config or ContextConfig()

    @classmethod
    def for_model(cls, model: ModelConfig, **overrides) -> "ContextWindowManager":
        """Budget derived from the model's context window, optionally overridden."""
        config = ContextConfig(max_tokens=model.context_window)
        if overrides:
            config = replace(config, **overrides)
        return cls(config)

    # --- Configuration ---

    def get_config(self) -> ContextConfig:
        return replace(self._config)

    def update_config(self, **changes) -> None:
        self._config = replace(self._config, **changes)

    def available_budget(self, has_files: bool) -> int:
        cfg = self._config
        budget = cfg.max_tokens - cfg.system_prompt_tokens - cfg.response_reserve
        if has_files:
            budget -= cfg.file_content_tokens
        return budget

    # --- Token accounting ---

    @staticmethod
    def estimate_tokens(text: str) -> int:
        return estimate_tokens(text)

    @staticmethod
    def calculate_total_tokens(messages: Sequence[Message]) -> int:
        return calculate_total_tokens(messages)

    def exceeds_context_window(self, messages: Sequence[Message]) -> bool:
        return calculate_total_tokens(messages) > self._config.max_tokens

    # --- Assembly ---

    def prepare_context(
        self,
        system_prompt: str,
        history: Sequence[Message],
        file_contents: Optional[Sequence[FileContent]] = None,
    ) -> List[Message]:
        """
        Assemble [system, backfill..., file context, sliding window...].

        Total over any input. With no budget left only the system message
        (and the file context message, if any) is returned. Identical inputs
        give identical output.
        """
        files = list(file_contents or [])
        stamp = latest_timestamp(history)

        system_message = build_system_message(system_prompt, stamp)
        file_message = build_file_context_message(files, stamp)

        budget = self.available_budget(has_files=bool(files))
        total = system_message.token_count or 0
        if file_message is not None:
            total += file_message.token_count or 0

        if budget <= 0:
            logger.debug("No history budget left (budget=%d)", budget)
            return [m for m in (system_message, file_message) if m is not None]

        # The window can never be wider than what the request can hold.
        window_size = min(self._config.sliding_window_size, budget)
        window, window_tokens, cutoff = select_sliding_window(history, window_size)
        total += window_tokens

        backfill, backfill_tokens = select_backfill(history[:cutoff], budget - total)

        result: List[Message] = [system_message]
        result.extend(backfill)
        if file_message is not None:
            result.append(file_message)
        result.extend(window)

        logger.debug(
            "Prepared context: window=%d backfill=%d tokens=%d budget=%d",
            len(window),
            len(backfill),
            total + backfill_tokens,
            budget,
        )
        return result
