import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from anthropic import AsyncAnthropic

from cadence.agent.context.logic import estimate_tokens
from cadence.agent.structs import Message, StreamChunk
from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings, is_valid_url
from cadence.exceptions.config import ConfigurationError
from cadence.exceptions.provider import ProviderError
from cadence.providers.base import BaseProvider, is_empty_reply

logger = logging.getLogger("AnthropicProvider")

MAX_RESPONSE_TOKENS = 4096
VALIDATION_MODEL = "claude-sonnet-4.5"


class AnthropicProvider(BaseProvider):
    """
    Adapter for the Anthropic Messages API.

    The system prompt travels out-of-band in the `system` field; the rest of
    the conversation must contain at least one user or assistant turn.
    """

    provider = "anthropic"

    def __init__(
        self,
        settings: Settings,
        registry: ModelRegistry,
        client: Optional[Any] = None,
    ):
        super().__init__(registry)
        self.api_key = settings.anthropic_api_key
        self.endpoint = settings.anthropic_endpoint
        self.timeout = settings.provider_timeout
        self._client = client

    def check_config(self) -> None:
        if self._client is None and not self.api_key:
            raise ConfigurationError(
                "Missing ANTHROPIC_API_KEY environment variable",
                setting="anthropic_api_key",
            )

    @property
    def client(self):
        # Created on first use so a missing key only matters when it is needed.
        if self._client is None:
            self.check_config()
            self._client = AsyncAnthropic(
                api_key=self.api_key,
                base_url=self.endpoint or None,
                timeout=self.timeout,
            )
        return self._client

    @staticmethod
    def split_system(messages: Sequence[Message]):
        system = next((m.content for m in messages if m.role == "system"), None)
        conversation = [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role != "system" and not is_empty_reply(m)
        ]
        return system, conversation

    async def stream_completion(
        self, messages: Sequence[Message], model_id: str
    ) -> AsyncIterator[StreamChunk]:
        model = self.resolve_model(model_id)
        system, conversation = self.split_system(messages)
        if not conversation:
            raise ProviderError(
                "At least one user or assistant message is required",
                provider_name=self.provider,
                model_name=model_id,
            )

        request: Dict[str, Any] = {
            "model": model.deployment,
            "max_tokens": MAX_RESPONSE_TOKENS,
            "messages": conversation,
            "stream": True,
        }
        if system:
            request["system"] = system

        client = self.client
        logger.debug(
            "Anthropic request: model=%s messages=%d", model.deployment, len(conversation)
        )

        text = ""
        stop_reason: Optional[str] = None
        finished = False
        stream = None
        try:
            stream = await client.messages.create(**request)
            async for raw_event in stream:
                event = self._to_dict(raw_event)
                event_type = event.get("type")

                if event_type == "content_block_delta":
                    delta = event.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        text += delta["text"]
                        yield StreamChunk(
                            delta=delta["text"],
                            done=False,
                            token_count=estimate_tokens(text),
                        )
                elif event_type == "message_delta":
                    delta = event.get("delta") or {}
                    stop_reason = delta.get("stop_reason") or stop_reason
                elif event_type == "message_stop":
                    finished = True
                    break
        except Exception as exc:
            raise self.stream_error(exc, model_id) from exc
        finally:
            if stream is not None:
                await self.close_stream(stream)

        if not finished:
            logger.debug("Anthropic stream ended without message_stop")
        yield StreamChunk(
            delta="",
            done=True,
            token_count=estimate_tokens(text),
            finish_reason=stop_reason or "stop",
        )

    async def validate_config(self) -> bool:
        if not self.api_key:
            logger.error("Missing ANTHROPIC_API_KEY environment variable")
            return False
        if not self.endpoint:
            logger.error("Missing ANTHROPIC_ENDPOINT environment variable")
            return False
        if not is_valid_url(self.endpoint):
            logger.error("Invalid ANTHROPIC_ENDPOINT URL format: %s", self.endpoint)
            return False

        model = self.registry.lookup(VALIDATION_MODEL)
        deployment = model.deployment if model else VALIDATION_MODEL
        try:
            await self.client.messages.create(
                model=deployment,
                max_tokens=1,
                messages=[{"role": "user", "content": "test"}],
            )
            return True
        except Exception as exc:
            logger.error(
                "Anthropic API validation failed: %s", self._describe_error(exc)
            )
            return False
