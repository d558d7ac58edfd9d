import logging
from abc import abstractmethod
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from openai import AsyncAzureOpenAI, AsyncOpenAI

from cadence.agent.context.logic import estimate_tokens
from cadence.agent.structs import Message, StreamChunk
from cadence.config.models import ModelRegistry
from cadence.config.settings import is_valid_url
from cadence.exceptions.config import ConfigurationError
from cadence.providers.base import BaseProvider

logger = logging.getLogger("OpenAIProvider")

DEFAULT_AZURE_API_VERSION = "2024-04-01-preview"


class ChatCompletionsProvider(BaseProvider):
    """
    Shared streaming loop for OpenAI-style chat-completions APIs.

    The system prompt is sent inline as the first message.
    """

    def __init__(
        self,
        provider: str,
        registry: ModelRegistry,
        api_key: Optional[str],
        endpoint: Optional[str],
        timeout: float = 600.0,
        client: Optional[Any] = None,
    ):
        super().__init__(registry)
        self.provider = provider
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    @property
    def env_prefix(self) -> str:
        return self.provider.upper()

    def check_config(self) -> None:
        if self._client is not None:
            return
        if not self.api_key:
            raise ConfigurationError(
                f"Missing {self.env_prefix}_API_KEY environment variable",
                setting=f"{self.provider}_api_key",
            )
        if not self.endpoint:
            raise ConfigurationError(
                f"Missing {self.env_prefix}_ENDPOINT environment variable",
                setting=f"{self.provider}_endpoint",
            )

    @property
    def client(self):
        if self._client is None:
            self.check_config()
            self._client = self._build_client()
        return self._client

    @abstractmethod
    def _build_client(self):
        """Create the SDK client once credentials are known to be present."""

    def _request_options(self) -> Dict[str, Any]:
        return {}

    async def stream_completion(
        self, messages: Sequence[Message], model_id: str
    ) -> AsyncIterator[StreamChunk]:
        model = self.resolve_model(model_id)
        request: Dict[str, Any] = {
            "model": model.deployment,
            "messages": self.serialize(messages),
            "stream": True,
        }
        request.update(self._request_options())

        client = self.client
        logger.debug(
            "%s request: model=%s messages=%d",
            self.display_name,
            model.deployment,
            len(messages),
        )

        text = ""
        finish_reason: Optional[str] = None
        stream = None
        try:
            stream = await client.chat.completions.create(**request)
            async for raw_chunk in stream:
                chunk = self._to_dict(raw_chunk)
                choices = chunk.get("choices") or []
                if not choices:
                    # Azure sends a leading chunk with prompt filter results only.
                    continue
                choice = choices[0] if isinstance(choices[0], dict) else {}
                delta = (choice.get("delta") or {}).get("content")
                if isinstance(delta, str) and delta:
                    text += delta
                    yield StreamChunk(
                        delta=delta, done=False, token_count=estimate_tokens(text)
                    )
                if choice.get("finish_reason"):
                    finish_reason = str(choice["finish_reason"])
                    break
        except Exception as exc:
            raise self.stream_error(exc, model_id) from exc
        finally:
            if stream is not None:
                await self.close_stream(stream)

        yield StreamChunk(
            delta="",
            done=True,
            token_count=estimate_tokens(text),
            finish_reason=finish_reason or "stop",
        )

    async def validate_config(self) -> bool:
        if not self.api_key:
            logger.error("Missing %s_API_KEY environment variable", self.env_prefix)
            return False
        if not self.endpoint:
            logger.error("Missing %s_ENDPOINT environment variable", self.env_prefix)
            return False
        if not is_valid_url(self.endpoint):
            logger.error("Invalid %s_ENDPOINT URL format", self.env_prefix)
            return False
        return True


class OpenAICompatibleProvider(ChatCompletionsProvider):
    """Grok, Mistral and MoonShot: plain OpenAI client pointed at base_url."""

    def _build_client(self):
        return AsyncOpenAI(
            api_key=self.api_key, base_url=self.endpoint, timeout=self.timeout
        )

    def _request_options(self) -> Dict[str, Any]:
        return {"max_tokens": 4096, "temperature": 0.7}


class AzureOpenAIProvider(ChatCompletionsProvider):
    """OpenAI models hosted on Azure; `model` carries the deployment name."""

    def __init__(
        self,
        registry: ModelRegistry,
        api_key: Optional[str],
        endpoint: Optional[str],
        api_version: str = DEFAULT_AZURE_API_VERSION,
        timeout: float = 600.0,
        client: Optional[Any] = None,
    ):
        super().__init__(
            "openai", registry, api_key, endpoint, timeout=timeout, client=client
        )
        self.api_version = api_version

    def _build_client(self):
        return AsyncAzureOpenAI(
            api_key=self.api_key,
            azure_endpoint=self.endpoint,
            api_version=self.api_version,
            timeout=self.timeout,
        )

    def _request_options(self) -> Dict[str, Any]:
        return {"max_completion_tokens": 16384}
