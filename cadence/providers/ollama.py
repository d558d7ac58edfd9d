import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from ollama import AsyncClient

from cadence.agent.context.logic import estimate_tokens
from cadence.agent.structs import Message, StreamChunk
from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings, is_valid_url
from cadence.exceptions.config import ConfigurationError
from cadence.providers.base import BaseProvider

logger = logging.getLogger("OllamaProvider")


class OllamaProvider(BaseProvider):
    """
    Adapter for Ollama (Local & Cloud).
    Maps native SDK chunks -> StreamChunk.
    """

    provider = "ollama"

    def __init__(
        self,
        settings: Settings,
        registry: ModelRegistry,
        client: Optional[Any] = None,
    ):
        super().__init__(registry)
        self.host = settings.ollama_host
        self.api_key = settings.ollama_api_key
        self.timeout = settings.provider_timeout
        self._client = client

    def check_config(self) -> None:
        if self._client is None and not self.host:
            raise ConfigurationError(
                "Missing OLLAMA_HOST environment variable", setting="ollama_host"
            )

    @property
    def client(self):
        if self._client is None:
            self.check_config()
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            # One client, reused for every request.
            self._client = AsyncClient(
                host=self.host, headers=headers, timeout=self.timeout
            )
        return self._client

    async def close(self) -> None:
        # ollama.AsyncClient keeps its httpx client on `_client`
        inner = getattr(self._client, "_client", None)
        closer = getattr(inner, "aclose", None)
        if callable(closer):
            try:
                await closer()
            except Exception as exc:
                logger.warning("Error closing Ollama client: %s", exc)

    async def stream_completion(
        self, messages: Sequence[Message], model_id: str
    ) -> AsyncIterator[StreamChunk]:
        model = self.resolve_model(model_id)
        client = self.client
        logger.debug(
            "Ollama request: model=%s messages=%d", model.deployment, len(messages)
        )

        text = ""
        done_reason: Optional[str] = None
        stream = None
        try:
            stream = await client.chat(
                model=model.deployment,
                messages=self.serialize(messages),
                stream=True,
            )
            async for raw_chunk in stream:
                chunk: Dict[str, Any] = self._to_dict(raw_chunk)
                content = (chunk.get("message") or {}).get("content")
                if content:
                    text += content
                    yield StreamChunk(
                        delta=content, done=False, token_count=estimate_tokens(text)
                    )
                if chunk.get("done"):
                    done_reason = chunk.get("done_reason")
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
            finish_reason=done_reason or "stop",
        )

    async def validate_config(self) -> bool:
        if not self.host:
            logger.error("Missing OLLAMA_HOST environment variable")
            return False
        if not is_valid_url(self.host):
            logger.error("Invalid OLLAMA_HOST URL format: %s", self.host)
            return False
        try:
            await self.client.list()
            return True
        except Exception as e:
            logger.error(f"Ollama Connection Failed: {e}")
            return False
