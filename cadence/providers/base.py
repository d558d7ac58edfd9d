import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Sequence

from cadence.agent.structs import Message, ModelConfig, StreamChunk
from cadence.config.models import PROVIDER_NAMES, ModelRegistry
from cadence.exceptions.provider import InvalidModelError, ProviderStreamError

logger = logging.getLogger("BaseProvider")


def is_empty_reply(message: Message) -> bool:
    """An assistant turn that failed before its first flush."""
    return message.role == "assistant" and not message.content


class BaseProvider(ABC):
    """
    The capability interface every LLM provider adapter implements.

    An adapter turns one provider's streaming chat API into a sequence of
    StreamChunk values that always ends with exactly one terminal chunk.
    """

    #: registry provider key served by this adapter
    provider: str = ""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    @property
    def display_name(self) -> str:
        return PROVIDER_NAMES.get(self.provider, self.provider)

    @abstractmethod
    def stream_completion(
        self, messages: Sequence[Message], model_id: str
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a chat completion for an already-bounded message list.

        Raises:
            InvalidModelError: model_id is unknown or served by another adapter.
            ConfigurationError: credentials are missing.
            ProviderStreamError: the request failed once started.
        """

    @abstractmethod
    async def validate_config(self) -> bool:
        """
        Check credentials and endpoint. Never raises; logs and returns False.
        """

    def check_config(self) -> None:
        """
        Raise ConfigurationError when a client could not be built.

        Only inspects settings; never touches the network.
        """

    async def close(self) -> None:
        """Release the underlying SDK client, if one was created."""
        client = getattr(self, "_client", None)
        closer = getattr(client, "close", None)
        if client is None or not callable(closer):
            return
        try:
            await closer()
        except Exception as exc:
            logger.warning("Error closing %s client: %s", self.provider, exc)

    # --- Shared helpers ---

    def resolve_model(self, model_id: str) -> ModelConfig:
        model = self.registry.lookup(model_id)
        if model is None or model.provider != self.provider:
            raise InvalidModelError(
                f"Invalid {self.display_name} model: {model_id}",
                provider_name=self.provider,
                model_name=model_id,
            )
        return model

    def stream_error(self, exc: Exception, model_id: str) -> ProviderStreamError:
        msg = f"{self.provider} API error: {self._describe_error(exc)}"
        logger.error("%s stream failed: %s", self.display_name, msg, exc_info=True)
        return ProviderStreamError(
            msg,
            provider_name=self.provider,
            model_name=model_id,
            original_error=exc,
        )

    @staticmethod
    def _describe_error(exc: Exception) -> str:
        status_code = getattr(exc, "status_code", None)
        if status_code is None:
            return str(exc) or exc.__class__.__name__
        reason = {
            401: "unauthorized",
            403: "forbidden",
            404: "not found",
            429: "rate limited",
        }.get(int(status_code), "request failed")
        return f"{status_code} {reason}: {exc}"

    @staticmethod
    def serialize(messages: Sequence[Message]) -> List[Dict[str, str]]:
        return [
            {"role": m.role, "content": m.content}
            for m in messages
            if not is_empty_reply(m)
        ]

    @staticmethod
    async def close_stream(stream: Any) -> None:
        """Close an SDK stream so the HTTP response is released."""
        for name in ("close", "aclose"):
            closer = getattr(stream, name, None)
            if callable(closer):
                try:
                    await closer()
                except Exception as exc:
                    logger.debug("Ignoring error while closing stream: %s", exc)
                return

    @staticmethod
    def _to_dict(value: Any) -> Dict[str, Any]:
        if isinstance(value, dict):
            return value
        model_dump = getattr(value, "model_dump", None)
        if callable(model_dump):
            dumped = model_dump()
            if isinstance(dumped, dict):
                return dumped
        to_dict = getattr(value, "to_dict", None)
        if callable(to_dict):
            dumped = to_dict()
            if isinstance(dumped, dict):
                return dumped
        return {}
