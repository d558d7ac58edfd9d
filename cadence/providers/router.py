import asyncio
import logging
from typing import AsyncIterator, Dict, List, Mapping, Optional, Sequence

from cadence.agent.channel import ChunkChannel
from cadence.agent.structs import Message, ModelConfig, StreamChunk
from cadence.config.models import ModelRegistry
from cadence.exceptions.config import NoClientForProviderError
from cadence.exceptions.provider import UnknownModelError
from cadence.providers.base import BaseProvider

logger = logging.getLogger("ClientRouter")


class ClientRouter:
    """
    Single entry point for streaming completions.

    Holds one long-lived adapter per provider. The adapter map is fixed at
    construction and only read afterwards.
    """

    def __init__(
        self, registry: ModelRegistry, providers: Mapping[str, BaseProvider]
    ):
        self.registry = registry
        self._providers: Dict[str, BaseProvider] = dict(providers)

    def resolve(self, model_id: str) -> BaseProvider:
        """
        Map a model id to its adapter, failing before any adapter is touched.
        """
        model: Optional[ModelConfig] = self.registry.lookup(model_id)
        if model is None:
            raise UnknownModelError(f"Unknown model: {model_id}", model_name=model_id)

        provider = self._providers.get(model.provider)
        if provider is None:
            raise NoClientForProviderError(
                f"No client configured for provider: {model.provider}",
                provider_name=model.provider,
            )
        return provider

    def stream_completion(
        self, messages: Sequence[Message], model_id: str
    ) -> AsyncIterator[StreamChunk]:
        """Return the matching adapter's chunk stream, untouched."""
        return self.resolve(model_id).stream_completion(messages, model_id)

    def open_channel(
        self, messages: Sequence[Message], model_id: str, maxsize: int = 64
    ) -> ChunkChannel:
        """
        Start the adapter as a producer task feeding a bounded channel.

        Lookup errors are raised here, synchronously.
        """
        provider = self.resolve(model_id)
        return ChunkChannel.start(
            provider.stream_completion(messages, model_id), maxsize=maxsize
        )

    # --- Introspection ---

    def get_client(self, provider: str) -> Optional[BaseProvider]:
        return self._providers.get(provider)

    def configured_providers(self) -> List[str]:
        return list(self._providers)

    async def validate_provider(self, provider: str) -> bool:
        adapter = self._providers.get(provider)
        if adapter is None:
            return False
        try:
            return await adapter.validate_config()
        except Exception as exc:
            # validate_config should never raise; report False if one does
            logger.error("Validation of %s raised: %s", provider, exc, exc_info=True)
            return False

    async def validate_all_clients(self) -> Dict[str, bool]:
        names = list(self._providers)
        results = await asyncio.gather(*(self.validate_provider(n) for n in names))
        return dict(zip(names, results))

    async def get_available_providers(self) -> List[str]:
        results = await self.validate_all_clients()
        return [name for name, ok in results.items() if ok]

    async def close(self) -> None:
        for adapter in self._providers.values():
            await adapter.close()
