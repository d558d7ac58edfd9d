import logging
from typing import Dict

from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings
from cadence.providers.anthropic import AnthropicProvider
from cadence.providers.base import BaseProvider
from cadence.providers.ollama import OllamaProvider
from cadence.providers.openai_compat import (
    AzureOpenAIProvider,
    OpenAICompatibleProvider,
)
from cadence.providers.router import ClientRouter

logger = logging.getLogger("ProviderFactory")


def build_providers(settings: Settings, registry: ModelRegistry) -> Dict[str, BaseProvider]:
    """
    One adapter per provider. SDK clients are created lazily, so adapters
    exist even when their credentials are missing; validate_config reports it.
    """
    providers: Dict[str, BaseProvider] = {
        "anthropic": AnthropicProvider(settings, registry),
        "openai": AzureOpenAIProvider(
            registry,
            api_key=settings.openai_api_key,
            endpoint=settings.openai_endpoint,
            api_version=settings.openai_api_version,
            timeout=settings.provider_timeout,
        ),
    }
    for name in ("grok", "mistral", "moonshot"):
        providers[name] = OpenAICompatibleProvider(
            name,
            registry,
            api_key=getattr(settings, f"{name}_api_key"),
            endpoint=getattr(settings, f"{name}_endpoint"),
            timeout=settings.provider_timeout,
        )
    if settings.ollama_host:
        providers["ollama"] = OllamaProvider(settings, registry)

    logger.info("Configured providers: %s", ", ".join(providers))
    return providers


def build_router(settings: Settings, registry: ModelRegistry) -> ClientRouter:
    return ClientRouter(registry, build_providers(settings, registry))
