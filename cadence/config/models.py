"""
Model registry.

Every model the client can talk to, grouped by provider. Deployment names
default to the model id and can be overridden through Settings.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from cadence.agent.structs import ModelConfig

logger = logging.getLogger("ModelRegistry")

DEFAULT_MODEL = "claude-sonnet-4.5"

PROVIDER_NAMES: Dict[str, str] = {
    "anthropic": "Anthropic",
    "openai": "OpenAI",
    "moonshot": "MoonShot AI",
    "mistral": "Mistral",
    "grok": "Grok (xAI)",
    "ollama": "Ollama",
}

# model id -> Settings field holding its deployment override
DEPLOYMENT_SETTINGS: Dict[str, str] = {
    "claude-opus-4.5": "anthropic_opus_deployment",
    "claude-sonnet-4.5": "anthropic_sonnet_deployment",
    "claude-haiku-4.5": "anthropic_haiku_deployment",
    "gpt-5.2-chat": "openai_gpt52_deployment",
    "gpt-5.1-chat": "openai_gpt51_deployment",
    "gpt-4o-mini": "openai_gpt4o_mini_deployment",
    "Kimi-K2-Thinking": "moonshot_deployment",
    "Mistral-Large-3": "mistral_deployment",
    "grok-4-fast-non-reasoning": "grok_deployment",
    "ollama-local": "ollama_model",
}

_BUILTIN: List[dict] = [
    # --- Anthropic ---
    dict(
        id="claude-sonnet-4.5",
        name="Claude Sonnet 4.5",
        provider="anthropic",
        description="Balanced performance and capability",
        context_window=128000,
        speed="medium",
        capabilities=("reasoning", "code", "analysis", "refactoring"),
    ),
    dict(
        id="claude-opus-4.5",
        name="Claude Opus 4.5",
        provider="anthropic",
        description="Most capable, ideal for complex reasoning",
        context_window=200000,
        speed="slow",
        capabilities=("reasoning", "code", "analysis", "long-context"),
    ),
    dict(
        id="claude-haiku-4.5",
        name="Claude Haiku 4.5",
        provider="anthropic",
        description="Fastest, most cost-effective",
        context_window=128000,
        speed="fast",
        capabilities=("code", "quick-tasks", "prototyping"),
    ),
    # --- OpenAI (Azure) ---
    dict(
        id="gpt-5.2-chat",
        name="GPT-5.2 Chat",
        provider="openai",
        description="Latest OpenAI model, most advanced",
        context_window=128000,
        speed="medium",
        capabilities=("reasoning", "code", "creative", "analysis"),
    ),
    dict(
        id="gpt-5.1-chat",
        name="GPT-5.1 Chat",
        provider="openai",
        description="Advanced reasoning and coding",
        context_window=128000,
        speed="medium",
        capabilities=("reasoning", "code", "analysis", "testing"),
    ),
    dict(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        description="Fast and lightweight",
        context_window=128000,
        speed="fast",
        capabilities=("code", "quick-tasks", "snippets"),
    ),
    # --- OpenAI-compatible ---
    dict(
        id="Kimi-K2-Thinking",
        name="Kimi K2 Thinking",
        provider="moonshot",
        description="Deep reasoning specialist",
        context_window=128000,
        speed="slow",
        capabilities=("reasoning", "thinking", "analysis", "code"),
    ),
    dict(
        id="Mistral-Large-3",
        name="Mistral Large 3",
        provider="mistral",
        description="Powerful multilingual model",
        context_window=128000,
        speed="medium",
        capabilities=("code", "multilingual", "reasoning"),
    ),
    dict(
        id="grok-4-fast-non-reasoning",
        name="Grok 4 Fast",
        provider="grok",
        description="xAI fast model for quick tasks",
        context_window=128000,
        speed="fast",
        capabilities=("code", "quick-tasks", "practical"),
    ),
    # --- Local ---
    dict(
        id="ollama-local",
        name="Ollama (local)",
        provider="ollama",
        description="Whatever model OLLAMA_MODEL points at",
        context_window=32768,
        speed="medium",
        capabilities=("code", "offline"),
    ),
]


class ModelRegistry:
    """Read-only lookup of ModelConfig by id. Built once at startup."""

    def __init__(
        self,
        models: Iterable[ModelConfig],
        default_model: str = DEFAULT_MODEL,
    ):
        self._models: Dict[str, ModelConfig] = {m.id: m for m in models}
        if default_model not in self._models:
            logger.warning(
                "Default model %s not in registry, falling back to %s",
                default_model,
                DEFAULT_MODEL,
            )
            default_model = DEFAULT_MODEL
        self.default_model = default_model

    @classmethod
    def builtin(
        cls,
        deployments: Optional[Mapping[str, Optional[str]]] = None,
        default_model: str = DEFAULT_MODEL,
    ) -> "ModelRegistry":
        deployments = deployments or {}
        models = []
        for entry in _BUILTIN:
            deployment = deployments.get(entry["id"]) or entry["id"]
            models.append(ModelConfig(deployment=deployment, **entry))
        return cls(models, default_model=default_model)

    @classmethod
    def from_settings(cls, settings) -> "ModelRegistry":
        deployments = {
            model_id: getattr(settings, field, None)
            for model_id, field in DEPLOYMENT_SETTINGS.items()
        }
        return cls.builtin(deployments, default_model=settings.default_model)

    def lookup(self, model_id: str) -> Optional[ModelConfig]:
        return self._models.get(model_id)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._models

    def all_ids(self) -> List[str]:
        return list(self._models)

    def providers(self) -> List[str]:
        seen: List[str] = []
        for model in self._models.values():
            if model.provider not in seen:
                seen.append(model.provider)
        return seen

    def by_provider(self) -> Dict[str, List[ModelConfig]]:
        grouped: Dict[str, List[ModelConfig]] = {}
        for model in self._models.values():
            grouped.setdefault(model.provider, []).append(model)
        return grouped
