from cadence.config.models import ModelRegistry
from cadence.config.settings import Settings
from cadence.config.system_prompts import BASELINE_PROMPT, get_system_prompt


def test_builtin_models():
    registry = ModelRegistry.builtin()
    assert registry.default_model == "claude-sonnet-4.5"
    assert registry.lookup("claude-opus-4.5").context_window == 200000
    assert registry.lookup("gpt-4o-mini").provider == "openai"
    assert registry.lookup("missing") is None
    assert [m.id for m in registry.by_provider()["anthropic"]] == [
        "claude-sonnet-4.5",
        "claude-opus-4.5",
        "claude-haiku-4.5",
    ]


def test_deployment_overrides_from_settings():
    settings = Settings(
        _env_file=None,
        anthropic_sonnet_deployment="sonnet-prod",
        grok_deployment="grok-eu",
    )
    registry = ModelRegistry.from_settings(settings)
    assert registry.lookup("claude-sonnet-4.5").deployment == "sonnet-prod"
    assert registry.lookup("grok-4-fast-non-reasoning").deployment == "grok-eu"
    assert registry.lookup("gpt-5.2-chat").deployment == "gpt-5.2-chat"


def test_unknown_default_falls_back():
    registry = ModelRegistry.builtin(default_model="gpt-1")
    assert registry.default_model == "claude-sonnet-4.5"


def test_system_prompt_fallback():
    assert "Claude Opus 4.5" in get_system_prompt("claude-opus-4.5")
    assert get_system_prompt("ollama-local") == BASELINE_PROMPT


def test_provider_listing_keeps_registry_order():
    registry = ModelRegistry.builtin()
    assert registry.providers() == [
        "anthropic",
        "openai",
        "moonshot",
        "mistral",
        "grok",
        "ollama",
    ]
    assert registry.all_ids()[0] == "claude-sonnet-4.5"
    assert "ollama-local" in registry
