# cadence/config/settings.py
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadence.exceptions.config import ConfigurationError

logger = logging.getLogger("Settings")


def is_valid_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Settings(BaseSettings):
    # === Provider Credentials & Endpoints ===
    anthropic_api_key: Optional[str] = None
    anthropic_endpoint: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_endpoint: Optional[str] = None
    openai_api_version: str = "2024-04-01-preview"

    grok_api_key: Optional[str] = None
    grok_endpoint: Optional[str] = None
    mistral_api_key: Optional[str] = None
    mistral_endpoint: Optional[str] = None
    moonshot_api_key: Optional[str] = None
    moonshot_endpoint: Optional[str] = None

    ollama_host: Optional[str] = None
    ollama_api_key: Optional[str] = None

    # === Deployment Overrides ===
    anthropic_opus_deployment: Optional[str] = None
    anthropic_sonnet_deployment: Optional[str] = None
    anthropic_haiku_deployment: Optional[str] = None
    openai_gpt52_deployment: Optional[str] = None
    openai_gpt51_deployment: Optional[str] = None
    openai_gpt4o_mini_deployment: Optional[str] = None
    moonshot_deployment: Optional[str] = None
    mistral_deployment: Optional[str] = None
    grok_deployment: Optional[str] = None
    ollama_model: str = "llama3.1"

    # === Application ===
    default_model: str = "claude-sonnet-4.5"
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".cadence")
    workspace: Path = Field(default_factory=Path.cwd)
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    show_tokens: bool = False

    # === Streaming ===
    flush_interval_ms: int = 33
    stream_channel_size: int = 64
    provider_timeout: float = 600.0

    # === Context Budget ===
    sliding_window_size: int = 4000
    system_prompt_tokens: int = 1000
    file_content_tokens: int = 10000
    response_reserve_tokens: int = 1000
    max_file_bytes: int = 100_000

    # === Pydantic V2 Configuration ===
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # NO prefix - clean names match exactly
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_and_compute(self) -> "Settings":
        """Validate derived and bounded fields."""

        # 1. Validate log level
        if self.log_level.upper() not in logging._nameToLevel:
            raise ConfigurationError(
                f"Invalid log level: {self.log_level}", setting="log_level"
            )
        self.log_level = self.log_level.upper()

        # 2. Streaming knobs
        if self.flush_interval_ms <= 0:
            raise ConfigurationError(
                f"FLUSH_INTERVAL_MS must be positive, got {self.flush_interval_ms}",
                setting="flush_interval_ms",
            )
        if self.stream_channel_size <= 0:
            raise ConfigurationError(
                f"STREAM_CHANNEL_SIZE must be positive, got {self.stream_channel_size}",
                setting="stream_channel_size",
            )

        # 3. Context budget
        for name in (
            "sliding_window_size",
            "system_prompt_tokens",
            "file_content_tokens",
            "response_reserve_tokens",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"{name.upper()} cannot be negative", setting=name
                )

        # 4. Endpoints are optional, but must parse when given
        for name in (
            "anthropic_endpoint",
            "openai_endpoint",
            "grok_endpoint",
            "mistral_endpoint",
            "moonshot_endpoint",
            "ollama_host",
        ):
            value = getattr(self, name)
            if value and not is_valid_url(value):
                logger.warning("Ignoring malformed %s: %s", name.upper(), value)

        return self

    @property
    def flush_interval(self) -> float:
        """Flush cadence in seconds."""
        return self.flush_interval_ms / 1000.0

    @property
    def state_file(self) -> Path:
        return self.state_dir / "state.json"

    def context_overrides(self) -> dict:
        """Budget fields shared by every model; max_tokens comes from the model."""
        return {
            "sliding_window_size": self.sliding_window_size,
            "system_prompt_tokens": self.system_prompt_tokens,
            "file_content_tokens": self.file_content_tokens,
            "response_reserve": self.response_reserve_tokens,
        }


def load_settings(**overrides) -> Settings:
    """
    Build Settings, turning pydantic validation failures into ConfigurationError.
    """
    try:
        return Settings(**overrides)
    except ConfigurationError:
        raise
    except ValueError as e:
        # pydantic.ValidationError subclasses ValueError
        raise ConfigurationError(
            f"Invalid configuration: {e}", original_error=e
        ) from e
