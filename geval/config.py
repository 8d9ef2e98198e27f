"""Application configuration using pydantic-settings.

Loads secrets from environment variables and .env file.
Judge behavior (model, temperature, retries, pricing, metric defaults) is
loaded from geval.toml.

Priority: CLI args > Environment variables (.env) > geval.toml > hardcoded defaults
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = Path(__file__).parent.parent / "geval.toml"


# ---------------------------------------------------------------------------
# Judge settings from geval.toml
# ---------------------------------------------------------------------------


class DefaultsTable(BaseModel):
    """The [defaults] table from geval.toml."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout: int = 60
    native_structured_output: bool = True  # OpenAI json_schema response_format


class RetryConfig(BaseModel):
    """The [retry] table from geval.toml."""

    max_attempts: int = 3
    exponential_jitter: bool = True


class JsonFixConfig(BaseModel):
    """The [json_fix] table: re-ask attempts for unparseable structured output."""

    max_attempts: int = 2


class SessionConfig(BaseModel):
    memory: bool = False


class MetricDefaults(BaseModel):
    """The [metric] table: defaults applied when the CLI does not override them."""

    threshold: float = 5.0
    strict_threshold: float = 1.0
    strict_mode: bool = False
    top_logprobs: int | None = None


class ProviderConfig(BaseModel):
    """Configuration for a single fallback provider."""

    enabled: bool = False
    default_model: str = ""
    base_url: str = ""


class ProvidersTable(BaseModel):
    """The [providers] table from geval.toml."""

    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    ollama: ProviderConfig = Field(default_factory=ProviderConfig)


class ModelPricing(BaseModel):
    """USD per 1M tokens."""

    input: float
    output: float


def _default_pricing() -> dict[str, ModelPricing]:
    return {
        "gpt-4o": ModelPricing(input=2.5, output=10.0),
        "gpt-4o-mini": ModelPricing(input=0.15, output=0.6),
        "gpt-4-turbo": ModelPricing(input=10.0, output=30.0),
        "gpt-4": ModelPricing(input=30.0, output=60.0),
        "gpt-3.5-turbo": ModelPricing(input=0.5, output=1.5),
        "o1-preview": ModelPricing(input=15.0, output=60.0),
        "o1-mini": ModelPricing(input=3.0, output=12.0),
        "o3-mini": ModelPricing(input=1.1, output=4.4),
    }


class JudgeSettings(BaseModel):
    """Configuration loaded from geval.toml."""

    defaults: DefaultsTable = Field(default_factory=DefaultsTable)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    json_fix: JsonFixConfig = Field(default_factory=JsonFixConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    metric: MetricDefaults = Field(default_factory=MetricDefaults)
    providers: ProvidersTable = Field(default_factory=ProvidersTable)
    pricing: dict[str, ModelPricing] = Field(default_factory=_default_pricing)

    def get_groq_model(self) -> str:
        return self.providers.groq.default_model

    def get_ollama_model(self) -> str:
        return self.providers.ollama.default_model


_JUDGE_SETTINGS_CACHE: JudgeSettings | None = None


def load_judge_settings(path: Path | str) -> JudgeSettings:
    """Parse a geval.toml file into JudgeSettings."""
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return JudgeSettings.model_validate(data)


def get_judge_settings() -> JudgeSettings:
    """Load and cache judge settings from geval.toml."""
    global _JUDGE_SETTINGS_CACHE
    if _JUDGE_SETTINGS_CACHE is not None:
        return _JUDGE_SETTINGS_CACHE

    if CONFIG_PATH.exists():
        _JUDGE_SETTINGS_CACHE = load_judge_settings(CONFIG_PATH)
    else:
        _JUDGE_SETTINGS_CACHE = JudgeSettings()

    return _JUDGE_SETTINGS_CACHE


# ---------------------------------------------------------------------------
# Environment settings from .env (API keys, secrets, env-var overrides)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Keys
    openai_api_key: str
    groq_api_key: str = ""  # Optional - Groq fallback provider

    # Any OpenAI-compatible endpoint (OpenRouter, vLLM, Azure proxy, ...)
    openai_base_url: str | None = None

    # Logging
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
