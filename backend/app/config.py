"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Cache (None = in-process store)
    redis_url: str | None = None

    # Key scheme
    plan_key_prefix: str = "travel_plan:"
    chat_log_prefix: str = "chat_history:"

    # Document lifetime (seconds)
    plan_ttl_seconds: int = 24 * 3600

    # Generative model
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    llm_timeout_ms: int = 30000

    # Search provider
    tavily_api_key: str = ""
    tavily_base_url: str = "https://api.tavily.com/search"
    search_timeout_ms: int = 4000

    # Prompt bounds
    history_window: int = 6
    evidence_cap: int = 10
    evidence_excerpt_chars: int = 400
    topic_max_chars: int = 80
    message_max_chars: int = 2000

    # Circuit breaker (per search source)
    circuit_breaker_failures: int = 5
    circuit_breaker_window_sec: int = 60
    circuit_breaker_half_open_sec: int = 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
