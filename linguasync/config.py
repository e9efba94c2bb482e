"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True

    # ==========================================================================
    # DeepL
    # ==========================================================================

    deepl_api_key: str = ""
    deepl_api_type: str = "free"  # "free" or "premium"
    deepl_timeout: float = 30.0

    # Attempts per request; 429, 5xx and transport errors are retried
    deepl_max_attempts: int = 3
    # Backoff multiplier between attempts, in seconds
    deepl_retry_wait: float = 1.0

    # ==========================================================================
    # AI / LLM translation
    # ==========================================================================

    # Gemini (accepts either GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    openai_api_key: str = ""
    openai_model: str = "gpt-4-turbo"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-opus-20240229"

    # Which LLM backend the LLM provider uses
    llm_provider: str = "gemini"

    # Seconds a cached LLM translation stays valid
    translation_cache_ttl: int = 60 * 60 * 24 * 30

    # ==========================================================================
    # Field routing and change tracking
    # ==========================================================================

    # Strings shorter than this are copied, not translated
    min_translatable_length: int = 3

    # Platform-internal field key prefixes never routed or tracked
    skip_field_prefixes: str = "_wp_,_edit_,_oembed_,_wpml_,wpml_"

    # Additional prefixes the change tracker ignores
    tracker_skip_prefixes: str = "_thumbnail_id"

    # Prefix of the keys the change tracker stores its ledger under
    ledger_key_prefix: str = "_lsync_"

    # Content updates are only tracked for items in these statuses
    tracked_statuses: str = "publish,future"

    # YAML file describing field types and preferences (optional)
    field_config_path: str = ""

    # ==========================================================================
    # Orchestration
    # ==========================================================================

    # Languages translated concurrently in one batch
    max_parallel_languages: int = 4

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def skip_field_prefix_list(self) -> list[str]:
        return _split(self.skip_field_prefixes) + [self.ledger_key_prefix]

    @property
    def tracker_skip_prefix_list(self) -> list[str]:
        return self.skip_field_prefix_list + _split(self.tracker_skip_prefixes)

    @property
    def tracked_status_list(self) -> list[str]:
        return _split(self.tracked_statuses)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def llm_api_key(self) -> str:
        """API key for the configured LLM backend (empty if missing)."""
        if self.llm_provider == "gemini":
            return self.google_api_key or self.gemini_api_key
        if self.llm_provider == "openai":
            return self.openai_api_key
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
