"""Centralized configuration management for codelingo.

Reads from environment variables with sensible defaults. All components
(CLI, server, tests) use this module for configuration.

Environment variables follow the pattern ``CODELINGO_*``; nested translation
settings use a double underscore, e.g. ``CODELINGO_TRANSLATION__API_KEY``.

Example:
    >>> from codelingo.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.database_url)
    sqlite+aiosqlite:///./codelingo.db
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TranslationSettings(BaseModel):
    """Settings for the external translation engine and the pipeline around it.

    Attributes
    ----------
    provider : str
        ``lingo`` (HTTP API), ``mymemory`` (free public API) or ``echo``
        (returns the input unchanged, for offline development).
    api_url : str
        Endpoint of the Lingo translation API.
    api_key : SecretStr | None
        Bearer token for the Lingo API.
    public_fallback_url : str
        Endpoint of the MyMemory API used as fallback.
    use_public_fallback : bool
        Retry failed Lingo calls against MyMemory.
    timeout_seconds : float
        Timeout for a single provider call.
    batch_timeout_seconds : float
        Timeout for a batch provider call.
    debounce_seconds : float
        Quiet period after the last code change before a translation pass runs.
    inflight_ttl_seconds : int
        Expiry of the per-(room, sender) pass claim in Redis.
    default_source_locale : str | None
        Source locale sent to the provider; None means auto-detect.
    """

    provider: Literal["lingo", "mymemory", "echo"] = "lingo"
    api_url: str = "https://api.lingo.dev/v1/translate"
    api_key: SecretStr | None = None
    public_fallback_url: str = "https://api.mymemory.translated.net/get"
    use_public_fallback: bool = True
    timeout_seconds: float = Field(default=10.0, gt=0)
    batch_timeout_seconds: float = Field(default=30.0, gt=0)
    debounce_seconds: float = Field(default=1.0, ge=0)
    inflight_ttl_seconds: int = Field(default=120, ge=1)
    default_source_locale: str | None = None


class Settings(BaseSettings):
    """codelingo server settings loaded from the environment.

    ``redis_url`` set to None means in-memory mode (single process only).
    """

    model_config = SettingsConfigDict(
        env_prefix="CODELINGO_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 8000
    database_url: str = "sqlite+aiosqlite:///./codelingo.db"
    redis_url: str | None = None
    cors_allowed_origins: str = "*"
    log_level: str = "WARNING"
    init_db_on_startup: bool = True
    default_code: str = "// Start coding together...\n"
    translation: TranslationSettings = Field(default_factory=TranslationSettings)

    @field_validator("port")
    @classmethod
    def _validate_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(
                f"Invalid port number: {value}. Must be between 1 and 65535"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        if value.upper() not in VALID_LOG_LEVELS:
            log.warning(
                "Invalid log level '%s', using WARNING. Valid levels: %s",
                value,
                ", ".join(VALID_LOG_LEVELS),
            )
            return "WARNING"
        return value.upper()

    @property
    def in_memory_mode(self) -> bool:
        return self.redis_url is None

    def log_config(self) -> None:
        """Log configuration for debugging (excludes sensitive data)."""
        log.info("=" * 80)
        log.info("codelingo configuration:")
        log.info("  Server: http://%s:%s", self.host, self.port)
        log.info("  Database: %s", self.database_url)
        log.info("  Redis URL: %s", self.redis_url or "None (in-memory mode)")
        log.info("  Log Level: %s", self.log_level)
        log.info("  Translation provider: %s", self.translation.provider)
        log.info(
            "  Public fallback: %s",
            "Enabled" if self.translation.use_public_fallback else "Disabled",
        )
        log.info("  Debounce: %.2fs", self.translation.debounce_seconds)
        log.info("=" * 80)


@lru_cache
def get_settings() -> Settings:
    """Get or create the process-wide settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from the environment.

    Useful for testing or when environment variables change at runtime.
    """
    get_settings.cache_clear()
    return get_settings()
