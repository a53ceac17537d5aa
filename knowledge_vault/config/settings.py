"""Application settings loaded from environment variables via pydantic-settings.

Values come from, in priority order:

  1. Environment variables, e.g. ``MAX_RETRIES=5``
  2. The ``.env`` file in the working directory
  3. The defaults below

Field ``max_queue_size`` maps to env var ``MAX_QUEUE_SIZE`` and so on.
"""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knowledge_vault.utils.errors import ConfigurationError


class Settings(BaseSettings):
    """Knowledge Vault service settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Remote snippet store ===
    remote_store_base_url: str = "http://localhost:5000"
    remote_snippets_path: str = "/api/snippets"

    # === Capture validation ===
    min_capture_length: int = 10
    max_capture_length: int = 10_000

    # === Durable queue ===
    queue_db_path: str = "data/save_queue.db"
    max_queue_size: int = 100
    recent_items_limit: int = 10
    preview_chars: int = 100

    # === Delivery ===
    max_retries: int = 3
    base_retry_delay: float = 1.0  # seconds
    max_retry_delay: float = 30.0
    attempt_timeout: float = 30.0
    # Gap between replayed entries during startup recovery.
    startup_stagger: float = 0.5

    # === Duplicate filter ===
    duplicate_window_seconds: float = 5.0
    duplicate_prefix_length: int = 100

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    @model_validator(mode="after")
    def _check_bounds(self) -> Settings:
        if self.min_capture_length < 1:
            raise ConfigurationError("min_capture_length must be at least 1")
        if self.max_capture_length < self.min_capture_length:
            raise ConfigurationError("max_capture_length must be >= min_capture_length")
        if self.max_queue_size < 1:
            raise ConfigurationError("max_queue_size must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        if self.base_retry_delay < 0 or self.max_retry_delay < self.base_retry_delay:
            raise ConfigurationError("retry delays must satisfy 0 <= base_retry_delay <= max_retry_delay")
        if self.attempt_timeout <= 0:
            raise ConfigurationError("attempt_timeout must be positive")
        return self
