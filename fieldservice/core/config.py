"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Required fields (e.g. SECRET_KEY) are validated at
first get_settings() call, not at import time.
"""

import logging
from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env."""

    # App
    app_name: str = "fieldservice"
    app_version: str = "1.0.0"
    debug: bool = False
    # Level for the fieldservice loggers (DEBUG, INFO, ...); defaults to DEBUG when debug is on.
    log_level: str | None = None
    # Level for httpx/google-auth request logging; their INFO lines log every poll.
    dependency_log_level: str = "WARNING"

    # Security
    secret_key: SecretStr = SecretStr("")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480  # 8 hours

    # CORS
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    # Document store: "firestore" (REST API) or "memory" (in-process, dev/tests)
    document_backend: str = "firestore"
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None  # Path to JSON file
    # Firestore REST has no push listener; watches poll at this interval.
    firestore_poll_interval_seconds: float = 5.0
    # Upper bound for the retry delay while the backend is unreachable.
    firestore_max_backoff_seconds: float = 60.0

    # Permissions
    cache_ttl_permissions: int = 300
    offline_snapshot_path: str = ".fieldservice/feature_flags_snapshot.json"
    offline_snapshot_max_age_hours: int = 24

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_required_and_backend(self) -> "Settings":
        """Validate required env and document backend.

        - Firestore: FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH required.
        - Memory: no extra settings.
        """
        if self.document_backend == "firestore":
            has_key = (
                self.firebase_service_account_key
                and self.firebase_service_account_key.get_secret_value()
            )
            if not has_key and not self.firebase_service_account_path:
                raise ValueError(
                    "When document_backend is 'firestore', set FIREBASE_SERVICE_ACCOUNT_KEY (full JSON string) "
                    "or FIREBASE_SERVICE_ACCOUNT_PATH (path to JSON file)."
                )
        elif self.document_backend != "memory":
            raise ValueError(
                f"document_backend must be 'firestore' or 'memory', got: {self.document_backend!r}"
            )
        if not self.secret_key.get_secret_value():
            raise ValueError(
                "SECRET_KEY is required. Generate with: openssl rand -hex 32."
            )
        if self.cache_ttl_permissions < 0:
            raise ValueError("CACHE_TTL_PERMISSIONS must not be negative")
        if self.offline_snapshot_max_age_hours <= 0:
            raise ValueError("OFFLINE_SNAPSHOT_MAX_AGE_HOURS must be positive")
        for name in ("log_level", "dependency_log_level"):
            value = getattr(self, name)
            if value is not None and not isinstance(logging.getLevelName(value.upper()), int):
                raise ValueError(f"{name.upper()} is not a logging level: {value!r}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() before overriding env vars so
    the next get_settings() uses the new values.
    """
    return Settings()
