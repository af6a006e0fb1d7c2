"""Runtime settings loaded from the environment (prefix ``ASSESSMENT_``)."""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from assessment_app.constants.assessment_constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_PASS_PERCENTAGE,
    MAX_PAGE_SIZE,
)
from assessment_app.constants.network_constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_API_PREFIX,
    DEFAULT_HOST,
    DEFAULT_PORT,
    IDEMPOTENT_RETRY_ATTEMPTS,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BACKOFF_SECONDS,
)
from assessment_app.core.models import Role


class TokenGrant(BaseModel):
    """Identity bound to a bearer token."""

    user_id: int
    role: Role


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ASSESSMENT_",
        env_file=".env",
        extra="ignore",
    )

    # Server
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    api_prefix: str = DEFAULT_API_PREFIX
    api_tokens: dict[str, TokenGrant] = {}

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    # Domain policy
    pass_percentage: float = DEFAULT_PASS_PERCENTAGE
    enforce_deadlines: bool = True
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    # Client
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    retry_attempts: int = IDEMPOTENT_RETRY_ATTEMPTS
    retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
