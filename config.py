"""
Configuration for the Community Hub API.

Uses pydantic-settings for environment variable loading.
"""
import logging
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "supersecret-community-hub"


class Settings(BaseSettings):
    """API configuration loaded from environment."""

    # MongoDB
    database_url: str = Field(default="mongodb://localhost:27017")
    database_name: str = Field(default="community")

    # Tokens
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_min: int = Field(default=7 * 24 * 60, description="Token lifetime in minutes")

    # Password hashing
    password_algo: Literal["argon2", "bcrypt"] = Field(default="argon2")
    argon2_time_cost: int = Field(default=3)
    argon2_memory_cost: int = Field(default=64 * 1024, description="KiB")
    argon2_parallelism: int = Field(default=4)
    bcrypt_rounds: int = Field(default=12)

    # HTTP
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )
    port: int = Field(default=8000)
    debug: bool = Field(default=False, description="Expose error details in 500 responses")
    log_level: str = Field(default="INFO")

    # RSVP compare-and-set retries before giving up with 409
    rsvp_max_attempts: int = Field(default=5)

    # Pagination defaults
    default_page_size: int = Field(default=10)
    max_page_size: int = Field(default=100)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def warn_insecure_defaults(settings: Settings) -> bool:
    """Log a warning for settings that must be overridden in production."""
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set, tokens are signed with the built-in development key")
        return True
    return False
