"""
Runtime configuration for the Bookshelf API.

Values are read from the environment (prefix ``BOOKSHELF_``) or from an
optional ``.env`` file in the working directory. Tests build their own
``Settings`` instance and hand it to ``create_app()`` instead of touching
the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKSHELF_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Bookshelf API"
    log_level: str = "INFO"

    # Page sizes are tuned per collection.
    authors_default_limit: int = Field(default=10, ge=1)
    books_default_limit: int = Field(default=3, ge=1)

    # Lifetime of cached pages in seconds; 0 keeps them until invalidated.
    cache_default_ttl: float = Field(default=0, ge=0)
    # Least recently used pages are evicted past this count; 0 disables the cap.
    cache_max_entries: int = Field(default=1000, ge=0)

    # When unset the store lives in memory only.
    data_file: Optional[Path] = None

    serialization_group: str = "getBooks"

    # Bearer token -> role, e.g. BOOKSHELF_API_TOKENS='{"s3cret": "ROLE_ADMIN"}'.
    # Empty by default, so mutating routes stay closed until tokens are set.
    api_tokens: Dict[str, str] = Field(default_factory=dict)
    admin_role: str = "ROLE_ADMIN"
    forbidden_message: str = "You don't have access to this resource."


@lru_cache()
def get_settings() -> Settings:
    return Settings()
