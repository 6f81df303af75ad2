"""
Configuration and settings for the CRUD layer.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the Realtime Database accessor."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Firebase Realtime Database
    database_url: Optional[str] = Field(
        default=None, validation_alias="FIREBASE_DATABASE_URL"
    )
    credentials_path: Optional[str] = Field(
        default=None, validation_alias="GOOGLE_APPLICATION_CREDENTIALS"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="DATABLE_USE_IN_MEMORY_BACKENDS"
    )

    # Write operations are fire-and-forget unless this is set, in which case
    # create/update/delete return a Future carrying the I/O outcome.
    surface_write_errors: bool = Field(
        default=False, validation_alias="DATABLE_SURFACE_WRITE_ERRORS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
