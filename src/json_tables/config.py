"""Configuration for json_tables using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    Every field can be set with a ``JSON_TABLES_`` prefixed environment
    variable (e.g. ``JSON_TABLES_DB_FILE=/srv/bot/database.json``) or from
    a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="JSON_TABLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backing snapshot file
    db_file: Path = Path("database.json")

    # Debounce window for persisting writes (seconds)
    flush_delay: float = Field(default=0.2, ge=0)

    # Console log rendering and DEBUG level
    debug: bool = False

    # Effective memory TTL for chat memory rows whose group sets none (seconds)
    default_memory_ttl: int = 86400


settings = Settings()
