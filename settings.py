"""Settings configuration for MedTrack."""

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from dotenv import load_dotenv

# Load environment variables from .env file in the same directory as this file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage Configuration
    storage_backend: Literal["postgres", "memory"] = Field(
        default="postgres",
        description="Repository implementation backing the use cases"
    )

    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection URL for asyncpg"
    )

    # Connection Pool Configuration
    db_pool_min_size: int = Field(
        default=5,
        description="Minimum database connection pool size"
    )

    db_pool_max_size: int = Field(
        default=20,
        description="Maximum database connection pool size"
    )

    db_command_timeout: float = Field(
        default=60.0,
        description="Per-statement timeout in seconds"
    )

    # Service Configuration
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )


def load_settings() -> Settings:
    """Load settings with proper error handling."""
    try:
        settings = Settings()
    except Exception as e:
        raise ValueError(f"Failed to load settings: {e}") from e

    if settings.storage_backend == "postgres" and not settings.database_url:
        raise ValueError(
            "Failed to load settings: database_url is required for the postgres backend"
            "\nMake sure to set DATABASE_URL in your .env file"
            " or STORAGE_BACKEND=memory"
        )
    return settings
