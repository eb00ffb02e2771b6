"""
Configuration settings for the OOREP seeding pipeline.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Target Store (MongoDB)
    # ========================================
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017/homeo_clinic",
        description="MongoDB connection string for the clinic knowledge base",
    )
    mongodb_database: str | None = Field(
        default=None,
        description="Database name (None to use the database named in the URI)",
    )
    store_timeout_ms: int = Field(
        default=10000,
        description="Server selection / connect / socket timeout for MongoDB (ms)",
    )

    # ========================================
    # OOREP Source
    # ========================================
    oorep_sql_file: str | None = Field(
        default=None,
        description="Path to an OOREP SQL dump (selects file mode when set)",
    )
    oorep_db_host: str = Field(
        default="localhost",
        description="OOREP PostgreSQL host",
    )
    oorep_db_port: int = Field(
        default=5432,
        description="OOREP PostgreSQL port",
    )
    oorep_db_name: str = Field(
        default="oorep",
        description="OOREP PostgreSQL database name",
    )
    oorep_db_user: str = Field(
        default="postgres",
        description="OOREP PostgreSQL user",
    )
    oorep_db_pass: str = Field(
        default="",
        description="OOREP PostgreSQL password",
    )
    source_timeout_seconds: int = Field(
        default=10,
        description="Connect timeout for the OOREP PostgreSQL source (seconds)",
    )

    # ========================================
    # Loading
    # ========================================
    rubric_batch_size: int = Field(
        default=1000,
        description="Rubrics processed per batch",
    )
    remedy_batch_size: int = Field(
        default=1000,
        description="Remedies processed per batch",
    )
    mapping_batch_size: int = Field(
        default=5000,
        description="Rubric-remedy mappings per bulk upsert",
    )
    retry_attempts: int = Field(
        default=3,
        description="Attempts for transient source/store errors",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        description="Base backoff between retries (doubles each attempt)",
    )
    dry_run: bool = Field(
        default=False,
        description="Load into an in-memory store instead of MongoDB",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/oorep_seed.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def source_database_url(self) -> URL:
        """Build the SQLAlchemy URL for the OOREP PostgreSQL source."""
        return URL.create(
            "postgresql+psycopg2",
            username=self.oorep_db_user,
            password=self.oorep_db_pass or None,
            host=self.oorep_db_host,
            port=self.oorep_db_port,
            database=self.oorep_db_name,
        )

    def get_batch_sizes(self) -> dict[str, int]:
        """Get per-entity batch sizes."""
        return {
            "rubrics": self.rubric_batch_size,
            "remedies": self.remedy_batch_size,
            "mappings": self.mapping_batch_size,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
