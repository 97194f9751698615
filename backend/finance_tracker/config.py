"""
Finance tracker configuration.

Settings are read from environment variables prefixed with FINANCE_TRACKER_
(or a .env file) and handed explicitly to the API app factory and to the
upload client.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:8080",
    "http://localhost:8081",
    "http://localhost:8082",
    "http://localhost:8083",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==================== ENVIRONMENT ====================
    environment: str = Field(
        default="development",
        description="Runtime environment: development, staging, production",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # ==================== STORAGE ====================
    store_path: Path = Field(
        default=Path("data") / "transactions.json",
        description="JSON document file holding all transactions",
    )

    # ==================== API ====================
    api_title: str = Field(default="Finance Tracker API")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001)
    cors_origins: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
        description="Origins allowed to call the API from a browser",
    )
    recent_transactions_limit: int = Field(default=10, ge=1)

    # ==================== BULK INGESTION ====================
    bulk_max_workers: int = Field(
        default=1,
        ge=1,
        description="Records persisted concurrently per bulk request (1 = sequential)",
    )
    persist_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-record insert timeout; unset waits indefinitely",
    )

    # ==================== CLIENT ====================
    api_base_url: str = Field(
        default="http://localhost:3001/api",
        description="Base URL the upload client sends transactions to",
    )
    bulk_chunk_size: int = Field(default=500, ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # ==================== OBSERVABILITY ====================
    langfuse_public_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("langfuse_public_key", "LANGFUSE_PUBLIC_KEY"),
    )
    langfuse_secret_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("langfuse_secret_key", "LANGFUSE_SECRET_KEY"),
    )
    langfuse_host: str = Field(
        default="https://cloud.langfuse.com",
        validation_alias=AliasChoices("langfuse_host", "LANGFUSE_HOST"),
    )
    langfuse_debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("langfuse_debug", "LANGFUSE_DEBUG"),
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()
    logger.info("Environment: %s", settings.environment)
    logger.info("Transaction store: %s", settings.store_path)
    return settings
