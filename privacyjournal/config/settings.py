"""
Settings for the journal server, read from PRIVJOURNAL_* environment variables.
"""

import logging
import sys
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration; every field can be set as PRIVJOURNAL_<FIELD>."""

    model_config = SettingsConfigDict(env_prefix="PRIVJOURNAL_", env_file=".env")

    # Remote backing store
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    github_token: Optional[str] = Field(
        default=None, description="OAuth access token for the GitHub API"
    )
    github_username: Optional[str] = Field(
        default=None, description="Login the journal repository belongs to"
    )
    repo_prefix: str = Field(
        default="privacy-journal-entries",
        description="Prefix of the derived journal repository name",
    )
    retry_repo_prefix: str = Field(
        default="privacy-journal",
        description="Prefix used when forcing a fresh, unique repository",
    )
    request_timeout_seconds: int = Field(
        default=15, description="Total timeout for a single remote request"
    )

    # Local fallback cache
    cache_backend: Literal["memory", "file", "redis"] = Field(
        default="file", description="Local cache implementation"
    )
    cache_path: Path = Field(
        default_factory=lambda: Path.home() / ".privacyjournal" / "cache",
        description="Directory for the file cache",
    )
    cache_quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Maximum total size of the file cache",
    )
    redis_url: str = Field(default="redis://localhost:6379", description="Redis URL")

    # Embeddings
    openai_api_key: Optional[str] = Field(
        default=None, description="API key for the embeddings endpoint"
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="OpenAI-compatible base URL"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model"
    )
    search_default_limit: int = Field(default=5, description="Default search top-k")

    # Server
    host: str = Field(default="localhost", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Log level")


def configure_logging(level: str = "INFO") -> None:
    """
    Send ``privacyjournal.*`` records to stdout as one-line summaries.

    Other libraries' loggers are left alone. Calling this again replaces the
    handler instead of adding a second one.
    """
    from ..utils.logging import create_development_formatter

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    package_logger = logging.getLogger("privacyjournal")
    package_logger.setLevel(numeric_level)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(create_development_formatter())
    package_logger.addHandler(handler)
    package_logger.propagate = False


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Settings for the server entry point, loaded once per process."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
