"""Application configuration settings."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "SessionRAG"
    app_version: str = "0.1.0"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./sessions.db"
    database_echo: bool = False
    database_auto_create: bool = True

    # Audio upload
    max_audio_bytes: int = 25 * 1024 * 1024  # Whisper upload limit

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_transcription_model: str = "whisper-1"
    openai_max_tokens: int = 500
    openai_temperature: float = 0.7
    provider_timeout_seconds: float = 60.0

    # Embeddings & chunking
    embedding_dimensions: int = 1536
    embedding_max_input_chars: int = 8000
    embedding_concurrency: int = 4
    chunk_size: int = 500  # characters per chunk
    chunk_overlap: int = 50  # characters shared between neighbouring chunks

    # Search
    search_results_limit: int = 10
    snippets_per_session: int = 3

    # AI retry / rate limiting
    ai_retry_max_attempts: int = 3
    ai_retry_initial_delay_ms: int = 1000
    ai_retry_max_delay_ms: int = 10000
    ai_max_requests_per_minute: int = 60
    ai_rate_limit_wait: bool = True

    # Observability
    metrics_backend: str = "inmemory"  # "inmemory" | "prometheus"

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        errors: list[str] = []
        if self.embedding_dimensions < 1:
            errors.append("EMBEDDING_DIMENSIONS must be a positive number")
        if self.chunk_size < 1:
            errors.append("CHUNK_SIZE must be a positive number")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            errors.append("CHUNK_OVERLAP must be >= 0 and smaller than CHUNK_SIZE")
        if self.search_results_limit < 1:
            errors.append("SEARCH_RESULTS_LIMIT must be a positive number")
        if self.max_audio_bytes < 1:
            errors.append("MAX_AUDIO_BYTES must be a positive number")
        if errors:
            raise ValueError("Environment configuration errors:\n" + "\n".join(errors))
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Warns if the OpenAI key is missing, since every provider call will fail.
    """
    settings = Settings()

    if not settings.openai_api_key:
        logger.warning(
            "openai_api_key is not set. "
            "Set OPENAI_API_KEY before calling summary, embedding or transcription endpoints."
        )

    return settings
