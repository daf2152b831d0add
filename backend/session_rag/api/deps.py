"""Composition root: providers built once at startup, injected per request."""

import logging
from dataclasses import dataclass, field
from typing import Annotated, Optional

from fastapi import Depends, Request
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.core.config import Settings
from session_rag.core.database import get_db
from session_rag.observability import MetricsBackend
from session_rag.providers import (
    EmbeddingProvider,
    OpenAIEmbeddingClient,
    OpenAISummaryProvider,
    OpenAITranscriptionProvider,
    SummaryProvider,
    TranscriptionProvider,
    build_openai_client,
)
from session_rag.providers.openai_client import PROVIDER_NAME
from session_rag.rag.retriever import RetrievalConfig, SessionLockRegistry, SessionRetriever
from session_rag.resilience import ProviderGateway, RetryOptions, SlidingWindowRateLimiter
from session_rag.services.session_service import SessionService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared by every request."""

    embedder: EmbeddingProvider
    summarizer: SummaryProvider
    transcriber: TranscriptionProvider
    retrieval_config: RetrievalConfig = field(default_factory=RetrievalConfig)
    locks: SessionLockRegistry = field(default_factory=SessionLockRegistry)
    openai_client: Optional[AsyncOpenAI] = None

    async def aclose(self) -> None:
        if self.openai_client is not None:
            await self.openai_client.close()


def retrieval_config_from_settings(settings: Settings) -> RetrievalConfig:
    return RetrievalConfig(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        result_limit=settings.search_results_limit,
        snippets_per_session=settings.snippets_per_session,
        embedding_concurrency=settings.embedding_concurrency,
    )


def retry_options_from_settings(settings: Settings) -> RetryOptions:
    return RetryOptions(
        max_retries=settings.ai_retry_max_attempts,
        initial_delay=settings.ai_retry_initial_delay_ms / 1000,
        max_delay=settings.ai_retry_max_delay_ms / 1000,
    )


def build_container(settings: Settings, metrics: Optional[MetricsBackend] = None) -> ServiceContainer:
    """Wire the OpenAI providers behind one shared gateway.

    All three providers count against the same rate limit window.
    """
    client = build_openai_client(
        settings.openai_api_key,
        settings.openai_base_url,
        settings.provider_timeout_seconds,
    )
    gateway = ProviderGateway(
        PROVIDER_NAME,
        SlidingWindowRateLimiter(max_requests=settings.ai_max_requests_per_minute),
        retry_options=retry_options_from_settings(settings),
        metrics=metrics,
        wait_on_rate_limit=settings.ai_rate_limit_wait,
    )

    container = ServiceContainer(
        embedder=OpenAIEmbeddingClient(
            client,
            gateway,
            model=settings.openai_embedding_model,
            dimensions=settings.embedding_dimensions,
            max_input_chars=settings.embedding_max_input_chars,
        ),
        summarizer=OpenAISummaryProvider(
            client,
            gateway,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
        ),
        transcriber=OpenAITranscriptionProvider(
            client,
            gateway,
            model=settings.openai_transcription_model,
            max_audio_bytes=settings.max_audio_bytes,
        ),
        retrieval_config=retrieval_config_from_settings(settings),
        openai_client=client,
    )
    logger.info(
        "Providers ready: embeddings=%s (%d dims), summary=%s, transcription=%s",
        settings.openai_embedding_model,
        settings.embedding_dimensions,
        settings.openai_model,
        settings.openai_transcription_model,
    )
    return container


# -------------------------------------------------------------------------
# Request dependencies
# -------------------------------------------------------------------------


def get_container(request: Request) -> ServiceContainer:
    """Container built in the application lifespan."""
    return request.app.state.container


def get_session_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> SessionService:
    return SessionService(db, container.summarizer, container.transcriber)


def get_retriever(
    db: Annotated[AsyncSession, Depends(get_db)],
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> SessionRetriever:
    return SessionRetriever(
        db,
        container.embedder,
        container.summarizer,
        container.locks,
        container.retrieval_config,
    )
