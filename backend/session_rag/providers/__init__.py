"""External AI providers: embeddings, summaries and transcription."""

from session_rag.providers.base import (
    EmbeddingProvider,
    SummaryProvider,
    TranscribedEntry,
    TranscriptionProvider,
    TranscriptionResult,
)
from session_rag.providers.embeddings import OpenAIEmbeddingClient
from session_rag.providers.openai_client import build_openai_client
from session_rag.providers.summary import OpenAISummaryProvider
from session_rag.providers.transcription import OpenAITranscriptionProvider

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingClient",
    "OpenAISummaryProvider",
    "OpenAITranscriptionProvider",
    "SummaryProvider",
    "TranscribedEntry",
    "TranscriptionProvider",
    "TranscriptionResult",
    "build_openai_client",
]
