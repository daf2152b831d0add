"""Retrieval-augmented search over session transcripts."""

from session_rag.rag.chunker import chunk_text, extract_query_terms, highlight_text
from session_rag.rag.models import (
    EmbedSessionResult,
    SearchResponse,
    SessionSearchResult,
    Snippet,
    TextChunk,
)
from session_rag.rag.similarity import cosine_similarity, rank_by_similarity

__all__ = [
    "EmbedSessionResult",
    "SearchResponse",
    "SessionSearchResult",
    "Snippet",
    "TextChunk",
    "chunk_text",
    "cosine_similarity",
    "extract_query_terms",
    "highlight_text",
    "rank_by_similarity",
]
