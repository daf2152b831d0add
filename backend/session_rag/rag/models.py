"""Data models for chunking and retrieval results."""

from datetime import datetime
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field


class TextChunk(NamedTuple):
    """A window of source text and its character span ``[start, end)``."""

    text: str
    start: int
    end: int


class Snippet(BaseModel):
    """A highlighted chunk shown under a search hit."""

    text: str = Field(..., description="Chunk text with <mark> highlights")
    timestamp: datetime
    similarity: float = Field(..., ge=-1.0, le=1.0)


class SessionSearchResult(BaseModel):
    """One session matched by a search, with its best snippets.

    Built fresh on every search call and never persisted.
    """

    session_id: str
    therapist_id: str
    client_id: str
    start_time: datetime
    summary: Optional[str] = None
    max_similarity: float = Field(..., ge=-1.0, le=1.0)
    snippets: list[Snippet] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Search results for a query."""

    query: str
    results: list[SessionSearchResult]


class EmbedSessionResult(BaseModel):
    """Outcome of re-indexing one session."""

    session_id: str
    chunk_count: int
    embedding_dimensions: int
    message: str
