"""Database models for SessionRAG."""

from session_rag.models.session import Session
from session_rag.models.session_entry import SessionEntry, Speaker
from session_rag.models.transcript_chunk import TranscriptChunk

__all__ = [
    "Session",
    "SessionEntry",
    "Speaker",
    "TranscriptChunk",
]
