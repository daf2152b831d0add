"""Database repositories."""

from session_rag.repositories.chunk_repository import ChunkRepository
from session_rag.repositories.entry_repository import EntryRepository
from session_rag.repositories.session_repository import SessionRepository

__all__ = ["ChunkRepository", "EntryRepository", "SessionRepository"]
