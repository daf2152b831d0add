"""Persistence and similarity lookup for transcript chunks.

Ranking is an exact linear scan: every candidate chunk is loaded and
scored against the query vector in process.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.models.transcript_chunk import TranscriptChunk
from session_rag.rag.similarity import rank_by_similarity

logger = logging.getLogger(__name__)


class ChunkRepository:
    """Chunk store backed by the ``transcript_chunks`` table.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, chunk: TranscriptChunk) -> str:
        """Persist a chunk and return its id."""
        self.db.add(chunk)
        await self.db.flush()
        return chunk.id

    async def find_by_session(self, session_id: str) -> list[TranscriptChunk]:
        """All chunks of a session, in (timestamp, start_offset) order."""
        result = await self.db.execute(
            select(TranscriptChunk)
            .where(TranscriptChunk.session_id == session_id)
            .order_by(TranscriptChunk.timestamp.asc(), TranscriptChunk.start_offset.asc())
        )
        return list(result.scalars().all())

    async def find_candidates(
        self,
        query_vector: Sequence[float],
        session_ids: Optional[Sequence[str]] = None,
        limit: int = 10,
    ) -> list[tuple[TranscriptChunk, float]]:
        """Rank chunks by cosine similarity to ``query_vector``.

        Args:
            query_vector: Embedding of the search query.
            session_ids: Restrict the scan to these sessions. ``None`` scans
                every chunk; an empty sequence matches nothing.
            limit: Maximum number of chunks to return.

        Returns:
            (chunk, similarity) pairs, best first.

        Raises:
            DimensionMismatchError: If a stored embedding has a different
                length than ``query_vector``.
        """
        if session_ids is not None and len(session_ids) == 0:
            return []

        query = select(TranscriptChunk)
        if session_ids is not None:
            query = query.where(TranscriptChunk.session_id.in_(list(session_ids)))
        # Newer chunks first among equal scores (the sort below is stable)
        query = query.order_by(TranscriptChunk.timestamp.desc())

        result = await self.db.execute(query)
        chunks = result.scalars().all()

        ranked = rank_by_similarity(query_vector, chunks, key=lambda c: c.embedding, limit=limit)
        logger.debug("Scored %d chunks, returning %d", len(chunks), len(ranked))
        return ranked

    async def delete_by_session(self, session_id: str) -> int:
        """Delete every chunk of a session. Idempotent.

        Returns:
            Number of rows deleted.
        """
        result = await self.db.execute(
            delete(TranscriptChunk).where(TranscriptChunk.session_id == session_id)
        )
        return result.rowcount or 0

    async def count_by_session(self, session_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(TranscriptChunk)
            .where(TranscriptChunk.session_id == session_id)
        )
        return result.scalar_one()
