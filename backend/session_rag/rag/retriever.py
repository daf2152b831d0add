"""Session indexing and semantic search over transcript chunks.

``embed_session`` rebuilds a session's chunk set; ``search_sessions``
ranks chunks against a query and groups them into per-session results.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.core.errors import MissingQueryError, NotFoundError
from session_rag.models.session_entry import SessionEntry
from session_rag.models.transcript_chunk import TranscriptChunk
from session_rag.providers.base import EmbeddingProvider, SummaryProvider
from session_rag.rag.chunker import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    chunk_text,
    extract_query_terms,
    highlight_text,
)
from session_rag.rag.models import (
    EmbedSessionResult,
    SearchResponse,
    SessionSearchResult,
    Snippet,
)
from session_rag.rag.similarity import cosine_similarity
from session_rag.repositories.chunk_repository import ChunkRepository
from session_rag.repositories.entry_repository import EntryRepository
from session_rag.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)

# Candidates fetched per requested result, so grouping by session does not
# run out of chunks too early
CANDIDATE_MULTIPLIER = 3


@dataclass(frozen=True)
class RetrievalConfig:
    """Chunking and search parameters."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    result_limit: int = 10
    snippets_per_session: int = 3
    embedding_concurrency: int = 4


@dataclass
class _HeldLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class SessionLockRegistry:
    """Per-session ``asyncio.Lock``s, shared by the whole process.

    Serializes re-embedding of the same session so two rebuilds cannot
    interleave their delete and insert steps. An entry lives only while
    some task holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _HeldLock] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock for the duration of the block."""
        held = self._locks.get(session_id)
        if held is None:
            held = self._locks[session_id] = _HeldLock()
        held.holders += 1
        try:
            async with held.lock:
                yield
        finally:
            held.holders -= 1
            if held.holders == 0:
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class _PendingChunk:
    entry: SessionEntry
    text: str
    start: int
    end: int


class SessionRetriever:
    """Indexes sessions into embedded chunks and searches them."""

    def __init__(
        self,
        db: AsyncSession,
        embedder: EmbeddingProvider,
        summarizer: SummaryProvider,
        locks: SessionLockRegistry,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.summarizer = summarizer
        self.locks = locks
        self.config = config or RetrievalConfig()
        self.sessions = SessionRepository(db)
        self.entries = EntryRepository(db)
        self.chunks = ChunkRepository(db)

    async def embed_session(self, session_id: str) -> EmbedSessionResult:
        """Regenerate the summary embedding and the chunk set of a session.

        A missing summary is generated and committed on its own first.
        Every embedding is then computed before the store is touched, and
        the delete of the old chunks plus the insert of the new ones commit
        as one transaction. A provider failure therefore leaves the previous
        chunk set in place and keeps the new summary.

        Args:
            session_id: Session to index.

        Returns:
            Number of chunks written and the embedding dimensionality.

        Raises:
            NotFoundError: If the session does not exist.
            ProviderError: If a summary or embedding call fails after retries.
        """
        async with self.locks.hold(session_id):
            try:
                return await self._embed_session(session_id)
            except Exception:
                await self.db.rollback()
                raise

    async def _embed_session(self, session_id: str) -> EmbedSessionResult:
        session = await self.sessions.find_by_id(session_id)
        if session is None:
            raise NotFoundError("Session not found")

        entries = await self.entries.find_by_session(session_id)

        summary = session.summary
        if not summary:
            summary = await self.summarizer.generate_summary(entries)
            await self.sessions.update_summary(session_id, summary)
            await self.db.commit()

        summary_embedding = await self.embedder.embed(summary)

        pending: list[_PendingChunk] = []
        for entry in entries:
            text = entry.text
            if not text:
                continue
            for piece in chunk_text(text, self.config.chunk_size, self.config.chunk_overlap):
                pending.append(_PendingChunk(entry, piece.text, piece.start, piece.end))

        vectors = await self._embed_all([p.text for p in pending])

        await self.sessions.update_embedding(session_id, summary_embedding)
        # Old chunks go strictly before the new ones are written
        removed = await self.chunks.delete_by_session(session_id)
        for chunk, vector in zip(pending, vectors):
            await self.chunks.create(
                TranscriptChunk(
                    session_id=session_id,
                    entry_id=chunk.entry.id,
                    text=chunk.text,
                    embedding=vector,
                    start_offset=chunk.start,
                    end_offset=chunk.end,
                    timestamp=chunk.entry.timestamp,
                )
            )
        await self.db.commit()

        logger.info(
            "Embedded session %s: %d chunks from %d entries (replaced %d)",
            session_id,
            len(pending),
            len(entries),
            removed,
        )
        return EmbedSessionResult(
            session_id=session_id,
            chunk_count=len(pending),
            embedding_dimensions=len(summary_embedding),
            message=(
                "Embedding generated and stored successfully. "
                f"{len(pending)} transcript chunks embedded."
            ),
        )

    async def _embed_all(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts with bounded concurrency, keeping input order."""
        if not texts:
            return []

        semaphore = asyncio.Semaphore(max(1, self.config.embedding_concurrency))

        async def embed_one(text: str) -> list[float]:
            async with semaphore:
                return await self.embedder.embed(text)

        tasks = [asyncio.ensure_future(embed_one(text)) for text in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def search_sessions(
        self,
        query: str,
        owner_id: Optional[str] = None,
    ) -> SearchResponse:
        """Semantic search over transcript chunks, grouped by session.

        Args:
            query: Free-text query.
            owner_id: Restrict results to this therapist's sessions.

        Returns:
            Sessions ordered by their best chunk's similarity, each with up
            to ``snippets_per_session`` highlighted snippets.

        Raises:
            MissingQueryError: If ``query`` is blank. Raised before any
                provider call.
        """
        if not query or not query.strip():
            raise MissingQueryError("Query parameter is required")

        session_ids: Optional[list[str]] = None
        if owner_id:
            owned = await self.sessions.find_by_owner(owner_id)
            if not owned:
                return SearchResponse(query=query, results=[])
            session_ids = [session.id for session in owned]

        query_vector = await self.embedder.embed(query)
        terms = extract_query_terms(query)

        candidates = await self.chunks.find_candidates(
            query_vector,
            session_ids,
            limit=self.config.result_limit * CANDIDATE_MULTIPLIER,
        )

        groups: dict[str, list[tuple[TranscriptChunk, float]]] = {}
        for chunk, _ in candidates:
            similarity = cosine_similarity(query_vector, chunk.embedding)
            groups.setdefault(chunk.session_id, []).append((chunk, similarity))

        results: list[SessionSearchResult] = []
        for session_id, scored in groups.items():
            session = await self.sessions.find_by_id(session_id)
            if session is None:
                # Deleted between the scan and now
                continue

            scored.sort(key=lambda pair: pair[1], reverse=True)
            snippets = [
                Snippet(
                    text=highlight_text(chunk.text, terms),
                    timestamp=chunk.timestamp,
                    similarity=similarity,
                )
                for chunk, similarity in scored[: self.config.snippets_per_session]
            ]
            results.append(
                SessionSearchResult(
                    session_id=session.id,
                    therapist_id=session.therapist_id,
                    client_id=session.client_id,
                    start_time=session.start_time,
                    summary=session.summary,
                    max_similarity=scored[0][1],
                    snippets=snippets,
                )
            )

        results.sort(key=lambda result: result.max_similarity, reverse=True)
        results = results[: self.config.result_limit]

        logger.info(
            "Search returned %d sessions from %d candidate chunks",
            len(results),
            len(candidates),
        )
        return SearchResponse(query=query, results=results)
