"""Pytest configuration and fixtures for backend tests."""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Sequence

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import session_rag.models  # noqa: F401
from session_rag.api.deps import ServiceContainer, get_container
from session_rag.core.config import Settings
from session_rag.core.database import Base, get_db
from session_rag.core.errors import EmptyInputError, ProviderError
from session_rag.main import create_app
from session_rag.models.session import Session
from session_rag.models.session_entry import SessionEntry, Speaker
from session_rag.providers.base import TranscribedEntry, TranscriptionResult
from session_rag.rag.retriever import RetrievalConfig, SessionLockRegistry, SessionRetriever

SESSION_START = datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc)


# -------------------------------------------------------------------------
# Fake Providers
# -------------------------------------------------------------------------


class FakeEmbedder:
    """Deterministic embedder: known texts map to fixed vectors."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimensions: int = 2):
        self.vectors = vectors or {}
        self._dimensions = dimensions
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise EmptyInputError("Text cannot be empty")
        self.calls.append(text)
        if text in self.fail_on:
            raise ProviderError("embedding failed", status_code=503)
        if text in self.vectors:
            return list(self.vectors[text])
        return [1.0] + [0.0] * (self._dimensions - 1)


class FakeSummarizer:
    """Summarizer that reports how many entries it saw."""

    def __init__(self):
        self.calls = 0

    async def generate_summary(self, entries: Sequence[SessionEntry]) -> str:
        self.calls += 1
        return f"Summary of {len(entries)} entries"


class FakeTranscriber:
    """Transcriber returning two alternating turns."""

    def __init__(self):
        self.calls: list[tuple[int, str, datetime]] = []

    async def transcribe_audio(
        self,
        audio: bytes,
        filename: str,
        started_at: datetime,
    ) -> TranscriptionResult:
        self.calls.append((len(audio), filename, started_at))
        return TranscriptionResult(
            full_text="How are you feeling? Better this week.",
            entries=[
                TranscribedEntry(Speaker.THERAPIST, "How are you feeling?", started_at),
                TranscribedEntry(
                    Speaker.CLIENT, "Better this week.", started_at + timedelta(seconds=4)
                ),
            ],
        )


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_session(db_session: AsyncSession) -> Callable:
    """Factory creating a session with text entries.

    ``entries`` is a list of (speaker, text) pairs, spaced one minute apart.
    """

    async def _make(
        therapist_id: str = "therapist-1",
        client_id: str = "client-1",
        entries: Sequence[tuple[str, str]] = (),
        start_time: datetime = SESSION_START,
    ) -> Session:
        session = Session(therapist_id=therapist_id, client_id=client_id, start_time=start_time)
        db_session.add(session)
        await db_session.flush()
        for index, (speaker, text) in enumerate(entries):
            db_session.add(
                SessionEntry(
                    session_id=session.id,
                    speaker=speaker,
                    content=text,
                    timestamp=start_time + timedelta(minutes=index),
                )
            )
        await db_session.commit()
        return session

    return _make


@pytest.fixture
def retriever(
    db_session: AsyncSession,
    embedder: FakeEmbedder,
    summarizer: FakeSummarizer,
) -> SessionRetriever:
    return SessionRetriever(
        db_session,
        embedder,
        summarizer,
        SessionLockRegistry(),
        RetrievalConfig(result_limit=10, snippets_per_session=3),
    )


# -------------------------------------------------------------------------
# App Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def container(
    embedder: FakeEmbedder,
    summarizer: FakeSummarizer,
    transcriber: FakeTranscriber,
) -> ServiceContainer:
    return ServiceContainer(embedder=embedder, summarizer=summarizer, transcriber=transcriber)


@pytest.fixture
def app(db_session: AsyncSession, container: ServiceContainer) -> FastAPI:
    """Create a FastAPI app instance with test database and fake providers."""
    test_app = create_app(Settings(openai_api_key="test-key", database_auto_create=False))

    async def override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_container] = lambda: container
    yield test_app
    test_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
