"""Provider interfaces for embedding, summarization and transcription.

Concrete providers are built once at application startup and handed to
the services and the retriever explicitly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, Sequence

from session_rag.models.session_entry import SessionEntry, Speaker


@dataclass
class TranscribedEntry:
    """One speaker turn recovered from an audio recording."""

    speaker: Speaker
    text: str
    timestamp: datetime


@dataclass
class TranscriptionResult:
    """Transcription output: per-segment entries plus the full text."""

    full_text: str
    entries: list[TranscribedEntry] = field(default_factory=list)


class EmbeddingProvider(Protocol):
    """Protocol defining the embedding client interface."""

    @property
    def dimensions(self) -> int:
        """Length of every vector returned by ``embed``."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...


class SummaryProvider(Protocol):
    """Protocol defining the session summarizer interface."""

    async def generate_summary(self, entries: Sequence[SessionEntry]) -> str:
        """Summarize a session's entries."""
        ...


class TranscriptionProvider(Protocol):
    """Protocol defining the audio transcription interface."""

    async def transcribe_audio(
        self,
        audio: bytes,
        filename: str,
        started_at: datetime,
    ) -> TranscriptionResult:
        """Transcribe an audio recording of a session."""
        ...
