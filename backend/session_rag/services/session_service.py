"""Session management: creation, entries, summaries and transcription."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.core.errors import NotFoundError, ValidationError
from session_rag.models.session import Session
from session_rag.models.session_entry import SessionEntry, Speaker
from session_rag.models.transcript_chunk import TranscriptChunk
from session_rag.providers.base import SummaryProvider, TranscriptionProvider
from session_rag.repositories.chunk_repository import ChunkRepository
from session_rag.repositories.entry_repository import EntryRepository
from session_rag.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)

SPEAKERS = {speaker.value for speaker in Speaker}


@dataclass
class SessionWithEntries:
    session: Session
    entries: list[SessionEntry]


@dataclass
class TranscriptionOutcome:
    entry_ids: list[str]
    full_transcript: str


class SessionService:
    """CRUD and AI-assisted operations on therapy sessions.

    Writes are committed here; repositories only flush.
    """

    def __init__(
        self,
        db: AsyncSession,
        summarizer: SummaryProvider,
        transcriber: TranscriptionProvider,
    ) -> None:
        self.db = db
        self.summarizer = summarizer
        self.transcriber = transcriber
        self.sessions = SessionRepository(db)
        self.entries = EntryRepository(db)
        self.chunks = ChunkRepository(db)

    async def create_session(
        self,
        therapist_id: str,
        client_id: str,
        start_time: Optional[datetime],
    ) -> Session:
        if not therapist_id or not client_id or start_time is None:
            raise ValidationError("Missing required fields: therapistId, clientId, startTime")

        session = await self.sessions.create(therapist_id, client_id, start_time)
        await self.db.commit()
        logger.info("Created session %s for therapist %s", session.id, therapist_id)
        return session

    async def get_session(self, session_id: str) -> SessionWithEntries:
        session = await self._require_session(session_id)
        entries = await self.entries.find_by_session(session_id)
        return SessionWithEntries(session=session, entries=entries)

    async def list_sessions(self, therapist_id: str) -> list[tuple[Session, int]]:
        """A therapist's sessions, most recent first, with entry counts."""
        if not therapist_id or not therapist_id.strip():
            raise ValidationError("therapistId is required")
        return await self.sessions.find_by_owner_with_counts(therapist_id)

    async def add_entry(
        self,
        session_id: str,
        speaker: str,
        timestamp: Optional[datetime],
        content: Optional[str] = None,
        audio_reference: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> SessionEntry:
        """Append a speaker turn to a session.

        Raises:
            ValidationError: If speaker or timestamp is missing, the speaker
                is unknown, or no text field is given.
            NotFoundError: If the session does not exist.
        """
        if not speaker or timestamp is None:
            raise ValidationError("Missing required fields: speaker, timestamp")
        if speaker not in SPEAKERS:
            raise ValidationError('Speaker must be either "therapist" or "client"')

        await self._require_session(session_id)

        if not content and not audio_reference and not transcript:
            raise ValidationError(
                "Either content or audioReference/transcript must be provided"
            )

        entry = await self.entries.create(
            session_id,
            speaker,
            timestamp,
            content=content,
            audio_reference=audio_reference,
            transcript=transcript,
        )
        await self.db.commit()
        return entry

    async def get_summary(self, session_id: str) -> str:
        """Return the stored summary, generating and saving it on first use."""
        session = await self._require_session(session_id)
        if session.summary:
            return session.summary

        entries = await self.entries.find_by_session(session_id)
        summary = await self.summarizer.generate_summary(entries)
        await self.sessions.update_summary(session_id, summary)
        await self.db.commit()
        logger.info("Generated summary for session %s", session_id)
        return summary

    async def transcribe_session(
        self,
        session_id: str,
        audio: bytes,
        filename: str,
    ) -> TranscriptionOutcome:
        """Transcribe a recording and store one entry per segment."""
        session = await self._require_session(session_id)

        transcription = await self.transcriber.transcribe_audio(
            audio, filename, session.start_time
        )

        entry_ids: list[str] = []
        for item in transcription.entries:
            entry = await self.entries.create(
                session_id,
                item.speaker.value,
                item.timestamp,
                content=item.text,
                transcript=item.text,
            )
            entry_ids.append(entry.id)
        await self.db.commit()

        logger.info("Transcribed session %s into %d entries", session_id, len(entry_ids))
        return TranscriptionOutcome(
            entry_ids=entry_ids,
            full_transcript=transcription.full_text,
        )

    async def list_chunks(self, session_id: str) -> list[TranscriptChunk]:
        await self._require_session(session_id)
        return await self.chunks.find_by_session(session_id)

    async def _require_session(self, session_id: str) -> Session:
        session = await self.sessions.find_by_id(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session
