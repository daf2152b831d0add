"""Persistence for session entries."""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.models.session_entry import SessionEntry


class EntryRepository:
    """Session entry store. Flushes but never commits."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        session_id: str,
        speaker: str,
        timestamp: datetime,
        content: Optional[str] = None,
        audio_reference: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> SessionEntry:
        entry = SessionEntry(
            session_id=session_id,
            speaker=speaker,
            content=content,
            audio_reference=audio_reference,
            transcript=transcript,
            timestamp=timestamp,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def find_by_session(self, session_id: str) -> list[SessionEntry]:
        """Entries of a session in chronological order."""
        result = await self.db.execute(
            select(SessionEntry)
            .where(SessionEntry.session_id == session_id)
            .order_by(SessionEntry.timestamp.asc(), SessionEntry.created_at.asc())
        )
        return list(result.scalars().all())
