"""Persistence for therapy sessions."""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from session_rag.models.session import Session
from session_rag.models.session_entry import SessionEntry


class SessionRepository:
    """Session store. Flushes but never commits."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, therapist_id: str, client_id: str, start_time: datetime) -> Session:
        session = Session(therapist_id=therapist_id, client_id=client_id, start_time=start_time)
        self.db.add(session)
        await self.db.flush()
        return session

    async def find_by_id(self, session_id: str) -> Optional[Session]:
        result = await self.db.execute(select(Session).where(Session.id == session_id))
        return result.scalar_one_or_none()

    async def find_by_owner(self, therapist_id: str) -> list[Session]:
        """Sessions owned by a therapist, most recent first."""
        result = await self.db.execute(
            select(Session)
            .where(Session.therapist_id == therapist_id)
            .order_by(Session.start_time.desc())
        )
        return list(result.scalars().all())

    async def find_by_owner_with_counts(self, therapist_id: str) -> list[tuple[Session, int]]:
        """Sessions owned by a therapist with their entry counts, most recent first."""
        entry_count = (
            select(func.count(SessionEntry.id))
            .where(SessionEntry.session_id == Session.id)
            .correlate(Session)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Session, entry_count)
            .where(Session.therapist_id == therapist_id)
            .order_by(Session.start_time.desc())
        )
        return [(session, count) for session, count in result.all()]

    async def find_all_ids(self) -> list[str]:
        result = await self.db.execute(select(Session.id).order_by(Session.start_time.asc()))
        return list(result.scalars().all())

    async def update_summary(self, session_id: str, summary: str) -> None:
        await self.db.execute(
            update(Session).where(Session.id == session_id).values(summary=summary)
        )

    async def update_embedding(self, session_id: str, embedding: list[float]) -> None:
        await self.db.execute(
            update(Session).where(Session.id == session_id).values(embedding=embedding)
        )
