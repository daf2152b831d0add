"""Transcript chunk model: a slice of an entry's text with its embedding."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from session_rag.models.base import BaseModel, generate_id

if TYPE_CHECKING:
    from session_rag.models.session import Session


class TranscriptChunk(BaseModel):
    """Chunk of transcript text, owned by one session.

    Chunks are never updated in place; a session's chunk set is deleted and
    rebuilt on every re-embedding. Offsets point into the source text as it
    was when the chunk was created.
    """

    __tablename__ = "transcript_chunks"
    __table_args__ = (
        CheckConstraint("start_offset < end_offset", name="ck_transcript_chunks_offsets"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"),
        index=True,
    )
    entry_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("session_entries.id", ondelete="SET NULL"),
        nullable=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    start_offset: Mapped[int] = mapped_column(Integer)
    end_offset: Mapped[int] = mapped_column(Integer)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    # Relationship
    session: Mapped["Session"] = relationship("Session", back_populates="chunks")

    def __repr__(self) -> str:
        return (
            f"<TranscriptChunk(id={self.id}, session_id={self.session_id}, "
            f"span={self.start_offset}:{self.end_offset})>"
        )
