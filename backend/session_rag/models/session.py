"""Therapy session model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from session_rag.models.base import BaseModel, generate_id

if TYPE_CHECKING:
    from session_rag.models.session_entry import SessionEntry
    from session_rag.models.transcript_chunk import TranscriptChunk


class Session(BaseModel):
    """A therapy session owned by one therapist."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    therapist_id: Mapped[str] = mapped_column(String(100), index=True)
    client_id: Mapped[str] = mapped_column(String(100), index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    # Generated on demand, then cached
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Embedding of the summary
    embedding: Mapped[Optional[list[float]]] = mapped_column(JSON, nullable=True)

    # Relationships
    entries: Mapped[list["SessionEntry"]] = relationship(
        "SessionEntry",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionEntry.timestamp",
    )
    chunks: Mapped[list["TranscriptChunk"]] = relationship(
        "TranscriptChunk",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, therapist_id={self.therapist_id})>"
