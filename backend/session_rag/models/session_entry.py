"""Session entry model (one speaker turn)."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from session_rag.models.base import BaseModel, generate_id

if TYPE_CHECKING:
    from session_rag.models.session import Session


class Speaker(str, Enum):
    """Who spoke an entry."""

    THERAPIST = "therapist"
    CLIENT = "client"


class SessionEntry(BaseModel):
    """A single therapist or client turn within a session."""

    __tablename__ = "session_entries"
    __table_args__ = (
        CheckConstraint("speaker IN ('therapist', 'client')", name="ck_session_entries_speaker"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"),
        index=True,
    )
    speaker: Mapped[str] = mapped_column(String(20))
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_reference: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    # Relationship
    session: Mapped["Session"] = relationship("Session", back_populates="entries")

    @property
    def text(self) -> Optional[str]:
        """Text to index: the transcript when present, else the typed content."""
        return self.transcript or self.content

    def __repr__(self) -> str:
        return f"<SessionEntry(id={self.id}, session_id={self.session_id}, speaker={self.speaker})>"
