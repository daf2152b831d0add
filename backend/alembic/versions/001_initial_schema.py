"""Initial schema: sessions, entries and transcript chunks.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("therapist_id", sa.String(length=100), nullable=False),
        sa.Column("client_id", sa.String(length=100), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("embedding", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sessions_therapist_id", "sessions", ["therapist_id"])
    op.create_index("ix_sessions_client_id", "sessions", ["client_id"])
    op.create_index("ix_sessions_start_time", "sessions", ["start_time"])

    # -------------------------------------------------------------------------
    # Session Entries
    # -------------------------------------------------------------------------
    op.create_table(
        "session_entries",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("speaker", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("audio_reference", sa.String(length=500), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("speaker IN ('therapist', 'client')", name="ck_session_entries_speaker"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_entries_session_id", "session_entries", ["session_id"])
    op.create_index("ix_session_entries_timestamp", "session_entries", ["timestamp"])

    # -------------------------------------------------------------------------
    # Transcript Chunks
    # -------------------------------------------------------------------------
    op.create_table(
        "transcript_chunks",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("entry_id", sa.String(length=36), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=False),
        sa.Column("start_offset", sa.Integer(), nullable=False),
        sa.Column("end_offset", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("start_offset < end_offset", name="ck_transcript_chunks_offsets"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["entry_id"], ["session_entries.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transcript_chunks_session_id", "transcript_chunks", ["session_id"])
    op.create_index("ix_transcript_chunks_timestamp", "transcript_chunks", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_transcript_chunks_timestamp", table_name="transcript_chunks")
    op.drop_index("ix_transcript_chunks_session_id", table_name="transcript_chunks")
    op.drop_table("transcript_chunks")

    op.drop_index("ix_session_entries_timestamp", table_name="session_entries")
    op.drop_index("ix_session_entries_session_id", table_name="session_entries")
    op.drop_table("session_entries")

    op.drop_index("ix_sessions_start_time", table_name="sessions")
    op.drop_index("ix_sessions_client_id", table_name="sessions")
    op.drop_index("ix_sessions_therapist_id", table_name="sessions")
    op.drop_table("sessions")
