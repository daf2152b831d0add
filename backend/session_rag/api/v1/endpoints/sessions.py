"""Session endpoints: CRUD, summaries, transcription and indexing."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel, Field

from session_rag.api.deps import get_retriever, get_session_service
from session_rag.rag.models import EmbedSessionResult
from session_rag.rag.retriever import SessionRetriever
from session_rag.services.session_service import SessionService

router = APIRouter()


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class SessionCreateSchema(BaseModel):
    """Schema for creating a session."""

    therapist_id: str = Field(..., max_length=100)
    client_id: str = Field(..., max_length=100)
    start_time: datetime


class SessionCreatedSchema(BaseModel):
    """Response schema for a created session."""

    session_id: str


class EntryCreateSchema(BaseModel):
    """Schema for adding an entry. One of content, audio_reference or transcript is required."""

    speaker: str = Field(..., description="therapist or client")
    timestamp: datetime
    content: str | None = None
    audio_reference: str | None = Field(None, max_length=500)
    transcript: str | None = None


class EntryCreatedSchema(BaseModel):
    """Response schema for a created entry."""

    entry_id: str


class EntryResponseSchema(BaseModel):
    """Response schema for an entry."""

    id: str
    speaker: str
    content: str | None
    audio_reference: str | None
    transcript: str | None
    timestamp: datetime

    model_config = {"from_attributes": True}


class SessionDetailResponseSchema(BaseModel):
    """Response schema for a session with its entries."""

    session_id: str
    therapist_id: str
    client_id: str
    start_time: datetime
    summary: str | None
    entries: list[EntryResponseSchema]


class SessionListItemSchema(BaseModel):
    """Response schema for a session in a list."""

    session_id: str
    therapist_id: str
    client_id: str
    start_time: datetime
    entry_count: int


class SessionListResponseSchema(BaseModel):
    """Response schema for the sessions list."""

    sessions: list[SessionListItemSchema]


class SummaryResponseSchema(BaseModel):
    """Response schema for a session summary."""

    session_id: str
    summary: str


class TranscriptionResponseSchema(BaseModel):
    """Response schema for a transcription upload."""

    message: str
    entry_ids: list[str]
    full_transcript: str


class ChunkResponseSchema(BaseModel):
    """Response schema for a transcript chunk (embedding omitted)."""

    id: str
    entry_id: str | None
    text: str
    start_offset: int
    end_offset: int
    timestamp: datetime

    model_config = {"from_attributes": True}


class ChunkListResponseSchema(BaseModel):
    """Response schema for a session's chunks."""

    session_id: str
    count: int
    chunks: list[ChunkResponseSchema]


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("", response_model=SessionCreatedSchema, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreateSchema,
    service: Annotated[SessionService, Depends(get_session_service)],
):
    """Create a therapy session."""
    session = await service.create_session(
        payload.therapist_id, payload.client_id, payload.start_time
    )
    return {"session_id": session.id}


@router.get("", response_model=SessionListResponseSchema)
async def list_sessions(
    service: Annotated[SessionService, Depends(get_session_service)],
    therapist_id: str = Query("", description="Owner of the sessions"),
):
    """List a therapist's sessions, most recent first."""
    rows = await service.list_sessions(therapist_id)
    return {
        "sessions": [
            {
                "session_id": session.id,
                "therapist_id": session.therapist_id,
                "client_id": session.client_id,
                "start_time": session.start_time,
                "entry_count": entry_count,
            }
            for session, entry_count in rows
        ]
    }


@router.get("/{session_id}", response_model=SessionDetailResponseSchema)
async def get_session(
    session_id: str,
    service: Annotated[SessionService, Depends(get_session_service)],
):
    """Get a session with its entries in chronological order."""
    result = await service.get_session(session_id)
    session = result.session
    return SessionDetailResponseSchema(
        session_id=session.id,
        therapist_id=session.therapist_id,
        client_id=session.client_id,
        start_time=session.start_time,
        summary=session.summary,
        entries=[EntryResponseSchema.model_validate(entry) for entry in result.entries],
    )


@router.post(
    "/{session_id}/entries",
    response_model=EntryCreatedSchema,
    status_code=status.HTTP_201_CREATED,
)
async def add_entry(
    session_id: str,
    payload: EntryCreateSchema,
    service: Annotated[SessionService, Depends(get_session_service)],
):
    """Append a therapist or client turn to a session."""
    entry = await service.add_entry(
        session_id,
        payload.speaker,
        payload.timestamp,
        content=payload.content,
        audio_reference=payload.audio_reference,
        transcript=payload.transcript,
    )
    return {"entry_id": entry.id}


@router.get("/{session_id}/summary", response_model=SummaryResponseSchema)
async def get_summary(
    session_id: str,
    service: Annotated[SessionService, Depends(get_session_service)],
):
    """Get the session summary, generating it on first request."""
    summary = await service.get_summary(session_id)
    return {"session_id": session_id, "summary": summary}


@router.post(
    "/{session_id}/transcribe",
    response_model=TranscriptionResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def transcribe_session(
    session_id: str,
    service: Annotated[SessionService, Depends(get_session_service)],
    audio: UploadFile = File(..., description="Session recording"),
):
    """Transcribe an uploaded recording into session entries."""
    data = await audio.read()
    outcome = await service.transcribe_session(session_id, data, audio.filename or "audio.mp3")
    return {
        "message": "Audio transcribed successfully",
        "entry_ids": outcome.entry_ids,
        "full_transcript": outcome.full_transcript,
    }


@router.post("/{session_id}/embed", response_model=EmbedSessionResult)
async def embed_session(
    session_id: str,
    retriever: Annotated[SessionRetriever, Depends(get_retriever)],
):
    """Rebuild the session's summary embedding and transcript chunks."""
    return await retriever.embed_session(session_id)


@router.get("/{session_id}/chunks", response_model=ChunkListResponseSchema)
async def list_chunks(
    session_id: str,
    service: Annotated[SessionService, Depends(get_session_service)],
):
    """List the session's indexed transcript chunks."""
    chunks = await service.list_chunks(session_id)
    return {
        "session_id": session_id,
        "count": len(chunks),
        "chunks": [ChunkResponseSchema.model_validate(chunk) for chunk in chunks],
    }
