"""Semantic search endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from session_rag.api.deps import get_retriever
from session_rag.rag.models import SearchResponse
from session_rag.rag.retriever import SessionRetriever

router = APIRouter()


@router.get("/sessions", response_model=SearchResponse)
async def search_sessions(
    retriever: Annotated[SessionRetriever, Depends(get_retriever)],
    q: str = Query("", description="Free-text query"),
    therapist_id: str | None = Query(None, description="Only search this therapist's sessions"),
):
    """Search session transcripts by meaning, grouped by session."""
    return await retriever.search_sessions(q, therapist_id)
