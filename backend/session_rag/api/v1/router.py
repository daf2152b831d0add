"""API v1 router aggregating all endpoint routers.

Sessions:
  /api/v1/sessions (create, list, detail)
  /api/v1/sessions/{id}/entries, /summary, /transcribe
  /api/v1/sessions/{id}/embed, /chunks

Search:
  /api/v1/search/sessions
"""

from fastapi import APIRouter

from session_rag.api.v1.endpoints import search, sessions

api_router = APIRouter()

# -------------------------------------------------------------------------
# Sessions
# -------------------------------------------------------------------------
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])

# -------------------------------------------------------------------------
# Search
# -------------------------------------------------------------------------
api_router.include_router(search.router, prefix="/search", tags=["search"])
