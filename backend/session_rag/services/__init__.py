"""Application services."""

from session_rag.services.session_service import SessionService

__all__ = ["SessionService"]
