#!/usr/bin/env python3
"""Rebuild transcript chunks and summary embeddings for stored sessions.

Run after changing CHUNK_SIZE, CHUNK_OVERLAP or the embedding model, since
chunks written under the old settings are not comparable with new queries.

Usage:
    # Re-embed every session
    python scripts/reembed_sessions.py

    # Only one therapist's sessions
    python scripts/reembed_sessions.py --therapist-id t-123

    # Preview which sessions would be processed
    python scripts/reembed_sessions.py --dry-run
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from session_rag.api.deps import build_container
from session_rag.core.config import get_settings
from session_rag.core.database import create_engine, create_session_factory
from session_rag.core.errors import AppError
from session_rag.observability import MetricsCollector
from session_rag.rag.retriever import SessionRetriever
from session_rag.repositories.session_repository import SessionRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def reembed_sessions(
    therapist_id: str | None = None,
    dry_run: bool = False,
) -> dict:
    """Re-embed sessions one at a time.

    Args:
        therapist_id: Only process this therapist's sessions.
        dry_run: List the sessions without calling any provider.

    Returns:
        Summary dict with counts.
    """
    settings = get_settings()
    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    metrics = MetricsCollector()
    container = build_container(settings, metrics)

    summary = {"sessions": 0, "embedded": 0, "chunks": 0, "errors": 0}

    try:
        async with session_factory() as db:
            sessions = SessionRepository(db)
            if therapist_id:
                session_ids = [s.id for s in await sessions.find_by_owner(therapist_id)]
            else:
                session_ids = await sessions.find_all_ids()

        summary["sessions"] = len(session_ids)
        logger.info(f"Found {len(session_ids)} sessions")

        for session_id in session_ids:
            if dry_run:
                logger.info(f"[DRY-RUN] Would re-embed session {session_id}")
                continue

            # Fresh database session per item so one failure does not poison the rest
            async with session_factory() as db:
                retriever = SessionRetriever(
                    db,
                    container.embedder,
                    container.summarizer,
                    container.locks,
                    container.retrieval_config,
                )
                try:
                    result = await retriever.embed_session(session_id)
                except AppError as e:
                    summary["errors"] += 1
                    logger.error(f"Failed to embed session {session_id}: {e.message}")
                    continue

            summary["embedded"] += 1
            summary["chunks"] += result.chunk_count
            logger.info(f"Session {session_id}: {result.chunk_count} chunks")
    finally:
        await container.aclose()
        await engine.dispose()

    logger.info(
        "Provider calls: %d", metrics.external_call_count("openai", "embeddings")
    )
    return summary


def main():
    parser = argparse.ArgumentParser(
        description="Rebuild transcript chunks and embeddings for stored sessions."
    )
    parser.add_argument(
        "--therapist-id",
        default=None,
        help="Only re-embed this therapist's sessions",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List sessions without calling the embedding provider",
    )
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("Session Re-embedding Script")
    logger.info("=" * 60)

    summary = asyncio.run(reembed_sessions(args.therapist_id, args.dry_run))

    logger.info("-" * 60)
    logger.info(f"Sessions found:    {summary['sessions']}")
    logger.info(f"Sessions embedded: {summary['embedded']}")
    logger.info(f"Chunks written:    {summary['chunks']}")
    logger.info(f"Errors:            {summary['errors']}")

    if summary["errors"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
