"""
RQ jobs - ingestion, playlist rebuild and download requests.
Each job is a whole run; RQ retries a failed run from scratch.
"""
from __future__ import annotations

import logging
from itertools import islice
from typing import Iterable, Iterator, Optional, Union

from rq import get_current_job

from gbforever.core.settings import settings
from gbforever.core.logging import JobContext
from gbforever.db.base import Base
from gbforever import models  # noqa: F401  registers tables on Base
from gbforever.db import session as db_session
from gbforever.db.context import get_db_session
from gbforever.db.repositories import VideoRepository, PlaylistRepository
from gbforever.services.archive import InternetArchive
from gbforever.services.resolver import video_id_from_value

logger = logging.getLogger(__name__)


def init_db():
    """Create tables if they don't exist"""
    logger.info("Initializing database tables...")
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database tables ready.")


def chunked(iterable: Iterable, size: int) -> Iterator[list]:
    """Group an iterable into lists of ``size`` (the last one may be shorter)."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    it = iter(iterable)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def _job_id() -> Optional[str]:
    job = get_current_job()
    return job.id if job else None


# =============================================================================
# Job 1: Ingest catalog
# =============================================================================

def ingest_catalog_job(
    query: Optional[str] = None,
    batch_size: Optional[int] = None,
    archive: Optional[InternetArchive] = None,
) -> int:
    """
    Walk every search page and persist items batch by batch.

    A page or batch failure aborts the run; re-running re-ingests and
    skips the identifiers already stored.
    """
    query = query or settings.search_query
    batch_size = batch_size or settings.ingest_batch_size
    archive = archive or InternetArchive()

    total = 0
    with JobContext(job_id=_job_id()):
        logger.info(f"[ingest] Starting for query: {query}")
        for chunk in chunked(archive.search_all(query), batch_size):
            logger.info(f"[ingest] got chunk of {len(chunk)} items")
            with get_db_session() as db:
                VideoRepository(db).insert_items(chunk)
            total += len(chunk)
        logger.info(f"[ingest] Done. {total} items seen")
    return total


# =============================================================================
# Job 2: Rebuild playlist
# =============================================================================

def rebuild_playlist_job() -> int:
    with get_db_session() as db:
        return PlaylistRepository(db).rebuild()


def bootstrap_job(query: Optional[str] = None) -> int:
    """Create tables, ingest the catalog, then build a fresh playlist."""
    init_db()
    ingest_catalog_job(query)
    return rebuild_playlist_job()


# =============================================================================
# Job 3: Download request from another process
# =============================================================================

def download_videos_job(values: list[Union[int, str]]) -> dict:
    from gbforever.workers.orchestrator import DownloadOrchestrator

    ids = [video_id_from_value(v) for v in values]
    orchestrator = DownloadOrchestrator(InternetArchive(), settings.video_path)
    with JobContext(job_id=_job_id()):
        results = orchestrator.download_videos(ids)
    return {str(k): v for k, v in results.items()}
