"""
Scheduler - periodic catalog ingestion.
Enqueues a full ingestion run every INGEST_INTERVAL_SECONDS.
"""
import logging
import time

from gbforever.core.settings import settings
from gbforever.core.logging import setup_logging
from gbforever.workers.jobs import init_db, ingest_catalog_job
from gbforever.workers.queue import enqueue_io, RETRY_INGEST

logger = logging.getLogger(__name__)


def tick():
    """Enqueue one ingestion run."""
    job = enqueue_io(ingest_catalog_job, settings.search_query, retry=RETRY_INGEST)
    logger.info(f"Enqueued ingestion job {job.id} for {settings.search_query!r}")
    return job


if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)

    # Wait for DB to be ready
    for attempt in range(10):
        try:
            init_db()
            break
        except Exception as e:
            logger.warning(f"DB not ready (attempt {attempt + 1}/10): {e}")
            time.sleep(3)

    logger.info(f"Scheduler started. Ingesting every {settings.ingest_interval_seconds}s")
    while True:
        try:
            tick()
        except Exception as e:
            logger.error(f"Error in tick: {e}")
        time.sleep(settings.ingest_interval_seconds)
