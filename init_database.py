"""
Bootstrap: create tables, ingest the whole catalog, build a fresh playlist.

Run once before starting the player. Rebuilding replaces the playlist, so
stop the player first.
"""
import logging

from gbforever.core.settings import settings
from gbforever.core.logging import setup_logging
from gbforever.workers.jobs import init_db, ingest_catalog_job, rebuild_playlist_job

logger = logging.getLogger("init_database")


def init_database():
    logger.info("--- BOOTSTRAP START ---")

    logger.info("1. Creating tables...")
    init_db()

    logger.info(f"2. Ingesting {settings.search_query!r}...")
    total = ingest_catalog_job(settings.search_query)
    logger.info(f"   Ingested {total} items.")

    logger.info("3. Rebuilding playlist...")
    entries = rebuild_playlist_job()
    logger.info(f"   Playlist has {entries} entries.")


if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)
    init_database()
