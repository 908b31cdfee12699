"""
Player - the playback consumer.

Keeps the look-ahead downloading, promotes the pointer entry to ACTIVE once
its file is ready, and keeps the concat manifest in sync for the encoder.
"""
from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from gbforever.core.settings import settings
from gbforever.core.logging import setup_logging
from gbforever.db.context import get_db_session
from gbforever.db.repositories import PlaylistRepository
from gbforever.services.archive import InternetArchive
from gbforever.services.manifest import ConcatFile
from gbforever.services.resolver import ByInternalId
from gbforever.services.streamer import Streamer
from gbforever.workers.background import BackgroundDownloader
from gbforever.workers.orchestrator import DownloadOrchestrator

logger = logging.getLogger(__name__)


class Player:
    def __init__(
        self,
        downloader: BackgroundDownloader,
        manifest: ConcatFile,
        streamer: Optional[Streamer] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        lookahead: Optional[int] = None,
        max_attempts: Optional[int] = None,
        stale_after: Optional[float] = None,
    ):
        self.downloader = downloader
        self.manifest = manifest
        self.streamer = streamer
        self.session_factory = session_factory
        self.lookahead = lookahead or settings.lookahead_count
        self.max_attempts = max_attempts or settings.download_max_attempts
        self.stale_after = settings.download_stale_after_seconds if stale_after is None else stale_after
        self._stop = threading.Event()

    def _downloads_to_request(self, repo: PlaylistRepository) -> list:
        """Look-ahead entries plus re-queueable PENDING ones, minus ids already queued."""
        stale_before = datetime.now(timezone.utc) - timedelta(seconds=self.stale_after)
        upcoming = repo.peek_next_videos(self.lookahead)
        upcoming += repo.peek_failed_downloads(self.lookahead, self.max_attempts, stale_before)

        batch = []
        for entry in upcoming:
            video_id = ByInternalId(entry.video_id)
            if self.downloader.is_queued(video_id) or video_id in batch:
                continue
            batch.append(video_id)
        return batch

    def tick(self) -> list:
        """One pass: request downloads, activate, rewrite the manifest. Returns ready paths."""
        with get_db_session(self.session_factory) as db:
            repo = PlaylistRepository(db)
            batch = self._downloads_to_request(repo)

            current = repo.activate_current_video()
            if current is not None:
                logger.debug(f"current entry {current.id} ({current.file_path})")

            paths = [entry.file_path for entry in repo.ready_entries()]

        # submit blocks while the queue is full, so no session is held here
        if batch:
            logger.info(f"requesting {len(batch)} downloads: {', '.join(str(v) for v in batch)}")
            self.downloader.submit(batch)

        self.manifest.write(paths)

        if paths and self.streamer is not None and not self.streamer.is_running():
            if self.streamer.process is not None:
                logger.warning("stream process exited, restarting")
            self.streamer.start()
        return paths

    def run(self, poll_interval: Optional[float] = None) -> None:
        poll_interval = poll_interval or settings.player_poll_interval_seconds
        logger.info(f"player started, look-ahead {self.lookahead}")
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"player tick failed: {e}")
            self._stop.wait(poll_interval)

    def stop(self) -> None:
        self._stop.set()
        self.downloader.close(wait=False)
        if self.streamer is not None:
            self.streamer.stop()


def build_player() -> Player:
    orchestrator = DownloadOrchestrator(InternetArchive(), settings.video_path)
    downloader = BackgroundDownloader.start_new(orchestrator)
    concat_path = os.path.join(settings.video_path, settings.concat_file_name)
    return Player(downloader, ConcatFile(concat_path), Streamer(concat_path))


if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)
    player = build_player()
    try:
        player.run()
    except KeyboardInterrupt:
        logger.info("player interrupted")
    finally:
        player.stop()
