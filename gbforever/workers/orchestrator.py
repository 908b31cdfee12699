"""
Download Orchestrator - resolve, fetch and record playlist download state.
Marks entries PENDING before fetching and DOWNLOADED once the file is on disk.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from gbforever.core.settings import settings
from gbforever.core.logging import JobContext
from gbforever.core.exceptions import (
    DownloadBatchError,
    FilesystemIOError,
    UpstreamIOError,
)
from gbforever.db.context import get_db_session
from gbforever.db.repositories import PlaylistRepository
from gbforever.services.archive import InternetArchive, ProgressCallback
from gbforever.services.resolver import VideoId, resolve

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (UpstreamIOError, FilesystemIOError)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retries with exponential backoff.
    Intervals: base, 2*base, 4*base, ...
    """
    max_retries: int = 3
    base_seconds: float = 30

    def intervals(self) -> list[float]:
        return [self.base_seconds * (2 ** n) for n in range(self.max_retries)]


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.download_max_retries,
        base_seconds=settings.download_retry_base_seconds,
    )


class DownloadOrchestrator:
    def __init__(
        self,
        archive: InternetArchive,
        video_folder: str,
        session_factory: Optional[Callable[[], Session]] = None,
        retry: Optional[RetryPolicy] = None,
        max_workers: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.archive = archive
        self.video_folder = video_folder
        self.session_factory = session_factory
        self.retry = retry or get_retry_policy()
        self.max_workers = max_workers or settings.download_max_workers
        self.progress = progress
        self.sleep = sleep

    def resolve_id(self, video_id: VideoId) -> tuple[str, int]:
        with get_db_session(self.session_factory) as db:
            return resolve(db, video_id)

    def _fetch_with_retry(self, identifier: str) -> str:
        intervals = self.retry.intervals()
        attempt = 0
        while True:
            try:
                return self.archive.download_video(identifier, self.video_folder, self.progress)
            except RETRYABLE_ERRORS as e:
                if attempt >= len(intervals):
                    raise
                delay = intervals[attempt]
                attempt += 1
                logger.warning(
                    f"[orchestrator] download of {identifier} failed ({e}), "
                    f"retry {attempt}/{len(intervals)} in {delay}s"
                )
                self.sleep(delay)

    def download_single_video(self, video_id: VideoId) -> str:
        """
        Download one video and record it on its playlist entry.

        The entry is PENDING while the download runs and DOWNLOADED with the
        file path afterwards. A failed download leaves it PENDING with the
        error recorded, and the error is raised.
        """
        identifier, internal_id = self.resolve_id(video_id)
        return self._download_resolved(identifier, internal_id)

    def _download_resolved(self, identifier: str, internal_id: int) -> str:
        with JobContext(video_id=identifier):
            with get_db_session(self.session_factory) as db:
                PlaylistRepository(db).set_video_pending(internal_id)
            logger.info(f"[orchestrator] Video {identifier} -> PENDING")

            try:
                file_path = self._fetch_with_retry(identifier)
            except Exception as e:
                logger.error(f"[orchestrator] download of {identifier} failed: {e}")
                with get_db_session(self.session_factory) as db:
                    PlaylistRepository(db).record_download_failure(internal_id, str(e))
                raise

            with get_db_session(self.session_factory) as db:
                PlaylistRepository(db).set_video_downloaded(internal_id, file_path)
            logger.info(f"[orchestrator] Video {identifier} -> DOWNLOADED ({file_path})")
            return file_path

    def download_videos(self, ids: Iterable[VideoId]) -> dict:
        """
        Download every id concurrently.

        Ids are resolved first and each video is fetched once, however many
        ids in the batch point at it. Returns ``{video_id: file_path}``. If
        any download fails, raises DownloadBatchError carrying every failure;
        the successful downloads stay recorded.
        """
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}

        results = {}
        errors = {}
        identifiers: dict[int, str] = {}
        requested: dict[int, list] = {}
        for video_id in ids:
            try:
                identifier, internal_id = self.resolve_id(video_id)
            except Exception as e:
                errors[video_id] = e
                continue
            identifiers[internal_id] = identifier
            requested.setdefault(internal_id, []).append(video_id)

        if requested:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(requested))) as pool:
                futures = {
                    internal_id: pool.submit(self._download_resolved, identifiers[internal_id], internal_id)
                    for internal_id in requested
                }
                for internal_id, future in futures.items():
                    try:
                        file_path = future.result()
                    except Exception as e:
                        for video_id in requested[internal_id]:
                            errors[video_id] = e
                        continue
                    for video_id in requested[internal_id]:
                        results[video_id] = file_path

        if errors:
            raise DownloadBatchError(errors)
        return results
