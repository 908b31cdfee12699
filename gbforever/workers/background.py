"""
Background Downloader - bounded request queue drained by one worker thread.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Iterable, Optional

from gbforever.core.settings import settings
from gbforever.services.resolver import VideoId

logger = logging.getLogger(__name__)

_CLOSE = object()


class BackgroundDownloader:
    """
    Accepts batches of VideoId from any thread and feeds them, one batch at a
    time, to ``orchestrator.download_videos``.

    ``submit`` blocks while the queue is full; batches are never dropped.
    A failed batch is logged and the loop moves on. The loop ends only
    after ``close``.
    """

    def __init__(self, orchestrator, capacity: Optional[int] = None):
        self.orchestrator = orchestrator
        self.capacity = capacity or settings.download_queue_capacity
        self._queue: queue.Queue = queue.Queue(maxsize=self.capacity)
        self._queued: dict = {}
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @classmethod
    def start_new(cls, orchestrator, capacity: Optional[int] = None) -> "BackgroundDownloader":
        downloader = cls(orchestrator, capacity)
        downloader.start()
        return downloader

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="background-downloader", daemon=True)
        self._thread.start()

    def submit(self, ids: Iterable[VideoId], timeout: Optional[float] = None) -> None:
        """Queue a batch. Blocks while the queue is full (raises queue.Full after ``timeout``)."""
        batch = list(ids)
        if not batch:
            return
        if self._closed:
            raise RuntimeError("background downloader is closed")

        with self._lock:
            for video_id in batch:
                self._queued[video_id] = self._queued.get(video_id, 0) + 1
        try:
            self._queue.put(batch, timeout=timeout)
        except queue.Full:
            self._forget(batch)
            raise

    def is_queued(self, video_id: VideoId) -> bool:
        """True while the id sits in a submitted batch that has not finished."""
        with self._lock:
            return video_id in self._queued

    def _forget(self, batch) -> None:
        with self._lock:
            for video_id in batch:
                remaining = self._queued.get(video_id, 0) - 1
                if remaining > 0:
                    self._queued[video_id] = remaining
                else:
                    self._queued.pop(video_id, None)

    def run(self) -> None:
        logger.info(f"background downloader started (capacity {self.capacity})")
        while True:
            batch = self._queue.get()
            try:
                if batch is _CLOSE:
                    break
                try:
                    self.orchestrator.download_videos(batch)
                except Exception as e:
                    logger.error(f"failed to download videos: {e}")
                finally:
                    self._forget(batch)
            finally:
                self._queue.task_done()
        logger.info("background downloader stopped")

    def join(self) -> None:
        """Block until every submitted batch has been processed."""
        self._queue.join()

    def close(self, wait: bool = True) -> None:
        """Stop accepting batches; the worker exits after draining the queue."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSE)
        if wait and self._thread is not None:
            self._thread.join()
