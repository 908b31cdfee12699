import logging
import random
import time
from datetime import datetime, timezone
from typing import TypeVar, Generic, Type, Optional, Sequence

from sqlalchemy import select, delete, insert, text, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gbforever.db.base import Base
from gbforever.core.enums import PlaylistStatus
from gbforever.core.exceptions import NotFoundError, StorageIOError, InvalidStateError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)

# Advisory lock key serializing playlist rebuilds against playlist mutations
PLAYLIST_LOCK_KEY = 0x6762_666F


class BaseRepository(Generic[T]):
    """Generic repository for CRUD operations."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model

    def get_by_id(self, id: int) -> Optional[T]:
        return self.db.get(self.model, id)

    def get_all(self) -> list[T]:
        return list(self.db.scalars(select(self.model).order_by(self.model.id)))

    def count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(self.model))

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageIOError(f"failed to commit {action}: {e}") from e


class VideoRepository(BaseRepository):
    """Catalog rows. Batch Writer for ingestion plus lookups."""

    def __init__(self, db: Session):
        from gbforever.models import Video
        super().__init__(db, Video)

    def get_by_identifier(self, identifier: str):
        return self.db.scalars(
            select(self.model).where(self.model.identifier == identifier)
        ).first()

    def _insert_if_absent(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            raise StorageIOError(f"unsupported database dialect: {dialect}")
        return dialect_insert(self.model).on_conflict_do_nothing(index_elements=["identifier"])

    def insert_items(self, items: Sequence) -> None:
        """
        Insert a batch of catalog items in one transaction.

        Items whose identifier already exists are skipped, existing rows are
        never overwritten. Any failing insert rolls back the whole batch.
        """
        if not items:
            return

        start = time.monotonic()
        stmt = self._insert_if_absent()
        try:
            for item in items:
                self.db.execute(stmt, {
                    "identifier": item.identifier,
                    "title": item.title,
                    "date": item.date,
                    "description": item.description,
                    "creator": item.creator,
                    "item_size": item.item_size,
                    "external_identifier": item.external_identifier,
                    "collections": item.collections,
                })
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageIOError(f"failed to insert batch of {len(items)} items: {e}") from e

        logger.info(f"inserted {len(items)} items in {time.monotonic() - start:.2f}s")


class PlaylistRepository(BaseRepository):
    """
    The playlist state machine.

    Every public mutation is one transaction. Statuses only move forward:
    UNPLAYED -> PENDING -> DOWNLOADED -> ACTIVE -> FINISHED.
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        from gbforever.models import PlaylistEntry
        super().__init__(db, PlaylistEntry)
        self.rng = rng or random.Random()

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def _lock(self, exclusive: bool = False) -> None:
        # SQLite serializes writers on its own
        if self.db.get_bind().dialect.name != "postgresql":
            return
        fn = "pg_advisory_xact_lock" if exclusive else "pg_advisory_xact_lock_shared"
        self.db.execute(text(f"SELECT {fn}(:key)"), {"key": PLAYLIST_LOCK_KEY})

    # -------------------------------------------------------------------------
    # Builder
    # -------------------------------------------------------------------------

    def rebuild(self) -> int:
        """
        Replace the playlist with a fresh shuffle of every video.

        Destructive: only call during bootstrap or an explicit reset.
        Returns the number of entries created.
        """
        from gbforever.models import Video, ActivePlaylist

        try:
            self._lock(exclusive=True)
            self.db.execute(delete(ActivePlaylist))
            self.db.execute(delete(self.model))

            video_ids = list(self.db.scalars(select(Video.id).order_by(Video.id)))
            self.rng.shuffle(video_ids)

            if video_ids:
                self.db.execute(
                    insert(self.model),
                    [{"video_id": vid, "status": PlaylistStatus.UNPLAYED.value, "attempts": 0}
                     for vid in video_ids],
                )
                first_id = self.db.scalars(select(self.model.id).order_by(self.model.id)).first()
                self.db.execute(insert(ActivePlaylist).values(id=1, entry_id=first_id))

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageIOError(f"failed to rebuild playlist: {e}") from e

        logger.info(f"rebuilt playlist with {len(video_ids)} entries")
        return len(video_ids)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _pointer(self):
        from gbforever.models import ActivePlaylist
        return self.db.get(ActivePlaylist, 1)

    def pointer_entry(self):
        """The entry the pointer references, whatever its status."""
        pointer = self._pointer()
        if pointer is None:
            return None
        return self.get_by_id(pointer.entry_id)

    def current_video(self):
        """The playing entry, or None when nothing is queued or it is not playable yet."""
        entry = self.pointer_entry()
        if entry is None or entry.state != PlaylistStatus.ACTIVE:
            return None
        return entry

    def peek_next_videos(self, n: int) -> list:
        """Up to n UNPLAYED entries in playback order."""
        if n <= 0:
            return []
        return list(self.db.scalars(
            select(self.model)
            .where(self.model.status == PlaylistStatus.UNPLAYED.value)
            .order_by(self.model.id)
            .limit(n)
        ))

    def peek_failed_downloads(self, n: int, max_attempts: int, stale_before: Optional[datetime] = None) -> list:
        """
        PENDING entries that may be re-queued: the last download failed, or
        (with ``stale_before``) it went PENDING before that time and never
        recorded an outcome.
        """
        if n <= 0:
            return []
        retryable = self.model.error_message.is_not(None)
        if stale_before is not None:
            retryable = or_(retryable, self.model.pending_since < stale_before)
        return list(self.db.scalars(
            select(self.model)
            .where(
                self.model.status == PlaylistStatus.PENDING.value,
                retryable,
                self.model.attempts < max_attempts,
            )
            .order_by(self.model.id)
            .limit(n)
        ))

    def get_by_video_id(self, video_id: int):
        entry = self.db.scalars(
            select(self.model).where(self.model.video_id == video_id).order_by(self.model.id)
        ).first()
        if entry is None:
            raise NotFoundError(f"no playlist entry for video {video_id}")
        return entry

    def ready_entries(self) -> list:
        """
        Entries that can be handed to the encoder, in playback order.

        Starts at the pointer and stops at the first entry that is not
        ACTIVE or DOWNLOADED, so the result never skips an unready entry.
        """
        entry = self.pointer_entry()
        if entry is None:
            return []

        following = self.db.scalars(
            select(self.model).where(self.model.id >= entry.id).order_by(self.model.id)
        )
        ready = []
        for candidate in following:
            if candidate.state not in (PlaylistStatus.ACTIVE, PlaylistStatus.DOWNLOADED):
                break
            if not candidate.file_path:
                break
            ready.append(candidate)
        return ready

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _transition(self, entry, target: PlaylistStatus) -> None:
        current = entry.state
        if not current.can_become(target):
            raise InvalidStateError(
                f"playlist entry {entry.id} cannot go from {current.value} to {target.value}"
            )
        entry.status = target.value

    def set_video_pending(self, video_id: int):
        self._lock()
        entry = self.get_by_video_id(video_id)
        self._transition(entry, PlaylistStatus.PENDING)
        entry.attempts = (entry.attempts or 0) + 1
        entry.error_message = None
        entry.pending_since = datetime.now(timezone.utc)
        self._commit(f"pending status for video {video_id}")
        return entry

    def set_video_downloaded(self, video_id: int, file_path: str):
        self._lock()
        entry = self.get_by_video_id(video_id)
        self._transition(entry, PlaylistStatus.DOWNLOADED)
        entry.file_path = file_path
        entry.error_message = None
        self._commit(f"downloaded status for video {video_id}")
        return entry

    def record_download_failure(self, video_id: int, message: str):
        """Note a failed download. The entry stays PENDING."""
        self._lock()
        entry = self.get_by_video_id(video_id)
        if entry.state != PlaylistStatus.PENDING:
            raise InvalidStateError(
                f"playlist entry {entry.id} is {entry.status}, not {PlaylistStatus.PENDING.value}"
            )
        entry.error_message = message[:1000]
        self._commit(f"download failure for video {video_id}")
        return entry

    def activate_current_video(self):
        """Promote the pointer entry to ACTIVE once it is DOWNLOADED."""
        self._lock()
        entry = self.pointer_entry()
        if entry is None:
            return None
        state = entry.state
        if state == PlaylistStatus.ACTIVE:
            return entry
        if state != PlaylistStatus.DOWNLOADED:
            return None
        self._transition(entry, PlaylistStatus.ACTIVE)
        self._commit(f"activation of entry {entry.id}")
        return entry

    def update_progress(self, seconds: float):
        entry = self.current_video()
        if entry is None:
            raise NotFoundError("no current video")
        entry.last_progress = seconds
        self._commit(f"progress of entry {entry.id}")
        return entry

    def move_to_next_video(self):
        """
        Advance the pointer to the entry after the current one.

        The current entry becomes FINISHED if it was ACTIVE. Any other current
        entry is skipped: it keeps its status and, being behind the pointer,
        is never played or handed to the encoder. The new target becomes
        ACTIVE right away if it is already DOWNLOADED. Returns the new pointer
        entry, or None when there is no current or no next entry; the pointer
        is cleared once the playlist is exhausted.
        """
        self._lock()
        pointer = self._pointer()
        if pointer is None:
            return None
        current = self.get_by_id(pointer.entry_id)
        if current is None:
            return None

        if current.state == PlaylistStatus.ACTIVE:
            self._transition(current, PlaylistStatus.FINISHED)

        next_entry = self.db.scalars(
            select(self.model).where(self.model.id > current.id).order_by(self.model.id)
        ).first()

        if next_entry is None:
            self.db.delete(pointer)
            self._commit("end of playlist")
            logger.info(f"playlist exhausted after entry {current.id}")
            return None

        pointer.entry_id = next_entry.id
        if next_entry.state == PlaylistStatus.DOWNLOADED:
            self._transition(next_entry, PlaylistStatus.ACTIVE)
        self._commit(f"advance to entry {next_entry.id}")
        logger.info(f"advanced playlist {current.id} -> {next_entry.id} ({next_entry.status})")
        return next_entry
