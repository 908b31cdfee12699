from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from gbforever.db.base import Base
from gbforever.core.enums import PlaylistStatus

class PlaylistEntry(Base):
    __tablename__ = "playlist_entries"

    # Insertion order of the id is the shuffled playback order
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[int] = mapped_column(Integer, ForeignKey("videos.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), default=PlaylistStatus.UNPLAYED.value, nullable=False)
    file_path: Mapped[str | None] = mapped_column(String, nullable=True)
    last_progress: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Download retry bookkeeping
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(String, nullable=True)
    pending_since: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def state(self) -> PlaylistStatus:
        return PlaylistStatus.parse(self.status)


class ActivePlaylist(Base):
    """Singleton pointer at the entry currently playing (or about to)."""
    __tablename__ = "active_playlist"
    __table_args__ = (CheckConstraint("id = 1", name="active_playlist_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("playlist_entries.id"), nullable=False, unique=True
    )
