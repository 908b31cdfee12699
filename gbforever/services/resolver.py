"""
Video Resolver - turn a VideoId into the archive identifier and row id.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from gbforever.core.exceptions import NotFoundError
from gbforever.db.repositories import VideoRepository


@dataclass(frozen=True)
class ByInternalId:
    id: int

    def __str__(self) -> str:
        return f"video#{self.id}"


@dataclass(frozen=True)
class ByExternalIdentifier:
    identifier: str

    def __str__(self) -> str:
        return self.identifier


VideoId = Union[ByInternalId, ByExternalIdentifier]


def video_id_from_value(value: int | str) -> VideoId:
    """Build a VideoId from a raw API value: ints are row ids, strings identifiers."""
    if isinstance(value, bool):
        raise TypeError(f"not a video id: {value!r}")
    if isinstance(value, int):
        return ByInternalId(value)
    if isinstance(value, str):
        return ByExternalIdentifier(value)
    raise TypeError(f"not a video id: {value!r}")


def resolve(db: Session, video_id: VideoId) -> tuple[str, int]:
    """Return ``(identifier, internal_id)`` for a video, NotFoundError if it has no row."""
    repo = VideoRepository(db)
    if isinstance(video_id, ByInternalId):
        video = repo.get_by_id(video_id.id)
    elif isinstance(video_id, ByExternalIdentifier):
        video = repo.get_by_identifier(video_id.identifier)
    else:
        raise TypeError(f"not a video id: {video_id!r}")

    if video is None:
        raise NotFoundError(f"video not found: {video_id}")
    return video.identifier, video.id
