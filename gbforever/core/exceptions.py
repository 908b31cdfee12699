"""Exception hierarchy for gb-forever.

Every error that crosses a layer boundary inherits from
:class:`GbForeverError`. Raw library exceptions (requests, pydantic,
SQLAlchemy, OSError) are caught where the library is called and re-raised
as one of the typed subclasses below.

Hierarchy
---------
GbForeverError
├── NotFoundError
├── UpstreamIOError
├── StorageIOError
├── FilesystemIOError
├── InvalidStateError
└── DownloadBatchError
"""

from __future__ import annotations


class GbForeverError(Exception):
    """Base exception for all gb-forever errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint


class NotFoundError(GbForeverError):
    """A video, playlist entry or downloadable file does not exist."""


class UpstreamIOError(GbForeverError):
    """Network or decode failure talking to the archive API."""


class StorageIOError(GbForeverError):
    """A database transaction or query failed."""


class FilesystemIOError(GbForeverError):
    """Writing or renaming a file on disk failed."""


class InvalidStateError(GbForeverError):
    """Illegal playlist status transition or a malformed persisted status."""


class DownloadBatchError(GbForeverError):
    """One or more downloads of a fan-out failed.

    ``errors`` maps each failed video id to the exception it raised.
    Downloads that succeeded in the same batch stay committed.
    """

    def __init__(self, errors: dict) -> None:
        self.errors = errors
        summary = "; ".join(f"{video_id}: {exc}" for video_id, exc in errors.items())
        super().__init__(f"{len(errors)} download(s) failed: {summary}")
