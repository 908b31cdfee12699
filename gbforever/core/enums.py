from enum import Enum

from gbforever.core.exceptions import InvalidStateError


class PlaylistStatus(str, Enum):
    # Download side, written by the orchestrator
    UNPLAYED = "UNPLAYED"
    PENDING = "PENDING"
    DOWNLOADED = "DOWNLOADED"

    # Playback side, written by the player
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"

    @classmethod
    def parse(cls, value: str) -> "PlaylistStatus":
        """Parse a persisted status string. Unknown text is a corrupted row."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidStateError(
                f"unrecognized playlist status {value!r}",
                hint="the playlist_entries table holds a value this version does not know",
            ) from None

    def can_become(self, target: "PlaylistStatus") -> bool:
        return target in _TRANSITIONS[self]


# Forward-only. PENDING -> PENDING is a re-queue after a failed download.
_TRANSITIONS = {
    PlaylistStatus.UNPLAYED: {PlaylistStatus.PENDING},
    PlaylistStatus.PENDING: {PlaylistStatus.PENDING, PlaylistStatus.DOWNLOADED},
    PlaylistStatus.DOWNLOADED: {PlaylistStatus.ACTIVE},
    PlaylistStatus.ACTIVE: {PlaylistStatus.FINISHED},
    PlaylistStatus.FINISHED: set(),
}
