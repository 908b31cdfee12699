from gbforever.models.video import Video
from gbforever.models.playlist import PlaylistEntry, ActivePlaylist

__all__ = ["Video", "PlaylistEntry", "ActivePlaylist"]
