from sqlalchemy import select

from gbforever.db.context import get_db_session
from gbforever.db.repositories import PlaylistRepository, VideoRepository
from gbforever.models import PlaylistEntry

with get_db_session() as db:
    playlist = PlaylistRepository(db)
    videos = VideoRepository(db)

    print(f"Videos: {videos.count()} | Playlist entries: {playlist.count()}")

    pointer = playlist.pointer_entry()
    if pointer is None:
        print("No active pointer.")
    else:
        print(f"Pointer -> entry {pointer.id} ({pointer.status})")

    print(f"\n{'Entry':<8} | {'Status':<11} | {'Tries':<5} | {'Identifier'}")
    print("-" * 80)
    entries = db.scalars(
        select(PlaylistEntry)
        .where(PlaylistEntry.id >= (pointer.id if pointer else 0))
        .order_by(PlaylistEntry.id)
        .limit(10)
    )
    for entry in entries:
        video = videos.get_by_id(entry.video_id)
        print(f"{entry.id:<8} | {entry.status:<11} | {entry.attempts:<5} | {video.identifier}")
        if entry.error_message:
            print(f"  [ERROR] {entry.error_message}")
        if entry.file_path:
            print(f"  {entry.file_path}")
