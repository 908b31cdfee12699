from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gbforever.db.session import get_db
from gbforever.db.repositories import PlaylistRepository
from gbforever.core.exceptions import InvalidStateError
from gbforever.schemas.playlist import PlaylistEntryOut, ProgressIn, DownloadRequestIn, DownloadRequestOut
from gbforever.workers.queue import enqueue_io, RETRY_DOWNLOAD
from gbforever.workers.jobs import download_videos_job

router = APIRouter(prefix="/api", tags=["playlist"])


@router.get("/playlist/current", response_model=PlaylistEntryOut)
def current_video(db: Session = Depends(get_db)):
    entry = PlaylistRepository(db).current_video()
    if entry is None:
        raise HTTPException(status_code=404, detail="No current video")
    return entry


@router.get("/playlist/upcoming", response_model=list[PlaylistEntryOut])
def upcoming_videos(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return PlaylistRepository(db).peek_next_videos(limit)


@router.post("/playlist/advance", response_model=PlaylistEntryOut)
def advance(db: Session = Depends(get_db)):
    """Finish the current video and move the pointer to the next entry."""
    try:
        entry = PlaylistRepository(db).move_to_next_video()
    except InvalidStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if entry is None:
        raise HTTPException(status_code=404, detail="No next video")
    return entry


@router.post("/playlist/progress", response_model=PlaylistEntryOut)
def record_progress(body: ProgressIn, db: Session = Depends(get_db)):
    """Store the playback offset of the current video."""
    return PlaylistRepository(db).update_progress(body.seconds)


@router.post("/downloads", response_model=DownloadRequestOut, status_code=202)
def request_downloads(body: DownloadRequestIn):
    """
    Queue a download batch on the io queue.

    Row ids and archive identifiers may be mixed; they are resolved when the
    job runs.
    """
    values = [*body.video_ids, *body.identifiers]
    if not values:
        raise HTTPException(status_code=400, detail="No videos given")
    job = enqueue_io(download_videos_job, values, retry=RETRY_DOWNLOAD)
    return DownloadRequestOut(job_id=job.id, queued=len(values))
