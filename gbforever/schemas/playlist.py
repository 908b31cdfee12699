from pydantic import BaseModel, Field

class PlaylistEntryOut(BaseModel):
    id: int
    video_id: int
    status: str
    file_path: str | None = None
    last_progress: float | None = None
    attempts: int
    error_message: str | None = None

    class Config:
        from_attributes = True


class ProgressIn(BaseModel):
    seconds: float = Field(ge=0)


class DownloadRequestIn(BaseModel):
    video_ids: list[int] = Field(default_factory=list)
    identifiers: list[str] = Field(default_factory=list)


class DownloadRequestOut(BaseModel):
    job_id: str
    queued: int
