from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_env: str = Field(default="dev", alias="APP_ENV")

    database_url: str = Field(alias="DATABASE_URL")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    rq_queue_io: str = Field(default="io", alias="RQ_QUEUE_IO")

    # Where downloaded media and the concat manifest live
    video_path: str = Field(alias="VIDEO_PATH")
    concat_file_name: str = Field(default="playlist.txt", alias="CONCAT_FILE_NAME")

    stream_key: str = Field(alias="STREAM_KEY")
    stream_url_template: str = Field(
        default="rtmp://live-ber.twitch.tv/app/{stream_key}", alias="STREAM_URL_TEMPLATE"
    )

    # Upstream archive
    archive_base_url: str = Field(default="https://archive.org", alias="ARCHIVE_BASE_URL")
    search_query: str = Field(default="collection:giant-bomb-archive", alias="SEARCH_QUERY")
    search_page_size: int = Field(default=10_000, alias="SEARCH_PAGE_SIZE")
    http_timeout_seconds: int = Field(default=30, alias="HTTP_TIMEOUT_SECONDS")
    video_format: str = Field(default="MPEG4", alias="VIDEO_FORMAT")

    # Ingestion
    ingest_batch_size: int = Field(default=10_000, alias="INGEST_BATCH_SIZE")
    ingest_interval_seconds: int = Field(default=86_400, alias="INGEST_INTERVAL_SECONDS")

    # Downloads
    download_queue_capacity: int = Field(default=32, alias="DOWNLOAD_QUEUE_CAPACITY")
    download_max_workers: int = Field(default=4, alias="DOWNLOAD_MAX_WORKERS")
    download_max_retries: int = Field(default=3, alias="DOWNLOAD_MAX_RETRIES")
    download_retry_base_seconds: int = Field(default=30, alias="DOWNLOAD_RETRY_BASE_SECONDS")
    download_max_attempts: int = Field(default=5, alias="DOWNLOAD_MAX_ATTEMPTS")
    # PENDING entries with no outcome after this long are offered again
    download_stale_after_seconds: int = Field(default=7200, alias="DOWNLOAD_STALE_AFTER_SECONDS")

    # Playback
    lookahead_count: int = Field(default=3, alias="LOOKAHEAD_COUNT")
    player_poll_interval_seconds: int = Field(default=5, alias="PLAYER_POLL_INTERVAL_SECONDS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_structured: bool = Field(default=False, alias="LOG_STRUCTURED")

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
