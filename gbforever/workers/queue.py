"""
Queue Configuration - RQ io queue with retry support
Whole-run jobs (ingestion, rebuild, cross-process download requests).
"""
from redis import Redis
from rq import Queue, Retry
from gbforever.core.settings import settings

# Redis connection
redis_conn = Redis.from_url(settings.redis_url)

# IO Queue: archive search, metadata, media downloads
io_queue = Queue(settings.rq_queue_io, connection=redis_conn)


# =============================================================================
# Retry Configuration
# =============================================================================

def get_retry_config(max_retries: int = 3) -> Retry:
    """
    Default retry configuration with exponential backoff.
    Intervals: 30s, 60s, 120s
    """
    return Retry(max=max_retries, interval=[30, 60, 120][:max_retries])


# A failed ingestion run is retried wholesale; inserts are idempotent
RETRY_INGEST = get_retry_config(3)
RETRY_DOWNLOAD = get_retry_config(2)


# =============================================================================
# Helper Functions
# =============================================================================

def enqueue_io(func, *args, job_timeout=3600, retry=RETRY_INGEST, **kwargs):
    """Enqueue job to IO queue with retry"""
    return io_queue.enqueue(
        func, *args,
        job_timeout=job_timeout,
        retry=retry,
        **kwargs
    )
