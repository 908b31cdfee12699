from rq import Worker
from gbforever.core.settings import settings
from gbforever.core.logging import setup_logging
from gbforever.workers.queue import io_queue, redis_conn

if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)
    w = Worker([io_queue], connection=redis_conn)
    w.work()
