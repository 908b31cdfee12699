from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from gbforever.db import session as db_session


@contextmanager
def get_db_session(session_factory: Optional[Callable[[], Session]] = None) -> Iterator[Session]:
    """Yield a session; roll back on error, always close."""
    db = (session_factory or db_session.SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
