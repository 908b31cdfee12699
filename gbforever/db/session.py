from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gbforever.core.settings import settings


def make_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are used from the download worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
