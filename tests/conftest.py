"""Shared pytest fixtures for the gb-forever test suite.

* No network access: the archive API is served by :class:`FakeHTTPSession`.
* Every test gets its own file-backed SQLite database.
* No Redis or ffmpeg binary is needed.
"""

from __future__ import annotations

import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("VIDEO_PATH", "/tmp/gb-forever-videos")
os.environ.setdefault("STREAM_KEY", "test-stream-key")

import pytest
import requests
from sqlalchemy.orm import sessionmaker

from gbforever.db.base import Base
from gbforever.db import session as db_session
from gbforever.db.repositories import VideoRepository
from gbforever.schemas.catalog import CatalogItem
from gbforever.services.archive import InternetArchive


# ---------------------------------------------------------------------------
# Fake HTTP layer
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code=200, payload=None, body=b"", text=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self._body = body
        self._text = text
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self._text is not None:
            return json.loads(self._text)
        return self._payload

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class FakeHTTPSession:
    """Routes GET requests to queued responses by URL; records every call."""

    def __init__(self):
        self.routes: dict[str, list] = {}
        self.calls: list[tuple[str, dict | None]] = []

    def add(self, url, response):
        self.routes.setdefault(url, []).append(response)

    def get(self, url, params=None, timeout=None, stream=False):
        self.calls.append((url, dict(params) if params else None))
        queued = self.routes.get(url)
        if not queued:
            raise requests.ConnectionError(f"no route for {url}")
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, Exception):
            raise response
        return response


BASE_URL = "https://archive.test"
SEARCH_URL = f"{BASE_URL}/services/search/v1/scrape"


def metadata_payload(identifier, fmt="MPEG4", name=None):
    return {
        "server": "ia800.archive.test",
        "dir": f"/items/{identifier}",
        "files_count": 2,
        "files": [
            {"name": f"{identifier}.jpg", "format": "JPEG", "source": "original", "md5": "a"},
            {"name": name or f"{identifier}.mp4", "format": fmt, "source": "derivative",
             "md5": "b", "size": "8"},
        ],
    }


def add_item(http, identifier, body=b"videodata", fmt="MPEG4"):
    """Serve metadata and media for one archive item."""
    http.add(f"{BASE_URL}/metadata/{identifier}", FakeResponse(payload=metadata_payload(identifier, fmt)))
    http.add(
        f"https://ia800.archive.test/items/{identifier}/{identifier}.mp4",
        FakeResponse(body=body, headers={"Content-Length": str(len(body))}),
    )


@pytest.fixture
def http():
    return FakeHTTPSession()


@pytest.fixture
def archive(http):
    return InternetArchive(base_url=BASE_URL, session=http, timeout=1)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine(tmp_path):
    from gbforever import models  # noqa: F401

    eng = db_session.make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    # Code that falls back to the global SessionLocal gets the test database too
    monkeypatch.setattr(db_session, "SessionLocal", factory)
    monkeypatch.setattr(db_session, "engine", engine)
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def catalog_item(identifier, **overrides):
    data = {"identifier": identifier, "title": f"Title {identifier}"}
    data.update(overrides)
    return CatalogItem(**data)


@pytest.fixture
def make_videos(db):
    def _make(count, prefix="gb"):
        items = [catalog_item(f"{prefix}-{i}") for i in range(count)]
        VideoRepository(db).insert_items(items)
        return [VideoRepository(db).get_by_identifier(item.identifier) for item in items]
    return _make
