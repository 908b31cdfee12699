"""
Internet Archive client - cursor-paginated search, item metadata, media download.
"""
from __future__ import annotations

import logging
import os
from typing import Callable, Iterator, Optional

import requests
from pydantic import ValidationError

from gbforever.core.settings import settings
from gbforever.core.exceptions import NotFoundError, UpstreamIOError, FilesystemIOError
from gbforever.schemas.catalog import CatalogItem, SearchResponse, ItemDetails, ItemFile

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]

CHUNK_SIZE = 1024 * 1024


class InternetArchive:
    def __init__(
        self,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.archive_base_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or settings.http_timeout_seconds

    def _get_json(self, url: str, params: dict | None = None, what: str = "response"):
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise UpstreamIOError(f"failed to fetch {what}: {e}") from e
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamIOError(f"failed to decode {what}: {e}") from e

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search(self, query: str, count: int, cursor: str | None = None) -> SearchResponse:
        """Fetch one page of the scrape API. ``cursor`` is passed back verbatim."""
        params = {"q": query, "fields": "*", "count": str(count)}
        if cursor is not None:
            params["cursor"] = cursor

        data = self._get_json(
            f"{self.base_url}/services/search/v1/scrape", params=params, what="search results"
        )
        try:
            return SearchResponse.model_validate(data)
        except ValidationError as e:
            raise UpstreamIOError(f"failed to decode search results: {e}") from e

    def search_all(self, query: str, page_size: int | None = None) -> Iterator[CatalogItem]:
        """
        Lazily walk every page of a search.

        Pages are fetched strictly one after another, each with the cursor of
        the previous response, until a response carries no cursor. Any page
        failure raises UpstreamIOError and ends the walk.
        """
        page_size = page_size or settings.search_page_size
        cursor = None
        while True:
            logger.info(f"searching {query!r} with cursor: {cursor}")
            page = self.search(query, page_size, cursor)
            yield from page.items

            cursor = page.cursor
            if cursor is None:
                break

    # -------------------------------------------------------------------------
    # Item details & download
    # -------------------------------------------------------------------------

    def get_item_details(self, identifier: str) -> ItemDetails:
        url = f"{self.base_url}/metadata/{identifier}"
        logger.info(f"Making request to {url}")
        data = self._get_json(url, what=f"metadata for {identifier}")
        # Unknown identifiers come back as an empty object
        if not data:
            raise NotFoundError(f"archive item not found: {identifier}")
        try:
            return ItemDetails.model_validate(data)
        except ValidationError as e:
            raise UpstreamIOError(f"failed to decode metadata for {identifier}: {e}") from e

    @staticmethod
    def select_video_file(details: ItemDetails, video_format: str | None = None) -> ItemFile:
        video_format = video_format or settings.video_format
        for f in details.files:
            if f.format == video_format:
                return f
        raise NotFoundError(f"no {video_format} video file found")

    @staticmethod
    def download_url(details: ItemDetails, file: ItemFile) -> str:
        return f"https://{details.server}{details.directory}/{file.name}"

    def download_video(
        self,
        identifier: str,
        folder: str,
        progress: ProgressCallback | None = None,
    ) -> str:
        """
        Download the item's video file into ``folder``.

        Streams into a ``.part`` file and renames it into place once complete.
        Returns the final file path.
        """
        details = self.get_item_details(identifier)
        video_file = self.select_video_file(details)
        url = self.download_url(details, video_file)
        logger.info(f"Downloading from URL {url}")

        final_path = os.path.join(
            os.path.abspath(folder), f"{identifier}-{os.path.basename(video_file.name)}"
        )
        part_path = final_path + ".part"

        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as e:
            raise FilesystemIOError(f"failed to create video folder {folder}: {e}") from e

        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                total = _content_length(resp, video_file)
                self._stream_to_file(resp, part_path, total, progress)
        except requests.RequestException as e:
            _discard(part_path)
            raise UpstreamIOError(f"failed to download {identifier}: {e}") from e

        try:
            os.replace(part_path, final_path)
        except OSError as e:
            _discard(part_path)
            raise FilesystemIOError(f"failed to move {part_path} into place: {e}") from e

        logger.info(f"Downloaded {identifier} to {final_path}")
        return final_path

    def _stream_to_file(self, resp, part_path: str, total: int | None, progress):
        done = 0
        last_step = -1
        try:
            with open(part_path, "wb") as out:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    out.write(chunk)
                    done += len(chunk)
                    if progress:
                        progress(done, total)
                    if total:
                        step = done * 10 // total
                        if step != last_step:
                            last_step = step
                            logger.info(f"{os.path.basename(part_path)}: {min(step * 10, 100)}%")
        except OSError as e:
            _discard(part_path)
            raise FilesystemIOError(f"failed to write {part_path}: {e}") from e


def _content_length(resp, video_file: ItemFile) -> int | None:
    for value in (resp.headers.get("Content-Length"), video_file.size):
        try:
            if value is not None:
                return int(value)
        except (TypeError, ValueError):
            continue
    return None


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"could not remove partial file {path}: {e}")
