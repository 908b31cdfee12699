import logging
import os
from typing import Iterable

from gbforever.core.exceptions import FilesystemIOError

logger = logging.getLogger(__name__)


def _quote(path: str) -> str:
    # ffmpeg concat syntax: close the quote, escaped quote, reopen
    return "'" + path.replace("'", "'\\''") + "'"


class ConcatFile:
    """
    ffmpeg concat-demuxer playlist, replaced atomically on every write
    so the encoder never reads a half-written file.
    """
    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.entries: list[str] = []

    @property
    def temp_path(self) -> str:
        stem, ext = os.path.splitext(self.path)
        return f"{stem}_temp{ext}"

    def file_content(self) -> str:
        return "".join(f"file {_quote(e)}\n" for e in self.entries)

    def write(self, paths: Iterable[str]) -> bool:
        """Replace the entries. Returns False when nothing changed."""
        paths = list(paths)
        if paths == self.entries and os.path.exists(self.path):
            return False
        self.entries = paths

        temp_path = self.temp_path
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(self.file_content())
            os.replace(temp_path, self.path)
        except OSError as e:
            raise FilesystemIOError(f"failed to write concat file {self.path}: {e}") from e

        logger.info(f"wrote {len(paths)} entries to {self.path}")
        return True

    def append_video(self, path: str) -> None:
        self.write(self.entries + [path])
