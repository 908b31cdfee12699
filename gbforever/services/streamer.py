import ffmpeg
import logging
import os
from typing import Optional

from gbforever.core.settings import settings

logger = logging.getLogger(__name__)


def stream_destination(stream_key: str) -> str:
    return settings.stream_url_template.format(stream_key=stream_key)


def build_stream(concat_file: str, stream_key: str):
    """
    Read the concat manifest in real time and push it to the RTMP ingest.
    """
    source = ffmpeg.input(concat_file, f="concat", safe=0, re=None)
    return ffmpeg.output(
        source,
        stream_destination(stream_key),
        format="flv",
        preset="veryfast",
        pix_fmt="yuv420p",
        g=50,
        ac=2,
        ar=44100,
        **{
            "c:v": "libx264",
            "b:v": "6000k",
            "maxrate": "6000k",
            "bufsize": "6000k",
            "c:a": "aac",
            "b:a": "160k",
        },
    )


class Streamer:
    def __init__(self, concat_file: str, stream_key: Optional[str] = None):
        self.concat_file = os.path.abspath(concat_file)
        self.stream_key = stream_key or settings.stream_key
        self.process = None

    def command(self) -> list[str]:
        return ffmpeg.compile(build_stream(self.concat_file, self.stream_key))

    def start(self):
        logger.info(f"starting stream from {self.concat_file}")
        try:
            self.process = build_stream(self.concat_file, self.stream_key).run_async(quiet=True)
        except Exception as e:
            logger.error(f"error starting stream: {e}")
            raise
        return self.process

    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def stop(self) -> None:
        if self.is_running():
            self.process.terminate()
            self.process.wait()
        self.process = None
