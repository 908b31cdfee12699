from __future__ import annotations

import json
import logging

from gbforever.core.logging import JobContext, StructuredFormatter, current_video_id


def _record(message):
    return logging.LogRecord("gbforever.test", logging.INFO, __file__, 1, message, None, None)


def test_structured_record_carries_job_context() -> None:
    formatter = StructuredFormatter()
    with JobContext(job_id="job-1", video_id="gb-1"):
        data = json.loads(formatter.format(_record("hello")))

    assert data["message"] == "hello"
    assert data["job_id"] == "job-1"
    assert data["video_id"] == "gb-1"


def test_job_context_restores_previous_values() -> None:
    with JobContext(video_id="outer"):
        with JobContext(video_id="inner"):
            assert current_video_id.get() == "inner"
        assert current_video_id.get() == "outer"
    assert current_video_id.get() is None
