"""Shared pytest fixtures for the logcluster test suite."""

from __future__ import annotations

from datetime import datetime

import pytest

from logcluster.parser import LogRecord
from logcluster.tracker import SegmentTracker, ThreadSegment


def make_record(
    thread_id: str = "t1",
    message: str = "working",
    ts: str = "2020-08-09 18:59:25,200",
    process_id: str = "100",
    thread_name: str = "worker",
) -> LogRecord:
    return LogRecord(
        process_id=process_id,
        thread_id=thread_id,
        thread_name=thread_name,
        timestamp=datetime.strptime(ts, "%Y-%m-%d %H:%M:%S,%f"),
        message=message,
    )


def make_segment(
    thread_id: str,
    start: datetime,
    end: datetime | None,
    process_id: str = "100",
) -> ThreadSegment:
    return ThreadSegment(
        process_id=process_id,
        thread_id=thread_id,
        start_timestamp=start,
        end_timestamp=end,
        output_path=f"/out/{process_id}-{thread_id}.log",
    )


@pytest.fixture()
def tracker(tmp_path) -> SegmentTracker:
    """A tracker writing into a fresh output directory; closed after the test."""
    t = SegmentTracker(str(tmp_path / "mergedlogs"))
    yield t
    t.close()


@pytest.fixture()
def write_log(tmp_path):
    """Write lines into tmp_path/rawlogs/<name> and return the file path."""
    raw_dir = tmp_path / "rawlogs"
    raw_dir.mkdir(exist_ok=True)

    def _write(name: str, lines: list[str]) -> str:
        path = raw_dir / name
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return str(path)

    return _write
