"""Demultiplexes interleaved records into one output file per thread.

Each thread id gets a ThreadSegment that is opened by its ``**START**``
record and closed by its ``**END**`` record. The tracker keeps the segments
after they close so the aggregate queries can run over their lifetimes.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO

from logcluster.errors import SegmentStoreError, ThreadProtocolError
from logcluster.parser import LogRecord, format_record

logger = logging.getLogger(__name__)

START_MARKER = "**START**"
END_MARKER = "**END**"
SEGMENT_FILE_EXTENSION = "log"


@dataclass
class ThreadSegment:
    process_id: str
    thread_id: str
    start_timestamp: datetime
    output_path: str
    source: str | None = None
    end_timestamp: datetime | None = None
    line_count: int = 0
    _handle: IO[str] | None = field(default=None, repr=False, compare=False)

    @property
    def is_open(self) -> bool:
        return self.end_timestamp is None


def segment_path(output_dir: str, process_id: str, thread_id: str) -> str:
    return os.path.join(
        output_dir, f"{process_id}-{thread_id}.{SEGMENT_FILE_EXTENSION}"
    )


def _release(segment: ThreadSegment) -> None:
    """Flush to disk and close the segment's handle."""
    handle = segment._handle
    if handle is None:
        return
    segment._handle = None
    try:
        handle.flush()
        os.fsync(handle.fileno())
    except OSError as exc:
        raise SegmentStoreError(segment.output_path, f"flush failed: {exc}") from exc
    finally:
        handle.close()


class SegmentTracker:
    """Routes each LogRecord to its thread's output file.

    One instance per run; it owns every backing file it opens. Call
    ``close()`` (or use it as a context manager) to release any segment
    that never saw its end marker.
    """

    def __init__(self, output_dir: str):
        self._output_dir = output_dir
        self._segments: dict[str, ThreadSegment] = {}
        self._lock = threading.Lock()
        os.makedirs(output_dir, exist_ok=True)

    @property
    def output_dir(self) -> str:
        return self._output_dir

    @property
    def segments(self) -> list[ThreadSegment]:
        with self._lock:
            return list(self._segments.values())

    def get(self, thread_id: str) -> ThreadSegment | None:
        with self._lock:
            return self._segments.get(thread_id)

    def closed_segments(self) -> list[ThreadSegment]:
        return [s for s in self.segments if not s.is_open]

    def open_segments(self) -> list[ThreadSegment]:
        return [s for s in self.segments if s.is_open]

    def __len__(self) -> int:
        with self._lock:
            return len(self._segments)

    def __enter__(self) -> "SegmentTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, record: LogRecord, source: str | None = None) -> ThreadSegment:
        """Append a record to its thread's segment, opening or closing it as needed.

        Raises ThreadProtocolError for a thread whose first record is not the
        start marker, for records arriving after the thread closed, and for
        thread ids reused by another process or input file. Raises
        SegmentStoreError when the output file cannot be written.
        """
        with self._lock:
            segment = self._segments.get(record.thread_id)
            if segment is None:
                segment = self._open_segment(record, source)
            else:
                self._check_owner(segment, record, source)
            self._append(segment, record)
            return segment

    def _open_segment(self, record: LogRecord, source: str | None) -> ThreadSegment:
        if record.message != START_MARKER:
            raise ThreadProtocolError(
                record.thread_id,
                f"invalid start of thread logs: expected {START_MARKER!r}, "
                f"got {record.message!r}",
            )

        path = segment_path(self._output_dir, record.process_id, record.thread_id)
        try:
            handle = open(path, "w", encoding="utf-8")
        except OSError as exc:
            raise SegmentStoreError(path, f"cannot create segment file: {exc}") from exc

        segment = ThreadSegment(
            process_id=record.process_id,
            thread_id=record.thread_id,
            start_timestamp=record.timestamp,
            output_path=path,
            source=source,
            _handle=handle,
        )
        self._segments[record.thread_id] = segment
        logger.debug("Opened segment %s -> %s", record.thread_id, path)
        return segment

    @staticmethod
    def _check_owner(segment: ThreadSegment, record: LogRecord, source: str | None) -> None:
        if not segment.is_open:
            raise ThreadProtocolError(
                record.thread_id, "record received after thread logs ended"
            )
        if segment._handle is None:
            raise ThreadProtocolError(
                record.thread_id, "tracker closed; segment file already released"
            )
        if record.process_id != segment.process_id:
            raise ThreadProtocolError(
                record.thread_id,
                f"thread id already in use by process {segment.process_id}, "
                f"got process {record.process_id}",
            )
        if source is not None and segment.source is not None and source != segment.source:
            raise ThreadProtocolError(
                record.thread_id,
                f"thread id already in use by {segment.source}, got {source}",
            )

    def _append(self, segment: ThreadSegment, record: LogRecord) -> None:
        if record.message == END_MARKER and record.timestamp < segment.start_timestamp:
            raise ThreadProtocolError(
                record.thread_id, "end of thread logs is earlier than its start"
            )
        try:
            segment._handle.write(format_record(record) + "\n")
        except OSError as exc:
            raise SegmentStoreError(segment.output_path, f"write failed: {exc}") from exc
        segment.line_count += 1

        if record.message == END_MARKER:
            segment.end_timestamp = record.timestamp
            _release(segment)
            logger.debug(
                "Closed segment %s (%d lines)", segment.thread_id, segment.line_count
            )

    def close(self) -> None:
        """Release every still-open segment file. Safe to call repeatedly."""
        with self._lock:
            pending = [s for s in self._segments.values() if s._handle is not None]
            errors = []
            for segment in pending:
                logger.warning(
                    "Thread %s (process %s) has no %s marker; segment left unterminated",
                    segment.thread_id, segment.process_id, END_MARKER,
                )
                try:
                    _release(segment)
                except SegmentStoreError as exc:
                    logger.error("Failed to release segment %s: %s", segment.thread_id, exc)
                    errors.append(exc)
            if errors:
                raise errors[0]
