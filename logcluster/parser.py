"""Log line parser: frozen dataclass + fixed-grammar splitting.

Line grammar:
    <processId>:<threadId>::<threadName> <YYYY-MM-DD HH:MM:SS,mmm> - <message>
"""

import re
from dataclasses import dataclass
from datetime import datetime

from logcluster.errors import LogLineParseError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S,%f"
TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d{3}$")

THREAD_SEPARATOR = "::"
ID_SEPARATOR = ":"
MESSAGE_SEPARATOR = " - "


@dataclass(frozen=True)
class LogRecord:
    process_id: str
    thread_id: str
    thread_name: str
    timestamp: datetime
    message: str


def parse_timestamp(text: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS,mmm`` (exactly three millisecond digits).

    Raises ValueError on any other shape or an impossible date.
    """
    if not TIMESTAMP_PATTERN.match(text):
        raise ValueError(f"timestamp {text!r} does not match YYYY-MM-DD HH:MM:SS,mmm")
    return datetime.strptime(text, TIMESTAMP_FORMAT)


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S,") + f"{ts.microsecond // 1000:03d}"


def _strip_terminator(line: str) -> str:
    """Remove exactly one trailing ``\\r\\n`` or ``\\n``."""
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def parse_line(line: str) -> LogRecord:
    """Parse a single raw line into a LogRecord.

    Only the trailing line terminator is stripped; the message keeps any
    other whitespace. Raises LogLineParseError when the line does not match
    the grammar; no partial record is ever returned.
    """
    stripped = _strip_terminator(line)

    head, sep, tail = stripped.partition(THREAD_SEPARATOR)
    if not sep:
        raise LogLineParseError(stripped, "missing '::' separator")

    ids = head.split(ID_SEPARATOR)
    if len(ids) != 2:
        raise LogLineParseError(stripped, "expected <processId>:<threadId>")
    process_id, thread_id = ids

    name_and_ts, sep, message = tail.partition(MESSAGE_SEPARATOR)
    if not sep:
        raise LogLineParseError(stripped, "missing ' - ' message separator")

    thread_name, sep, ts_text = name_and_ts.partition(" ")
    if not sep:
        raise LogLineParseError(stripped, "expected <threadName> <timestamp>")

    if not process_id or not thread_id or not thread_name:
        raise LogLineParseError(stripped, "empty process id, thread id or thread name")

    try:
        timestamp = parse_timestamp(ts_text)
    except ValueError as exc:
        raise LogLineParseError(stripped, f"invalid timestamp ({exc})") from exc

    return LogRecord(
        process_id=process_id,
        thread_id=thread_id,
        thread_name=thread_name,
        timestamp=timestamp,
        message=message,
    )


def format_record(record: LogRecord) -> str:
    """Render a record back into the canonical line form (no newline)."""
    return (
        f"{record.process_id}{ID_SEPARATOR}{record.thread_id}{THREAD_SEPARATOR}"
        f"{record.thread_name} {format_timestamp(record.timestamp)}"
        f"{MESSAGE_SEPARATOR}{record.message}"
    )
