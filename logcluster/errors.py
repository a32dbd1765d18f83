"""Exception types raised while clustering thread logs."""


class LogClusterError(Exception):
    """Base class for every error raised by logcluster."""


class LogLineParseError(LogClusterError, ValueError):
    """Raised when a line does not follow the fixed log-line grammar."""

    def __init__(self, line: str, reason: str = "log line parse error"):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class ThreadProtocolError(LogClusterError):
    """Raised when a record arrives out of order for its thread."""

    def __init__(self, thread_id: str, reason: str):
        super().__init__(f"{reason} (thread {thread_id})")
        self.thread_id = thread_id
        self.reason = reason


class SegmentStoreError(LogClusterError):
    """Raised when a thread's output file cannot be created, written or flushed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason} [{path}]")
        self.path = path
        self.reason = reason


class IngestError(LogClusterError):
    """Raised when ingestion of one raw log file is aborted.

    The underlying error is chained as ``__cause__``. ``line_number`` is
    ``None`` when the file itself could not be read.
    """

    def __init__(self, path: str, line_number: int | None, cause: Exception):
        where = f"{path}:{line_number}" if line_number is not None else path
        super().__init__(f"error ingesting {where}: {cause}")
        self.path = path
        self.line_number = line_number
        self.cause = cause
