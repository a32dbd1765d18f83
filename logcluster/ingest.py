"""Reads raw per-process log files and feeds every line through the tracker."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Generator

from logcluster.errors import IngestError, LogClusterError
from logcluster.parser import parse_line
from logcluster.tracker import SegmentTracker

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    files: int = 0
    lines: int = 0
    failures: list[IngestError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def list_input_files(input_dir: str) -> list[str]:
    """Return the regular, non-hidden files in input_dir, sorted by name.

    Raises FileNotFoundError if input_dir does not exist.
    """
    if not os.path.isdir(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    paths = []
    for name in sorted(os.listdir(input_dir)):
        path = os.path.join(input_dir, name)
        if name.startswith(".") or not os.path.isfile(path):
            continue
        paths.append(path)
    return paths


def read_lines(path: str) -> Generator[tuple[int, str], None, None]:
    """Yield (line_number, line) for each line in file order, 1-based.

    Lines are split on ``\\n`` only; a bare ``\\r`` stays inside the message.
    """
    with open(path, "rb") as f:
        for line_number, raw in enumerate(f, 1):
            yield line_number, raw.decode("utf-8")


def ingest_file(path: str, tracker: SegmentTracker) -> int:
    """Parse every line of one raw log file and write it to the tracker.

    Stops at the first bad line; lines written before it stay written.
    Returns the number of lines ingested, or raises IngestError.
    """
    line_number = None
    count = 0
    try:
        for line_number, line in read_lines(path):
            record = parse_line(line)
            tracker.write(record, source=path)
            count += 1
    except (LogClusterError, OSError, UnicodeDecodeError) as exc:
        raise IngestError(path, line_number, exc) from exc
    return count


def ingest_directory(input_dir: str, tracker: SegmentTracker, workers: int = 1) -> IngestReport:
    """Ingest every file in input_dir. A failing file does not stop the others."""
    paths = list_input_files(input_dir)
    report = IngestReport()
    logger.info("Ingesting %d file(s) from %s", len(paths), input_dir)

    def _record(path: str, outcome: int | IngestError) -> None:
        report.files += 1
        if isinstance(outcome, IngestError):
            logger.error("%s", outcome)
            report.failures.append(outcome)
        else:
            logger.info("Ingested %s (%d lines)", path, outcome)
            report.lines += outcome

    def _run(path: str) -> int | IngestError:
        try:
            return ingest_file(path, tracker)
        except IngestError as exc:
            return exc

    if workers <= 1:
        for path in paths:
            _record(path, _run(path))
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(_run, path): path for path in paths}
            for future in as_completed(futures):
                _record(futures[future], future.result())
        report.failures.sort(key=lambda e: e.path)

    return report
