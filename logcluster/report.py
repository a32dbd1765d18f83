"""Output formatters for query results — text and JSON."""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime

from logcluster.parser import format_timestamp
from logcluster.queries import (
    ActiveThread,
    ConcurrencyPeak,
    RuntimeStats,
    active_threads,
    peak_concurrency,
    runtime_stats,
)
from logcluster.tracker import ThreadSegment

ACTIVE_THREADS_HEADER = "Thread ID\t\tProcess ID\t\tLogs Filepath"


@dataclass
class QueryReport:
    active_threads: list[ActiveThread]
    peak: ConcurrencyPeak
    runtime: RuntimeStats
    unterminated_threads: list[str] = field(default_factory=list)


def _number_or_none(value: float) -> float | None:
    return None if math.isnan(value) else value


def format_active_threads_text(threads: list[ActiveThread]) -> str:
    if not threads:
        return ""
    lines = [ACTIVE_THREADS_HEADER]
    for th in threads:
        lines.append(f"{th.thread_id}\t\t{th.process_id}\t\t{th.output_path}")
    return "\n".join(lines)


def format_peak_text(peak: ConcurrencyPeak) -> str:
    epoch = format_timestamp(peak.epoch) if peak.epoch is not None else "n/a"
    return (
        f"The highest count of concurrent threads running in any second was "
        f"[{peak.count}]. The epoch at which the maximum concurrent threads "
        f"were alive was: [{epoch}]"
    )


def format_runtime_text(runtime: RuntimeStats) -> str:
    if runtime.count == 0:
        return "The average and stdev of the all threads lifetime are: avg=[n/a] stdev=[n/a]"
    return (
        f"The average and stdev of the all threads lifetime are: "
        f"avg=[{runtime.mean_ms:f} ms] stdev=[{runtime.stdev_ms:f} ms]"
    )


def format_report_text(report: QueryReport) -> str:
    """Human-readable summary of all three queries."""
    sections = []
    table = format_active_threads_text(report.active_threads)
    if table:
        sections.append(table)
    sections.append(format_peak_text(report.peak))
    sections.append(format_runtime_text(report.runtime))
    if report.unterminated_threads:
        sections.append(
            f"Unterminated threads excluded from queries "
            f"({len(report.unterminated_threads)}): "
            + ", ".join(report.unterminated_threads)
        )
    return "\n\n".join(sections)


def format_report_json(report: QueryReport) -> str:
    epoch = format_timestamp(report.peak.epoch) if report.peak.epoch is not None else None
    return json.dumps({
        "active_threads": [
            {
                "thread_id": th.thread_id,
                "process_id": th.process_id,
                "output_path": th.output_path,
            }
            for th in report.active_threads
        ],
        "peak_concurrency": {
            "count": report.peak.count,
            "epoch": epoch,
        },
        "runtime": {
            "count": report.runtime.count,
            "mean_ms": _number_or_none(report.runtime.mean_ms),
            "stdev_ms": _number_or_none(report.runtime.stdev_ms),
        },
        "unterminated_threads": report.unterminated_threads,
    }, indent=2)


def build_report(segments: list[ThreadSegment], t1: datetime, t2: datetime) -> QueryReport:
    """Run all three queries over the tracker's segments."""
    return QueryReport(
        active_threads=active_threads(segments, t1, t2),
        peak=peak_concurrency(segments),
        runtime=runtime_stats(segments),
        unterminated_threads=[s.thread_id for s in segments if s.is_open],
    )
