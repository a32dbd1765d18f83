"""Aggregate queries over finished thread segments.

Only closed segments take part: a segment that never saw its end marker
has no lifetime and is skipped by every query here.
"""

import math
import statistics
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from logcluster.tracker import ThreadSegment

# Sweep-line event ordering at equal timestamps.
_END = 0
_START = 1
_ZERO_LENGTH_END = 2


@dataclass(frozen=True)
class ActiveThread:
    thread_id: str
    process_id: str
    output_path: str


@dataclass(frozen=True)
class ConcurrencyPeak:
    count: int
    epoch: datetime | None


@dataclass(frozen=True)
class RuntimeStats:
    count: int
    mean_ms: float
    stdev_ms: float


def _closed(segments: Iterable[ThreadSegment]) -> list[ThreadSegment]:
    return [s for s in segments if not s.is_open]


def segment_runtime_ms(segment: ThreadSegment) -> float:
    if segment.is_open:
        raise ValueError(f"thread {segment.thread_id} has not ended")
    return (segment.end_timestamp - segment.start_timestamp) / timedelta(milliseconds=1)


def active_threads(
    segments: Iterable[ThreadSegment], t1: datetime, t2: datetime
) -> list[ActiveThread]:
    """Threads whose [start, end] overlaps [t1, t2]; touching endpoints count."""
    if t1 > t2:
        raise ValueError(f"start of range ({t1}) is after end of range ({t2})")
    result = []
    for segment in _closed(segments):
        if t2 < segment.start_timestamp or t1 > segment.end_timestamp:
            continue
        result.append(ActiveThread(
            thread_id=segment.thread_id,
            process_id=segment.process_id,
            output_path=segment.output_path,
        ))
    return result


def peak_concurrency(segments: Iterable[ThreadSegment]) -> ConcurrencyPeak:
    """Highest number of threads alive at the instant some thread starts.

    A thread is alive over [start, end); one that ends exactly when another
    starts does not overlap it. A zero-length thread still counts at its own
    start. Ties resolve to the earliest epoch.
    """
    events = []
    for segment in _closed(segments):
        start, end = segment.start_timestamp, segment.end_timestamp
        events.append((start, _START))
        events.append((end, _ZERO_LENGTH_END if end == start else _END))
    events.sort()

    alive = 0
    peak = ConcurrencyPeak(count=0, epoch=None)
    for ts, kind in events:
        if kind == _START:
            alive += 1
            if alive > peak.count:
                peak = ConcurrencyPeak(count=alive, epoch=ts)
        else:
            alive -= 1
    return peak


def runtime_stats(segments: Iterable[ThreadSegment]) -> RuntimeStats:
    """Mean and population standard deviation of thread runtimes in ms.

    Both are NaN when there are no closed segments.
    """
    runtimes = [segment_runtime_ms(s) for s in _closed(segments)]
    if not runtimes:
        return RuntimeStats(count=0, mean_ms=math.nan, stdev_ms=math.nan)
    return RuntimeStats(
        count=len(runtimes),
        mean_ms=statistics.mean(runtimes),
        stdev_ms=statistics.pstdev(runtimes),
    )
