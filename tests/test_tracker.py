"""Tests for logcluster.tracker."""

import os
from datetime import datetime

import pytest

from conftest import make_record
from logcluster.errors import SegmentStoreError, ThreadProtocolError
from logcluster.parser import parse_line
from logcluster.tracker import END_MARKER, START_MARKER, SegmentTracker, segment_path


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


class TestSegmentLifecycle:
    def test_start_marker_opens_segment(self, tracker):
        segment = tracker.write(make_record(message=START_MARKER))
        assert segment.is_open
        assert segment.start_timestamp == datetime(2020, 8, 9, 18, 59, 25, 200000)
        assert segment.end_timestamp is None
        assert segment.output_path == os.path.join(tracker.output_dir, "100-t1.log")
        assert os.path.exists(segment.output_path)

    def test_end_marker_closes_segment(self, tracker):
        tracker.write(make_record(message=START_MARKER, ts="2020-08-09 18:59:25,200"))
        tracker.write(make_record(message="step", ts="2020-08-09 18:59:25,250"))
        segment = tracker.write(make_record(message=END_MARKER, ts="2020-08-09 18:59:25,300"))
        assert not segment.is_open
        assert segment.end_timestamp == datetime(2020, 8, 9, 18, 59, 25, 300000)
        assert segment.line_count == 3
        assert _read(segment.output_path) == [
            "100:t1::worker 2020-08-09 18:59:25,200 - **START**",
            "100:t1::worker 2020-08-09 18:59:25,250 - step",
            "100:t1::worker 2020-08-09 18:59:25,300 - **END**",
        ]

    def test_first_record_must_be_start_marker(self, tracker):
        with pytest.raises(ThreadProtocolError, match="invalid start of thread logs"):
            tracker.write(make_record(message="hello"))
        assert len(tracker) == 0
        assert tracker.get("t1") is None
        assert os.listdir(tracker.output_dir) == []

    def test_end_marker_as_first_record_rejected(self, tracker):
        with pytest.raises(ThreadProtocolError):
            tracker.write(make_record(message=END_MARKER))
        assert len(tracker) == 0

    def test_write_after_close_rejected(self, tracker):
        tracker.write(make_record(message=START_MARKER))
        tracker.write(make_record(message=END_MARKER))
        with pytest.raises(ThreadProtocolError, match="after thread logs ended"):
            tracker.write(make_record(message="late"))
        assert tracker.get("t1").line_count == 2

    def test_end_before_start_rejected(self, tracker):
        tracker.write(make_record(message=START_MARKER, ts="2020-08-09 18:59:25,200"))
        with pytest.raises(ThreadProtocolError, match="earlier than its start"):
            tracker.write(make_record(message=END_MARKER, ts="2020-08-09 18:59:25,100"))
        assert tracker.get("t1").is_open

    def test_existing_output_file_is_replaced(self, tracker):
        path = segment_path(tracker.output_dir, "100", "t1")
        with open(path, "w") as f:
            f.write("stale line\n")
        tracker.write(make_record(message=START_MARKER))
        tracker.write(make_record(message=END_MARKER))
        assert len(_read(path)) == 2


class TestDemultiplexing:
    def test_interleaved_threads_are_separated(self, tracker):
        lines = [
            "1:a::w 2020-08-09 18:59:25,000 - **START**",
            "1:b::w 2020-08-09 18:59:25,001 - **START**",
            "1:a::w 2020-08-09 18:59:25,002 - a1",
            "1:c::w 2020-08-09 18:59:25,003 - **START**",
            "1:b::w 2020-08-09 18:59:25,004 - b1",
            "1:a::w 2020-08-09 18:59:25,005 - a2",
            "1:c::w 2020-08-09 18:59:25,006 - **END**",
            "1:b::w 2020-08-09 18:59:25,007 - **END**",
            "1:a::w 2020-08-09 18:59:25,008 - **END**",
        ]
        for line in lines:
            tracker.write(parse_line(line))

        for thread_id in ("a", "b", "c"):
            segment = tracker.get(thread_id)
            expected = [line for line in lines if line.startswith(f"1:{thread_id}::")]
            content = _read(segment.output_path)
            assert content == expected
            assert content[0].endswith(START_MARKER)
            assert content[-1].endswith(END_MARKER)

    def test_segments_in_first_seen_order(self, tracker):
        for tid in ("z", "a", "m"):
            tracker.write(make_record(thread_id=tid, message=START_MARKER))
        assert [s.thread_id for s in tracker.segments] == ["z", "a", "m"]

    def test_open_and_closed_views(self, tracker):
        tracker.write(make_record(thread_id="x", message=START_MARKER))
        tracker.write(make_record(thread_id="y", message=START_MARKER))
        tracker.write(make_record(thread_id="y", message=END_MARKER))
        assert [s.thread_id for s in tracker.open_segments()] == ["x"]
        assert [s.thread_id for s in tracker.closed_segments()] == ["y"]


class TestCollisions:
    def test_other_process_reusing_thread_id(self, tracker):
        tracker.write(make_record(process_id="1", message=START_MARKER))
        with pytest.raises(ThreadProtocolError, match="already in use by process 1"):
            tracker.write(make_record(process_id="2", message="hi"))

    def test_other_source_reusing_thread_id(self, tracker):
        tracker.write(make_record(message=START_MARKER), source="a.log")
        with pytest.raises(ThreadProtocolError, match="already in use by a.log"):
            tracker.write(make_record(message="hi"), source="b.log")

    def test_same_source_is_accepted(self, tracker):
        tracker.write(make_record(message=START_MARKER), source="a.log")
        segment = tracker.write(make_record(message="hi"), source="a.log")
        assert segment.source == "a.log"
        assert segment.line_count == 2


class TestClose:
    def test_close_without_segments_is_noop(self, tmp_path):
        t = SegmentTracker(str(tmp_path / "out"))
        t.close()
        t.close()
        assert len(t) == 0

    def test_close_flushes_unterminated_segment(self, tracker, caplog):
        tracker.write(make_record(message=START_MARKER))
        tracker.write(make_record(message="still running"))
        tracker.close()
        segment = tracker.get("t1")
        assert segment.is_open
        assert len(_read(segment.output_path)) == 2
        assert "t1" in caplog.text

    def test_close_is_idempotent_after_unterminated(self, tracker):
        tracker.write(make_record(message=START_MARKER))
        tracker.close()
        tracker.close()

    def test_write_after_tracker_closed_rejected(self, tracker):
        tracker.write(make_record(message=START_MARKER))
        tracker.close()
        with pytest.raises(ThreadProtocolError, match="tracker closed"):
            tracker.write(make_record(message="late"))
        assert tracker.get("t1").line_count == 1

    def test_context_manager_closes(self, tmp_path):
        with SegmentTracker(str(tmp_path / "out")) as t:
            t.write(make_record(message=START_MARKER))
        assert t.get("t1")._handle is None

    def test_creates_output_dir(self, tmp_path):
        out = tmp_path / "nested" / "out"
        SegmentTracker(str(out))
        assert out.is_dir()


class TestStoreErrors:
    def test_unwritable_output_dir(self, tmp_path):
        out = tmp_path / "out"
        t = SegmentTracker(str(out))
        # A directory squatting on the segment path makes open() fail.
        os.mkdir(segment_path(str(out), "100", "t1"))
        with pytest.raises(SegmentStoreError) as excinfo:
            t.write(make_record(message=START_MARKER))
        assert isinstance(excinfo.value.__cause__, OSError)
        assert len(t) == 0
