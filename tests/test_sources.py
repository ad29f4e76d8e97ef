"""
Frame Source Tests
==================

Directory replay, watched directories and capture file naming.
"""

import queue
import time
from datetime import datetime
from pathlib import Path

import cv2
import numpy as np
import pytest
from watchdog.events import FileClosedEvent, FileMovedEvent

from counter_ocr.sources import (
    DirectoryFrameSource,
    Frame,
    WatchedDirectorySource,
    format_capture_name,
    parse_capture_time,
)
from counter_ocr.sources.watch import ImageFileHandler


def write_image(path, value: int = 128) -> None:
    cv2.imwrite(str(path), np.full((20, 30), value, dtype=np.uint8))


def local_timestamp(text: str) -> float:
    return time.mktime(datetime.strptime(text, "%Y%m%d-%H%M%S").timetuple())


class TestCaptureNaming:
    """Tests for the YYYYMMDD-HHMMSS naming scheme."""

    def test_parse_capture_time(self):
        ts = parse_capture_time("/data/20240315-081530.png")
        assert ts == local_timestamp("20240315-081530")

    def test_name_roundtrip(self):
        ts = local_timestamp("20231224-235959")
        assert format_capture_name(ts) == "20231224-235959.png"
        assert parse_capture_time(format_capture_name(ts)) == ts

    @pytest.mark.parametrize("name", ["meter.png", "2024-03-15.png", "20241399-000000.png"])
    def test_unparseable_names(self, name):
        assert parse_capture_time(name) is None


class TestFrame:
    """Tests for the Frame model."""

    def test_repr_is_compact(self):
        frame = Frame(image=np.zeros((480, 640, 3), dtype=np.uint8), timestamp=1.0, source="x")
        assert "(480, 640, 3)" in repr(frame)
        assert len(repr(frame)) < 120


class TestDirectoryFrameSource:
    """Tests for replaying archived frames."""

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DirectoryFrameSource(str(tmp_path / "missing"))

    def test_frames_in_name_order_with_capture_time(self, tmp_path):
        names = ["20240101-120010.png", "20240101-120000.png", "20240101-120005.png"]
        for name in names:
            write_image(tmp_path / name)

        with DirectoryFrameSource(str(tmp_path)) as source:
            frames = list(source)

        assert [f.timestamp for f in frames] == [
            local_timestamp("20240101-120000"),
            local_timestamp("20240101-120005"),
            local_timestamp("20240101-120010"),
        ]
        assert source.frames_read == 3

    def test_other_extensions_are_ignored(self, tmp_path):
        write_image(tmp_path / "20240101-120000.png")
        (tmp_path / "notes.txt").write_text("hello")
        source = DirectoryFrameSource(str(tmp_path))
        assert len(list(source)) == 1

    def test_unreadable_file_is_skipped(self, tmp_path):
        (tmp_path / "20240101-115959.png").write_bytes(b"not an image")
        write_image(tmp_path / "20240101-120000.png")

        frames = list(DirectoryFrameSource(str(tmp_path)))

        assert len(frames) == 1
        assert frames[0].source.endswith("20240101-120000.png")

    def test_mtime_fallback(self, tmp_path):
        path = tmp_path / "meter.png"
        write_image(path)
        frame = DirectoryFrameSource(str(tmp_path)).read()
        assert frame.timestamp == pytest.approx(path.stat().st_mtime)

    def test_exhausted_source_returns_none(self, tmp_path):
        write_image(tmp_path / "20240101-120000.png")
        source = DirectoryFrameSource(str(tmp_path))
        assert source.read() is not None
        assert source.read() is None
        assert source.remaining == 0

    def test_output_dir_receives_copies(self, tmp_path):
        images = tmp_path / "in"
        archive = tmp_path / "out"
        images.mkdir()
        archive.mkdir()
        write_image(images / "20240101-120000.png")

        list(DirectoryFrameSource(str(images), output_dir=str(archive)))

        assert (archive / "20240101-120000.png").exists()


class TestWatchedDirectorySource:
    """Tests for waiting on new files."""

    def test_existing_files_are_ignored(self, tmp_path):
        write_image(tmp_path / "20240101-120000.png")
        with WatchedDirectorySource(str(tmp_path), idle_timeout=0.2) as source:
            assert source.read() is None

    def test_existing_files_can_be_included(self, tmp_path):
        write_image(tmp_path / "20240101-120000.png")
        with WatchedDirectorySource(
            str(tmp_path), idle_timeout=0.2, include_existing=True,
        ) as source:
            assert source.read() is not None

    def test_new_files_are_returned_once(self, tmp_path):
        with WatchedDirectorySource(str(tmp_path), idle_timeout=1.0) as source:
            write_image(tmp_path / "20240101-120000.png")
            write_image(tmp_path / "20240101-120005.png")

            frames = list(source)

        assert [f.timestamp for f in frames] == [
            local_timestamp("20240101-120000"),
            local_timestamp("20240101-120005"),
        ]

    def test_renamed_file_is_returned(self, tmp_path):
        with WatchedDirectorySource(str(tmp_path), idle_timeout=1.0) as source:
            partial = tmp_path / "20240101-120000.part"
            _, encoded = cv2.imencode(".png", np.zeros((20, 30), dtype=np.uint8))
            partial.write_bytes(encoded.tobytes())
            partial.rename(tmp_path / "20240101-120000.png")
            frame = source.read()

        assert frame is not None
        assert frame.timestamp == local_timestamp("20240101-120000")

    def test_stop_ends_sequence(self, tmp_path):
        with WatchedDirectorySource(str(tmp_path)) as source:
            source.stop()
            assert source.read() is None

    def test_close_stops_observer(self, tmp_path):
        source = WatchedDirectorySource(str(tmp_path))
        source.close()
        assert not source._observer.is_alive()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            WatchedDirectorySource(str(tmp_path / "missing"))


class TestImageFileHandler:
    """Tests for the file event filter."""

    def test_closed_image_is_queued(self, tmp_path):
        pending = queue.PriorityQueue()
        handler = ImageFileHandler(".png", pending)

        handler.on_closed(FileClosedEvent(str(tmp_path / "a.png")))

        assert pending.get_nowait()[1] == str(tmp_path / "a.png")

    def test_moved_image_uses_destination(self, tmp_path):
        pending = queue.PriorityQueue()
        handler = ImageFileHandler(".png", pending)

        handler.on_moved(FileMovedEvent(str(tmp_path / "a.tmp"), str(tmp_path / "a.png")))

        assert pending.get_nowait()[1] == str(tmp_path / "a.png")

    def test_other_extensions_are_ignored(self, tmp_path):
        pending = queue.PriorityQueue()
        handler = ImageFileHandler(".png", pending)

        handler.on_closed(FileClosedEvent(str(tmp_path / "a.jpg")))
        handler.on_moved(FileMovedEvent(str(tmp_path / "a.png"), str(tmp_path / "a.txt")))

        assert pending.empty()

    def test_pending_files_come_out_in_name_order(self, tmp_path):
        pending = queue.PriorityQueue()
        handler = ImageFileHandler(".png", pending)

        handler.on_closed(FileClosedEvent(str(tmp_path / "20240101-120005.png")))
        handler.on_closed(FileClosedEvent(str(tmp_path / "20240101-120000.png")))

        assert Path(pending.get_nowait()[1]).name == "20240101-120000.png"
