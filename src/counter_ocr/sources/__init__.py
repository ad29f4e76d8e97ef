"""
Sources Module
==============

Frame acquisition for the meter reader.

This module provides the acquisition layer:
    - Frame: Typed frame data model (image + capture time)
    - FrameSource: Uniform read()/iteration contract
    - DirectoryFrameSource: Archived frames, file name order
    - CameraFrameSource: Live OpenCV capture device
    - WatchedDirectorySource: New files appearing in a spool directory

Example:
    from counter_ocr.sources import DirectoryFrameSource

    with DirectoryFrameSource("./images") as source:
        for frame in source:
            segmenter.set_input(frame.image)
"""

from counter_ocr.sources.frame import Frame
from counter_ocr.sources.base import FrameSource
from counter_ocr.sources.camera import CameraFrameSource
from counter_ocr.sources.directory import DirectoryFrameSource
from counter_ocr.sources.naming import format_capture_name, parse_capture_time
from counter_ocr.sources.watch import WatchedDirectorySource


__all__ = [
    "Frame",
    "FrameSource",
    "CameraFrameSource",
    "DirectoryFrameSource",
    "WatchedDirectorySource",
    "format_capture_name",
    "parse_capture_time",
]
