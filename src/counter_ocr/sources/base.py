"""
Frame Source Base
=================

Common contract for all frame acquisition variants.

A frame source is a lazy, finite or unbounded sequence of frames. The
uniform contract is ``read()``: it returns the next Frame, or None once
the source is exhausted. Sources are iterable and usable as context
managers.

Design Rules:
    - Segmenter and plausibility filter never see the source type
    - Optionally archives every frame into ``output_dir`` (capture mode)
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

import cv2

from counter_ocr.sources.frame import Frame
from counter_ocr.sources.naming import format_capture_name


logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """
    Base class for frame sources.

    Attributes:
        output_dir: Directory receiving a copy of every frame (None = off)
        frames_read: Number of frames returned so far
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir: Optional[str] = output_dir
        self.frames_read: int = 0

    @abstractmethod
    def _read(self) -> Optional[Frame]:
        """Acquire the next frame (None = exhausted)."""

    def read(self) -> Optional[Frame]:
        """
        Return the next frame.

        Returns:
            Next Frame, or None if the source is exhausted
        """
        frame = self._read()
        if frame is None:
            return None
        self.frames_read += 1
        if self.output_dir:
            self.save_frame(frame)
        return frame

    def save_frame(self, frame: Frame, directory: Optional[str] = None) -> Optional[Path]:
        """
        Write a frame as ``YYYYMMDD-HHMMSS.png`` into a directory.

        Args:
            frame: Frame to write
            directory: Target directory (defaults to output_dir)

        Returns:
            Written path, or None if nothing was written
        """
        target = directory or self.output_dir
        if not target:
            logger.error("Tried to save frame without an output directory")
            return None
        path = Path(target) / format_capture_name(frame.timestamp)
        if not cv2.imwrite(str(path), frame.image):
            logger.error(f"Failed to save frame to {path}")
            return None
        logger.info(f"Frame saved to {path}")
        return path

    def close(self) -> None:
        """Release resources held by the source."""

    def __iter__(self) -> Iterator[Frame]:
        while True:
            frame = self.read()
            if frame is None:
                return
            yield frame

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
