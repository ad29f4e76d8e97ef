"""
Directory Frame Source
======================

Replays archived frames from a directory in file name order.

The capture time is taken from the ``YYYYMMDD-HHMMSS`` file name prefix.
Files without such a prefix fall back to their modification time.
Files that cannot be decoded are skipped with a warning.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import cv2

from counter_ocr.sources.base import FrameSource
from counter_ocr.sources.frame import Frame
from counter_ocr.sources.naming import parse_capture_time


logger = logging.getLogger(__name__)


def list_images(directory: Path, extension: str) -> List[Path]:
    """Sorted image files with ``extension`` in ``directory``."""
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() == extension.lower()
    )


def load_frame(path: Path) -> Optional[Frame]:
    """
    Decode one image file into a Frame.

    Args:
        path: Image file

    Returns:
        Frame, or None if the file cannot be decoded
    """
    image = cv2.imread(str(path))
    if image is None:
        logger.warning(f"Skipping unreadable image: {path}")
        return None

    timestamp = parse_capture_time(path)
    if timestamp is None:
        timestamp = os.path.getmtime(path)
        logger.debug(f"No capture time in name {path.name}, using mtime")

    return Frame(image=image, timestamp=timestamp, source=str(path))


class DirectoryFrameSource(FrameSource):
    """
    Finite frame source over the image files of a directory.

    Example:
        with DirectoryFrameSource("./images") as source:
            for frame in source:
                process(frame)
    """

    def __init__(
        self,
        directory: str,
        extension: str = ".png",
        output_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize directory source.

        Args:
            directory: Directory with archived frames
            extension: Image file extension to consider
            output_dir: Copy every frame here (None = off)

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        super().__init__(output_dir=output_dir)
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Image directory not found: {directory}")
        self.extension = extension
        self._files = list_images(self.directory, extension)
        self._position = 0
        logger.info(f"DirectoryFrameSource: {len(self._files)} files in {directory}")

    @property
    def remaining(self) -> int:
        return len(self._files) - self._position

    def _read(self) -> Optional[Frame]:
        while self._position < len(self._files):
            path = self._files[self._position]
            self._position += 1
            frame = load_frame(path)
            if frame is not None:
                logger.info(f"Processing {path.name} of {frame.captured_at:%c}")
                return frame
        return None
