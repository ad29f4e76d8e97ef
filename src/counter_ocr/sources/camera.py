"""
Camera Frame Source
===================

Unbounded frame source reading from an OpenCV capture device.

The capture time is the wall-clock time of the read.
"""

import logging
import time
from typing import Optional

import cv2

from counter_ocr.sources.base import FrameSource
from counter_ocr.sources.frame import Frame


logger = logging.getLogger(__name__)


class CameraFrameSource(FrameSource):
    """
    Frame source over a camera device.

    The sequence ends when the device stops delivering frames.
    """

    def __init__(self, device: int = 0, output_dir: Optional[str] = None) -> None:
        """
        Open the capture device.

        Args:
            device: OpenCV device index
            output_dir: Copy every frame here (None = off)

        Raises:
            RuntimeError: If the device cannot be opened
        """
        super().__init__(output_dir=output_dir)
        self.device = device
        self._capture = cv2.VideoCapture(device)
        if not self._capture.isOpened():
            raise RuntimeError(f"Cannot open camera device {device}")
        logger.info(f"CameraFrameSource opened device {device}")

    def _read(self) -> Optional[Frame]:
        timestamp = time.time()
        ok, image = self._capture.read()
        logger.info(f"Image captured: {ok}")
        if not ok or image is None:
            return None
        return Frame(image=image, timestamp=timestamp, source=f"camera:{self.device}")

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
