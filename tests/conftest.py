"""
Test Configuration
==================

Pytest fixtures and synthetic frames for counter-ocr.
"""

import numpy as np
import pytest

from counter_ocr.config import SegmentationConfig
from counter_ocr.geometry import rotate
from counter_ocr.sources import Frame, FrameSource


DIGIT_WIDTH = 20
DIGIT_HEIGHT = 40
DIGIT_PITCH = 30


def make_digit_row(count: int = 7, top: int = 80, left: int = 40,
                   size=(200, 320)) -> np.ndarray:
    """Black frame with ``count`` filled white digit-sized boxes on one row."""
    image = np.zeros(size, dtype=np.uint8)
    for index in range(count):
        x = left + index * DIGIT_PITCH
        image[top:top + DIGIT_HEIGHT, x:x + DIGIT_WIDTH] = 255
    return image


def make_bars(angle: float = 0.0) -> np.ndarray:
    """400x400 frame with three long horizontal bars, rotated by ``angle``."""
    image = np.zeros((400, 400), dtype=np.uint8)
    for y in (150, 200, 250):
        image[y - 4:y + 4, 60:340] = 255
    return rotate(image, angle)


@pytest.fixture
def digit_row_frame():
    """Seven aligned digit boxes."""
    return make_digit_row(7)


@pytest.fixture
def blank_frame():
    """Uniform black frame (no edges at all)."""
    return np.zeros((200, 320), dtype=np.uint8)


@pytest.fixture
def no_skew_config():
    """Segmentation config whose Hough threshold is never reached."""
    return SegmentationConfig(skew_vote_threshold=10000)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every COUNTER_OCR_* variable from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("COUNTER_OCR_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class ListFrameSource(FrameSource):
    """Frame source over an in-memory list."""

    def __init__(self, frames, output_dir=None):
        super().__init__(output_dir=output_dir)
        self._frames = list(frames)

    def _read(self):
        return self._frames.pop(0) if self._frames else None


class ScriptedClassifier:
    """Returns prepared digit strings, one per call."""

    def __init__(self, results):
        self._results = list(results)
        self.calls = 0

    def recognize(self, crops):
        self.calls += 1
        return self._results.pop(0)


def make_frames(count, digits=7, step=60.0):
    """Frames of a digit row, ``step`` seconds apart."""
    image = make_digit_row(digits)
    return [Frame(image=image, timestamp=i * step, source=f"f{i}") for i in range(count)]
