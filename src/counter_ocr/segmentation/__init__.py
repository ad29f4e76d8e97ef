"""
Segmentation Module
===================

Digit-wheel detection for mechanical meter counters.

This module provides:
    - DigitSegmenter: Frame normalisation and digit cropping
    - BoxSet: Deduplicated candidate boxes
    - select_digit_row: Largest aligned row of boxes, left to right
"""

from counter_ocr.segmentation.boxes import (
    BoxSet,
    MergeAction,
    find_aligned_boxes,
    passes_size_filter,
    select_digit_row,
)
from counter_ocr.segmentation.segmenter import DigitSegmenter

__all__ = [
    "DigitSegmenter",
    "BoxSet",
    "MergeAction",
    "find_aligned_boxes",
    "passes_size_filter",
    "select_digit_row",
]
