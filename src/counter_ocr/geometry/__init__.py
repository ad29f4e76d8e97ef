"""
Geometry Module
===============

Stateless raster and line helpers for frame normalisation.

This module provides rotation, grayscale conversion, Canny edges and
Hough-based skew estimation used by the digit segmenter.
"""

from counter_ocr.geometry.ops import (
    canny_edges,
    detect_lines,
    estimate_skew,
    filter_near_horizontal,
    rotate,
    to_grayscale,
)

__all__ = [
    "canny_edges",
    "detect_lines",
    "estimate_skew",
    "filter_near_horizontal",
    "rotate",
    "to_grayscale",
]
