"""
Observability Module
====================

Diagnostics and debug overlays for the counter-ocr pipeline.

This module provides:
    - Diagnostic events and observers (LoggingObserver, RecordingObserver)
    - Overlay helpers that draw ROIs and skew lines on a debug image

DESIGN RULES:
    - Does NOT influence segmentation or plausibility decisions
    - Zero cost when debug overlay is disabled
"""

from counter_ocr.observability.events import (
    DiagnosticEvent,
    DiagnosticObserver,
    DigitBoxesDetected,
    LoggingObserver,
    ReadingAccepted,
    ReadingRejected,
    RecordingObserver,
    SkewEstimated,
    SkewUndetected,
)
from counter_ocr.observability.overlay import (
    cross_out,
    draw_lines,
    draw_rois,
    to_overlay_image,
)


__all__ = [
    "DiagnosticEvent",
    "DiagnosticObserver",
    "DigitBoxesDetected",
    "LoggingObserver",
    "ReadingAccepted",
    "ReadingRejected",
    "RecordingObserver",
    "SkewEstimated",
    "SkewUndetected",
    "cross_out",
    "draw_lines",
    "draw_rois",
    "to_overlay_image",
]
