"""
Data Models
===========

Typed models shared across the counter-ocr pipeline.

Models:
    Geometry:
        - BoundingBox: Integer rectangle around a digit candidate
        - Line: Polar line from the Hough transform

    Readings:
        - Reading: (timestamp, value) pair
        - PlausibilityResult: Outcome of one plausibility check
        - RejectReason: Machine-readable rejection codes
"""

from counter_ocr.models.geometry import BoundingBox, Line
from counter_ocr.models.reading import UNRESOLVED_DIGIT, PlausibilityResult, Reading
from counter_ocr.models.reason_codes import RejectReason

__all__ = [
    # Geometry
    "BoundingBox",
    "Line",
    # Readings
    "Reading",
    "UNRESOLVED_DIGIT",
    "PlausibilityResult",
    "RejectReason",
]
