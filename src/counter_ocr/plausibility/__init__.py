"""
Plausibility Module
===================

Rate-limited acceptance of noisy meter readings.

This module provides:
    - PlausibilityFilter: Accept/reject readings against a maximum rate
    - ReadingParseError: Digit string does not match the counter format
"""

from counter_ocr.config import PlausibilityPolicy
from counter_ocr.plausibility.filter import PlausibilityFilter, ReadingParseError

__all__ = [
    "PlausibilityFilter",
    "PlausibilityPolicy",
    "ReadingParseError",
]
