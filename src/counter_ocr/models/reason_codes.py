"""
Reason Codes
============

Fixed set of machine-readable reasons for rejected meter readings.

Each rejected candidate carries exactly ONE reason code that explains
why the plausibility filter refused it.

Rules:
    - No free-text explanations
    - One clear cause per code
"""

from enum import Enum


class RejectReason(str, Enum):
    """
    Machine-readable rejection codes.

    Attributes:
        UNRESOLVED_DIGIT: Classifier could not assign at least one digit
        WRONG_LENGTH: Digit string length differs from the counter format
        MALFORMED: Empty string or non-digit characters
        NON_MONOTONIC_TIME: Timestamp not after the last accepted reading
        VALUE_DECREASED: Value below the last accepted value
        RATE_EXCEEDED: Implied rate of change above the physical maximum
        INSUFFICIENT_HISTORY: Smoothing window not yet filled
        WINDOW_INCONSISTENT: Recent candidates disagree with each other
    """

    # Parse failures (state is never touched)
    UNRESOLVED_DIGIT = "UNRESOLVED_DIGIT"
    WRONG_LENGTH = "WRONG_LENGTH"
    MALFORMED = "MALFORMED"

    # Plausibility failures
    NON_MONOTONIC_TIME = "NON_MONOTONIC_TIME"
    VALUE_DECREASED = "VALUE_DECREASED"
    RATE_EXCEEDED = "RATE_EXCEEDED"

    # Window policy
    INSUFFICIENT_HISTORY = "INSUFFICIENT_HISTORY"
    WINDOW_INCONSISTENT = "WINDOW_INCONSISTENT"

    @property
    def is_parse_failure(self) -> bool:
        return self in (
            RejectReason.UNRESOLVED_DIGIT,
            RejectReason.WRONG_LENGTH,
            RejectReason.MALFORMED,
        )
