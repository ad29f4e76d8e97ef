"""
Reading Models
==============

Data models for meter readings and plausibility outcomes.

These models pass typed data from the plausibility filter to the
pipeline runner, the sinks and the HTTP status service.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from counter_ocr.models.reason_codes import RejectReason


# Classifier output for a crop it could not assign to a digit
UNRESOLVED_DIGIT = "?"


@dataclass(frozen=True, slots=True)
class Reading:
    """
    A counter value at a point in time.

    Attributes:
        timestamp: UNIX timestamp of the frame capture (seconds)
        value: Counter value in meter units (e.g. kWh)
    """

    timestamp: float
    value: float

    def __repr__(self) -> str:
        return f"Reading(value={self.value:.3f}, t={self.timestamp:.0f})"

    @property
    def captured_at(self) -> datetime:
        """Capture time as a local datetime."""
        return datetime.fromtimestamp(self.timestamp)

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "timestamp": round(self.timestamp, 3),
            "time": self.captured_at.isoformat(timespec="seconds"),
            "value": self.value,
        }


@dataclass(frozen=True, slots=True)
class PlausibilityResult:
    """
    Outcome of one plausibility check.

    Attributes:
        accepted: Whether the candidate was accepted
        candidate: Raw digit string as produced by the classifier
        timestamp: Capture timestamp of the candidate
        value: Parsed value, None if the string could not be parsed
        rate: Implied rate of change against the last accepted reading
        reason: Rejection reason, None when accepted
        reading: The reading that became the checked value on acceptance
    """

    accepted: bool
    candidate: str
    timestamp: float
    value: Optional[float] = None
    rate: Optional[float] = None
    reason: Optional[RejectReason] = None
    reading: Optional[Reading] = None

    def __bool__(self) -> bool:
        return self.accepted

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "accepted": self.accepted,
            "candidate": self.candidate,
            "timestamp": round(self.timestamp, 3),
            "value": self.value,
            "rate": None if self.rate is None else round(self.rate, 4),
            "reason": None if self.reason is None else self.reason.value,
        }
