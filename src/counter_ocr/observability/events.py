"""
Diagnostic Events
=================

Structured diagnostics emitted by the segmentation and plausibility core.

The core never writes to a log sink directly. It hands frozen event
objects to an observer callable; what happens with them (logging,
counting, recording in tests) is decided by the caller.

Design Rules:
    - Events are immutable and carry only plain values
    - Observers must not raise; a failing observer is a caller bug
    - LoggingObserver is the default when no observer is given
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from counter_ocr.models.reading import Reading
from counter_ocr.models.reason_codes import RejectReason


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SkewEstimated:
    """Residual skew was estimated from near-horizontal lines."""

    angle_degrees: float
    line_count: int


@dataclass(frozen=True, slots=True)
class SkewUndetected:
    """No line in the accepted angle range; frame processed unrotated."""

    total_lines: int


@dataclass(frozen=True, slots=True)
class DigitBoxesDetected:
    """
    Box counts of one digit detection pass.

    Attributes:
        contour_count: Contours found in the edge map
        candidate_count: Boxes surviving size filter and deduplication
        row_size: Boxes in the selected digit row
    """

    contour_count: int
    candidate_count: int
    row_size: int


@dataclass(frozen=True, slots=True)
class ReadingAccepted:
    """A candidate reading passed the plausibility filter."""

    reading: Reading
    rate: Optional[float]


@dataclass(frozen=True, slots=True)
class ReadingRejected:
    """A candidate reading was refused."""

    candidate: str
    timestamp: float
    reason: RejectReason
    rate: Optional[float] = None


DiagnosticEvent = Union[
    SkewEstimated,
    SkewUndetected,
    DigitBoxesDetected,
    ReadingAccepted,
    ReadingRejected,
]

DiagnosticObserver = Callable[[DiagnosticEvent], None]


class LoggingObserver:
    """
    Forward diagnostic events to the standard logging module.

    Failed skew detection is logged as a warning, everything else at
    INFO (rejections) or DEBUG (per-frame detail).
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def __call__(self, event: DiagnosticEvent) -> None:
        if isinstance(event, SkewEstimated):
            self._log.info(
                f"Skew estimated: {event.angle_degrees:.1f} deg "
                f"({event.line_count} lines)"
            )
        elif isinstance(event, SkewUndetected):
            self._log.warning(
                f"Failed to detect skew ({event.total_lines} lines, none near horizontal)"
            )
        elif isinstance(event, DigitBoxesDetected):
            self._log.debug(
                f"Digit boxes: contours={event.contour_count}, "
                f"candidates={event.candidate_count}, row={event.row_size}"
            )
        elif isinstance(event, ReadingAccepted):
            rate = "n/a" if event.rate is None else f"{event.rate:.3f}"
            self._log.info(
                f"Plausibility accepted: {event.reading.value:.3f} "
                f"at {event.reading.captured_at:%Y-%m-%d %H:%M:%S} (rate={rate})"
            )
        elif isinstance(event, ReadingRejected):
            rate = "" if event.rate is None else f" (rate={event.rate:.3f})"
            self._log.info(
                f"Plausibility rejected '{event.candidate}': {event.reason.value}{rate}"
            )


class RecordingObserver:
    """Keep every event in memory. Used by tests and the adjust mode."""

    def __init__(self) -> None:
        self.events: List[DiagnosticEvent] = []

    def __call__(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[DiagnosticEvent]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()
