"""
Plausibility Filter
===================

Turns noisy OCR digit strings into a monotonic, rate-limited series.

This filter:
    - Parses the classifier's digit string into a counter value
    - Rejects strings with unresolved digits or the wrong format
    - Rejects values that decrease or grow faster than physically possible
    - Keeps a bounded window of accepted readings (oldest evicted)

Policies:
    LAST_ACCEPTED (default):
        A candidate is compared with the most recently accepted reading
        only. The first parsed reading is always accepted.

            rate = (value - last_value) / ((t - last_t) / time_unit_seconds)

    WINDOW_CENTER:
        Every parsed candidate enters a pending window. Once the window
        is full and all consecutive pending entries are non-decreasing
        and within max_rate of each other, the CENTRE entry is checked
        against the last accepted reading and accepted if it passes.
        This delays readings by window // 2 frames but ignores single
        misreads entirely.

Thread Safety:
    Not thread-safe. Use one filter per physical meter and serialize
    access to it.
"""

import logging
import re
from collections import deque
from typing import Deque, Optional, Tuple

from counter_ocr.config import PlausibilityPolicy
from counter_ocr.models.reading import UNRESOLVED_DIGIT, PlausibilityResult, Reading
from counter_ocr.models.reason_codes import RejectReason
from counter_ocr.observability.events import (
    DiagnosticObserver,
    LoggingObserver,
    ReadingAccepted,
    ReadingRejected,
)


logger = logging.getLogger(__name__)


_DIGITS = re.compile(r"[0-9]+")


class ReadingParseError(ValueError):
    """Raised when a digit string does not match the counter format."""

    def __init__(self, candidate: str, reason: RejectReason) -> None:
        super().__init__(f"Cannot parse '{candidate}': {reason.value}")
        self.candidate = candidate
        self.reason = reason


class PlausibilityFilter:
    """
    Accepts or rejects candidate readings by their rate of change.

    Attributes:
        max_rate: Maximum rate of increase (value units per time unit)
        window: Capacity of the accepted-readings window
        time_unit_seconds: Seconds per rate time unit
        digit_count: Expected digit string length (None = any)
        decimal_places: Trailing digits that are decimals
        policy: Acceptance policy

    Example:
        plausi = PlausibilityFilter(max_rate=50, window=13)

        if plausi.check("1000", t):
            store(plausi.checked_time, plausi.checked_value)
    """

    def __init__(
        self,
        max_rate: float = 50.0,
        window: int = 13,
        time_unit_seconds: float = 1.0,
        digit_count: Optional[int] = None,
        decimal_places: int = 0,
        policy: PlausibilityPolicy = PlausibilityPolicy.LAST_ACCEPTED,
        observer: Optional[DiagnosticObserver] = None,
    ) -> None:
        """
        Initialize plausibility filter.

        Args:
            max_rate: Maximum rate of increase, must be positive
            window: Window capacity, must be >= 1
            time_unit_seconds: Seconds per rate time unit
                - 1.0 = rate per second
                - 3600.0 = rate per hour (kWh counter -> kW limit)
            digit_count: Expected number of digits (None = any length)
            decimal_places: Number of trailing decimal digits
            policy: Acceptance policy
            observer: Receives accept/reject events (logs them if None)
        """
        if max_rate <= 0:
            raise ValueError("max_rate must be positive")
        if window < 1:
            raise ValueError("window must be >= 1")
        if time_unit_seconds <= 0:
            raise ValueError("time_unit_seconds must be positive")
        if digit_count is not None and digit_count < 1:
            raise ValueError("digit_count must be >= 1")
        if decimal_places < 0:
            raise ValueError("decimal_places must be non-negative")

        self.max_rate = max_rate
        self.window = window
        self.time_unit_seconds = time_unit_seconds
        self.digit_count = digit_count
        self.decimal_places = decimal_places
        self.policy = PlausibilityPolicy(policy)
        self._observer: DiagnosticObserver = observer or LoggingObserver(logger)

        # Internal state
        self._accepted: Deque[Reading] = deque(maxlen=window)
        self._pending: Deque[Reading] = deque(maxlen=window)
        self._checked: Optional[Reading] = None

    # =========================================================================
    # Public API
    # =========================================================================

    def check(self, candidate: str, timestamp: float) -> bool:
        """
        Evaluate a candidate reading.

        Args:
            candidate: Digit string from the classifier
            timestamp: Capture time of the frame (UNIX seconds)

        Returns:
            True if accepted; checked_value/checked_time then hold it
        """
        return self.evaluate(candidate, timestamp).accepted

    def evaluate(self, candidate: str, timestamp: float) -> PlausibilityResult:
        """
        Evaluate a candidate reading and report the full outcome.

        Args:
            candidate: Digit string from the classifier
            timestamp: Capture time of the frame (UNIX seconds)

        Returns:
            PlausibilityResult with decision, reason and implied rate
        """
        try:
            value = self.parse(candidate)
        except ReadingParseError as e:
            return self._reject(candidate, timestamp, e.reason)

        reading = Reading(timestamp=timestamp, value=value)

        if self.policy == PlausibilityPolicy.WINDOW_CENTER:
            return self._evaluate_window_center(candidate, reading)
        return self._evaluate_last_accepted(candidate, reading)

    def parse(self, candidate: str) -> float:
        """
        Convert a digit string to a counter value.

        Args:
            candidate: Digit string, e.g. "0012345" -> 1234.5 with one decimal

        Returns:
            Parsed value

        Raises:
            ReadingParseError: If the string is unresolved or malformed
        """
        if UNRESOLVED_DIGIT in candidate:
            raise ReadingParseError(candidate, RejectReason.UNRESOLVED_DIGIT)
        if self.digit_count is not None and len(candidate) != self.digit_count:
            raise ReadingParseError(candidate, RejectReason.WRONG_LENGTH)
        if not _DIGITS.fullmatch(candidate):
            raise ReadingParseError(candidate, RejectReason.MALFORMED)
        return int(candidate) / (10 ** self.decimal_places)

    @property
    def checked_value(self) -> Optional[float]:
        """Most recently accepted value (None before any acceptance)."""
        return self._checked.value if self._checked else None

    @property
    def checked_time(self) -> Optional[float]:
        """Timestamp of the most recently accepted value."""
        return self._checked.timestamp if self._checked else None

    @property
    def last_reading(self) -> Optional[Reading]:
        """Most recently accepted reading."""
        return self._checked

    @property
    def accepted_window(self) -> Tuple[Reading, ...]:
        """Accepted readings, oldest first."""
        return tuple(self._accepted)

    @property
    def pending_window(self) -> Tuple[Reading, ...]:
        """Parsed candidates awaiting the window-centre decision."""
        return tuple(self._pending)

    def reset(self) -> None:
        """Forget all readings."""
        self._accepted.clear()
        self._pending.clear()
        self._checked = None

    def get_metrics(self) -> dict:
        """Get filter metrics for observability."""
        return {
            "policy": self.policy.value,
            "max_rate": self.max_rate,
            "window": self.window,
            "accepted_in_window": len(self._accepted),
            "pending_in_window": len(self._pending),
            "checked_value": self.checked_value,
            "checked_time": self.checked_time,
        }

    # =========================================================================
    # Policies
    # =========================================================================

    def _evaluate_last_accepted(
        self, candidate: str, reading: Reading
    ) -> PlausibilityResult:
        if self._checked is None:
            return self._accept(candidate, reading, rate=None)

        reason, rate = self._compare(self._checked, reading)
        if reason is not None:
            return self._reject(candidate, reading.timestamp, reason, reading.value, rate)
        return self._accept(candidate, reading, rate)

    def _evaluate_window_center(
        self, candidate: str, reading: Reading
    ) -> PlausibilityResult:
        self._pending.append(reading)

        if len(self._pending) < self.window:
            return self._reject(
                candidate, reading.timestamp,
                RejectReason.INSUFFICIENT_HISTORY, reading.value,
            )

        pending = list(self._pending)
        for previous, current in zip(pending, pending[1:]):
            reason, rate = self._compare(previous, current)
            if reason is not None:
                return self._reject(
                    candidate, reading.timestamp,
                    RejectReason.WINDOW_INCONSISTENT, reading.value, rate,
                )

        center = pending[self.window // 2]
        if self._checked is None:
            return self._accept(candidate, center, rate=None)

        if center.timestamp <= self._checked.timestamp:
            # centre already accepted on an earlier call
            return self._reject(
                candidate, reading.timestamp,
                RejectReason.NON_MONOTONIC_TIME, center.value,
            )

        reason, rate = self._compare(self._checked, center)
        if reason is not None:
            return self._reject(candidate, reading.timestamp, reason, center.value, rate)
        return self._accept(candidate, center, rate)

    def _compare(
        self, previous: Reading, current: Reading
    ) -> Tuple[Optional[RejectReason], Optional[float]]:
        """Return (reason, rate); reason is None if ``current`` is plausible."""
        elapsed = (current.timestamp - previous.timestamp) / self.time_unit_seconds
        if elapsed <= 0:
            return RejectReason.NON_MONOTONIC_TIME, None
        if current.value < previous.value:
            return RejectReason.VALUE_DECREASED, None

        rate = (current.value - previous.value) / elapsed
        if rate > self.max_rate:
            return RejectReason.RATE_EXCEEDED, rate
        return None, rate

    # =========================================================================
    # Outcomes
    # =========================================================================

    def _accept(
        self, candidate: str, reading: Reading, rate: Optional[float]
    ) -> PlausibilityResult:
        self._accepted.append(reading)
        self._checked = reading
        self._observer(ReadingAccepted(reading=reading, rate=rate))
        return PlausibilityResult(
            accepted=True,
            candidate=candidate,
            timestamp=reading.timestamp,
            value=reading.value,
            rate=rate,
            reading=reading,
        )

    def _reject(
        self,
        candidate: str,
        timestamp: float,
        reason: RejectReason,
        value: Optional[float] = None,
        rate: Optional[float] = None,
    ) -> PlausibilityResult:
        self._observer(
            ReadingRejected(candidate=candidate, timestamp=timestamp, reason=reason, rate=rate)
        )
        return PlausibilityResult(
            accepted=False,
            candidate=candidate,
            timestamp=timestamp,
            value=value,
            rate=rate,
            reason=reason,
        )
