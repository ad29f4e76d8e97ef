"""
Plausibility Filter Tests
=========================

Parsing, rate limiting and window behaviour of the plausibility filter.
"""

import pytest

from counter_ocr.config import PlausibilityPolicy
from counter_ocr.models.reason_codes import RejectReason
from counter_ocr.observability import ReadingAccepted, ReadingRejected, RecordingObserver
from counter_ocr.plausibility import PlausibilityFilter, ReadingParseError


@pytest.fixture
def plausi():
    """Filter with a per-second rate limit of 50."""
    return PlausibilityFilter(max_rate=50, window=13)


class TestConstruction:
    """Tests for parameter validation."""

    @pytest.mark.parametrize("kwargs", [
        {"max_rate": 0},
        {"max_rate": -1},
        {"window": 0},
        {"time_unit_seconds": 0},
        {"digit_count": 0},
        {"decimal_places": -1},
    ])
    def test_invalid_parameters_raise(self, kwargs):
        with pytest.raises(ValueError):
            PlausibilityFilter(**kwargs)

    def test_nothing_checked_initially(self, plausi):
        assert plausi.checked_value is None
        assert plausi.checked_time is None
        assert plausi.last_reading is None


class TestParsing:
    """Tests for digit string parsing."""

    def test_plain_digits(self, plausi):
        assert plausi.parse("0001234") == 1234

    def test_decimal_places(self):
        plausi = PlausibilityFilter(decimal_places=1)
        assert plausi.parse("0012345") == pytest.approx(1234.5)

    @pytest.mark.parametrize("candidate, reason", [
        ("12?4", RejectReason.UNRESOLVED_DIGIT),
        ("", RejectReason.MALFORMED),
        ("12a4", RejectReason.MALFORMED),
        ("-123", RejectReason.MALFORMED),
    ])
    def test_bad_strings_raise(self, plausi, candidate, reason):
        with pytest.raises(ReadingParseError) as exc_info:
            plausi.parse(candidate)
        assert exc_info.value.reason == reason
        assert exc_info.value.reason.is_parse_failure

    def test_wrong_length(self):
        plausi = PlausibilityFilter(digit_count=7)
        with pytest.raises(ReadingParseError) as exc_info:
            plausi.parse("123456")
        assert exc_info.value.reason == RejectReason.WRONG_LENGTH


class TestLastAcceptedPolicy:
    """Tests for the default rate limiting against the last accepted reading."""

    def test_first_reading_is_accepted(self, plausi):
        assert plausi.check("1000", 0.0)
        assert plausi.checked_value == 1000
        assert plausi.checked_time == 0.0

    def test_plausible_increase_is_accepted(self, plausi):
        plausi.check("1000", 0.0)
        result = plausi.evaluate("1010", 1.0)
        assert result.accepted
        assert result.rate == pytest.approx(10.0)
        assert plausi.checked_value == 1010

    def test_unchanged_value_is_accepted(self, plausi):
        plausi.check("1000", 0.0)
        assert plausi.check("1000", 60.0)
        assert plausi.checked_time == 60.0

    def test_rate_limit_is_inclusive(self, plausi):
        plausi.check("1000", 0.0)
        assert plausi.check("1050", 1.0)

    def test_too_fast_increase_is_rejected(self, plausi):
        plausi.check("1000", 0.0)
        result = plausi.evaluate("1200", 1.0)
        assert not result.accepted
        assert result.reason == RejectReason.RATE_EXCEEDED
        assert result.rate == pytest.approx(200.0)
        assert plausi.checked_value == 1000
        assert plausi.checked_time == 0.0

    def test_decrease_is_rejected(self, plausi):
        plausi.check("1000", 0.0)
        result = plausi.evaluate("0999", 10.0)
        assert result.reason == RejectReason.VALUE_DECREASED
        assert plausi.checked_value == 1000

    @pytest.mark.parametrize("timestamp", [0.0, -5.0])
    def test_non_increasing_time_is_rejected(self, plausi, timestamp):
        plausi.check("1000", 0.0)
        result = plausi.evaluate("1000", timestamp)
        assert result.reason == RejectReason.NON_MONOTONIC_TIME
        assert plausi.checked_time == 0.0

    def test_parse_failure_leaves_state_untouched(self, plausi):
        plausi.check("1000", 0.0)
        before = (plausi.checked_value, plausi.checked_time, plausi.accepted_window)

        result = plausi.evaluate("10?0", 5.0)

        assert result.reason == RejectReason.UNRESOLVED_DIGIT
        assert result.value is None
        assert (plausi.checked_value, plausi.checked_time, plausi.accepted_window) == before

    def test_parse_failure_as_first_reading(self, plausi):
        assert not plausi.check("????", 0.0)
        assert plausi.checked_value is None

    def test_outlier_does_not_poison_later_readings(self, plausi):
        """A rejected outlier is not used as reference."""
        plausi.check("1000", 0.0)
        plausi.check("9000", 1.0)
        assert plausi.check("1020", 2.0)
        assert plausi.checked_value == 1020

    def test_time_unit_scales_rate(self):
        """With hours as time unit a kWh counter is limited in kW."""
        plausi = PlausibilityFilter(
            max_rate=50, time_unit_seconds=3600, digit_count=7, decimal_places=1,
        )
        assert plausi.check("0012345", 0.0)            # 1234.5 kWh
        assert not plausi.check("0012355", 60.0)       # +1 kWh/min = 60 kW
        assert plausi.checked_value == pytest.approx(1234.5)
        assert plausi.check("0012350", 120.0)          # +0.5 kWh/2min = 15 kW
        assert plausi.checked_value == pytest.approx(1235.0)

    def test_accepted_series_is_monotonic(self, plausi):
        candidates = ["100", "105", "090", "110", "500", "120", "11?", "125"]
        accepted = [
            plausi.evaluate(c, float(t)).reading
            for t, c in enumerate(candidates)
        ]
        values = [r.value for r in accepted if r is not None]
        times = [r.timestamp for r in accepted if r is not None]
        assert values == sorted(values)
        assert times == sorted(times)
        assert values == [100, 105, 110, 120, 125]


class TestWindow:
    """Tests for the bounded history."""

    def test_window_evicts_oldest(self):
        plausi = PlausibilityFilter(window=3)
        for t in range(5):
            plausi.check(str(1000 + t), float(t))

        window = plausi.accepted_window
        assert len(window) == 3
        assert [r.value for r in window] == [1002, 1003, 1004]

    def test_reset_forgets_everything(self, plausi):
        plausi.check("1000", 0.0)
        plausi.reset()
        assert plausi.checked_value is None
        assert plausi.accepted_window == ()
        assert plausi.check("0500", 1.0)

    def test_metrics(self, plausi):
        plausi.check("1000", 0.0)
        metrics = plausi.get_metrics()
        assert metrics["policy"] == "last_accepted"
        assert metrics["accepted_in_window"] == 1
        assert metrics["checked_value"] == 1000


class TestWindowCenterPolicy:
    """Tests for the window-centre smoothing policy."""

    @pytest.fixture
    def smoothed(self):
        return PlausibilityFilter(
            max_rate=50, window=3, policy=PlausibilityPolicy.WINDOW_CENTER,
        )

    def test_waits_for_full_window(self, smoothed):
        assert smoothed.evaluate("1000", 0.0).reason == RejectReason.INSUFFICIENT_HISTORY
        assert smoothed.evaluate("1001", 1.0).reason == RejectReason.INSUFFICIENT_HISTORY
        assert smoothed.checked_value is None

    def test_accepts_centre_entry(self, smoothed):
        smoothed.check("1000", 0.0)
        smoothed.check("1001", 1.0)
        result = smoothed.evaluate("1002", 2.0)

        assert result.accepted
        assert smoothed.checked_value == 1001
        assert smoothed.checked_time == 1.0

    def test_advances_one_entry_per_frame(self, smoothed):
        for t, c in enumerate(["1000", "1001", "1002", "1003"]):
            smoothed.check(c, float(t))
        assert smoothed.checked_value == 1002

    def test_single_misread_is_never_accepted(self, smoothed):
        accepted = []
        for t, c in enumerate(["1000", "1001", "1002", "9999", "1004", "1005", "1006"]):
            result = smoothed.evaluate(c, float(t))
            if result.accepted:
                accepted.append(result.value)

        assert 9999 not in accepted
        assert accepted == [1001, 1005]

    def test_parse_failure_does_not_enter_window(self, smoothed):
        smoothed.check("1000", 0.0)
        smoothed.check("1?01", 1.0)
        assert len(smoothed.pending_window) == 1


class TestDiagnostics:
    """Tests for accept/reject events."""

    def test_events_are_emitted(self):
        observer = RecordingObserver()
        plausi = PlausibilityFilter(max_rate=50, observer=observer)

        plausi.check("1000", 0.0)
        plausi.check("5000", 1.0)

        accepted = observer.of_type(ReadingAccepted)
        rejected = observer.of_type(ReadingRejected)
        assert len(accepted) == 1
        assert accepted[0].reading.value == 1000
        assert len(rejected) == 1
        assert rejected[0].reason == RejectReason.RATE_EXCEEDED
        assert rejected[0].candidate == "5000"

    def test_observer_receives_everything(self, caplog):
        """With an observer attached the filter writes nothing to the log."""
        caplog.set_level("DEBUG")
        observer = RecordingObserver()

        plausi = PlausibilityFilter(max_rate=50, observer=observer)
        plausi.check("1000", 0.0)
        plausi.check("9000", 1.0)
        plausi.reset()

        assert len(observer.events) == 2
        assert [r for r in caplog.records if r.name.startswith("counter_ocr.plausibility")] == []

    def test_result_serializes(self):
        plausi = PlausibilityFilter()
        result = plausi.evaluate("12?", 1.0)
        assert result.to_dict()["reason"] == "UNRESOLVED_DIGIT"
        assert not result


class TestRateExamples:
    """Rate 60 is refused and rate 40 accepted at max_rate 50."""

    @pytest.mark.parametrize("max_rate, window", [(50, 13), (0.001, 1), (1e9, 100)])
    def test_first_reading_always_accepted(self, max_rate, window):
        plausi = PlausibilityFilter(max_rate=max_rate, window=window)
        assert plausi.check("1000", 1234.0)
        assert plausi.checked_value == 1000
        assert plausi.checked_time == 1234.0

    def test_rate_60_rejected(self, plausi):
        plausi.check("1000", 100.0)
        assert not plausi.check("1060", 101.0)
        assert plausi.checked_value == 1000

    def test_rate_40_accepted(self, plausi):
        plausi.check("1000", 100.0)
        assert plausi.check("1040", 101.0)
        assert plausi.checked_value == 1040
        assert plausi.checked_time == 101.0
