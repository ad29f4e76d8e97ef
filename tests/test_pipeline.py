"""
Pipeline Tests
==============

MeterReader wiring: digit count check, plausibility and sink handling.
"""

from counter_ocr.config import SegmentationConfig, Settings
from counter_ocr.models.reason_codes import RejectReason
from counter_ocr.pipeline import MeterReader, build_filter, create_sinks
from counter_ocr.plausibility import PlausibilityFilter
from counter_ocr.segmentation import DigitSegmenter
from counter_ocr.sinks import CsvReadingSink

from conftest import ListFrameSource, ScriptedClassifier, make_frames


class MemorySink:
    def __init__(self):
        self.readings = []
        self.closed = False

    def write(self, reading):
        self.readings.append(reading)

    def close(self):
        self.closed = True


class BrokenSink:
    def write(self, reading):
        raise ConnectionError("broker gone")

    def close(self):
        raise ConnectionError("broker gone")


def make_reader(results, sinks=(), expected_digits=7, **kwargs):
    return MeterReader(
        segmenter=DigitSegmenter(SegmentationConfig(skew_vote_threshold=10000)),
        classifier=ScriptedClassifier(results),
        plausibility=PlausibilityFilter(max_rate=50, digit_count=7),
        sinks=sinks,
        expected_digits=expected_digits,
        **kwargs,
    )


class TestMeterReader:
    """Tests for the reading loop."""

    def test_accepted_readings_reach_sinks(self):
        sink = MemorySink()
        reader = make_reader(["0001000", "0001010", "0001020"], sinks=[sink])

        metrics = reader.run(ListFrameSource(make_frames(3)))

        assert [r.value for r in sink.readings] == [1000, 1010, 1020]
        assert metrics.frames_processed == 3
        assert metrics.readings_accepted == 3

    def test_rejected_readings_are_not_persisted(self):
        sink = MemorySink()
        reader = make_reader(["0001000", "0009000", "00010?0"], sinks=[sink])

        metrics = reader.run(ListFrameSource(make_frames(3)))

        assert [r.value for r in sink.readings] == [1000]
        assert metrics.readings_rejected == 2

    def test_wrong_digit_count_skips_frame(self):
        classifier_results = ["0001000"]
        reader = make_reader(classifier_results, expected_digits=7)

        outcome = reader.process_frame(make_frames(1, digits=5)[0])

        assert outcome.digit_count == 5
        assert outcome.result is None
        assert reader.classifier.calls == 0
        assert reader.metrics.digit_count_mismatches == 1

    def test_any_digit_count_when_unset(self):
        reader = make_reader(["00010"], expected_digits=None)
        outcome = reader.process_frame(make_frames(1, digits=5)[0])
        assert outcome.digits == "00010"
        assert outcome.result.reason == RejectReason.WRONG_LENGTH

    def test_sink_failure_does_not_stop_run(self):
        good = MemorySink()
        reader = make_reader(["0001000", "0001001"], sinks=[BrokenSink(), good])

        metrics = reader.run(ListFrameSource(make_frames(2)))

        assert metrics.sink_errors == 2
        assert len(good.readings) == 2

    def test_close_closes_all_sinks(self):
        good = MemorySink()
        reader = make_reader([], sinks=[BrokenSink(), good])
        reader.close()
        assert good.closed

    def test_stop_ends_run(self):
        reader = make_reader(["0001000"] * 3)
        reader.stop()
        metrics = reader.run(ListFrameSource(make_frames(3)))
        assert metrics.frames_processed == 0
        assert reader.stopped

    def test_on_reading_callback(self):
        seen = []
        reader = make_reader(["0001000"], on_reading=seen.append)
        reader.run(ListFrameSource(make_frames(1)))
        assert [r.value for r in seen] == [1000]

    def test_debug_frames_written_when_directory_exists(self, tmp_path):
        debug_dir = tmp_path / "imgdebug"
        debug_dir.mkdir()
        reader = make_reader(["0001000"], debug_dir=str(debug_dir))

        reader.run(ListFrameSource(make_frames(1)))

        assert len(list(debug_dir.glob("*.png"))) == 1

    def test_missing_debug_directory_is_ignored(self, tmp_path):
        reader = make_reader(["0001000"], debug_dir=str(tmp_path / "absent"))
        reader.run(ListFrameSource(make_frames(1)))
        assert not (tmp_path / "absent").exists()


class TestFactories:
    """Tests for settings-driven construction."""

    def test_build_filter_uses_settings(self):
        settings = Settings()
        settings.plausibility.max_rate = 7.0
        plausi = build_filter(settings)
        assert plausi.max_rate == 7.0
        assert plausi.digit_count == 7
        assert plausi.decimal_places == 1

    def test_create_sinks(self, tmp_path):
        settings = Settings()
        assert create_sinks(settings) == []

        settings.storage.csv_path = str(tmp_path / "r.csv")
        sinks = create_sinks(settings)
        assert len(sinks) == 1
        assert isinstance(sinks[0], CsvReadingSink)
