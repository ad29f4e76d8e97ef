"""
Meter Reading Pipeline
======================

Runs the unattended reading loop (the normal working mode).

Per frame:
    source -> segmenter -> digit count check -> classifier
           -> plausibility filter -> sinks (accepted readings only)

Failure Handling:
    - Wrong digit count: frame counted and skipped
    - Implausible reading: rejected by the filter, nothing persisted
    - Sink error: logged and counted, the loop keeps running

A debug copy of every frame is written into ``debug_dir`` if that
directory exists when the frame is processed.
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from counter_ocr.config import Settings
from counter_ocr.models.reading import PlausibilityResult, Reading
from counter_ocr.observability.events import DiagnosticObserver
from counter_ocr.plausibility.filter import PlausibilityFilter
from counter_ocr.recognition.base import DigitClassifier, TrainingDataError
from counter_ocr.recognition.knearest import KNearestClassifier
from counter_ocr.segmentation.segmenter import DigitSegmenter
from counter_ocr.sinks.base import ReadingSink
from counter_ocr.sinks.csv_sink import CsvReadingSink
from counter_ocr.sinks.mqtt_sink import MqttReadingSink
from counter_ocr.sources.base import FrameSource
from counter_ocr.sources.frame import Frame


logger = logging.getLogger(__name__)


@dataclass
class PipelineMetrics:
    """Counters of one pipeline run."""

    frames_processed: int = 0
    digit_count_mismatches: int = 0
    readings_accepted: int = 0
    readings_rejected: int = 0
    sink_errors: int = 0

    def to_dict(self) -> dict:
        return {
            "frames_processed": self.frames_processed,
            "digit_count_mismatches": self.digit_count_mismatches,
            "readings_accepted": self.readings_accepted,
            "readings_rejected": self.readings_rejected,
            "sink_errors": self.sink_errors,
        }


@dataclass(frozen=True)
class FrameOutcome:
    """What happened to one frame."""

    frame: Frame
    digit_count: int
    digits: Optional[str] = None
    result: Optional[PlausibilityResult] = None


def build_filter(
    settings: Settings, observer: Optional[DiagnosticObserver] = None
) -> PlausibilityFilter:
    """Create a plausibility filter from settings."""
    cfg = settings.plausibility
    return PlausibilityFilter(
        max_rate=cfg.max_rate,
        window=cfg.window,
        time_unit_seconds=cfg.time_unit_seconds,
        digit_count=cfg.digit_count,
        decimal_places=cfg.decimal_places,
        policy=cfg.policy,
        observer=observer,
    )


class MeterReader:
    """
    Drives frames through segmentation, recognition and plausibility.

    Not thread-safe except for stop(), which may be called from any
    thread to end run() after the current frame.

    Example:
        reader = MeterReader(segmenter, classifier, plausi, sinks=[csv_sink])
        with DirectoryFrameSource("./images") as source:
            reader.run(source)
    """

    def __init__(
        self,
        segmenter: DigitSegmenter,
        classifier: DigitClassifier,
        plausibility: PlausibilityFilter,
        sinks: Sequence[ReadingSink] = (),
        expected_digits: Optional[int] = None,
        delay_ms: int = 0,
        debug_dir: Optional[str] = None,
        on_reading: Optional[Callable[[Reading], None]] = None,
    ) -> None:
        """
        Initialize meter reader.

        Args:
            segmenter: Digit segmenter
            classifier: Digit classifier (training data loaded)
            plausibility: Plausibility filter
            sinks: Destinations for accepted readings
            expected_digits: Skip frames with another crop count (None = any)
            delay_ms: Pause after each frame
            debug_dir: Write frames here if the directory exists
            on_reading: Called with every accepted reading
        """
        self.segmenter = segmenter
        self.classifier = classifier
        self.plausibility = plausibility
        self.sinks: List[ReadingSink] = list(sinks)
        self.expected_digits = expected_digits
        self.delay_ms = delay_ms
        self.debug_dir = debug_dir
        self.on_reading = on_reading

        self.metrics = PipelineMetrics()
        self._stop_event = threading.Event()

    def stop(self) -> None:
        """Request the run loop to end."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self, source: FrameSource) -> PipelineMetrics:
        """
        Process frames until the source is exhausted or stop() is called.

        Args:
            source: Frame source

        Returns:
            Metrics of the run
        """
        logger.info("MeterReader started")
        while not self._stop_event.is_set():
            frame = source.read()
            if frame is None:
                break
            self.process_frame(frame)
            self._write_debug_frame(source, frame)
            if self.delay_ms and self._stop_event.wait(self.delay_ms / 1000.0):
                break

        logger.info(f"MeterReader stopped: {self.metrics.to_dict()}")
        return self.metrics

    def process_frame(self, frame: Frame) -> FrameOutcome:
        """
        Process one frame.

        Args:
            frame: Frame to read

        Returns:
            FrameOutcome describing the result
        """
        self.metrics.frames_processed += 1

        self.segmenter.set_input(frame.image)
        crops = self.segmenter.process()

        if self.expected_digits is not None and len(crops) != self.expected_digits:
            self.metrics.digit_count_mismatches += 1
            logger.debug(
                f"Skipping {frame}: {len(crops)} digits, expected {self.expected_digits}"
            )
            return FrameOutcome(frame=frame, digit_count=len(crops))

        digits = self.classifier.recognize(crops)
        self.segmenter.mark_bad_digits(digits)

        result = self.plausibility.evaluate(digits, frame.timestamp)
        if result.accepted:
            self.metrics.readings_accepted += 1
            self._publish(result.reading)
        else:
            self.metrics.readings_rejected += 1

        return FrameOutcome(
            frame=frame, digit_count=len(crops), digits=digits, result=result
        )

    def close(self) -> None:
        """Close all sinks."""
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                logger.error(f"Failed to close sink {sink!r}: {e}")

    def _publish(self, reading: Reading) -> None:
        for sink in self.sinks:
            try:
                sink.write(reading)
            except Exception as e:
                self.metrics.sink_errors += 1
                logger.error(f"Sink {type(sink).__name__} failed for {reading}: {e}")

        if self.on_reading is not None:
            self.on_reading(reading)

    def _write_debug_frame(self, source: FrameSource, frame: Frame) -> None:
        if self.debug_dir and os.path.isdir(self.debug_dir):
            source.save_frame(frame, self.debug_dir)


# =============================================================================
# Component Factory
# =============================================================================

def create_sinks(settings: Settings) -> List[ReadingSink]:
    """Create the sinks enabled in settings."""
    sinks: List[ReadingSink] = []
    if settings.storage.csv_path:
        sinks.append(CsvReadingSink(settings.storage.csv_path))
    if settings.mqtt.enabled:
        mqtt_sink = MqttReadingSink(settings.mqtt)
        mqtt_sink.connect()
        sinks.append(mqtt_sink)
    return sinks


def create_classifier(settings: Settings) -> KNearestClassifier:
    """
    Create the k-nearest classifier and load its training data.

    Raises:
        TrainingDataError: If no training data could be loaded
    """
    classifier = KNearestClassifier(
        training_data_path=settings.recognition.training_data_path,
        max_distance=settings.recognition.max_distance,
    )
    if not classifier.load_training_data():
        raise TrainingDataError(
            f"Failed to load OCR training data from {classifier.training_data_path}"
        )
    return classifier


def create_reader(
    settings: Settings,
    classifier: DigitClassifier,
    on_reading: Optional[Callable[[Reading], None]] = None,
) -> MeterReader:
    """Wire segmenter, classifier, filter and sinks from settings."""
    return MeterReader(
        segmenter=DigitSegmenter(settings.segmentation),
        classifier=classifier,
        plausibility=build_filter(settings),
        sinks=create_sinks(settings),
        expected_digits=settings.pipeline.expected_digits,
        delay_ms=settings.pipeline.delay_ms,
        debug_dir=settings.pipeline.debug_dir,
        on_reading=on_reading,
    )
