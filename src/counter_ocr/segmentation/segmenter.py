"""
Digit Segmenter
===============

Per-frame pipeline that isolates the digit wheels of a meter counter.

Pipeline (one call to process()):
    1. Convert to grayscale
    2. Rotate by the configured fixed angle (camera mount correction)
    3. Estimate residual skew from near-horizontal lines and cancel it
    4. Detect digit boxes, select the digit row, cut edge-map crops

Design Rules:
    - No state survives between frames except the bound input
    - A failed skew estimate is never fatal (0° correction)
    - An empty digit row is a valid "no reading this frame" outcome
    - Diagnostics go to the observer, never straight to a log sink
    - Debug overlay is drawn on a separate image and never changes output

Example:
    segmenter = DigitSegmenter(settings.segmentation)
    segmenter.set_input(frame)
    crops = segmenter.process()
    for crop, roi in zip(crops, segmenter.rois):
        ...
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from counter_ocr.config import SegmentationConfig
from counter_ocr.geometry.ops import (
    canny_edges,
    detect_lines,
    estimate_skew,
    filter_near_horizontal,
    rotate,
    to_grayscale,
)
from counter_ocr.models.geometry import BoundingBox
from counter_ocr.models.reading import UNRESOLVED_DIGIT
from counter_ocr.observability.events import (
    DiagnosticObserver,
    DigitBoxesDetected,
    LoggingObserver,
    SkewEstimated,
    SkewUndetected,
)
from counter_ocr.observability.overlay import (
    cross_out,
    draw_lines,
    draw_rois,
    to_overlay_image,
)
from counter_ocr.segmentation.boxes import BoxSet, passes_size_filter, select_digit_row


logger = logging.getLogger(__name__)


class DigitSegmenter:
    """
    Isolates the digit wheels of a meter counter in a frame.

    Not thread-safe: set_input/process/get_output share instance state.
    Use one segmenter per pipeline thread.

    Attributes:
        config: Segmentation parameters
        debug: Whether a colour debug overlay is maintained
    """

    def __init__(
        self,
        config: Optional[SegmentationConfig] = None,
        observer: Optional[DiagnosticObserver] = None,
        debug: bool = False,
    ) -> None:
        """
        Initialize digit segmenter.

        Args:
            config: Segmentation parameters (defaults if None)
            observer: Receives diagnostic events (logs them if None)
            debug: Maintain a colour overlay image with ROIs and skew lines
        """
        self.config = config or SegmentationConfig()
        self.debug = debug
        self._observer: DiagnosticObserver = observer or LoggingObserver(logger)

        self._input: Optional[np.ndarray] = None
        self._gray: Optional[np.ndarray] = None
        self._overlay: Optional[np.ndarray] = None
        self._digits: List[np.ndarray] = []
        self._rois: List[BoundingBox] = []
        self._skew: float = 0.0

    # =========================================================================
    # Public API
    # =========================================================================

    def set_input(self, frame: np.ndarray) -> None:
        """
        Bind a new frame, replacing any previous one.

        Args:
            frame: Grayscale or BGR(A) image, uint8
        """
        if frame is None or frame.size == 0:
            raise ValueError("Cannot bind an empty frame")
        self._input = frame

    def process(self) -> List[np.ndarray]:
        """
        Run the full pipeline on the bound frame.

        Every call starts again from the bound frame, so processing the
        same frame twice yields the same crops.

        Returns:
            Ordered digit crops (left to right, may be empty)

        Raises:
            RuntimeError: If no frame has been bound
        """
        if self._input is None:
            raise RuntimeError("No input frame bound; call set_input() first")

        self._digits = []
        self._rois = []

        self._gray = to_grayscale(self._input)
        self._overlay = to_overlay_image(self._input) if self.debug else None

        # initial rotation to get the digits up
        self._rotate(self.config.rotation_degrees)

        # detect and correct remaining skew (±30°)
        self._skew = self.detect_skew()
        self._rotate(self._skew)

        self.find_counter_digits()

        if self._overlay is not None:
            draw_rois(self._overlay, self._rois)

        return self._digits

    def get_output(self) -> List[np.ndarray]:
        """Ordered digit crops of the last process() call."""
        return self._digits

    @property
    def rois(self) -> List[BoundingBox]:
        """Digit boxes parallel to get_output()."""
        return self._rois

    @property
    def skew(self) -> float:
        """Skew correction applied by the last process() call (degrees)."""
        return self._skew

    @property
    def gray(self) -> Optional[np.ndarray]:
        """Normalised grayscale frame of the last process() call."""
        return self._gray

    @property
    def debug_image(self) -> Optional[np.ndarray]:
        """Colour overlay image (None unless debug is enabled)."""
        return self._overlay

    def mark_bad_digits(self, digits: str) -> Optional[np.ndarray]:
        """
        Cross out the ROIs the classifier could not resolve.

        Debug-only side effect on the overlay image. Segmentation output
        is never changed. Positions beyond the known ROIs are ignored.

        Args:
            digits: Classifier output, one character per crop

        Returns:
            The overlay image, or None if debug is disabled
        """
        if self._overlay is None:
            return None
        for index, char in enumerate(digits):
            if char == UNRESOLVED_DIGIT and index < len(self._rois):
                cross_out(self._overlay, self._rois[index])
        return self._overlay

    # =========================================================================
    # Pipeline Steps
    # =========================================================================

    def detect_skew(self) -> float:
        """
        Estimate skew from near-horizontal lines (±30°).

        Returns:
            Skew in degrees, 0.0 if no line qualifies
        """
        edges = self._edges()
        lines = detect_lines(edges, self.config.skew_vote_threshold)
        horizontal = filter_near_horizontal(lines)

        skew = estimate_skew(horizontal)
        if skew is None:
            self._observer(SkewUndetected(total_lines=len(lines)))
            return 0.0

        self._observer(SkewEstimated(angle_degrees=skew, line_count=len(horizontal)))
        if self._overlay is not None:
            draw_lines(self._overlay, horizontal)
        return skew

    def find_counter_digits(self) -> None:
        """Find the digit row and cut one edge-map crop per digit."""
        edges = self._edges()

        contours, _ = cv2.findContours(
            edges.copy(), cv2.RETR_CCOMP, cv2.CHAIN_APPROX_NONE
        )

        candidates = BoxSet()
        for contour in contours:
            box = BoundingBox.from_rect(cv2.boundingRect(contour))
            if passes_size_filter(
                box, self.config.digit_min_height, self.config.digit_max_height
            ):
                candidates.add(box)

        row = select_digit_row(candidates.to_list(), self.config.digit_y_alignment)

        for roi in row:
            self._digits.append(edges[roi.y:roi.bottom, roi.x:roi.right].copy())
            self._rois.append(roi)

        self._observer(
            DigitBoxesDetected(
                contour_count=len(contours),
                candidate_count=len(candidates),
                row_size=len(row),
            )
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _edges(self) -> np.ndarray:
        return canny_edges(
            self._gray, self.config.canny_threshold1, self.config.canny_threshold2
        )

    def _rotate(self, angle_degrees: float) -> None:
        self._gray = rotate(self._gray, angle_degrees)
        if self._overlay is not None:
            self._overlay = rotate(self._overlay, angle_degrees)
