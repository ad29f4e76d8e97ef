"""
Debug Overlay
=============

Draw segmentation results onto a colour copy of the frame.

Overlays are PURELY DESCRIPTIVE. They are drawn on a separate debug
image and never feed back into segmentation or plausibility decisions.

Artifacts:
    - Skew lines (blue)
    - Digit ROIs with their index (green)
    - Crossed-out ROIs for unresolved digits (white)
"""

from typing import Sequence

import cv2
import numpy as np

from counter_ocr.models.geometry import BoundingBox, Line


UNRESOLVED_COLOR = (255, 255, 255)
LINE_COLOR = (255, 0, 0)


def to_overlay_image(image: np.ndarray) -> np.ndarray:
    """Return a BGR copy of ``image`` suitable for drawing."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def draw_lines(image: np.ndarray, lines: Sequence[Line], length: int = 1000) -> None:
    """Draw Hough lines across the image (in place)."""
    for line in lines:
        a, b = np.cos(line.theta), np.sin(line.theta)
        x0, y0 = a * line.rho, b * line.rho
        pt1 = (int(round(x0 - length * b)), int(round(y0 + length * a)))
        pt2 = (int(round(x0 + length * b)), int(round(y0 - length * a)))
        cv2.line(image, pt1, pt2, LINE_COLOR, 1)


def draw_rois(image: np.ndarray, rois: Sequence[BoundingBox]) -> None:
    """Draw numbered digit rectangles (in place)."""
    for index, roi in enumerate(rois):
        color = (0, 255, min(255, index * 30))
        center = (roi.x + roi.width // 2, roi.y + roi.height // 2)
        cv2.putText(image, str(index), center, cv2.FONT_HERSHEY_SIMPLEX, 1, color)
        cv2.rectangle(image, (roi.x, roi.y), (roi.right, roi.bottom), color, 2)


def cross_out(image: np.ndarray, roi: BoundingBox) -> None:
    """Draw a crossed box over one ROI (in place)."""
    cv2.rectangle(image, (roi.x, roi.y), (roi.right, roi.bottom), UNRESOLVED_COLOR, 2)
    cv2.line(image, (roi.x, roi.y), (roi.right, roi.bottom), UNRESOLVED_COLOR, 2)
    cv2.line(image, (roi.right, roi.y), (roi.x, roi.bottom), UNRESOLVED_COLOR, 2)
