"""
Geometry Operations
===================

Stateless raster helpers used by the digit segmenter.

This module provides:
    - Grayscale conversion (no-op for single-channel frames)
    - Size-preserving rotation around the frame centre
    - Canny edge extraction
    - Hough line detection and skew estimation

Angle Convention:
    Positive angles rotate the image content counter-clockwise on
    screen (OpenCV convention). A frame rotated by +a degrees yields a
    skew estimate of -a degrees, so rotating by the estimate restores
    the upright orientation.
"""

from typing import List, Optional, Sequence

import cv2
import numpy as np

from counter_ocr.models.geometry import Line


# Lines with a normal angle in this range are near-horizontal (±30°)
SKEW_THETA_MIN_DEG = 60.0
SKEW_THETA_MAX_DEG = 120.0

DEFAULT_HOUGH_THRESHOLD = 140


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert a frame to single-channel grayscale.

    Args:
        image: Grayscale (H, W), BGR (H, W, 3) or BGRA (H, W, 4) frame

    Returns:
        Grayscale copy of the frame (H, W), same dtype

    Raises:
        ValueError: If the frame has an unsupported shape
    """
    if image.ndim == 2:
        return image.copy()
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0].copy()
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported frame shape: {image.shape}")


def rotate(image: np.ndarray, angle_degrees: float) -> np.ndarray:
    """
    Rotate an image around its geometric centre.

    The output has the same size as the input; corners that leave the
    frame are cut off and uncovered areas are filled with black.

    Args:
        image: Image to rotate (any channel count)
        angle_degrees: Rotation angle, positive = counter-clockwise

    Returns:
        Rotated image
    """
    if angle_degrees == 0:
        return image
    rows, cols = image.shape[:2]
    matrix = cv2.getRotationMatrix2D((cols // 2, rows // 2), angle_degrees, 1.0)
    return cv2.warpAffine(image, matrix, (cols, rows))


def canny_edges(gray: np.ndarray, threshold1: float, threshold2: float) -> np.ndarray:
    """
    Detect edges with the Canny double-threshold detector.

    Args:
        gray: Grayscale image (H, W), uint8
        threshold1: Lower hysteresis threshold
        threshold2: Upper hysteresis threshold

    Returns:
        Binary edge map (H, W), uint8 with values 0 or 255
    """
    return cv2.Canny(gray, threshold1, threshold2)


def detect_lines(edges: np.ndarray, threshold: int = DEFAULT_HOUGH_THRESHOLD) -> List[Line]:
    """
    Find straight line candidates in an edge map.

    Uses the standard Hough transform with 1 pixel and 1 degree
    resolution.

    Args:
        edges: Binary edge map
        threshold: Minimum accumulator votes for a line

    Returns:
        Detected lines (may be empty)
    """
    lines = cv2.HoughLines(edges, 1, np.pi / 180, threshold)
    if lines is None:
        return []
    return [Line(rho=float(rho), theta=float(theta)) for rho, theta in lines[:, 0, :]]


def filter_near_horizontal(
    lines: Sequence[Line],
    min_degrees: float = SKEW_THETA_MIN_DEG,
    max_degrees: float = SKEW_THETA_MAX_DEG,
) -> List[Line]:
    """Keep lines whose normal angle lies in [min_degrees, max_degrees]."""
    # HoughLines reports theta as float32; bounds must match its precision
    theta_min = np.float32(np.deg2rad(min_degrees))
    theta_max = np.float32(np.deg2rad(max_degrees))
    return [
        line for line in lines
        if theta_min <= np.float32(line.theta) <= theta_max
    ]


def estimate_skew(lines: Sequence[Line]) -> Optional[float]:
    """
    Estimate the skew angle from near-horizontal lines.

    Formula:
        skew = mean(theta) - 90°

    Args:
        lines: Candidate lines (already filtered to the accepted range)

    Returns:
        Skew in degrees, or None if there are no lines
    """
    if not lines:
        return None
    theta_mean = float(np.mean([line.theta for line in lines]))
    return float(np.rad2deg(theta_mean) - 90.0)
