"""
Geometry Models
===============

Geometric primitives used by the digit segmentation pipeline.

Supported Geometries:
    - BoundingBox: Axis-aligned integer rectangle (x, y, width, height)
    - Line: Polar line descriptor (rho, theta) from a Hough transform

Note:
    All coordinates are in IMAGE SPACE (pixels), origin at the top-left
    corner. X increases rightward, Y increases downward.
"""

import math
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Integer rectangle around a digit-wheel candidate.

    This is the unit of identity for a detected digit. Two boxes with the
    same coordinates are the same candidate.

    Attributes:
        x: Left edge (pixels)
        y: Top edge (pixels)
        width: Horizontal extent (pixels)
        height: Vertical extent (pixels)
    """

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_rect(cls, rect: Tuple[int, int, int, int]) -> "BoundingBox":
        """Build from an OpenCV ``(x, y, w, h)`` tuple."""
        x, y, w, h = rect
        return cls(int(x), int(y), int(w), int(h))

    @property
    def right(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def bottom(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def intersection_area(self, other: "BoundingBox") -> int:
        """Area shared with another box (0 if disjoint or only touching)."""
        overlap_w = min(self.right, other.right) - max(self.x, other.x)
        overlap_h = min(self.bottom, other.bottom) - max(self.y, other.y)
        if overlap_w <= 0 or overlap_h <= 0:
            return 0
        return overlap_w * overlap_h

    def intersects(self, other: "BoundingBox") -> bool:
        """True if the two boxes share a positive area."""
        return self.intersection_area(other) > 0

    def as_rect(self) -> Tuple[int, int, int, int]:
        """Return as an OpenCV ``(x, y, w, h)`` tuple."""
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class Line:
    """
    Straight line in Hough normal form.

    Attributes:
        rho: Distance from the image origin (pixels)
        theta: Angle of the line normal (radians, [0, π))
    """

    rho: float
    theta: float

    @property
    def theta_degrees(self) -> float:
        return math.degrees(self.theta)

    def __repr__(self) -> str:
        return f"Line(rho={self.rho:.1f}, theta={self.theta_degrees:.1f}°)"
