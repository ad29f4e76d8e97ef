"""
Frame Data Model
=================

Internal frame representation for the acquisition layer.

This module defines the typed Frame class that is used as the interface
between frame sources and the digit segmenter.

Design Rules:
    - This is the ONLY frame format passed to downstream stages
    - Carries the decoded image and its capture time
    - The image is never modified by the acquisition layer after creation
"""

from dataclasses import dataclass
from datetime import datetime

import numpy as np


@dataclass(frozen=True, eq=False, slots=True)
class Frame:
    """
    One captured image of the meter.

    Attributes:
        image: Decoded image (H, W) or (H, W, 3), uint8
        timestamp: UNIX timestamp of the capture
        source: Where the frame came from (file path or camera label)
    """

    image: np.ndarray
    timestamp: float
    source: str = ""

    @property
    def captured_at(self) -> datetime:
        """Capture time as a local datetime."""
        return datetime.fromtimestamp(self.timestamp)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(source={self.source!r}, "
            f"timestamp={self.timestamp:.3f}, "
            f"shape={self.image.shape})"
        )
