"""
Capture File Naming
===================

Frames are stored as ``YYYYMMDD-HHMMSS.png`` (local time). The capture
time of an archived frame is recovered from that name.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


CAPTURE_NAME_FORMAT = "%Y%m%d-%H%M%S"


def format_capture_name(timestamp: float, extension: str = ".png") -> str:
    """Build the file name for a frame captured at ``timestamp``."""
    return datetime.fromtimestamp(timestamp).strftime(CAPTURE_NAME_FORMAT) + extension


def parse_capture_time(path: Union[str, Path]) -> Optional[float]:
    """
    Read the capture time from a ``YYYYMMDD-HHMMSS`` file name prefix.

    Args:
        path: File name or path; only the name's first 15 characters count

    Returns:
        UNIX timestamp (local time), or None if the name has no such prefix
    """
    prefix = Path(path).name[:15]
    try:
        captured = datetime.strptime(prefix, CAPTURE_NAME_FORMAT)
    except ValueError:
        return None
    return time.mktime(captured.timetuple())
