"""
CSV Reading Sink
================

Append-only time-series store for accepted readings.

Row Format:
    timestamp,time,value
    1700000000,2023-11-14T23:13:20,12345.6
"""

import csv
import logging
from datetime import datetime
from pathlib import Path

from counter_ocr.models.reading import Reading


logger = logging.getLogger(__name__)


CSV_HEADER = ("timestamp", "time", "value")


class CsvReadingSink:
    """
    Appends one row per accepted reading.

    The header is written only when the file is created.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self.rows_written = 0
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists() or self.path.stat().st_size == 0:
            with open(self.path, "w", newline="") as f:
                csv.writer(f).writerow(CSV_HEADER)
        logger.info(f"CsvReadingSink writing to {self.path}")

    def write(self, reading: Reading) -> None:
        with open(self.path, "a", newline="") as f:
            csv.writer(f).writerow((
                f"{reading.timestamp:.0f}",
                datetime.fromtimestamp(reading.timestamp).isoformat(timespec="seconds"),
                reading.value,
            ))
        self.rows_written += 1

    def close(self) -> None:
        logger.info(f"CsvReadingSink closed after {self.rows_written} rows")
