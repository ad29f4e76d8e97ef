"""
Reading Sink Contract
=====================

Sinks receive accepted readings only. A sink failure must never stop
the pipeline; the runner logs and counts it.
"""

from typing import Protocol, runtime_checkable

from counter_ocr.models.reading import Reading


@runtime_checkable
class ReadingSink(Protocol):
    """Protocol for reading destinations."""

    def write(self, reading: Reading) -> None:
        ...

    def close(self) -> None:
        ...
