"""
Digit Classifier Contract
=========================

A classifier maps ordered digit crops to a digit string with one
character per crop. Positions it cannot resolve are UNRESOLVED_DIGIT.
"""

from typing import Protocol, Sequence, runtime_checkable

import numpy as np


class TrainingDataError(RuntimeError):
    """Raised when recognition is requested without usable training data."""


@runtime_checkable
class DigitClassifier(Protocol):
    """Protocol for digit classifiers."""

    def recognize(self, crops: Sequence[np.ndarray]) -> str:
        """Return one character per crop ('0'-'9' or '?')."""
        ...
