"""
Recognition Module
==================

Digit classification of segmented crops.

Components:
    - DigitClassifier: Protocol (crops -> digit string)
    - KNearestClassifier: OpenCV k-nearest-neighbour implementation
    - TrainingDataError: Recognition requested without samples
"""

from counter_ocr.recognition.base import DigitClassifier, TrainingDataError
from counter_ocr.recognition.knearest import KNearestClassifier, extract_features


__all__ = [
    "DigitClassifier",
    "KNearestClassifier",
    "TrainingDataError",
    "extract_features",
]
