"""
K-Nearest Digit Classifier
==========================

Recognizes digit crops with OpenCV's k-nearest-neighbour model.

Features:
    Each crop is resized to 10x10 pixels and flattened into a float32
    row of 100 values.

Decision Rule (k = 2):
    A digit is assigned only if both nearest neighbours carry the same
    label AND the distance to the nearest one is below max_distance.
    Otherwise the position is UNRESOLVED_DIGIT.

Training Data:
    Samples are learned interactively (one key press per crop) and
    persisted as a NumPy ``.npz`` archive with ``samples`` and
    ``responses`` arrays.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np

from counter_ocr.models.reading import UNRESOLVED_DIGIT
from counter_ocr.recognition.base import TrainingDataError


logger = logging.getLogger(__name__)


FEATURE_SIZE = (10, 10)
NEIGHBOURS = 2

# Learning keys
KEY_SKIP = " "
KEY_SAVE = "s"
KEY_QUIT = "q"


def extract_features(crop: np.ndarray) -> np.ndarray:
    """
    Convert a crop into one feature row.

    Args:
        crop: Digit crop (grayscale or edge map)

    Returns:
        float32 array of shape (1, 100)
    """
    small = cv2.resize(crop, FEATURE_SIZE)
    return small.reshape((1, FEATURE_SIZE[0] * FEATURE_SIZE[1])).astype(np.float32)


class KNearestClassifier:
    """
    k-nearest-neighbour digit classifier.

    Attributes:
        training_data_path: Where samples are loaded from and saved to
        max_distance: Maximum nearest distance for a confident digit

    Example:
        ocr = KNearestClassifier("trainctr.npz")
        ocr.load_training_data()
        digits = ocr.recognize(segmenter.get_output())
    """

    def __init__(
        self,
        training_data_path: str = "trainctr.npz",
        max_distance: float = 5e5,
    ) -> None:
        if max_distance <= 0:
            raise ValueError("max_distance must be positive")

        self.training_data_path = training_data_path
        self.max_distance = max_distance

        self._samples: List[np.ndarray] = []
        self._responses: List[int] = []
        self._model = None

    # =========================================================================
    # Training Data
    # =========================================================================

    @property
    def sample_count(self) -> int:
        return len(self._responses)

    def has_training_data(self) -> bool:
        return self.sample_count > 0

    def load_training_data(self, path: Optional[str] = None) -> bool:
        """
        Load samples from an ``.npz`` archive and train the model.

        Args:
            path: Archive path (defaults to training_data_path)

        Returns:
            True if samples were loaded
        """
        path = path or self.training_data_path
        if not Path(path).exists():
            logger.warning(f"Training data not found: {path}")
            return False

        with np.load(path) as data:
            samples = data["samples"].astype(np.float32)
            responses = data["responses"].astype(np.int32).ravel()

        self._samples = [row.reshape(1, -1) for row in samples]
        self._responses = [int(r) for r in responses]
        self._model = None
        logger.info(f"Loaded {self.sample_count} training samples from {path}")
        return self.has_training_data()

    def save_training_data(self, path: Optional[str] = None) -> None:
        """
        Write samples to an ``.npz`` archive.

        Raises:
            TrainingDataError: If there are no samples to save
        """
        if not self.has_training_data():
            raise TrainingDataError("No training samples to save")

        path = path or self.training_data_path
        samples = np.vstack(self._samples).astype(np.float32)
        responses = np.array(self._responses, dtype=np.float32).reshape(-1, 1)
        np.savez(path, samples=samples, responses=responses)
        logger.info(f"Saved {self.sample_count} training samples to {path}")

    def add_sample(self, crop: np.ndarray, digit: int) -> None:
        """
        Add one labelled crop.

        Args:
            crop: Digit crop
            digit: Label 0-9
        """
        if not 0 <= digit <= 9:
            raise ValueError(f"Digit label out of range: {digit}")
        self._samples.append(extract_features(crop))
        self._responses.append(digit)
        self._model = None

    def learn(
        self,
        crops: Sequence[np.ndarray],
        ask: Callable[[np.ndarray], str],
    ) -> str:
        """
        Label crops one by one.

        ``ask`` shows a crop to the operator and returns the pressed key:
        '0'-'9' labels the crop, space skips it, 's' or 'q' stops.

        Args:
            crops: Digit crops to label
            ask: Callback returning one key per crop

        Returns:
            The last key pressed ('' if there were no crops)
        """
        key = ""
        for crop in crops:
            key = ask(crop)
            if key.isdigit() and len(key) == 1:
                self.add_sample(crop, int(key))
            elif key in (KEY_SAVE, KEY_QUIT):
                break
        return key

    # =========================================================================
    # Recognition
    # =========================================================================

    def recognize(self, crops: Sequence[np.ndarray]) -> str:
        """
        Recognize ordered digit crops.

        Args:
            crops: Digit crops, left to right

        Returns:
            Digit string with UNRESOLVED_DIGIT for uncertain positions

        Raises:
            TrainingDataError: If fewer than 2 samples are available
        """
        model = self._trained_model()
        return "".join(self._recognize_one(model, crop) for crop in crops)

    def _recognize_one(self, model, crop: np.ndarray) -> str:
        _, _, neighbours, distances = model.findNearest(
            extract_features(crop), NEIGHBOURS
        )
        if (
            int(neighbours[0][0]) == int(neighbours[0][1])
            and float(distances[0][0]) < self.max_distance
        ):
            return str(int(neighbours[0][0]))
        return UNRESOLVED_DIGIT

    def _trained_model(self):
        if self.sample_count < NEIGHBOURS:
            raise TrainingDataError(
                f"Need at least {NEIGHBOURS} training samples, have {self.sample_count}"
            )
        if self._model is None:
            samples = np.vstack(self._samples).astype(np.float32)
            responses = np.array(self._responses, dtype=np.float32).reshape(-1, 1)
            self._model = cv2.ml.KNearest_create()
            self._model.train(samples, cv2.ml.ROW_SAMPLE, responses)
        return self._model
