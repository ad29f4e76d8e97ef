"""
counter-ocr
===========

Reads the mechanical counter of a utility meter from camera frames.

The package isolates the digit wheels of the counter in each frame and
filters the recognised values so that only physically plausible,
monotonically increasing readings reach storage.

Components:
    - geometry: Rotation, edge and line helpers
    - segmentation: Digit-wheel detection and cropping (DigitSegmenter)
    - plausibility: Rate-limited acceptance of readings (PlausibilityFilter)
    - recognition: Digit classifier backends
    - sources: Frame acquisition (directory, camera, watched directory)
    - sinks: Reading persistence and publication (CSV, MQTT)
    - observability: Diagnostic events and debug overlays

Example:
    from counter_ocr.config import get_settings
    from counter_ocr.segmentation import DigitSegmenter
    from counter_ocr.plausibility import PlausibilityFilter

    settings = get_settings()
    segmenter = DigitSegmenter(settings.segmentation)
    segmenter.set_input(image)
    crops = segmenter.process()
"""

__version__ = "0.9.7"
__author__ = "counter-ocr contributors"

__all__ = [
    "__version__",
]
