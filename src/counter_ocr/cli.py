"""
counter-ocr Command Line
========================

Reads and recognizes the counter of a meter with OpenCV.

Usage:
    counter-ocr -i ./images -t           # test OCR on archived frames
    counter-ocr -c 0 -o ./images         # capture camera frames
    counter-ocr -d ./spool -w            # normal working mode
    counter-ocr -c 0 --serve             # working mode + HTTP status

Image input (exactly one):
    -i DIR      read image files (png) from directory
    -c CAMERA   read images from camera
    -d DIR      wait for new image files in directory

Operation (exactly one):
    -a          adjust camera (r/p raw or processed, s save, q quit)
    -o DIR      capture images into directory
    -l          learn OCR (0-9 label, space skip, s save, q quit)
    -t          test OCR
    -w          write accepted readings to the configured sinks
    --serve     like -w, plus the HTTP status service
"""

import argparse
import logging
import sys
import time
from typing import Callable, List, Optional

import cv2
import numpy as np

from counter_ocr import __version__
from counter_ocr.config import Settings, load_config, save_config, setup_logging
from counter_ocr.models.reading import UNRESOLVED_DIGIT
from counter_ocr.pipeline import build_filter, create_reader
from counter_ocr.recognition import KNearestClassifier, TrainingDataError
from counter_ocr.recognition.knearest import KEY_QUIT, KEY_SAVE
from counter_ocr.segmentation import DigitSegmenter
from counter_ocr.sources import (
    CameraFrameSource,
    DirectoryFrameSource,
    FrameSource,
    WatchedDirectorySource,
)


logger = logging.getLogger(__name__)


WINDOW_NAME = "counter-ocr"
DIGIT_WINDOW_NAME = "digit"


# =============================================================================
# Argument Parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="counter-ocr",
        description="Read and recognize the counter of a meter with OpenCV.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-i", dest="image_dir", metavar="DIR",
                        help="read image files (png) from directory")
    source.add_argument("-c", dest="camera", metavar="CAMERA", type=int,
                        help="read images from camera")
    source.add_argument("-d", dest="watch_dir", metavar="DIR",
                        help="wait for new image files in directory")

    operation = parser.add_mutually_exclusive_group(required=True)
    operation.add_argument("-a", dest="adjust", action="store_true",
                           help="adjust camera")
    operation.add_argument("-o", dest="output_dir", metavar="DIR",
                           help="capture images into directory")
    operation.add_argument("-l", dest="learn", action="store_true",
                           help="learn OCR")
    operation.add_argument("-t", dest="test", action="store_true",
                           help="test OCR")
    operation.add_argument("-w", dest="write", action="store_true",
                           help="write OCR data to the configured sinks (normal working mode)")
    operation.add_argument("--serve", action="store_true",
                           help="working mode plus HTTP status service")

    parser.add_argument("-s", dest="delay_ms", metavar="MS", type=int,
                        help="sleep MS milliseconds after each image (default: 1000)")
    parser.add_argument("-v", dest="log_level", metavar="LEVEL",
                        help="log level: DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--config", metavar="PATH",
                        help="path to config.yaml")
    return parser


def create_source(args: argparse.Namespace) -> FrameSource:
    """Create the frame source selected on the command line."""
    output_dir = args.output_dir
    if args.image_dir is not None:
        return DirectoryFrameSource(args.image_dir, output_dir=output_dir)
    if args.camera is not None:
        return CameraFrameSource(args.camera, output_dir=output_dir)
    return WatchedDirectorySource(args.watch_dir, output_dir=output_dir)


# =============================================================================
# Interactive Helpers
# =============================================================================

def wait_key(delay_ms: int) -> str:
    """Wait for a key in an OpenCV window ('' if none was pressed)."""
    key = cv2.waitKey(delay_ms) & 255
    return "" if key == 255 else chr(key)


def ask_digit(crop: np.ndarray) -> str:
    """Show one crop and return the operator's key."""
    cv2.imshow(DIGIT_WINDOW_NAME, crop)
    return wait_key(0)


def show_segmentation(segmenter: DigitSegmenter) -> None:
    if segmenter.debug_image is not None:
        cv2.imshow(WINDOW_NAME, segmenter.debug_image)


def load_classifier(settings: Settings, required: bool = True) -> Optional[KNearestClassifier]:
    classifier = KNearestClassifier(
        training_data_path=settings.recognition.training_data_path,
        max_distance=settings.recognition.max_distance,
    )
    if not classifier.load_training_data() and required:
        print("Failed to load OCR training data")
        return None
    return classifier


def finish_training(classifier: KNearestClassifier, key: str) -> None:
    if key != KEY_QUIT and classifier.has_training_data():
        print("Saving training data")
        classifier.save_training_data()


# =============================================================================
# Operations
# =============================================================================

def run_test(source: FrameSource, settings: Settings) -> int:
    """Show recognition results frame by frame, learning unresolved digits."""
    logger.info("Test OCR mode")

    segmenter = DigitSegmenter(settings.segmentation, debug=True)
    plausibility = build_filter(settings)

    classifier = load_classifier(settings)
    if classifier is None:
        return 1
    print("OCR training data loaded.")
    print("<q> to quit.")

    key = ""
    for frame in source:
        segmenter.set_input(frame.image)
        crops = segmenter.process()

        try:
            result = classifier.recognize(crops)
        except TrainingDataError as e:
            print(e)
            return 1
        segmenter.mark_bad_digits(result)
        show_segmentation(segmenter)

        line = f"{frame.captured_at:%c}  {result:<8}"
        if UNRESOLVED_DIGIT in result:
            print(f"{line}Learn {frame.source}")
            unresolved = [crop for crop, char in zip(crops, result) if char == UNRESOLVED_DIGIT]
            key = classifier.learn(unresolved, ask_digit)
            if key in (KEY_QUIT, KEY_SAVE):
                print("Quit")
                break

        if plausibility.check(result, frame.timestamp):
            print(f"{line}  {plausibility.checked_value:.3f}")
        else:
            print(f"{line}  -------!")

        key = wait_key(settings.pipeline.delay_ms)
        if key == KEY_QUIT:
            print("Quit")
            break

    finish_training(classifier, key)
    return 0


def run_learn(source: FrameSource, settings: Settings) -> int:
    """Label every digit crop to build training data."""
    logger.info("Learn OCR mode")

    segmenter = DigitSegmenter(settings.segmentation, debug=True)
    classifier = load_classifier(settings, required=False)
    print("Entering OCR training mode!")
    print("<0>..<9> to answer digit, <space> to ignore digit, "
          "<s> to save and quit, <q> to quit without saving.")

    key = ""
    for frame in source:
        segmenter.set_input(frame.image)
        crops = segmenter.process()
        show_segmentation(segmenter)

        key = classifier.learn(crops, ask_digit)
        print()
        if key in (KEY_QUIT, KEY_SAVE):
            print("Quit")
            break

    finish_training(classifier, key)
    return 0


def run_adjust(source: FrameSource, settings: Settings, config_path: str) -> int:
    """Show raw or processed frames while the camera is adjusted."""
    logger.info("Adjust camera mode")

    segmenter = DigitSegmenter(settings.segmentation, debug=True)
    print("Adjust camera.")
    print("<r>, <p> to select raw or processed image, "
          "<s> to save config and quit, <q> to quit without saving.")

    process_image = True
    key = ""
    for frame in source:
        if process_image:
            segmenter.set_input(frame.image)
            segmenter.process()
            show_segmentation(segmenter)
        else:
            cv2.imshow(WINDOW_NAME, frame.image)

        key = wait_key(settings.pipeline.delay_ms)
        if key in (KEY_QUIT, KEY_SAVE):
            print("Quit")
            break
        elif key == "r":
            process_image = False
        elif key == "p":
            process_image = True

    if key != KEY_QUIT:
        print("Saving config")
        save_config(settings, config_path)
    return 0


def run_capture(source: FrameSource, settings: Settings) -> int:
    """Archive frames into the source's output directory."""
    logger.info("Capture mode")

    print("Capturing images into directory.")
    print("<Ctrl-C> to quit.")
    for _ in source:
        time.sleep(settings.pipeline.delay_ms / 1000.0)
    return 0


def run_write(source: FrameSource, settings: Settings) -> int:
    """Normal working mode: persist every accepted reading."""
    logger.info("Write mode")

    classifier = load_classifier(settings)
    if classifier is None:
        return 1
    print("OCR training data loaded.")
    print("<Ctrl-C> to quit.")

    reader = create_reader(settings, classifier)
    try:
        reader.run(source)
    except KeyboardInterrupt:
        reader.stop()
    finally:
        reader.close()
    return 0


def run_serve(source_factory: Callable[[], FrameSource], settings: Settings) -> int:
    """Working mode plus the HTTP status service."""
    import uvicorn

    from counter_ocr import main as service

    service.configure(source_factory, settings=settings)
    uvicorn.run(service.app, host=settings.server.host, port=settings.server.port)
    return 0


# =============================================================================
# Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_config(args.config)
    if args.delay_ms is not None:
        settings.pipeline.delay_ms = args.delay_ms
    if args.log_level:
        settings.logging.level = args.log_level
    setup_logging(settings)

    if args.serve:
        return run_serve(lambda: create_source(args), settings)

    with create_source(args) as source:
        if args.test:
            return run_test(source, settings)
        if args.learn:
            return run_learn(source, settings)
        if args.adjust:
            return run_adjust(source, settings, args.config or "config.yaml")
        if args.output_dir:
            try:
                return run_capture(source, settings)
            except KeyboardInterrupt:
                return 0
        return run_write(source, settings)


if __name__ == "__main__":
    sys.exit(main())
