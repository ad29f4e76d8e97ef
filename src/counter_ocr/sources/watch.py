"""
Watched Directory Source
========================

Frame source that waits for new image files to appear in a directory.

Used when an external process (e.g. a camera script) drops frames into
a spool directory. A watchdog observer reports files that were written
and closed, or renamed into place; files present at start-up are
ignored unless ``include_existing`` is set. Pending files are returned
in name order.

Sequence End:
    - idle_timeout elapsed without a new file (None = wait forever)
    - stop() called from another thread
"""

import logging
import queue
import threading
from pathlib import Path
from typing import Optional, Tuple

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from counter_ocr.sources.base import FrameSource
from counter_ocr.sources.directory import list_images, load_frame
from counter_ocr.sources.frame import Frame


logger = logging.getLogger(__name__)


# Queue entries are (priority, path); stop requests sort before any file
_STOP: Tuple[int, str] = (0, "")
_FILE_PRIORITY = 1


class ImageFileHandler(FileSystemEventHandler):
    """Queues image files once they are complete."""

    def __init__(self, extension: str, pending: "queue.PriorityQueue") -> None:
        self.extension = extension
        self.pending = pending

    def on_closed(self, event):
        """File closed after writing."""
        if not event.is_directory:
            self._enqueue(event.src_path)

    def on_moved(self, event):
        """File renamed inside the directory (write-then-rename spools)."""
        if not event.is_directory:
            self._enqueue(event.dest_path)

    def _enqueue(self, path) -> None:
        path = Path(path)
        if path.suffix == self.extension:
            logger.debug(f"New image file: {path}")
            self.pending.put((_FILE_PRIORITY, str(path)))


class WatchedDirectorySource(FrameSource):
    """
    Unbounded frame source over new files in a directory.

    The observer thread starts on construction and is stopped by
    close(); use the source as a context manager.

    Attributes:
        directory: Watched directory
        idle_timeout: End the sequence after this many idle seconds
    """

    def __init__(
        self,
        directory: str,
        extension: str = ".png",
        idle_timeout: Optional[float] = None,
        include_existing: bool = False,
        output_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize watched directory source.

        Args:
            directory: Directory to watch
            extension: Image file extension to consider
            idle_timeout: Seconds without new files before the sequence ends
            include_existing: Also return files present at start-up
            output_dir: Copy every frame here (None = off)

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        super().__init__(output_dir=output_dir)
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Watch directory not found: {directory}")

        self.extension = extension
        self.idle_timeout = idle_timeout

        self._pending: "queue.PriorityQueue[Tuple[int, str]]" = queue.PriorityQueue()
        self._stop_event = threading.Event()

        if include_existing:
            for path in list_images(self.directory, extension):
                self._pending.put((_FILE_PRIORITY, str(path)))

        self.handler = ImageFileHandler(extension, self._pending)
        self._observer = Observer()
        self._observer.schedule(self.handler, str(self.directory), recursive=False)
        self._observer.start()

        logger.info(
            f"WatchedDirectorySource watching {directory} (idle_timeout={idle_timeout})"
        )

    def stop(self) -> None:
        """End the sequence; a blocked read() returns None."""
        self._stop_event.set()
        self._pending.put(_STOP)

    def close(self) -> None:
        """Stop the observer thread."""
        self.stop()
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join()
        logger.info(f"WatchedDirectorySource closed after {self.frames_read} frames")

    def _read(self) -> Optional[Frame]:
        while not self._stop_event.is_set():
            try:
                entry = self._pending.get(timeout=self.idle_timeout)
            except queue.Empty:
                logger.info("WatchedDirectorySource idle timeout reached")
                return None

            if entry == _STOP:
                break

            path = Path(entry[1])
            frame = load_frame(path)
            if frame is not None:
                logger.info(f"Processing {path} of {frame.captured_at:%c}")
                return frame
        return None
