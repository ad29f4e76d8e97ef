"""
counter-ocr Status Service
==========================

FastAPI entry point exposing the meter reader's state.

The reading loop runs in a worker thread (it is blocking OpenCV work)
while the event loop serves status requests.

Endpoints:
    GET  /            - Service information
    GET  /health      - Liveness probe (is process alive?)
    GET  /ready       - Readiness probe (reader running?)
    GET  /metrics     - Pipeline and filter counters
    GET  /reading     - Latest accepted reading
    WS   /ws/reading  - Pushes every new accepted reading
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from counter_ocr import __version__
from counter_ocr.config import Settings, get_settings
from counter_ocr.models.reading import Reading
from counter_ocr.pipeline import MeterReader, create_classifier, create_reader
from counter_ocr.recognition import DigitClassifier
from counter_ocr.sources import FrameSource


logger = logging.getLogger(__name__)


SourceFactory = Callable[[], FrameSource]


# =============================================================================
# Global State
# =============================================================================

# Configured by the CLI before the server starts
_source_factory: Optional[SourceFactory] = None
_classifier: Optional[DigitClassifier] = None
_settings: Optional[Settings] = None

# Runtime components
_reader: Optional[MeterReader] = None
_reader_task: Optional[asyncio.Task] = None
_loop: Optional[asyncio.AbstractEventLoop] = None

# Current state
_latest_reading: Optional[Reading] = None
_reading_event: Optional[asyncio.Event] = None
_startup_time: float = 0.0
_is_ready: bool = False
_pipeline_error: Optional[str] = None


# =============================================================================
# Getters
# =============================================================================

def get_reader() -> Optional[MeterReader]:
    return _reader

def get_latest_reading() -> Optional[Reading]:
    return _latest_reading

def is_ready() -> bool:
    return _is_ready


def configure(
    source_factory: Optional[SourceFactory],
    classifier: Optional[DigitClassifier] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Select the frame source to serve.

    Must be called before the application starts.

    Args:
        source_factory: Creates the frame source (None = status only)
        classifier: Classifier to use (loaded from settings if None)
        settings: Settings to use (get_settings() if None)
    """
    global _source_factory, _classifier, _settings
    _source_factory = source_factory
    _classifier = classifier
    _settings = settings


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Handle SIGTERM for graceful shutdown."""
    logger.info("Received SIGTERM, initiating graceful shutdown...")
    if _reader is not None:
        _reader.stop()


# =============================================================================
# Processing Pipeline
# =============================================================================

def _on_reading(reading: Reading) -> None:
    """Called from the reader thread for every accepted reading."""
    global _latest_reading
    _latest_reading = reading
    if _loop is not None and _reading_event is not None:
        _loop.call_soon_threadsafe(_reading_event.set)


async def run_reader(reader: MeterReader, source_factory: SourceFactory) -> None:
    """Run the blocking reading loop in a worker thread."""
    global _is_ready, _pipeline_error

    logger.info("Reading pipeline started")
    _is_ready = True
    try:
        source = source_factory()
        with source:
            await asyncio.to_thread(reader.run, source)
    except asyncio.CancelledError:
        logger.info("Reading pipeline cancelled")
        reader.stop()
        raise
    except Exception as e:
        _pipeline_error = str(e)
        logger.error(f"Pipeline error: {e}")
    finally:
        _is_ready = False
        reader.close()
        logger.info("Reading pipeline stopped")


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _reader, _reader_task, _loop, _reading_event
    global _startup_time, _latest_reading, _pipeline_error

    settings = _settings or get_settings()

    # Register signal handlers
    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except ValueError:
        # not in the main thread (e.g. under a test client)
        pass

    # Startup
    _startup_time = time.time()
    _latest_reading = None
    _pipeline_error = None
    _loop = asyncio.get_running_loop()
    _reading_event = asyncio.Event()
    logger.info(f"Starting counter-ocr {__version__}")

    if _source_factory is None:
        logger.warning("No frame source configured, serving status only")
    else:
        classifier = _classifier or create_classifier(settings)
        _reader = create_reader(settings, classifier, on_reading=_on_reading)
        _reader_task = asyncio.create_task(
            run_reader(_reader, _source_factory),
            name="meter_reader",
        )

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")

    if _reader is not None:
        _reader.stop()

    if _reader_task:
        try:
            await asyncio.wait_for(_reader_task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Reader did not stop within 5s")

    _reader = None
    _reader_task = None
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="counter-ocr",
    description="Meter counter reading service",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "counter-ocr",
        "version": __version__,
        "status": "running",
        "source_configured": _source_factory is not None,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the reader running?

    Returns 503 if no reading loop is active.
    """
    if _is_ready:
        return JSONResponse({
            "status": "ready",
            "frames_processed": _reader.metrics.frames_processed if _reader else 0,
        })
    return JSONResponse(
        {"status": "not_ready", "error": _pipeline_error},
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    reader = get_reader()

    pipeline_metrics = {}
    filter_metrics = {}
    if reader:
        pipeline_metrics = reader.metrics.to_dict()
        filter_metrics = reader.plausibility.get_metrics()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "reader_running": _is_ready,
        **pipeline_metrics,
        "plausibility": filter_metrics,
    })


@app.get("/reading")
async def reading() -> JSONResponse:
    """Latest accepted reading."""
    current = get_latest_reading()
    if current is None:
        return JSONResponse(
            {"status": "no_reading", "message": "No reading accepted yet"},
            status_code=503,
        )
    return JSONResponse(current.to_dict())


# =============================================================================
# WebSocket Endpoint
# =============================================================================

async def _wait_for_reading() -> None:
    if _reading_event is None:
        await asyncio.sleep(1.0)
    else:
        await _reading_event.wait()


@app.websocket("/ws/reading")
async def websocket_reading(websocket: WebSocket) -> None:
    """Push the latest reading on connect and every new one after."""
    await websocket.accept()
    logger.info("WebSocket client connected")

    # client messages are ignored; the receiver only notices disconnects
    receiver = asyncio.ensure_future(websocket.receive())
    last_sent: Optional[Reading] = None
    try:
        while True:
            if _reading_event is not None:
                _reading_event.clear()

            current = get_latest_reading()
            if current is not None and current is not last_sent:
                await websocket.send_json(current.to_dict())
                last_sent = current

            waiter = asyncio.ensure_future(_wait_for_reading())
            done, _ = await asyncio.wait(
                {receiver, waiter}, timeout=1.0, return_when=asyncio.FIRST_COMPLETED
            )
            waiter.cancel()

            if receiver in done:
                if receiver.result()["type"] == "websocket.disconnect":
                    break
                receiver = asyncio.ensure_future(websocket.receive())
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        receiver.cancel()
        logger.info("WebSocket client disconnected")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "counter_ocr.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
