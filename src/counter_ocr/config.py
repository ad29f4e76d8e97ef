"""
counter-ocr Configuration
=========================

This module handles configuration loading for the meter reader.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    COUNTER_OCR_ROTATION          -> segmentation.rotation_degrees
    COUNTER_OCR_CANNY_LOW         -> segmentation.canny_threshold1
    COUNTER_OCR_CANNY_HIGH        -> segmentation.canny_threshold2
    COUNTER_OCR_MAX_RATE          -> plausibility.max_rate
    COUNTER_OCR_WINDOW            -> plausibility.window
    COUNTER_OCR_TRAINING_DATA     -> recognition.training_data_path
    COUNTER_OCR_CSV_PATH          -> storage.csv_path
    COUNTER_OCR_MQTT_HOST         -> mqtt.host (also enables MQTT)
    COUNTER_OCR_PORT              -> server.port
    COUNTER_OCR_LOG_LEVEL         -> logging.level

Example:
    from counter_ocr.config import get_settings

    settings = get_settings()
    print(settings.segmentation.digit_min_height)
    print(settings.plausibility.max_rate)
"""

import os
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class SegmentationConfig(BaseModel):
    """Digit segmentation parameters (tuned per camera mount)."""

    rotation_degrees: int = Field(
        default=0,
        ge=-180,
        le=180,
        description="Fixed rotation applied to every frame (counter-clockwise)",
    )
    canny_threshold1: int = Field(
        default=100,
        ge=0,
        description="Lower Canny hysteresis threshold",
    )
    canny_threshold2: int = Field(
        default=200,
        ge=0,
        description="Upper Canny hysteresis threshold",
    )
    digit_min_height: int = Field(
        default=20,
        ge=0,
        description="Digit boxes must be taller than this (pixels)",
    )
    digit_max_height: int = Field(
        default=90,
        gt=0,
        description="Digit boxes must be shorter than this (pixels)",
    )
    digit_y_alignment: int = Field(
        default=10,
        gt=0,
        description="Maximum y offset between boxes of one digit row (pixels)",
    )
    skew_vote_threshold: int = Field(
        default=140,
        gt=0,
        description="Hough accumulator threshold for skew lines",
    )

    @model_validator(mode="after")
    def check_ranges(self) -> "SegmentationConfig":
        """Ensure lower bounds stay below upper bounds."""
        if self.digit_min_height >= self.digit_max_height:
            raise ValueError("digit_min_height must be below digit_max_height")
        if self.canny_threshold1 > self.canny_threshold2:
            raise ValueError("canny_threshold1 must not exceed canny_threshold2")
        return self


class PlausibilityPolicy(str, Enum):
    """Acceptance policy of the plausibility filter."""

    LAST_ACCEPTED = "last_accepted"
    WINDOW_CENTER = "window_center"


class PlausibilityConfig(BaseModel):
    """Plausibility filter parameters."""

    max_rate: float = Field(
        default=50.0,
        gt=0,
        description="Maximum physical rate of change (value units per time unit)",
    )
    window: int = Field(
        default=13,
        ge=1,
        description="Capacity of the accepted-readings window",
    )
    time_unit_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds per rate time unit (3600 = kWh counter, kW limit)",
    )
    digit_count: Optional[int] = Field(
        default=7,
        ge=1,
        description="Expected number of digits (None = any)",
    )
    decimal_places: int = Field(
        default=1,
        ge=0,
        description="Trailing digits that are decimals",
    )
    policy: PlausibilityPolicy = Field(
        default=PlausibilityPolicy.LAST_ACCEPTED,
        description="Acceptance policy: 'last_accepted' or 'window_center'",
    )


class RecognitionConfig(BaseModel):
    """Digit classifier configuration."""

    training_data_path: str = Field(
        default="trainctr.npz",
        description="Path to the k-nearest training samples",
    )
    max_distance: float = Field(
        default=5e5,
        gt=0,
        description="Maximum nearest-neighbour distance for a confident digit",
    )


class PipelineConfig(BaseModel):
    """Pipeline runner configuration."""

    expected_digits: Optional[int] = Field(
        default=7,
        ge=1,
        description="Frames with another crop count are skipped (None = any)",
    )
    delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Sleep after each processed frame (milliseconds)",
    )
    debug_dir: str = Field(
        default="imgdebug",
        description="Debug frames are written here if the directory exists",
    )


class StorageConfig(BaseModel):
    """Time-series storage configuration."""

    csv_path: Optional[str] = Field(
        default=None,
        description="CSV file receiving accepted readings (None = disabled)",
    )


class MqttConfig(BaseModel):
    """MQTT publication configuration."""

    enabled: bool = Field(default=False, description="Publish readings via MQTT")
    host: str = Field(default="localhost", description="Broker host")
    port: int = Field(default=1883, ge=1, le=65535, description="Broker port")
    keepalive: int = Field(default=60, ge=1, description="Keepalive (seconds)")
    topic: str = Field(default="tele/meter", description="Base topic")
    client_id: str = Field(default="counter-ocr", description="Client identifier")
    username: Optional[str] = Field(default=None, description="Broker username")
    password: Optional[str] = Field(default=None, description="Broker password")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    file: Optional[str] = Field(default=None, description="Optional log file")


class Settings(BaseModel):
    """Root configuration model."""

    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    plausibility: PlausibilityConfig = Field(default_factory=PlausibilityConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def find_config_file() -> Optional[Path]:
    """Search common locations for a config file."""
    search_paths = [
        Path("config.yaml"),
        Path("config.yml"),
        Path("/etc/counter-ocr/config.yaml"),
        Path(__file__).parent.parent.parent / "config.yaml",
    ]
    for path in search_paths:
        if path.exists():
            return path
    return None


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from file and environment.

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration

    Raises:
        pydantic.ValidationError: If a value is out of range
    """
    if config_path is None:
        found = find_config_file()
        config_path = str(found) if found else None

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def save_config(settings: Settings, config_path: str = "config.yaml") -> None:
    """
    Write settings back to a YAML file.

    Used by the camera adjustment mode to persist tuned parameters.

    Args:
        settings: Settings to write
        config_path: Destination path
    """
    logger.info(f"Saving config to: {config_path}")
    data = settings.model_dump(mode="json")
    with open(config_path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Segmentation settings
    if env_rot := os.environ.get("COUNTER_OCR_ROTATION"):
        config_data.setdefault("segmentation", {})["rotation_degrees"] = int(env_rot)
    if env_low := os.environ.get("COUNTER_OCR_CANNY_LOW"):
        config_data.setdefault("segmentation", {})["canny_threshold1"] = int(env_low)
    if env_high := os.environ.get("COUNTER_OCR_CANNY_HIGH"):
        config_data.setdefault("segmentation", {})["canny_threshold2"] = int(env_high)

    # Plausibility settings
    if env_rate := os.environ.get("COUNTER_OCR_MAX_RATE"):
        config_data.setdefault("plausibility", {})["max_rate"] = float(env_rate)
    if env_window := os.environ.get("COUNTER_OCR_WINDOW"):
        config_data.setdefault("plausibility", {})["window"] = int(env_window)

    # Recognition settings
    if env_train := os.environ.get("COUNTER_OCR_TRAINING_DATA"):
        config_data.setdefault("recognition", {})["training_data_path"] = env_train

    # Storage and publication
    if env_csv := os.environ.get("COUNTER_OCR_CSV_PATH"):
        config_data.setdefault("storage", {})["csv_path"] = env_csv
    if env_mqtt := os.environ.get("COUNTER_OCR_MQTT_HOST"):
        mqtt = config_data.setdefault("mqtt", {})
        mqtt["host"] = env_mqtt
        mqtt["enabled"] = True

    # Server settings
    if env_port := os.environ.get("COUNTER_OCR_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("COUNTER_OCR_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler()]
    if settings.logging.file:
        handlers.append(logging.FileHandler(settings.logging.file))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=handlers,
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings
