"""Configuration settings for PaletteLab."""

import os
from dataclasses import dataclass
from pathlib import Path

from .error_handling import ConfigurationError


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass
class SchedulerConfig:
    """Configuration for job admission and execution."""

    # Upper bound on concurrently running jobs
    # Override with: PALETTELAB_MAX_CONCURRENT_JOBS
    MAX_CONCURRENT_JOBS: int = 2

    # Wall-clock budget per job, counted from when it starts running (None = unlimited)
    # Override with: PALETTELAB_JOB_TIMEOUT_SECONDS
    JOB_TIMEOUT_SECONDS: float | None = None

    # Maximum number of queued (not yet running) jobs, 0 = unbounded
    # Override with: PALETTELAB_MAX_QUEUE_SIZE
    MAX_QUEUE_SIZE: int = 0

    def __post_init__(self) -> None:
        """Apply environment variable overrides, then validate."""
        env_jobs = _env_int("PALETTELAB_MAX_CONCURRENT_JOBS")
        if env_jobs is not None:
            self.MAX_CONCURRENT_JOBS = env_jobs

        env_timeout = _env_float("PALETTELAB_JOB_TIMEOUT_SECONDS")
        if env_timeout is not None:
            self.JOB_TIMEOUT_SECONDS = env_timeout if env_timeout > 0 else None

        env_queue = _env_int("PALETTELAB_MAX_QUEUE_SIZE")
        if env_queue is not None:
            self.MAX_QUEUE_SIZE = env_queue

        if self.MAX_CONCURRENT_JOBS < 1:
            raise ConfigurationError(
                f"MAX_CONCURRENT_JOBS must be a positive integer, got {self.MAX_CONCURRENT_JOBS}"
            )
        if self.JOB_TIMEOUT_SECONDS is not None and self.JOB_TIMEOUT_SECONDS <= 0:
            raise ConfigurationError(
                f"JOB_TIMEOUT_SECONDS must be positive or None, got {self.JOB_TIMEOUT_SECONDS}"
            )
        if self.MAX_QUEUE_SIZE < 0:
            raise ConfigurationError(
                f"MAX_QUEUE_SIZE must be non-negative, got {self.MAX_QUEUE_SIZE}"
            )


@dataclass
class LimitsConfig:
    """Size limits enforced before any full-resolution decode."""

    # Override with: PALETTELAB_MAX_IMAGE_BYTES
    MAX_IMAGE_BYTES: int = 8 * 1024 * 1024

    # Applies to width and height independently
    # Override with: PALETTELAB_MAX_IMAGE_DIMENSION
    MAX_IMAGE_DIMENSION: int = 4096

    # Override with: PALETTELAB_MAX_FRAMES
    MAX_FRAMES: int = 500

    def __post_init__(self) -> None:
        """Apply environment variable overrides, then validate."""
        env_overrides = {
            "MAX_IMAGE_BYTES": "PALETTELAB_MAX_IMAGE_BYTES",
            "MAX_IMAGE_DIMENSION": "PALETTELAB_MAX_IMAGE_DIMENSION",
            "MAX_FRAMES": "PALETTELAB_MAX_FRAMES",
        }
        for attr_name, env_var_name in env_overrides.items():
            env_value = _env_int(env_var_name)
            if env_value is not None:
                setattr(self, attr_name, env_value)

        if self.MAX_IMAGE_BYTES <= 0:
            raise ConfigurationError(
                f"MAX_IMAGE_BYTES must be positive, got {self.MAX_IMAGE_BYTES}"
            )
        if self.MAX_IMAGE_DIMENSION <= 0:
            raise ConfigurationError(
                f"MAX_IMAGE_DIMENSION must be positive, got {self.MAX_IMAGE_DIMENSION}"
            )
        if self.MAX_FRAMES < 1:
            raise ConfigurationError(f"MAX_FRAMES must be at least 1, got {self.MAX_FRAMES}")


@dataclass
class RemapConfig:
    """Configuration for lookup tables and per-frame pixel work."""

    # Quantization bits per channel for plain requests (presets set their own)
    DEFAULT_LUT_BITS: int = 6

    # Threads used for row bands within a single frame
    PIXEL_WORKERS: int = 4

    # Frames shorter than this are remapped on the calling thread
    PARALLEL_MIN_ROWS: int = 256

    # Fade effect timing (engine-assigned for synthetic frames)
    FADE_STEPS: int = 10
    FADE_FRAME_MS: int = 80
    FADE_HOLD_MS: int = 1000

    JPEG_QUALITY: int = 90

    def __post_init__(self) -> None:
        if not 4 <= self.DEFAULT_LUT_BITS <= 8:
            raise ConfigurationError(
                f"DEFAULT_LUT_BITS must be between 4 and 8, got {self.DEFAULT_LUT_BITS}"
            )
        if self.PIXEL_WORKERS < 1:
            raise ConfigurationError(f"PIXEL_WORKERS must be at least 1, got {self.PIXEL_WORKERS}")
        if self.PARALLEL_MIN_ROWS < 1:
            raise ConfigurationError(
                f"PARALLEL_MIN_ROWS must be at least 1, got {self.PARALLEL_MIN_ROWS}"
            )
        if self.FADE_STEPS < 2:
            raise ConfigurationError(f"FADE_STEPS must be at least 2, got {self.FADE_STEPS}")
        if self.FADE_FRAME_MS <= 0 or self.FADE_HOLD_MS <= 0:
            raise ConfigurationError("Fade timings must be positive")
        if not 1 <= self.JPEG_QUALITY <= 100:
            raise ConfigurationError(f"JPEG_QUALITY must be between 1 and 100, got {self.JPEG_QUALITY}")


# Lookup table cache configuration
LUT_CACHE = {
    "enabled": True,  # Disable to rebuild tables on every request
    "max_entries": 32,  # LRU eviction beyond this many tables
}


@dataclass
class PathConfig:
    """Configuration for file paths and directories."""

    LOGS_DIR: Path = Path("logs")
    OUTPUT_DIR: Path = Path("output")

    def __post_init__(self) -> None:
        env_logs = os.getenv("PALETTELAB_LOGS_DIR")
        if env_logs:
            self.LOGS_DIR = Path(env_logs)
        env_output = os.getenv("PALETTELAB_OUTPUT_DIR")
        if env_output:
            self.OUTPUT_DIR = Path(env_output)


# Default configuration instances
DEFAULT_SCHEDULER_CONFIG = SchedulerConfig()
DEFAULT_LIMITS_CONFIG = LimitsConfig()
DEFAULT_REMAP_CONFIG = RemapConfig()
DEFAULT_PATH_CONFIG = PathConfig()
