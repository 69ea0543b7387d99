"""I/O utilities for logging setup and atomic output writes."""

import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path


def setup_logging(log_dir: Path, log_level: str = "INFO") -> logging.Logger:
    """Set up logging configuration for PaletteLab.

    Args:
        log_dir: Directory to store log files
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"palettelab_{timestamp}.log"

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )

    return logging.getLogger("palettelab")


@contextmanager
def atomic_write(target_path: Path, mode: str = "wb"):
    """Context manager for atomic file writes using temporary files.

    The target only appears once the block completes; on error the temporary
    file is removed and the target is left untouched.

    Example:
        with atomic_write(Path("out/cat_mocha.png")) as f:
            f.write(output.data)
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    temp_file = tempfile.NamedTemporaryFile(
        mode=mode, dir=target_path.parent, delete=False, suffix=f".tmp_{target_path.name}"
    )
    try:
        with temp_file:
            yield temp_file
            temp_file.flush()
        os.replace(temp_file.name, target_path)
    except BaseException:
        Path(temp_file.name).unlink(missing_ok=True)
        raise


def unique_path(directory: Path, filename: str) -> Path:
    """Return ``directory / filename``, adding a counter if that path exists."""
    candidate = directory / filename
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
        if counter > 1000:
            raise OSError(f"Too many name conflicts for {filename} in {directory}")
    return candidate


def write_bytes_atomic(target_path: Path, data: bytes) -> Path:
    with atomic_write(target_path, "wb") as f:
        f.write(data)
    return target_path
