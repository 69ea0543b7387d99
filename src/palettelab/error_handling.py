"""Standardized Error Handling Utilities

Provides the PaletteLab error taxonomy and consistent handling patterns so
that every failure reaching the boundary is one of a small set of typed
errors with a human-readable message.
"""

from __future__ import annotations

import logging
import re
import traceback
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class PaletteLabError(Exception):
    """Base exception class for all PaletteLab errors."""

    def __init__(
        self, message: str, cause: Exception | None = None, context: dict | None = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class InvalidParameterError(PaletteLabError):
    """Raised for an unknown flavor, algorithm, format, effect or variant name."""

    pass


class LimitExceededError(PaletteLabError):
    """Raised when input bytes, dimensions or frame count exceed configured maxima."""

    pass


class QueueFullError(LimitExceededError):
    """Raised when the scheduler queue is at its configured capacity."""

    pass


class DecodeError(PaletteLabError):
    """Raised when source image data is malformed or unsupported."""

    pass


class EncodeError(PaletteLabError):
    """Raised when re-encoding to the requested export format fails."""

    pass


class AlreadyRunningError(PaletteLabError):
    """Raised when a submitter already owns a queued or running job."""

    pass


class JobCancelledError(PaletteLabError):
    """Raised when a job stops because of a user cancel or a timeout."""

    def __init__(
        self,
        message: str = "Job cancelled",
        reason: str = "user",
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.reason = reason


class InternalFailureError(PaletteLabError):
    """Raised for unexpected faults; never shown to users in detail."""

    pass


class InvalidTransitionError(InternalFailureError):
    """Raised when a job state change is attempted from a terminal state."""

    pass


class SchedulerClosedError(InternalFailureError):
    """Raised when submitting to a scheduler that has been shut down."""

    pass


class ConfigurationError(PaletteLabError, ValueError):
    """Raised when configuration is invalid or missing."""

    pass


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[PaletteLabError] = InternalFailureError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
    reraise: bool = True,
    exc_info: bool = False,
) -> PaletteLabError | None:
    """Standardized error handling with consistent logging and error transformation.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of PaletteLabError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)
        reraise: Whether to reraise the transformed exception
        exc_info: Attach the active traceback to the log record itself

    Returns:
        The transformed error if reraise=False, otherwise None

    Raises:
        PaletteLabError: Transformed error if reraise=True
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    message = f"Failed to {operation}: {error}"

    error_context = dict(context or {})
    error_context.update(
        {
            "operation": operation,
            "original_error_type": type(error).__name__,
            "original_error_message": str(error),
        }
    )

    transformed_error = error_type(message, cause=error, context=error_context)

    log_message = f"🚨 {operation.capitalize()} failed: {error}"
    context_str = ", ".join(f"{k}={v}" for k, v in error_context.items())
    if context_str:
        log_message += f" (context: {context_str})"

    log_func = getattr(logger, level.value)
    log_func(log_message, exc_info=exc_info)

    # Traceback at debug level for investigation
    if not exc_info and level in [ErrorLevel.ERROR, ErrorLevel.CRITICAL]:
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    if reraise:
        raise transformed_error from error
    return transformed_error


@contextmanager
def error_context(
    operation: str,
    error_type: type[PaletteLabError] = InternalFailureError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> Any:
    """Context manager for standardized error handling.

    Usage:
        with error_context("encode output", EncodeError, context={'format': 'gif'}):
            risky_operation()

    PaletteLab errors raised inside the block pass through unchanged; any
    other exception is transformed into ``error_type``.
    """
    try:
        yield
    except PaletteLabError:
        raise
    except Exception as e:
        handle_error(e, operation, error_type, level, context, logger, reraise=True)


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = f"⚠️  {message}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)


OPAQUE_FAILURE_MESSAGE = "Something went wrong while processing your image. Please try again later."


def user_message(error: BaseException) -> str:
    """Map an error to the message shown at the boundary.

    Each error kind has its own wording. Internal faults and foreign
    exceptions collapse to an opaque message with no internal detail.
    """
    if isinstance(error, InvalidParameterError):
        return f"Invalid option: {clean_error_message(_bare_message(error))}"
    if isinstance(error, QueueFullError):
        return "The processing queue is full right now. Please try again in a moment."
    if isinstance(error, LimitExceededError):
        return f"Image is too large: {clean_error_message(_bare_message(error))}"
    if isinstance(error, DecodeError):
        return f"Could not read the image: {clean_error_message(_bare_message(error))}"
    if isinstance(error, EncodeError):
        return f"Could not encode the result: {clean_error_message(_bare_message(error))}"
    if isinstance(error, AlreadyRunningError):
        return "You already have a job in progress. Wait for it to finish or cancel it first."
    if isinstance(error, JobCancelledError):
        if error.reason == "timeout":
            return "Your job took too long and was stopped."
        return "Your job was cancelled."
    return OPAQUE_FAILURE_MESSAGE


def _bare_message(error: Exception) -> str:
    # Skip the "(caused by: ...)" suffix of PaletteLabError.__str__
    return error.args[0] if error.args else str(error)


def clean_error_message(error_msg: str) -> str:
    """Clean an error message for single-line display.

    Replaces line breaks and tabs with spaces, strips control characters,
    collapses whitespace and truncates to 300 characters.

    Args:
        error_msg: Raw error message string

    Returns:
        Cleaned error message
    """
    cleaned = str(error_msg)

    cleaned = cleaned.replace("\n", " ").replace("\r", " ").replace("\t", " ")

    # Remove null bytes and other control characters (except space)
    cleaned = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", cleaned)

    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    max_length = 300
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."

    return cleaned
