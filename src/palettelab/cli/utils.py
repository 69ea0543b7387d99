"""Shared utilities for CLI commands."""

import sys
from pathlib import Path

import click

from ..config import DEFAULT_PATH_CONFIG, SchedulerConfig
from ..error_handling import PaletteLabError, user_message
from ..io import setup_logging
from ..request import ProcessingRequest
from ..scheduler import Scheduler
from ..variants import JobResult

# The CLI is a single local submitter
CLI_SUBMITTER_ID = "cli"


def handle_generic_error(command_name: str, error: Exception) -> None:
    """Handle generic command errors with consistent formatting."""
    click.echo(f"❌ {command_name} failed: {error}", err=True)
    sys.exit(1)


def handle_keyboard_interrupt(command_name: str) -> None:
    """Handle keyboard interrupt with consistent formatting."""
    click.echo(f"\n⏹️  {command_name} interrupted by user", err=True)
    sys.exit(1)


def handle_palettelab_error(command_name: str, error: PaletteLabError) -> None:
    """Report a typed failure with its user-facing message."""
    click.echo(f"❌ {command_name} failed: {user_message(error)}", err=True)
    sys.exit(1)


def configure_logging(log_dir: Path | None, verbose: bool) -> None:
    """Log to files when a directory is given or verbose output is requested."""
    if log_dir is None and verbose:
        log_dir = DEFAULT_PATH_CONFIG.LOGS_DIR
    if log_dir is not None:
        setup_logging(log_dir, "DEBUG" if verbose else "INFO")


def read_sources(paths: tuple[Path, ...]) -> list[bytes]:
    """Read input files; unreadable files end the command."""
    sources = []
    for path in paths:
        try:
            sources.append(path.read_bytes())
        except OSError as e:
            click.echo(f"❌ Cannot read {path}: {e}", err=True)
            sys.exit(1)
    return sources


def run_request(
    command_name: str, request: ProcessingRequest, timeout: float | None = None
) -> JobResult:
    """Submit ``request`` to a private scheduler and wait for its result."""
    config = SchedulerConfig(MAX_CONCURRENT_JOBS=1, JOB_TIMEOUT_SECONDS=timeout)
    with Scheduler(config=config) as scheduler:
        handle = scheduler.submit(request)
        try:
            return handle.result()
        except KeyboardInterrupt:
            handle.cancel()
            handle_keyboard_interrupt(command_name)
        except PaletteLabError as e:
            handle_palettelab_error(command_name, e)


def display_path_info(label: str, path: Path, emoji: str = "📁") -> None:
    """Display path information with consistent formatting."""
    click.echo(f"{emoji} {label}: {path}")
