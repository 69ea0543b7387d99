"""Remap images onto a Catppuccin palette."""

from pathlib import Path

import click

from ..config import DEFAULT_PATH_CONFIG
from ..error_handling import PaletteLabError
from ..io import unique_path, write_bytes_atomic
from ..registry import Effect, QualityPreset
from ..request import ProcessingRequest
from .utils import (
    CLI_SUBMITTER_ID,
    configure_logging,
    display_path_info,
    handle_generic_error,
    handle_palettelab_error,
    read_sources,
    run_request,
)

REMAP_VARIANTS = ["single", "batch", "all", "compare"]


@click.command("remap")
@click.argument(
    "inputs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_PATH_CONFIG.OUTPUT_DIR,
    help=f"Directory for remapped images (default: {DEFAULT_PATH_CONFIG.OUTPUT_DIR})",
)
@click.option("--flavor", "-f", default="latte", help="Palette flavor (default: latte)")
@click.option(
    "--algorithm",
    "-a",
    default="shepards-method",
    help="Remapping algorithm or alias (default: shepards-method)",
)
@click.option(
    "--quality",
    "-q",
    type=click.Choice([preset.value for preset in QualityPreset]),
    default=None,
    help="Quality preset; overrides --algorithm",
)
@click.option(
    "--format",
    "export_format",
    default=None,
    help="Output format: png, jpg, webp, gif or bmp (default: gif if animated, else png)",
)
@click.option(
    "--variant",
    type=click.Choice(REMAP_VARIANTS),
    default=None,
    help="single, batch, all (every flavor) or compare (default: batch for several inputs)",
)
@click.option(
    "--effect",
    type=click.Choice([effect.value for effect in Effect]),
    default="none",
    help="Post-remap effect (default: none)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Stop the job after this many seconds",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"Directory for log files (default with --verbose: {DEFAULT_PATH_CONFIG.LOGS_DIR})",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
def remap(
    inputs: tuple[Path, ...],
    output_dir: Path,
    flavor: str,
    algorithm: str,
    quality: str | None,
    export_format: str | None,
    variant: str | None,
    effect: str,
    timeout: float | None,
    log_dir: Path | None,
    verbose: bool,
) -> None:
    """Remap INPUTS onto a Catppuccin flavor and write the results.

    Examples:

        # Remap a screenshot onto Mocha
        palettelab remap shot.png -f mocha

        # Every flavor at once, fastest preset
        palettelab remap cat.gif --variant all -q fast

        # Side-by-side before/after
        palettelab remap photo.jpg --variant compare -f frappe
    """
    configure_logging(log_dir, verbose)

    if variant is None:
        variant = "batch" if len(inputs) > 1 else "single"

    try:
        request = ProcessingRequest.from_names(
            submitter_id=CLI_SUBMITTER_ID,
            sources=read_sources(inputs),
            flavor=flavor,
            algorithm=algorithm,
            quality=quality,
            export_format=export_format,
            variant=variant,
            effect=effect,
            source_names=[path.stem for path in inputs],
        )
    except PaletteLabError as e:
        handle_palettelab_error("Remap", e)

    result = run_request("Remap", request, timeout)

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        for output in result.outputs:
            target = write_bytes_atomic(unique_path(output_dir, output.filename), output.data)
            frames = f", {output.frame_count} frames" if output.is_animated else ""
            display_path_info(
                f"{output.label} ({output.width}x{output.height}{frames})", target, "🎨"
            )
    except OSError as e:
        handle_generic_error("Remap", e)

    for label, message in result.failures.items():
        click.echo(f"⚠️  {label}: {message}", err=True)

    click.echo(f"✅ Wrote {len(result.outputs)} image(s) to {output_dir}")
