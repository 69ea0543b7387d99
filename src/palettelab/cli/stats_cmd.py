"""Dominant color statistics for an image."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..error_handling import PaletteLabError
from ..request import ProcessingRequest
from .utils import CLI_SUBMITTER_ID, handle_palettelab_error, read_sources, run_request


@click.command("stats")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output statistics in JSON format")
def stats(input_path: Path, output_json: bool) -> None:
    """Show the dominant colors of INPUT_PATH and the flavor they suggest."""
    try:
        request = ProcessingRequest.from_names(
            submitter_id=CLI_SUBMITTER_ID,
            sources=read_sources((input_path,)),
            variant="stats",
            source_names=[input_path.stem],
        )
    except PaletteLabError as e:
        handle_palettelab_error("Stats", e)

    color_stats = run_request("Stats", request).stats

    if output_json:
        output = {
            "dominant_colors": [
                {"hex": c.hex, "rgb": list(c.rgb), "count": c.count, "percentage": c.percentage}
                for c in color_stats.dominant_colors
            ],
            "average_brightness": round(color_stats.average_brightness, 2),
            "suggested_flavor": color_stats.suggested_flavor.value,
        }
        click.echo(json.dumps(output, indent=2))
        return

    console = Console()
    table = Table(title="🎨 Dominant Colors", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Hex", style="cyan", no_wrap=True)
    table.add_column("RGB")
    table.add_column("Share", justify="right")
    for i, color in enumerate(color_stats.dominant_colors, start=1):
        r, g, b = color.rgb
        table.add_row(str(i), color.hex, f"{r},{g},{b}", f"{color.percentage:.0f}%")
    console.print(table)
    console.print(
        f"\n💡 Suggested flavor: [bold]{color_stats.suggested_flavor.display_name}[/bold] "
        f"[dim](average brightness {color_stats.average_brightness:.0f})[/dim]"
    )
