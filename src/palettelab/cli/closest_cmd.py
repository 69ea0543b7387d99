"""Closest palette color for a hex value."""

import click

from ..analysis import closest_palette_color
from ..error_handling import PaletteLabError
from ..registry import resolve_flavor
from .utils import handle_palettelab_error


@click.command("closest")
@click.argument("hex_color")
@click.option("--flavor", "-f", default="latte", help="Palette flavor (default: latte)")
def closest(hex_color: str, flavor: str) -> None:
    """Find the palette color nearest to HEX_COLOR (e.g. '#FF5733' or 'f53')."""
    try:
        resolved = resolve_flavor(flavor)
        name, hex_value = closest_palette_color(hex_color, resolved)
    except PaletteLabError as e:
        handle_palettelab_error("Closest", e)

    click.echo(f"🎯 {hex_color} → {name} {hex_value} ({resolved.display_name})")
