"""List flavors, algorithms and formats."""

import click
from rich.console import Console
from rich.table import Table

from ..registry import DEFAULT_ALGORITHM, DEFAULT_FLAVOR, QUALITY_PRESETS, Flavor, list_all


@click.command("list")
def list_options() -> None:
    """Show the available flavors, algorithms, quality presets and formats."""
    flavors, algorithms, formats = list_all()
    console = Console()

    table = Table(title="☕ Flavors", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Display")
    for name in flavors:
        flavor = Flavor(name)
        default = " (default)" if flavor is DEFAULT_FLAVOR else ""
        table.add_row(name, f"{flavor.display_name}{default}")
    console.print(table)

    table = Table(title="🧮 Algorithms", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Notes", style="dim")
    for name in algorithms:
        table.add_row(name, "default" if name == DEFAULT_ALGORITHM.value else "")
    console.print(table)

    table = Table(title="⚡ Quality Presets", show_header=True, header_style="bold magenta")
    table.add_column("Preset", style="cyan")
    table.add_column("Algorithm")
    table.add_column("LUT bits", justify="right")
    for preset, defaults in QUALITY_PRESETS.items():
        table.add_row(preset.value, defaults.algorithm.value, str(defaults.lut_bits))
    console.print(table)

    console.print(f"\n🖼️  Formats: {', '.join(formats)}")
