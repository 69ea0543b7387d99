"""CLI module for PaletteLab commands.

Commands live in separate modules and are registered on the ``main`` group.
"""

import click

from .. import __version__
from .cache_cmd import cache
from .closest_cmd import closest
from .list_cmd import list_options
from .remap_cmd import remap
from .stats_cmd import stats


@click.group()
@click.version_option(version=__version__, prog_name="palettelab")
def main() -> None:
    """☕ PaletteLab: remap images onto Catppuccin palettes."""
    pass


main.add_command(remap)
main.add_command(list_options)
main.add_command(stats)
main.add_command(closest)
main.add_command(cache)

__all__ = [
    "cache",
    "closest",
    "list_options",
    "main",
    "remap",
    "stats",
]
