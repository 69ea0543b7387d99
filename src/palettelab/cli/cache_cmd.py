"""Lookup table cache commands."""

import json

import click

from ..caching import get_lut_cache
from ..error_handling import PaletteLabError
from ..registry import Flavor, resolve_algorithm, resolve_flavor, resolve_quality
from ..remap import get_or_build_lut, resolve_algorithm_and_params
from .utils import handle_generic_error, handle_palettelab_error


@click.group("cache")
def cache() -> None:
    """Inspect and warm the in-process lookup table cache."""
    pass


def _print_status(output_json: bool) -> None:
    lut_cache = get_lut_cache()
    stats = lut_cache.get_stats()

    if output_json:
        output = {
            "enabled": lut_cache.enabled,
            "max_entries": lut_cache.max_entries,
            "entries": stats.entries,
            "hits": stats.hits,
            "misses": stats.misses,
            "waits": stats.waits,
            "builds": stats.builds,
            "build_failures": stats.build_failures,
            "evictions": stats.evictions,
            "hit_rate": stats.hit_rate,
            "memory_bytes": stats.memory_bytes,
            "memory_mb": round(stats.memory_bytes / (1024 * 1024), 2),
            "keys": [
                {"flavor": f.value, "algorithm": a.value, "bits": bits}
                for f, a, bits in lut_cache.keys()
            ],
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo("📊 Lookup Table Cache Status")
    click.echo("=" * 50)
    if not lut_cache.enabled:
        click.echo("❌ Cache is DISABLED")
        click.echo("   Enable it by setting LUT_CACHE['enabled'] = True in config")
        return

    click.echo("✅ Cache is ENABLED")
    click.echo()
    click.echo(f"  Entries:        {stats.entries} / {lut_cache.max_entries}")
    click.echo(f"  Memory:         {stats.memory_bytes / (1024 * 1024):.1f} MB")
    click.echo(f"  Hits:           {stats.hits:,}")
    click.echo(f"  Misses:         {stats.misses:,}")
    click.echo(f"  Waits:          {stats.waits:,}")
    click.echo(f"  Builds:         {stats.builds:,} ({stats.build_failures} failed)")
    click.echo(f"  Evictions:      {stats.evictions:,}")
    click.echo(f"  Hit Rate:       {stats.hit_rate:.1%}")
    for f, a, bits in lut_cache.keys():
        click.echo(f"  • {f.value} / {a.value} / {bits} bits")


@cache.command("status")
@click.option("--json", "output_json", is_flag=True, help="Output cache statistics in JSON format")
def cache_status(output_json: bool) -> None:
    """Display lookup table cache statistics.

    The cache lives in memory, so a fresh process starts empty; use
    ``cache warm`` to build tables and see their footprint.
    """
    try:
        _print_status(output_json)
    except Exception as e:
        handle_generic_error("Cache status", e)


@cache.command("warm")
@click.option("--flavor", "-f", "flavors", multiple=True, help="Flavor(s) to build (default: all)")
@click.option("--algorithm", "-a", default="shepards-method", help="Algorithm (default: shepards-method)")
@click.option("--quality", "-q", default=None, help="Quality preset; overrides --algorithm")
@click.option("--json", "output_json", is_flag=True, help="Output cache statistics in JSON format")
def cache_warm(flavors: tuple[str, ...], algorithm: str, quality: str | None, output_json: bool) -> None:
    """Build lookup tables ahead of time and show the resulting cache status."""
    try:
        targets = [resolve_flavor(name) for name in flavors] or list(Flavor)
        resolved, params = resolve_algorithm_and_params(
            resolve_algorithm(algorithm), resolve_quality(quality) if quality else None
        )
        for flavor in targets:
            get_or_build_lut(flavor, resolved, params)
    except PaletteLabError as e:
        handle_palettelab_error("Cache warm", e)

    _print_status(output_json)
