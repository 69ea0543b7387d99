"""Remap engine: cached lookup tables and per-frame application.

Tables are keyed by ``(flavor, algorithm, bits)`` and shared by every job
through the global :class:`~palettelab.caching.LutCache`. A table is never
mutated after construction, so frames can be remapped from several threads
at once, each writing a disjoint band of its own output buffer.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from .caching import LutCache, get_lut_cache
from .colormap import build_lut
from .config import DEFAULT_REMAP_CONFIG
from .error_handling import InvalidParameterError
from .palette import get_palette
from .registry import QUALITY_PRESETS, Algorithm, Flavor, QualityPreset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LutParams:
    """Quality parameters that take part in the cache key."""

    bits: int = DEFAULT_REMAP_CONFIG.DEFAULT_LUT_BITS

    def __post_init__(self) -> None:
        if not isinstance(self.bits, int) or not 4 <= self.bits <= 8:
            raise InvalidParameterError(f"LUT bits must be between 4 and 8, got {self.bits}")


@dataclass(frozen=True, eq=False)
class LUT:
    """Immutable lookup table for one (flavor, algorithm, params) key."""

    flavor: Flavor
    algorithm: Algorithm
    params: LutParams
    table: np.ndarray  # (n, n, n, 3) uint8, read-only

    @property
    def key(self) -> tuple[Flavor, Algorithm, int]:
        return (self.flavor, self.algorithm, self.params.bits)

    @property
    def shift(self) -> int:
        return 8 - self.params.bits

    @property
    def nbytes(self) -> int:
        return self.table.nbytes


def resolve_algorithm_and_params(
    algorithm: Algorithm,
    quality: QualityPreset | None = None,
    default_bits: int | None = None,
) -> tuple[Algorithm, LutParams]:
    """Apply a quality preset, which overrides the algorithm and table resolution."""
    if quality is not None:
        preset = QUALITY_PRESETS[quality]
        return preset.algorithm, LutParams(bits=preset.lut_bits)
    bits = default_bits if default_bits is not None else DEFAULT_REMAP_CONFIG.DEFAULT_LUT_BITS
    return algorithm, LutParams(bits=bits)


def get_or_build_lut(
    flavor: Flavor,
    algorithm: Algorithm,
    params: LutParams | None = None,
    cache: LutCache | None = None,
) -> LUT:
    """Return the shared table for the key, building it at most once concurrently."""
    if not isinstance(flavor, Flavor):
        raise InvalidParameterError(f"Not a flavor: {flavor!r}")
    if not isinstance(algorithm, Algorithm):
        raise InvalidParameterError(f"Not an algorithm: {algorithm!r}")
    params = params or LutParams()
    cache = cache or get_lut_cache()

    def _build() -> LUT:
        logger.info(
            f"Building lookup table: flavor={flavor.value}, "
            f"algorithm={algorithm.value}, bits={params.bits}"
        )
        table = build_lut(algorithm, get_palette(flavor), params.bits)
        table.setflags(write=False)
        return LUT(flavor=flavor, algorithm=algorithm, params=params, table=table)

    return cache.get_or_build((flavor, algorithm, params.bits), _build)


def apply(pixel, lut: LUT) -> tuple[int, ...]:
    """Remap a single RGB or RGBA pixel through ``lut``; alpha passes through."""
    s = lut.shift
    r, g, b = (int(c) for c in pixel[:3])
    mapped = lut.table[r >> s, g >> s, b >> s]
    out = (int(mapped[0]), int(mapped[1]), int(mapped[2]))
    if len(pixel) == 4:
        out = out + (int(pixel[3]),)
    return out


def _apply_band(src: np.ndarray, dst: np.ndarray, lut: LUT) -> None:
    s = lut.shift
    rgb = src[..., :3]
    if s:
        rgb = rgb >> s
    dst[..., :3] = lut.table[rgb[..., 0], rgb[..., 1], rgb[..., 2]]
    dst[..., 3] = src[..., 3]


def _split_rows(height: int, parts: int) -> list[tuple[int, int]]:
    parts = max(1, min(parts, height))
    step = (height + parts - 1) // parts
    return [(y0, min(height, y0 + step)) for y0 in range(0, height, step)]


def apply_frame(
    pixels: np.ndarray,
    lut: LUT,
    workers: int | None = None,
    parallel_min_rows: int | None = None,
) -> np.ndarray:
    """Remap an ``(H, W, 4)`` uint8 RGBA frame into a new buffer.

    Large frames are split into row bands handled by a thread pool; each
    band reads the shared table and writes only its own rows.
    """
    if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
        raise ValueError(f"Expected (H, W, 4) uint8 pixels, got {pixels.shape} {pixels.dtype}")

    workers = workers or DEFAULT_REMAP_CONFIG.PIXEL_WORKERS
    parallel_min_rows = parallel_min_rows or DEFAULT_REMAP_CONFIG.PARALLEL_MIN_ROWS
    out = np.empty_like(pixels)
    height = pixels.shape[0]

    if workers <= 1 or height < parallel_min_rows:
        _apply_band(pixels, out, lut)
        return out

    bands = _split_rows(height, workers)
    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        futures = [
            executor.submit(_apply_band, pixels[y0:y1], out[y0:y1], lut)
            for y0, y1 in bands
        ]
        for future in futures:
            future.result()
    return out
