"""Color math: sRGB to Lab conversion and palette remapping kernels.

Pure functions only. ``remap`` maps one pixel; ``build_lut`` evaluates the
same kernel over the centers of a quantized RGB cube so that frames can be
remapped by table lookup.

Distances are squared Euclidean in CIE Lab (D65), except the ``euclide``
algorithm which measures in sRGB.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .registry import Algorithm

if TYPE_CHECKING:
    from .palette import Palette

# Rows evaluated per kernel call while building a table
LUT_CHUNK_ROWS = 65536

# Weight assigned to an exact palette match in weighted kernels
EXACT_MATCH_WEIGHT = 1e6


@dataclass(frozen=True)
class KernelSpec:
    """How one algorithm turns palette distances into an output color."""

    weighted: bool
    power: float = 1.0
    space: str = "lab"  # "lab" or "rgb"


ALGORITHM_KERNELS: dict[Algorithm, KernelSpec] = {
    Algorithm.SHEPARDS_METHOD: KernelSpec(weighted=True, power=2.0),
    Algorithm.GAUSSIAN_RBF: KernelSpec(weighted=True, power=1.5),
    Algorithm.LINEAR_RBF: KernelSpec(weighted=False),
    Algorithm.GAUSSIAN_SAMPLING: KernelSpec(weighted=True, power=2.5),
    Algorithm.NEAREST_NEIGHBOR: KernelSpec(weighted=False),
    Algorithm.HALD: KernelSpec(weighted=True, power=2.0),
    Algorithm.EUCLIDE: KernelSpec(weighted=False, space="rgb"),
    Algorithm.MEAN: KernelSpec(weighted=True, power=1.5),
    Algorithm.STD: KernelSpec(weighted=True, power=2.0),
}


def _srgb_to_linear(channel: np.ndarray) -> np.ndarray:
    return np.where(
        channel <= 0.04045, channel / 12.92, ((channel + 0.055) / 1.055) ** 2.4
    )


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert sRGB values on the 0..255 scale to CIE Lab (D65).

    Accepts any shape ``(..., 3)`` of integer or float dtype and returns a
    float32 array of the same shape.
    """
    rgb_f = np.asarray(rgb, dtype=np.float64) / 255.0

    r_lin = _srgb_to_linear(rgb_f[..., 0])
    g_lin = _srgb_to_linear(rgb_f[..., 1])
    b_lin = _srgb_to_linear(rgb_f[..., 2])

    # Linear RGB -> XYZ (D65)
    x = (0.4124564 * r_lin + 0.3575761 * g_lin + 0.1804375 * b_lin) / 0.95047
    y = 0.2126729 * r_lin + 0.7151522 * g_lin + 0.0721750 * b_lin
    z = (0.0193339 * r_lin + 0.1191920 * g_lin + 0.9503041 * b_lin) / 1.08883

    e, k = 216.0 / 24389.0, 24389.0 / 27.0

    def f(t: np.ndarray) -> np.ndarray:
        return np.where(t > e, np.cbrt(t), (k * t + 16.0) / 116.0)

    fx, fy, fz = f(x), f(y), f(z)

    out = np.empty(rgb_f.shape, dtype=np.float32)
    out[..., 0] = 116.0 * fy - 16.0
    out[..., 1] = 500.0 * (fx - fy)
    out[..., 2] = 200.0 * (fy - fz)
    return out


def _map_colors(colors: np.ndarray, palette: Palette, spec: KernelSpec) -> np.ndarray:
    """Map an ``(N, 3)`` array of 0..255 colors to ``(N, 3)`` uint8 outputs."""
    if spec.space == "rgb":
        src = colors.astype(np.float32)
        targets = palette.rgb.astype(np.float32)
    else:
        src = rgb_to_lab(colors)
        targets = palette.lab

    diff = src[:, None, :] - targets[None, :, :]
    dist2 = np.einsum("ijk,ijk->ij", diff, diff).astype(np.float64)

    if not spec.weighted:
        return palette.rgb[np.argmin(dist2, axis=1)]

    with np.errstate(divide="ignore", over="ignore"):
        weights = np.where(dist2 > 0.0, 1.0 / np.power(dist2, spec.power), EXACT_MATCH_WEIGHT)
    weights = np.nan_to_num(weights, posinf=EXACT_MATCH_WEIGHT)
    totals = weights.sum(axis=1, keepdims=True)
    mixed = (weights @ palette.rgb.astype(np.float64)) / totals
    return np.clip(np.rint(mixed), 0, 255).astype(np.uint8)


def remap(pixel, palette: Palette, algorithm: Algorithm) -> tuple[int, ...]:
    """Remap a single RGB or RGBA pixel; alpha is passed through unchanged."""
    spec = ALGORITHM_KERNELS[algorithm]
    rgb = np.asarray(pixel[:3], dtype=np.float64).reshape(1, 3)
    mapped = _map_colors(rgb, palette, spec)[0]
    out = tuple(int(c) for c in mapped)
    if len(pixel) == 4:
        out = out + (int(pixel[3]),)
    return out


def bucket_centers(bits: int) -> np.ndarray:
    """Center value (0..255 scale) of each quantization bucket for ``bits``."""
    step = 1 << (8 - bits)
    return np.arange(1 << bits, dtype=np.float64) * step + (step - 1) / 2.0


def build_lut(algorithm: Algorithm, palette: Palette, bits: int = 6) -> np.ndarray:
    """Evaluate ``algorithm`` over the quantized RGB cube.

    Returns a uint8 table of shape ``(2**bits, 2**bits, 2**bits, 3)`` indexed
    by ``(r >> (8 - bits), g >> (8 - bits), b >> (8 - bits))``.
    """
    if not 1 <= bits <= 8:
        raise ValueError(f"bits must be between 1 and 8, got {bits}")

    spec = ALGORITHM_KERNELS[algorithm]
    n = 1 << bits
    centers = bucket_centers(bits)
    r, g, b = np.meshgrid(centers, centers, centers, indexing="ij")
    grid = np.stack([r.ravel(), g.ravel(), b.ravel()], axis=1)

    table = np.empty((n * n * n, 3), dtype=np.uint8)
    for start in range(0, grid.shape[0], LUT_CHUNK_ROWS):
        stop = start + LUT_CHUNK_ROWS
        table[start:stop] = _map_colors(grid[start:stop], palette, spec)

    return table.reshape(n, n, n, 3)
