"""Color statistics and comparison composites."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from .colormap import remap
from .config import LimitsConfig
from .frames import decode_frames
from .palette import get_palette, parse_hex, to_hex
from .registry import Algorithm, Flavor

logger = logging.getLogger(__name__)

DOMINANT_COLOR_COUNT = 5
COMPARISON_GAP = 20
COMPARISON_BACKGROUND = (240, 240, 240, 255)

# Lower bounds of average dominant-color brightness, lightest flavor first
BRIGHTNESS_THRESHOLDS: list[tuple[float, Flavor]] = [
    (180.0, Flavor.LATTE),
    (120.0, Flavor.FRAPPE),
    (80.0, Flavor.MACCHIATO),
]


@dataclass
class DominantColor:
    rgb: tuple[int, int, int]
    count: int
    percentage: float

    @property
    def hex(self) -> str:
        return to_hex(self.rgb)


@dataclass
class ColorStats:
    """Most frequent colors of an image and the flavor they suggest."""

    dominant_colors: list[DominantColor] = field(default_factory=list)
    average_brightness: float = 0.0
    suggested_flavor: Flavor = Flavor.MOCHA
    pixel_count: int = 0


def suggest_flavor(average_brightness: float) -> Flavor:
    for threshold, flavor in BRIGHTNESS_THRESHOLDS:
        if average_brightness > threshold:
            return flavor
    return Flavor.MOCHA


def color_stats(pixels: np.ndarray, top: int = DOMINANT_COLOR_COUNT) -> ColorStats:
    """Count exact RGB colors of an ``(H, W, 3|4)`` frame, ignoring alpha.

    Ties in count are broken by ascending RGB value.
    """
    rgb = pixels[..., :3].reshape(-1, 3)
    pixel_count = int(rgb.shape[0])
    if pixel_count == 0:
        return ColorStats()

    colors, counts = np.unique(rgb, axis=0, return_counts=True)
    order = np.argsort(-counts, kind="stable")[:top]

    dominant = [
        DominantColor(
            rgb=(int(colors[i][0]), int(colors[i][1]), int(colors[i][2])),
            count=int(counts[i]),
            percentage=round(float(counts[i]) / pixel_count * 100.0, 2),
        )
        for i in order
    ]
    brightness = float(np.mean([sum(c.rgb) / 3.0 for c in dominant]))
    return ColorStats(
        dominant_colors=dominant,
        average_brightness=brightness,
        suggested_flavor=suggest_flavor(brightness),
        pixel_count=pixel_count,
    )


def analyze_image_colors(data: bytes, limits: LimitsConfig | None = None) -> ColorStats:
    """Decode ``data`` and compute color statistics of its first frame."""
    decoded = decode_frames(data, limits)
    stats = color_stats(decoded.frames[0].pixels)
    logger.info(
        f"🎨 Analyzed {stats.pixel_count} pixels: brightness={stats.average_brightness:.1f}, "
        f"suggested={stats.suggested_flavor.value}"
    )
    return stats


def create_comparison_image(original: np.ndarray, processed: np.ndarray) -> np.ndarray:
    """Place two RGBA frames side by side with a gap on a light background."""
    height = max(original.shape[0], processed.shape[0])
    width = max(original.shape[1], processed.shape[1])
    canvas = np.empty((height, width * 2 + COMPARISON_GAP, 4), dtype=np.uint8)
    canvas[...] = COMPARISON_BACKGROUND

    canvas[: original.shape[0], : original.shape[1]] = original
    x0 = width + COMPARISON_GAP
    canvas[: processed.shape[0], x0 : x0 + processed.shape[1]] = processed
    return canvas


def closest_palette_color(value: str, flavor: Flavor) -> tuple[str, str]:
    """Return ``(color_name, hex)`` of the palette color nearest to a hex value.

    Raises:
        InvalidParameterError: If ``value`` is not a valid hex color
    """
    rgb = parse_hex(value)
    palette = get_palette(flavor)
    mapped = remap(rgb, palette, Algorithm.NEAREST_NEIGHBOR)
    index = int(np.flatnonzero((palette.rgb == np.asarray(mapped[:3], dtype=np.uint8)).all(axis=1))[0])
    return palette.names[index], to_hex(mapped[:3])
