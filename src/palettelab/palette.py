"""Catppuccin palette data.

Each flavor is an ordered set of 26 named colors. Palettes are built once on
first access and shared read-only by every job; their arrays are marked
non-writeable so concurrent readers need no locking.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass

import numpy as np

from .colormap import rgb_to_lab
from .error_handling import InvalidParameterError
from .registry import Flavor

COLOR_NAMES: tuple[str, ...] = (
    "rosewater", "flamingo", "pink", "mauve", "red", "maroon",
    "peach", "yellow", "green", "teal", "sky", "sapphire",
    "blue", "lavender", "text", "subtext1", "subtext0", "overlay2",
    "overlay1", "overlay0", "surface2", "surface1", "surface0", "base",
    "mantle", "crust",
)

_PALETTE_HEX: dict[Flavor, tuple[str, ...]] = {
    Flavor.LATTE: (
        "dc8a78", "dd7878", "ea76cb", "8839ef", "d20f39", "e64553",
        "fe640b", "df8e1d", "40a02b", "179299", "04a5e5", "209fb5",
        "1e66f5", "7287fd", "4c4f69", "5c5f77", "6c6f85", "7c7f93",
        "8c8fa1", "9ca0b0", "acb0be", "bcc0cc", "ccd0da", "eff1f5",
        "e6e9ef", "dce0e8",
    ),
    Flavor.FRAPPE: (
        "f2d5cf", "eebebe", "f4b8e4", "ca9ee6", "e78284", "ea999c",
        "ef9f76", "e5c890", "a6d189", "81c8be", "99d1db", "85c1dc",
        "8caaee", "babbf1", "c6d0f5", "b5bfe2", "a5adce", "949cbb",
        "838ba7", "737994", "626880", "51576d", "414559", "303446",
        "292c3c", "232634",
    ),
    Flavor.MACCHIATO: (
        "f4dbd6", "f0c6c6", "f5bde6", "c6a0f6", "ed8796", "ee99a0",
        "f5a97f", "eed49f", "a6da95", "8bd5ca", "91d7e3", "7dc4e4",
        "8aadf4", "b7bdf8", "cad3f5", "b8c0e0", "a5adcb", "939ab7",
        "8087a2", "6e738d", "5b6078", "494d64", "363a4f", "24273a",
        "1e2030", "181926",
    ),
    Flavor.MOCHA: (
        "f5e0dc", "f2cdcd", "f5c2e7", "cba6f7", "f38ba8", "eba0ac",
        "fab387", "f9e2af", "a6e3a1", "94e2d5", "89dceb", "74c7ec",
        "89b4fa", "b4befe", "cdd6f4", "bac2de", "a6adc8", "9399b2",
        "7f849c", "6c7086", "585b70", "45475a", "313244", "1e1e2e",
        "181825", "11111b",
    ),
}

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_hex(value: str) -> tuple[int, int, int]:
    """Parse ``#RRGGBB``, ``RRGGBB``, ``#RGB`` or ``RGB`` into an RGB triple."""
    match = _HEX_RE.match(value.strip())
    if not match:
        raise InvalidParameterError(f"'{value}' is not a valid 3 or 6 digit hex color")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def to_hex(rgb) -> str:
    r, g, b = (int(c) for c in rgb[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


@dataclass(frozen=True, eq=False)
class Palette:
    """Read-only color set for one flavor."""

    flavor: Flavor
    names: tuple[str, ...]
    rgb: np.ndarray  # (26, 3) uint8
    lab: np.ndarray  # (26, 3) float32

    def __len__(self) -> int:
        return len(self.names)

    def color(self, name: str) -> tuple[int, int, int]:
        try:
            idx = self.names.index(name)
        except ValueError:
            raise InvalidParameterError(f"Unknown color '{name}' in {self.flavor.value}") from None
        return tuple(int(c) for c in self.rgb[idx])

    def contains(self, rgb) -> bool:
        target = np.asarray(rgb[:3], dtype=np.uint8)
        return bool(np.any(np.all(self.rgb == target, axis=1)))


def _build_palette(flavor: Flavor) -> Palette:
    rgb = np.array([parse_hex(h) for h in _PALETTE_HEX[flavor]], dtype=np.uint8)
    lab = rgb_to_lab(rgb)
    rgb.setflags(write=False)
    lab.setflags(write=False)
    return Palette(flavor=flavor, names=COLOR_NAMES, rgb=rgb, lab=lab)


_palettes: dict[Flavor, Palette] = {}
_palettes_lock = threading.Lock()


def get_palette(flavor: Flavor) -> Palette:
    """Return the shared palette for ``flavor``, building all four on first use."""
    if not isinstance(flavor, Flavor):
        raise InvalidParameterError(f"Not a flavor: {flavor!r}")
    if not _palettes:
        with _palettes_lock:
            if not _palettes:
                built = {f: _build_palette(f) for f in Flavor}
                _palettes.update(built)
    return _palettes[flavor]
