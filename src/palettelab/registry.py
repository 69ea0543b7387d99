"""Registry of flavors, algorithms, quality presets, formats, effects and variants.

All lookups are case-insensitive exact matches against canonical names and
known aliases. Unknown names raise :class:`InvalidParameterError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .error_handling import InvalidParameterError


class Flavor(Enum):
    """Catppuccin palette flavors, lightest to darkest."""

    LATTE = "latte"
    FRAPPE = "frappe"
    MACCHIATO = "macchiato"
    MOCHA = "mocha"

    @property
    def display_name(self) -> str:
        return _FLAVOR_DISPLAY_NAMES[self]


_FLAVOR_DISPLAY_NAMES = {
    Flavor.LATTE: "Latte",
    Flavor.FRAPPE: "Frappé",
    Flavor.MACCHIATO: "Macchiato",
    Flavor.MOCHA: "Mocha",
}


class Algorithm(Enum):
    """Pixel remapping strategies."""

    SHEPARDS_METHOD = "shepards-method"
    GAUSSIAN_RBF = "gaussian-rbf"
    LINEAR_RBF = "linear-rbf"
    GAUSSIAN_SAMPLING = "gaussian-sampling"
    NEAREST_NEIGHBOR = "nearest-neighbor"
    HALD = "hald"
    EUCLIDE = "euclide"
    MEAN = "mean"
    STD = "std"


class QualityPreset(Enum):
    """Speed/quality presets mapping to an algorithm and LUT resolution."""

    FAST = "fast"
    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True)
class PresetDefaults:
    algorithm: Algorithm
    lut_bits: int


QUALITY_PRESETS: dict[QualityPreset, PresetDefaults] = {
    QualityPreset.FAST: PresetDefaults(Algorithm.NEAREST_NEIGHBOR, 5),
    QualityPreset.NORMAL: PresetDefaults(Algorithm.SHEPARDS_METHOD, 6),
    QualityPreset.HIGH: PresetDefaults(Algorithm.GAUSSIAN_SAMPLING, 7),
}


class ExportFormat(Enum):
    """Output encodings. Values are Pillow format identifiers."""

    PNG = "PNG"
    JPEG = "JPEG"
    WEBP = "WEBP"
    GIF = "GIF"
    BMP = "BMP"

    @property
    def extension(self) -> str:
        return "jpg" if self is ExportFormat.JPEG else self.value.lower()

    @property
    def supports_animation(self) -> bool:
        return self in (ExportFormat.GIF, ExportFormat.WEBP, ExportFormat.PNG)


class Effect(Enum):
    """Optional post-remap effects."""

    NONE = "none"
    FADE = "fade"


class CommandVariant(Enum):
    """Request shapes that expand into one or more elementary remaps."""

    SINGLE = "single"
    BATCH = "batch"
    ALL_FLAVORS = "all"
    COMPARE = "compare"
    STATS = "stats"


DEFAULT_FLAVOR = Flavor.LATTE
DEFAULT_ALGORITHM = Algorithm.SHEPARDS_METHOD

_FLAVOR_ALIASES = {
    "latte": Flavor.LATTE,
    "frappe": Flavor.FRAPPE,
    "frappé": Flavor.FRAPPE,
    "macchiato": Flavor.MACCHIATO,
    "mocha": Flavor.MOCHA,
}

_ALGORITHM_ALIASES = {
    "shepards-method": Algorithm.SHEPARDS_METHOD,
    "shepards": Algorithm.SHEPARDS_METHOD,
    "shepard": Algorithm.SHEPARDS_METHOD,
    "gaussian-rbf": Algorithm.GAUSSIAN_RBF,
    "gaussian": Algorithm.GAUSSIAN_RBF,
    "rbf": Algorithm.GAUSSIAN_RBF,
    "linear-rbf": Algorithm.LINEAR_RBF,
    "linear": Algorithm.LINEAR_RBF,
    "gaussian-sampling": Algorithm.GAUSSIAN_SAMPLING,
    "sampling": Algorithm.GAUSSIAN_SAMPLING,
    "gauss": Algorithm.GAUSSIAN_SAMPLING,
    "nearest-neighbor": Algorithm.NEAREST_NEIGHBOR,
    "nearest": Algorithm.NEAREST_NEIGHBOR,
    "nn": Algorithm.NEAREST_NEIGHBOR,
    "hald": Algorithm.HALD,
    "euclide": Algorithm.EUCLIDE,
    "mean": Algorithm.MEAN,
    "std": Algorithm.STD,
}

_QUALITY_ALIASES = {preset.value: preset for preset in QualityPreset}

_FORMAT_ALIASES = {
    "png": ExportFormat.PNG,
    "jpg": ExportFormat.JPEG,
    "jpeg": ExportFormat.JPEG,
    "webp": ExportFormat.WEBP,
    "gif": ExportFormat.GIF,
    "bmp": ExportFormat.BMP,
}

_EFFECT_ALIASES = {effect.value: effect for effect in Effect}

_VARIANT_ALIASES = {variant.value: variant for variant in CommandVariant}


def _lookup(table: dict, name: str, kind: str):
    if not isinstance(name, str):
        raise InvalidParameterError(f"{kind} name must be a string, got {type(name).__name__}")
    key = name.strip().lower()
    try:
        return table[key]
    except KeyError:
        raise InvalidParameterError(
            f"Unknown {kind} '{name}'", context={"kind": kind, "name": name}
        ) from None


def resolve_flavor(name: str) -> Flavor:
    return _lookup(_FLAVOR_ALIASES, name, "flavor")


def resolve_algorithm(name: str) -> Algorithm:
    return _lookup(_ALGORITHM_ALIASES, name, "algorithm")


def resolve_quality(name: str) -> QualityPreset:
    return _lookup(_QUALITY_ALIASES, name, "quality preset")


def resolve_format(name: str) -> ExportFormat:
    return _lookup(_FORMAT_ALIASES, name.lstrip(".") if isinstance(name, str) else name, "format")


def resolve_effect(name: str) -> Effect:
    return _lookup(_EFFECT_ALIASES, name, "effect")


def resolve_variant(name: str) -> CommandVariant:
    return _lookup(_VARIANT_ALIASES, name, "command variant")


def list_all() -> tuple[list[str], list[str], list[str]]:
    """Return canonical flavor, algorithm and format names in declaration order."""
    flavors = [flavor.value for flavor in Flavor]
    algorithms = [algorithm.value for algorithm in Algorithm]
    formats = ["png", "jpg", "webp", "gif", "bmp"]
    return flavors, algorithms, formats
