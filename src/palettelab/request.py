"""Validated, immutable processing requests."""

from __future__ import annotations

from dataclasses import dataclass, field

from .error_handling import InvalidParameterError
from .registry import (
    DEFAULT_ALGORITHM,
    DEFAULT_FLAVOR,
    Algorithm,
    CommandVariant,
    Effect,
    ExportFormat,
    Flavor,
    QualityPreset,
    resolve_algorithm,
    resolve_effect,
    resolve_flavor,
    resolve_format,
    resolve_quality,
    resolve_variant,
)


@dataclass(frozen=True)
class ProcessingRequest:
    """Everything needed to run one job.

    ``export_format=None`` means GIF for animated input and PNG otherwise.
    A ``quality`` preset, when set, overrides ``algorithm``.
    """

    submitter_id: str
    sources: tuple[bytes, ...]
    flavor: Flavor = DEFAULT_FLAVOR
    algorithm: Algorithm = DEFAULT_ALGORITHM
    quality: QualityPreset | None = None
    export_format: ExportFormat | None = None
    variant: CommandVariant = CommandVariant.SINGLE
    effect: Effect = Effect.NONE
    source_names: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not isinstance(self.submitter_id, str) or not self.submitter_id:
            raise InvalidParameterError("submitter_id must be a non-empty string")
        if isinstance(self.sources, (bytes, bytearray)):
            object.__setattr__(self, "sources", (bytes(self.sources),))
        else:
            object.__setattr__(self, "sources", tuple(self.sources))
        if not self.sources:
            raise InvalidParameterError("At least one source image is required")
        if self.variant is not CommandVariant.BATCH and len(self.sources) > 1:
            raise InvalidParameterError(
                f"The {self.variant.value} command takes exactly one image, got {len(self.sources)}"
            )
        object.__setattr__(self, "source_names", tuple(self.source_names))

        checks = (
            ("flavor", self.flavor, Flavor),
            ("algorithm", self.algorithm, Algorithm),
            ("variant", self.variant, CommandVariant),
            ("effect", self.effect, Effect),
        )
        for name, value, kind in checks:
            if not isinstance(value, kind):
                raise InvalidParameterError(f"{name} must be a {kind.__name__}, got {value!r}")
        if self.quality is not None and not isinstance(self.quality, QualityPreset):
            raise InvalidParameterError(f"quality must be a QualityPreset, got {self.quality!r}")
        if self.export_format is not None and not isinstance(self.export_format, ExportFormat):
            raise InvalidParameterError(
                f"export_format must be an ExportFormat, got {self.export_format!r}"
            )

    @property
    def source(self) -> bytes:
        return self.sources[0]

    def source_label(self, index: int) -> str:
        if index < len(self.source_names):
            return self.source_names[index]
        return f"image_{index + 1}"

    @classmethod
    def from_names(
        cls,
        submitter_id: str,
        sources,
        flavor: str | None = None,
        algorithm: str | None = None,
        quality: str | None = None,
        export_format: str | None = None,
        variant: str | None = None,
        effect: str | None = None,
        source_names=(),
    ) -> "ProcessingRequest":
        """Build a request from user-supplied names via the registry.

        Raises:
            InvalidParameterError: If any name is unknown
        """
        return cls(
            submitter_id=submitter_id,
            sources=sources,
            flavor=resolve_flavor(flavor) if flavor else DEFAULT_FLAVOR,
            algorithm=resolve_algorithm(algorithm) if algorithm else DEFAULT_ALGORITHM,
            quality=resolve_quality(quality) if quality else None,
            export_format=resolve_format(export_format) if export_format else None,
            variant=resolve_variant(variant) if variant else CommandVariant.SINGLE,
            effect=resolve_effect(effect) if effect else Effect.NONE,
            source_names=tuple(source_names),
        )


@dataclass(frozen=True)
class RemapTask:
    """One elementary remap: a single source onto a single flavor."""

    source: bytes
    flavor: Flavor
    algorithm: Algorithm = DEFAULT_ALGORITHM
    quality: QualityPreset | None = None
    export_format: ExportFormat | None = None
    effect: Effect = Effect.NONE
    label: str = "image_1"

    @classmethod
    def from_request(
        cls,
        request: ProcessingRequest,
        source_index: int = 0,
        flavor: Flavor | None = None,
        label: str | None = None,
    ) -> "RemapTask":
        return cls(
            source=request.sources[source_index],
            flavor=flavor or request.flavor,
            algorithm=request.algorithm,
            quality=request.quality,
            export_format=request.export_format,
            effect=request.effect,
            label=label or request.source_label(source_index),
        )
