"""Frame pipeline: decode, remap every frame, apply effects, re-encode.

One :class:`FramePipeline` instance is shared by every worker. It holds no
per-job state; each call works on its own frames and reads the shared
lookup tables only.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from .caching import LutCache
from .config import DEFAULT_LIMITS_CONFIG, DEFAULT_REMAP_CONFIG, LimitsConfig, RemapConfig
from .error_handling import InvalidParameterError, error_context, log_warning_with_context
from .frames import DecodedImage, Frame, decode_frames, encode_frames, read_frame_timing
from .job import CancelToken
from .registry import Algorithm, Effect, ExportFormat, Flavor, QualityPreset
from .remap import LUT, apply_frame, get_or_build_lut, resolve_algorithm_and_params
from .request import ProcessingRequest, RemapTask

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class Output:
    """One encoded result image."""

    data: bytes
    format: ExportFormat
    flavor: Flavor
    algorithm: Algorithm
    width: int
    height: int
    frame_count: int
    durations: list[int | None] = field(default_factory=list)
    label: str = ""

    @property
    def is_animated(self) -> bool:
        return self.frame_count > 1

    @property
    def filename(self) -> str:
        return f"{self.label}_{self.flavor.value}.{self.format.extension}"


@dataclass
class ProcessedFrames:
    """Remapped frames of one source, not yet encoded."""

    source: DecodedImage
    frames: list[Frame]
    lut: LUT
    export_format: ExportFormat
    loop: int | None


def default_export_format(animated: bool) -> ExportFormat:
    return ExportFormat.GIF if animated else ExportFormat.PNG


def blend(original: np.ndarray, remapped: np.ndarray, weight: float) -> np.ndarray:
    """Mix two RGBA frames; ``weight`` 0 gives the original, 1 the remapped frame."""
    if weight <= 0.0:
        return original.copy()
    if weight >= 1.0:
        return remapped.copy()
    mixed = original.astype(np.float32) * (1.0 - weight) + remapped.astype(np.float32) * weight
    out = np.clip(np.rint(mixed), 0, 255).astype(np.uint8)
    out[..., 3] = original[..., 3]
    return out


def _validate_task(task: RemapTask) -> None:
    checks = (
        ("flavor", task.flavor, Flavor),
        ("algorithm", task.algorithm, Algorithm),
        ("effect", task.effect, Effect),
    )
    for name, value, kind in checks:
        if not isinstance(value, kind):
            raise InvalidParameterError(f"{name} must be a {kind.__name__}, got {value!r}")
    if task.quality is not None and not isinstance(task.quality, QualityPreset):
        raise InvalidParameterError(f"quality must be a QualityPreset, got {task.quality!r}")
    if task.export_format is not None and not isinstance(task.export_format, ExportFormat):
        raise InvalidParameterError(f"export_format must be an ExportFormat, got {task.export_format!r}")


class FramePipeline:
    """Runs elementary remap tasks with cooperative cancellation."""

    def __init__(
        self,
        limits: LimitsConfig | None = None,
        remap_config: RemapConfig | None = None,
        lut_cache: LutCache | None = None,
    ) -> None:
        self.limits = limits or DEFAULT_LIMITS_CONFIG
        self.remap_config = remap_config or DEFAULT_REMAP_CONFIG
        self.lut_cache = lut_cache

    def run(
        self,
        request: ProcessingRequest | RemapTask,
        cancel_token: CancelToken,
        progress: ProgressCallback | None = None,
    ) -> Output:
        """Remap the first source of ``request`` onto its flavor and encode it.

        Raises:
            InvalidParameterError: If the request carries invalid option types
            LimitExceededError: If the source exceeds a configured limit
            DecodeError: If the source cannot be decoded
            EncodeError: If the output cannot be encoded
            JobCancelledError: If the token is set before the run finishes
            InternalFailureError: For any unexpected fault
        """
        task = request if isinstance(request, RemapTask) else RemapTask.from_request(request)
        processed = self.remap_frames(task, cancel_token, progress)

        cancel_token.raise_if_cancelled({"label": task.label, "stage": "encode"})

        with error_context(
            "encode remapped image",
            context={"label": task.label, "flavor": task.flavor.value},
            logger=logger,
        ):
            data = encode_frames(
                processed.frames,
                processed.export_format,
                loop=processed.loop,
                jpeg_quality=self.remap_config.JPEG_QUALITY,
            )
            # Describe the file actually written
            durations = read_frame_timing(data)

        expected = len(processed.frames) if processed.export_format.supports_animation else 1
        if len(durations) != expected:
            log_warning_with_context(
                f"{processed.export_format.value} encoder wrote {len(durations)} of {expected} frames",
                context={"label": task.label},
                logger=logger,
            )

        return Output(
            data=data,
            format=processed.export_format,
            flavor=task.flavor,
            algorithm=processed.lut.algorithm,
            width=processed.source.width,
            height=processed.source.height,
            frame_count=len(durations),
            durations=durations,
            label=task.label,
        )

    def remap_frames(
        self,
        task: RemapTask,
        cancel_token: CancelToken,
        progress: ProgressCallback | None = None,
    ) -> ProcessedFrames:
        """Decode and remap every frame of ``task.source`` in index order.

        The token is checked before each frame; a cancelled run discards
        every frame remapped so far.
        """
        _validate_task(task)
        cancel_token.raise_if_cancelled({"label": task.label, "stage": "start"})

        with error_context(
            "remap image",
            context={"label": task.label, "flavor": task.flavor.value},
            logger=logger,
        ):
            start = time.perf_counter()
            decoded = decode_frames(task.source, self.limits)
            cancel_token.raise_if_cancelled({"label": task.label, "stage": "decode"})

            algorithm, params = resolve_algorithm_and_params(
                task.algorithm, task.quality, self.remap_config.DEFAULT_LUT_BITS
            )
            lut = get_or_build_lut(task.flavor, algorithm, params, cache=self.lut_cache)
            cancel_token.raise_if_cancelled({"label": task.label, "stage": "lookup table"})

            total = len(decoded.frames)
            remapped: list[Frame] = []
            for frame in decoded.frames:
                cancel_token.raise_if_cancelled(
                    {"label": task.label, "frame": frame.index, "frames_total": total}
                )
                pixels = apply_frame(
                    frame.pixels,
                    lut,
                    workers=self.remap_config.PIXEL_WORKERS,
                    parallel_min_rows=self.remap_config.PARALLEL_MIN_ROWS,
                )
                remapped.append(Frame(pixels=pixels, index=frame.index, duration_ms=frame.duration_ms))
                if progress is not None:
                    progress(len(remapped), total)

            export_format = task.export_format or default_export_format(
                decoded.is_animated or task.effect is Effect.FADE
            )
            loop = decoded.loop if decoded.is_animated else 0

            if task.effect is Effect.FADE:
                cancel_token.raise_if_cancelled({"label": task.label, "stage": "effect"})
                if export_format.supports_animation:
                    remapped = self._fade(decoded, remapped)
                else:
                    log_warning_with_context(
                        f"Fade needs an animated format, {export_format.value} output is not faded",
                        context={"label": task.label},
                        logger=logger,
                    )

            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.debug(
                f"Remapped {total} frame(s) of {task.label} onto {task.flavor.value} "
                f"with {algorithm.value} in {elapsed_ms}ms"
            )

        return ProcessedFrames(
            source=decoded,
            frames=remapped,
            lut=lut,
            export_format=export_format,
            loop=loop,
        )

    def _fade(self, decoded: DecodedImage, remapped: list[Frame]) -> list[Frame]:
        """Blend from the original toward the remapped image.

        A still becomes an animation with engine-assigned timing. An animated
        source keeps its timing and fades across its own frames.
        """
        if not decoded.is_animated:
            steps = self.remap_config.FADE_STEPS
            original = decoded.frames[0].pixels
            target = remapped[0].pixels
            frames = []
            for step in range(steps):
                last = step == steps - 1
                frames.append(
                    Frame(
                        pixels=blend(original, target, step / (steps - 1)),
                        index=step,
                        duration_ms=(
                            self.remap_config.FADE_HOLD_MS if last else self.remap_config.FADE_FRAME_MS
                        ),
                    )
                )
            return frames

        count = len(remapped)
        return [
            Frame(
                pixels=blend(source.pixels, target.pixels, i / (count - 1)),
                index=target.index,
                duration_ms=target.duration_ms,
            )
            for i, (source, target) in enumerate(zip(decoded.frames, remapped))
        ]
