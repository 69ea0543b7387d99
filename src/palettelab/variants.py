"""Command variants: expand a request into elementary remaps and compose results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from .analysis import ColorStats, analyze_image_colors, create_comparison_image
from .error_handling import (
    DecodeError,
    EncodeError,
    LimitExceededError,
    PaletteLabError,
    log_warning_with_context,
    user_message,
)
from .frames import Frame, encode_frames
from .job import CancelToken
from .pipeline import FramePipeline, Output, ProgressCallback
from .registry import CommandVariant, Effect, ExportFormat, Flavor
from .request import ProcessingRequest, RemapTask

logger = logging.getLogger(__name__)

# Per-image failures a batch records and continues past
BATCH_RECOVERABLE_ERRORS = (DecodeError, EncodeError, LimitExceededError)


@dataclass
class JobResult:
    """Everything a finished job hands back to the boundary."""

    variant: CommandVariant
    outputs: list[Output] = field(default_factory=list)
    stats: ColorStats | None = None
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def output(self) -> Output | None:
        return self.outputs[0] if self.outputs else None


def expand(request: ProcessingRequest) -> list[RemapTask]:
    """Elementary remap tasks for ``request`` in execution order.

    STATS needs no remapping and expands to nothing.
    """
    variant = request.variant
    if variant is CommandVariant.BATCH:
        return [RemapTask.from_request(request, index) for index in range(len(request.sources))]
    if variant is CommandVariant.ALL_FLAVORS:
        return [
            RemapTask.from_request(request, flavor=flavor, label=request.source_label(0))
            for flavor in Flavor
        ]
    if variant is CommandVariant.STATS:
        return []
    return [RemapTask.from_request(request)]


def execute_request(
    request: ProcessingRequest,
    pipeline: FramePipeline,
    cancel_token: CancelToken,
    progress: ProgressCallback | None = None,
) -> JobResult:
    """Run every elementary task of ``request`` and compose the result."""
    variant = request.variant

    if variant is CommandVariant.STATS:
        cancel_token.raise_if_cancelled({"variant": variant.value})
        stats = analyze_image_colors(request.source, pipeline.limits)
        return JobResult(variant=variant, stats=stats)

    tasks = expand(request)

    if variant is CommandVariant.COMPARE:
        return JobResult(variant=variant, outputs=[_compare(tasks[0], pipeline, cancel_token, progress)])

    if variant is CommandVariant.BATCH:
        return _batch(tasks, pipeline, cancel_token, progress)

    outputs = [pipeline.run(task, cancel_token, progress) for task in tasks]
    return JobResult(variant=variant, outputs=outputs)


def _batch(
    tasks: list[RemapTask],
    pipeline: FramePipeline,
    cancel_token: CancelToken,
    progress: ProgressCallback | None,
) -> JobResult:
    result = JobResult(variant=CommandVariant.BATCH)
    first_error: PaletteLabError | None = None

    for task in tasks:
        try:
            result.outputs.append(pipeline.run(task, cancel_token, progress))
        except BATCH_RECOVERABLE_ERRORS as e:
            log_warning_with_context(
                f"Batch image {task.label} failed: {e}",
                context={"label": task.label, "error_type": type(e).__name__},
                logger=logger,
            )
            result.failures[task.label] = user_message(e)
            if first_error is None:
                first_error = e

    if not result.outputs and first_error is not None:
        raise first_error

    logger.info(f"📦 Batch finished: {len(result.outputs)} succeeded, {len(result.failures)} failed")
    return result


def _compare(
    task: RemapTask,
    pipeline: FramePipeline,
    cancel_token: CancelToken,
    progress: ProgressCallback | None,
) -> Output:
    # Effects animate the result; the right panel shows the plain remap
    processed = pipeline.remap_frames(replace(task, effect=Effect.NONE), cancel_token, progress)
    cancel_token.raise_if_cancelled({"label": task.label, "stage": "compose"})

    canvas = create_comparison_image(processed.source.frames[0].pixels, processed.frames[0].pixels)
    export_format = task.export_format or ExportFormat.PNG
    data = encode_frames(
        [Frame(pixels=canvas, index=0)],
        export_format,
        jpeg_quality=pipeline.remap_config.JPEG_QUALITY,
    )
    return Output(
        data=data,
        format=export_format,
        flavor=task.flavor,
        algorithm=processed.lut.algorithm,
        width=int(canvas.shape[1]),
        height=int(canvas.shape[0]),
        frame_count=1,
        durations=[None],
        label=f"{task.label}_compare",
    )
