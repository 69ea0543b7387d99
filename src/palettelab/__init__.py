"""PaletteLab - remap still and animated images onto Catppuccin palettes."""

__version__: str = "0.1.0"

from .error_handling import (  # noqa: E402
    AlreadyRunningError,
    DecodeError,
    EncodeError,
    InternalFailureError,
    InvalidParameterError,
    JobCancelledError,
    LimitExceededError,
    PaletteLabError,
    QueueFullError,
    user_message,
)
from .job import CancelToken, CompletionEvent, JobHandle, JobState  # noqa: E402
from .pipeline import FramePipeline, Output  # noqa: E402
from .registry import (  # noqa: E402
    Algorithm,
    CommandVariant,
    Effect,
    ExportFormat,
    Flavor,
    QualityPreset,
    list_all,
)
from .request import ProcessingRequest  # noqa: E402
from .scheduler import Scheduler  # noqa: E402
from .variants import JobResult  # noqa: E402

__all__ = [
    "Algorithm",
    "AlreadyRunningError",
    "CancelToken",
    "CommandVariant",
    "CompletionEvent",
    "DecodeError",
    "Effect",
    "EncodeError",
    "ExportFormat",
    "Flavor",
    "FramePipeline",
    "InternalFailureError",
    "InvalidParameterError",
    "JobCancelledError",
    "JobHandle",
    "JobResult",
    "JobState",
    "LimitExceededError",
    "Output",
    "PaletteLabError",
    "ProcessingRequest",
    "QualityPreset",
    "QueueFullError",
    "Scheduler",
    "list_all",
    "user_message",
]
