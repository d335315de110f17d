"""
Execution: run FFmpeg and report what happened as lifecycle events.

Every job emits Started, then Progress updates, then exactly one of
Completed, Failed or Cancelled. Failures are events, not exceptions:
one slot failing never affects another.
"""

from .coordinator import JobContext, RenderJob
from .errors import (
    FFmpegNotFoundError,
    FFmpegProcessError,
    FFmpegTimeoutError,
    MissingInputError,
    PreparationError,
    RenderError,
    StorageError,
)
from .events import (
    Cancelled,
    Completed,
    Failed,
    FailureCause,
    JobEventLog,
    Progress,
    Started,
)
from .ffmpeg import FFmpegRunner, RunOutcome, RunStatus

__all__ = [
    "RenderJob",
    "JobContext",
    "FFmpegRunner",
    "RunOutcome",
    "RunStatus",
    "Started",
    "Progress",
    "Completed",
    "Failed",
    "Cancelled",
    "FailureCause",
    "JobEventLog",
    "RenderError",
    "PreparationError",
    "MissingInputError",
    "FFmpegNotFoundError",
    "FFmpegProcessError",
    "FFmpegTimeoutError",
    "StorageError",
]
