"""
Render-specific errors.

A failed render is never fatal to the application. Each error is turned
into a Failed lifecycle event for its own job; other slots keep running.
Cancellation is not an error and has no exception type.
"""

from typing import List, Optional


class RenderError(Exception):
    """Base exception for render failures."""

    pass


class PreparationError(RenderError):
    """
    Work before FFmpeg starts could not be completed.

    Raised when:
    - The source clip cannot be staged into the cache directory
    - The render directory cannot be created
    """

    pass


class MissingInputError(RenderError):
    """A blend was requested without usable input files."""

    def __init__(self, job_id: str, missing: List[str]):
        self.job_id = job_id
        self.missing = missing
        if missing:
            detail = ", ".join(missing)
        else:
            detail = "no input paths supplied"
        super().__init__(f"Missing blend input for {job_id}: {detail}")


class FFmpegNotFoundError(RenderError):
    """No ffmpeg executable is configured or discoverable."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "FFmpeg not found. Install ffmpeg or set GIFVISION_FFMPEG_PATH."
        )


class FFmpegProcessError(RenderError):
    """FFmpeg exited with a non-zero status."""

    def __init__(self, return_code: int, recent_logs: List[str]):
        self.return_code = return_code
        self.recent_logs = recent_logs
        message = f"FFmpeg exited with code {return_code}"
        if recent_logs:
            message += "\n" + "\n".join(recent_logs)
        super().__init__(message)


class FFmpegTimeoutError(RenderError):
    """FFmpeg ran past the per-job time limit and was terminated."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        minutes = timeout_seconds / 60.0
        if minutes == int(minutes):
            limit = f"{int(minutes)} minutes"
        else:
            limit = f"{timeout_seconds:g} seconds"
        super().__init__(
            f"FFmpeg command timed out after {limit} - check if input files are valid"
        )


class StorageError(RenderError):
    """A finished output could not be recorded by the media repository."""

    pass
