"""
FFmpeg process runner.

Runs one FFmpegCommand via subprocess.Popen and reports what happens:
- stderr is read line by line on a reader thread; universal newlines turn
  the carriage-return statistics updates into separate lines
- every non-blank line goes to on_log
- lines carrying time= go to on_statistics as milliseconds
- cancellation and timeout use SIGTERM → SIGKILL escalation

The runner never decides what a failure means for the job; it returns a
RunOutcome and leaves event translation to the coordinator.
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..render.commands import FFmpegCommand
from .errors import FFmpegNotFoundError
from .progress import parse_time_ms

logger = logging.getLogger(__name__)

# Seconds between cancellation/deadline checks while FFmpeg runs
POLL_INTERVAL = 0.1

# Seconds FFmpeg gets to exit after SIGTERM before SIGKILL
KILL_GRACE_SECONDS = 5.0


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RunOutcome:
    """How one FFmpeg invocation ended."""

    status: RunStatus
    return_code: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS


class FFmpegRunner:
    """
    Executes FFmpeg invocations.

    Stateless apart from configuration, so one instance is shared by every
    job in the scheduler.
    """

    def __init__(
        self,
        ffmpeg_path: Optional[str],
        poll_interval: float = POLL_INTERVAL,
        kill_grace_seconds: float = KILL_GRACE_SECONDS,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.poll_interval = poll_interval
        self.kill_grace_seconds = kill_grace_seconds

    @property
    def available(self) -> bool:
        return self.ffmpeg_path is not None

    def run(
        self,
        command: FFmpegCommand,
        on_log: Optional[Callable[[str], None]] = None,
        on_statistics: Optional[Callable[[int], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: float = 300.0,
    ) -> RunOutcome:
        """
        Run one command to completion, cancellation or timeout.

        Raises:
            FFmpegNotFoundError: No executable configured, or it cannot be started
        """
        if not self.ffmpeg_path:
            raise FFmpegNotFoundError()

        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"[FFmpeg] {command.job_id} cancelled before launch")
            return RunOutcome(status=RunStatus.CANCELLED)

        cmd = [self.ffmpeg_path, *command.arguments]
        logger.info(f"[FFmpeg] {command.job_id}: {command.command_line(self.ffmpeg_path)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise FFmpegNotFoundError(f"FFmpeg could not be started ({self.ffmpeg_path}): {e}") from e

        logger.debug(f"[FFmpeg] {command.job_id} started as PID {process.pid}")

        reader = threading.Thread(
            target=self._pump_stderr,
            args=(process, command.job_id, on_log, on_statistics),
            name=f"ffmpeg-stderr-{command.job_id}",
            daemon=True,
        )
        reader.start()

        status: Optional[RunStatus] = None
        deadline = time.monotonic() + timeout_seconds
        try:
            while True:
                try:
                    process.wait(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    pass

                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"[FFmpeg] {command.job_id} cancelled, stopping PID {process.pid}")
                    status = RunStatus.CANCELLED
                    self._terminate(process)
                    break

                if time.monotonic() >= deadline:
                    logger.error(
                        f"[FFmpeg] {command.job_id} exceeded {timeout_seconds}s, stopping PID {process.pid}"
                    )
                    status = RunStatus.TIMED_OUT
                    self._terminate(process)
                    break
        finally:
            if process.poll() is None:
                self._terminate(process)
            reader.join(timeout=self.kill_grace_seconds)
            if process.stderr is not None:
                process.stderr.close()

        return_code = process.returncode
        if status is None:
            # Cancellation wins over an exit that raced with it
            if cancel_event is not None and cancel_event.is_set():
                status = RunStatus.CANCELLED
            elif return_code == 0:
                status = RunStatus.SUCCESS
            else:
                status = RunStatus.FAILED

        if status == RunStatus.FAILED:
            logger.error(f"[FFmpeg] {command.job_id} exited with code {return_code}")
        else:
            logger.info(f"[FFmpeg] {command.job_id} finished: {status.value} (code {return_code})")
        return RunOutcome(status=status, return_code=return_code)

    def _pump_stderr(
        self,
        process: subprocess.Popen,
        job_id: str,
        on_log: Optional[Callable[[str], None]],
        on_statistics: Optional[Callable[[int], None]],
    ) -> None:
        try:
            for raw_line in process.stderr:
                line = raw_line.rstrip()
                if not line.strip():
                    continue
                if on_log is not None:
                    on_log(line)
                if on_statistics is not None:
                    time_ms = parse_time_ms(line)
                    if time_ms is not None:
                        on_statistics(time_ms)
        except (OSError, ValueError):
            # Pipe closed underneath us during termination
            pass
        except Exception:
            logger.exception(f"[FFmpeg] {job_id} log consumer raised; output no longer forwarded")

    def _terminate(self, process: subprocess.Popen) -> None:
        """SIGTERM, then SIGKILL if FFmpeg ignores it."""
        process.terminate()
        try:
            process.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"[FFmpeg] PID {process.pid} did not terminate, sending SIGKILL")
            process.kill()
            process.wait()
