"""
Managed render job.

A RenderJob runs one job body on its own thread and turns whatever
happens into lifecycle events:

    Started → Progress* → (Completed | Failed | Cancelled)

The body receives a JobContext and returns the canonical output path.
It runs FFmpeg through JobContext.run_ffmpeg, which feeds progress and log
capture, and raises on failure. Failure causes are derived from the
exception type; cancellation always produces Cancelled, never Failed,
whatever the body raised while being torn down.
"""

import logging
import queue
import threading
from collections import deque
from typing import Callable, Iterator, List, Optional

from ..render.commands import FFmpegCommand
from .errors import (
    FFmpegNotFoundError,
    FFmpegProcessError,
    FFmpegTimeoutError,
    MissingInputError,
    PreparationError,
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
    describe,
    is_terminal,
)
from .ffmpeg import FFmpegRunner, RunStatus
from .progress import format_progress, progress_ratio

logger = logging.getLogger(__name__)

# Lines attached to a Failed event
RECENT_LOG_LINES = 10

# Upper bound on lines kept for the Completed event
MAX_CAPTURED_LOG_LINES = 2000

EventListener = Callable[[object], None]


class JobCancelled(Exception):
    """Unwinds a job body once cancellation has been observed."""


def failure_cause(exc: BaseException) -> FailureCause:
    if isinstance(exc, FFmpegTimeoutError):
        return FailureCause.TIMEOUT
    if isinstance(exc, (FFmpegProcessError, FFmpegNotFoundError)):
        return FailureCause.PROCESS
    if isinstance(exc, (PreparationError, MissingInputError)):
        return FailureCause.PREPARATION
    if isinstance(exc, StorageError):
        return FailureCause.STORAGE
    return FailureCause.INTERNAL


class JobContext:
    """What a job body may do: run FFmpeg, check for cancellation."""

    def __init__(
        self,
        job: "RenderJob",
        runner: Optional[FFmpegRunner],
        timeout_seconds: float,
    ):
        self._job = job
        self._runner = runner
        self.timeout_seconds = timeout_seconds
        self._logs: deque = deque(maxlen=MAX_CAPTURED_LOG_LINES)
        self._logs_lock = threading.Lock()

    @property
    def job_id(self) -> str:
        return self._job.job_id

    @property
    def cancel_event(self) -> threading.Event:
        return self._job.cancel_event

    def check_cancelled(self) -> None:
        if self._job.cancel_event.is_set():
            raise JobCancelled()

    def log(self, line: str) -> None:
        with self._logs_lock:
            self._logs.append(line)

    def logs(self) -> List[str]:
        with self._logs_lock:
            return list(self._logs)

    def recent_logs(self, count: int = RECENT_LOG_LINES) -> List[str]:
        with self._logs_lock:
            return list(self._logs)[-count:]

    def run_ffmpeg(self, command: FFmpegCommand) -> None:
        """
        Run one FFmpeg command for this job.

        Raises:
            JobCancelled: Cancellation observed before or during the run
            FFmpegNotFoundError: No usable ffmpeg executable
            FFmpegProcessError: Non-zero exit
            FFmpegTimeoutError: Exceeded the per-job time limit
        """
        if self._runner is None:
            raise FFmpegNotFoundError()
        self.check_cancelled()

        def on_statistics(time_ms: int) -> None:
            ratio = progress_ratio(time_ms, command.estimated_duration_ms)
            self._job.emit(Progress(job_id=self.job_id, progress=ratio, message=format_progress(ratio)))

        outcome = self._runner.run(
            command,
            on_log=self.log,
            on_statistics=on_statistics,
            cancel_event=self._job.cancel_event,
            timeout_seconds=self.timeout_seconds,
        )

        if outcome.status == RunStatus.SUCCESS:
            return
        if outcome.status == RunStatus.CANCELLED:
            raise JobCancelled()
        if outcome.status == RunStatus.TIMED_OUT:
            raise FFmpegTimeoutError(self.timeout_seconds)
        raise FFmpegProcessError(outcome.return_code, self.recent_logs())


JobBody = Callable[[JobContext], str]


class RenderJob:
    """
    Handle to one scheduled render.

    A job that replaces another waits on its own thread for the predecessor
    to emit its terminal event before emitting Started, so events of the two
    never interleave. Events are delivered to the listener (on the job
    thread) and buffered for events().
    """

    def __init__(
        self,
        job_id: str,
        body: JobBody,
        runner: Optional[FFmpegRunner] = None,
        timeout_seconds: float = 300.0,
        listener: Optional[EventListener] = None,
        event_log: Optional[JobEventLog] = None,
        description: Optional[str] = None,
        predecessor: Optional["RenderJob"] = None,
    ):
        self.job_id = job_id
        self.description = description or job_id
        self._predecessor = predecessor
        self.cancel_event = threading.Event()
        self._body = body
        self._listener = listener
        self._event_log = event_log
        self._context = JobContext(self, runner, timeout_seconds)
        self._queue: "queue.Queue" = queue.Queue()
        self._finished = threading.Event()
        self._started = False
        self._start_lock = threading.Lock()
        self._terminal_event = None
        self._emit_lock = threading.RLock()
        # Guards the terminal decision against cancel(); never held while listeners run
        self._terminal_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=f"render-{job_id}", daemon=True)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._start_lock:
            if self._started:
                return
            self._started = True
        self._thread.start()

    def cancel(self) -> bool:
        """
        Request cancellation. Idempotent.

        Returns:
            True if the job had not emitted its terminal event yet; that
            terminal event is then guaranteed to be Cancelled. False if the
            job had already finished.
        """
        with self._terminal_lock:
            if self._terminal_event is not None:
                return False
            self.cancel_event.set()
        logger.info(f"[Scheduler] Cancelling {self.job_id}")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the terminal event has been emitted."""
        return self._finished.wait(timeout)

    @property
    def is_finished(self) -> bool:
        return self._finished.is_set()

    @property
    def terminal_event(self):
        return self._terminal_event

    def events(self, timeout: Optional[float] = None) -> Iterator:
        """
        Yield this job's events in order, ending with the terminal one.

        Single consumer. Raises queue.Empty if no event arrives within
        `timeout` seconds.
        """
        while True:
            event = self._queue.get(timeout=timeout)
            yield event
            if is_terminal(event):
                return

    # ------------------------------------------------------------------
    # Job thread
    # ------------------------------------------------------------------

    def emit(self, event) -> None:
        # Progress arrives from the stderr reader thread; serialize with the job thread
        with self._emit_lock:
            with self._terminal_lock:
                if self._terminal_event is not None:
                    logger.debug(f"[Scheduler] Dropping event after terminal: {describe(event)}")
                    return
                if isinstance(event, (Completed, Failed)) and self.cancel_event.is_set():
                    # A cancel accepted before this point always wins
                    logger.debug(f"[Scheduler] {self.job_id} cancelled before {event.kind} was reported")
                    event = Cancelled(job_id=self.job_id)
                if is_terminal(event):
                    self._terminal_event = event

            if self._event_log is not None:
                self._event_log.record(event)
            self._queue.put(event)
            if self._listener is not None:
                try:
                    self._listener(event)
                except Exception:
                    logger.exception(f"[Scheduler] Listener failed for {describe(event)}")

    def _run(self) -> None:
        ctx = self._context
        try:
            if self._predecessor is not None:
                self._predecessor.wait()
                self._predecessor = None
            self.emit(Started(job_id=self.job_id, message=f"Started {self.description}"))
            try:
                ctx.check_cancelled()
                output_path = self._body(ctx)
                # A cancel that raced a successful finish still wins
                ctx.check_cancelled()
            except JobCancelled:
                self.emit(Cancelled(job_id=self.job_id))
            except Exception as exc:
                if self.cancel_event.is_set():
                    logger.debug(f"[Scheduler] {self.job_id} raised while cancelling: {exc}")
                    self.emit(Cancelled(job_id=self.job_id))
                else:
                    self._emit_failure(exc)
            else:
                logger.info(f"[Scheduler] {self.job_id} completed: {output_path}")
                self.emit(Completed(job_id=self.job_id, output_path=str(output_path), logs=ctx.logs()))
        finally:
            if self._terminal_event is None:
                # Only reachable if emitting itself blew up
                self.emit(Failed(
                    job_id=self.job_id,
                    cause=FailureCause.INTERNAL,
                    reason="Render job ended without a result",
                ))
            self._finished.set()

    def _emit_failure(self, exc: Exception) -> None:
        cause = failure_cause(exc)
        if isinstance(exc, FFmpegProcessError):
            recent_logs = exc.recent_logs
        else:
            recent_logs = self._context.recent_logs()

        if cause == FailureCause.INTERNAL:
            logger.exception(f"[Scheduler] {self.job_id} failed unexpectedly")
        else:
            logger.error(f"[Scheduler] {self.job_id} failed ({cause.value}): {exc}")

        self.emit(Failed(
            job_id=self.job_id,
            cause=cause,
            reason=str(exc) or type(exc).__name__,
            recent_logs=recent_logs,
        ))
