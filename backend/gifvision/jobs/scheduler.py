"""
Slot-keyed render scheduler.

One active job per slot. Submitting to a busy slot signals the running job
to stop and registers the new one immediately. The new job waits on its own
thread for the old one to emit its terminal event before emitting Started,
so a superseded job never emits anything after its replacement starts.
Submission never blocks the caller. Different slots run concurrently, each
on its own thread.

Design rules:
- The slot map is only touched under one lock
- Blocking work (waiting, FFmpeg, storage) happens on job threads
- A finishing job only clears its slot if it still owns it
- No retries: a failed job stays failed until resubmitted
"""

import functools
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..execution.coordinator import EventListener, JobBody, JobContext, RenderJob
from ..execution.errors import (
    MissingInputError,
    PreparationError,
    StorageError,
)
from ..execution.events import (
    Cancelled,
    Completed,
    Failed,
    JobEventLog,
    Started,
)
from ..execution.ffmpeg import FFmpegRunner
from ..media.repository import MediaRepository
from ..render.commands import (
    build_layer_blend_command,
    build_master_blend_command,
    build_stream_command,
    resolve_layer_output,
    resolve_master_output,
    resolve_stream_output,
)
from ..render.fonts import find_available_font
from ..render.models import (
    LayerBlendRequest,
    MasterBlendRequest,
    StreamRenderRequest,
    StreamSelection,
)
from ..render.probe import MediaProbe, probe_media
from ..settings import RenderSettings
from .errors import JobNotFoundError, SchedulerClosedError
from .models import LayerBlendSlot, MasterBlendSlot, SlotKey, SlotState, StreamSlot
from .state import validate_transition

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {
    Completed: SlotState.COMPLETED,
    Failed: SlotState.FAILED,
    Cancelled: SlotState.CANCELLED,
}


class RenderScheduler:
    """
    Dispatches render jobs, one per slot.

    Collaborators are injectable so tests can swap the runner, the
    repository and the probe without touching FFmpeg.
    """

    def __init__(
        self,
        settings: RenderSettings,
        runner: Optional[FFmpegRunner] = None,
        repository: Optional[MediaRepository] = None,
        probe: Optional[Callable[[str], MediaProbe]] = None,
        event_log: Optional[JobEventLog] = None,
    ):
        self.settings = settings
        self.runner = runner if runner is not None else FFmpegRunner(settings.ffmpeg_path)
        self.repository = repository
        self.probe = probe or functools.partial(
            probe_media,
            ffprobe_path=settings.ffprobe_path,
            timeout=settings.probe_timeout_seconds,
        )
        self.event_log = event_log if event_log is not None else JobEventLog()

        self._lock = threading.Lock()
        self._active: Dict[SlotKey, RenderJob] = {}
        self._states: Dict[SlotKey, SlotState] = {}
        self._closed = False

        self._font_lock = threading.Lock()
        self._font_resolved = False
        self._font_path: Optional[str] = None

    # ========================================================================
    # Generic submission
    # ========================================================================

    def submit(
        self,
        slot_key: SlotKey,
        job_id: str,
        body: JobBody,
        listener: Optional[EventListener] = None,
        description: Optional[str] = None,
    ) -> RenderJob:
        """
        Run `body` as the job for `slot_key`, replacing any job already there.

        Returns immediately with the started job handle. Its events are delivered
        to `listener` on the job thread and through RenderJob.events().
        """
        handle: Optional[RenderJob] = None

        def on_event(event) -> None:
            self._on_job_event(slot_key, handle, event)
            if listener is not None:
                listener(event)

        with self._lock:
            if self._closed:
                raise SchedulerClosedError()
            previous = self._active.get(slot_key)
            if previous is not None and previous.is_finished:
                previous = None
            handle = RenderJob(
                job_id=job_id,
                body=body,
                runner=self.runner,
                timeout_seconds=self.settings.job_timeout_seconds,
                listener=on_event,
                event_log=self.event_log,
                description=description or slot_key.label,
                predecessor=previous,
            )
            self._active[slot_key] = handle
            if previous is not None:
                logger.info(
                    f"[Scheduler] Replacing {previous.job_id} with {job_id} on {slot_key.label}"
                )
                previous.cancel()
            handle.start()

        logger.info(f"[Scheduler] Submitted {job_id} on {slot_key.label}")
        return handle

    def _on_job_event(self, slot_key: SlotKey, handle: Optional[RenderJob], event) -> None:
        with self._lock:
            current = self._states.get(slot_key, SlotState.IDLE)
            if isinstance(event, Started):
                validate_transition(slot_key.label, current, SlotState.RUNNING)
                self._states[slot_key] = SlotState.RUNNING
                return

            terminal = _TERMINAL_STATES.get(type(event))
            if terminal is None:
                return
            validate_transition(slot_key.label, current, terminal)
            validate_transition(slot_key.label, terminal, SlotState.IDLE)
            self._states[slot_key] = SlotState.IDLE
            if self._active.get(slot_key) is handle:
                del self._active[slot_key]

    # ========================================================================
    # Cancellation and inspection
    # ========================================================================

    def cancel(self, slot_key: SlotKey) -> bool:
        """
        Cancel the active job for a slot.

        Returns:
            True if a job was active; its terminal event will be Cancelled.
            False if the slot was idle or its job had already finished (no
            event is emitted in that case)
        """
        with self._lock:
            handle = self._active.get(slot_key)
        if handle is None or not handle.cancel():
            logger.debug(f"[Scheduler] Nothing to cancel on {slot_key.label}")
            return False
        return True

    def cancel_stream_render(self, layer_id: int, stream: StreamSelection) -> bool:
        return self.cancel(StreamSlot(layer_id=layer_id, stream=stream))

    def cancel_layer_blend(self, layer_id: int) -> bool:
        return self.cancel(LayerBlendSlot(layer_id=layer_id))

    def cancel_master_blend(self) -> bool:
        return self.cancel(MasterBlendSlot())

    def slot_state(self, slot_key: SlotKey) -> SlotState:
        with self._lock:
            return self._states.get(slot_key, SlotState.IDLE)

    def active_job(self, slot_key: SlotKey) -> Optional[RenderJob]:
        with self._lock:
            return self._active.get(slot_key)

    def active_jobs(self) -> List[RenderJob]:
        with self._lock:
            return list(self._active.values())

    def events_for(self, job_id: str) -> list:
        events = self.event_log.get_events(job_id)
        if not events:
            raise JobNotFoundError(job_id)
        return events

    def shutdown(self, wait: bool = True) -> None:
        """Refuse new work and cancel everything still running."""
        with self._lock:
            self._closed = True
            handles = list(self._active.values())
        for handle in handles:
            handle.cancel()
        if wait:
            for handle in handles:
                handle.wait(timeout=self.settings.job_timeout_seconds)
        logger.info(f"[Scheduler] Shut down ({len(handles)} job(s) cancelled)")

    # ========================================================================
    # Stream renders
    # ========================================================================

    def submit_stream_render(
        self,
        request: StreamRenderRequest,
        listener: Optional[EventListener] = None,
    ) -> RenderJob:
        """Render Layer N, Stream A/B from its trimmed source clip."""
        slot = StreamSlot(layer_id=request.layer_id, stream=request.stream)

        def body(ctx: JobContext) -> str:
            staged = self._stage_source(request.source_path, ctx.job_id)
            try:
                output = self._output_path(resolve_stream_output, request)
                font_path = self._resolve_font() if request.adjustments.text_overlay.strip() else None
                staged_request = request.model_copy(update={"source_path": str(staged)})
                ctx.run_ffmpeg(build_stream_command(staged_request, output, font_path))
            finally:
                self._discard(staged)
            ctx.check_cancelled()
            return self._store(
                lambda repo: repo.store_stream_output(request.layer_id, request.stream, str(output)),
                output,
            )

        return self.submit(slot, request.job_id, body, listener)

    # ========================================================================
    # Blends
    # ========================================================================

    def submit_layer_blend(
        self,
        request: LayerBlendRequest,
        listener: Optional[EventListener] = None,
    ) -> RenderJob:
        """
        Blend Stream A and Stream B of one layer.

        With only one stream rendered, that stream is published as the layer
        output without running FFmpeg.

        Raises:
            MissingInputError: No stream paths, or a given path does not exist
        """
        supplied = [p for p in (request.stream_a_path, request.stream_b_path) if p]
        self._require_inputs(request.job_id, supplied)
        slot = LayerBlendSlot(layer_id=request.layer_id)

        if len(supplied) == 1:
            only = supplied[0]

            def mirror(ctx: JobContext) -> str:
                logger.info(f"[Scheduler] {ctx.job_id}: single stream available, mirroring {only}")
                return self._store(lambda repo: repo.store_layer_blend(request.layer_id, only), Path(only))

            return self.submit(slot, request.job_id, mirror, listener)

        def body(ctx: JobContext) -> str:
            output = self._output_path(resolve_layer_output, request)
            ctx.run_ffmpeg(build_layer_blend_command(request, output, self.probe))
            ctx.check_cancelled()
            return self._store(lambda repo: repo.store_layer_blend(request.layer_id, str(output)), output)

        return self.submit(slot, request.job_id, body, listener)

    def submit_master_blend(
        self,
        request: MasterBlendRequest,
        listener: Optional[EventListener] = None,
    ) -> RenderJob:
        """
        Blend the Layer 1 and Layer 2 outputs into the master GIF.

        Raises:
            MissingInputError: A layer output is missing
        """
        absent = [
            label
            for label, path in (
                ("Layer 1 output", request.layer_one_path),
                ("Layer 2 output", request.layer_two_path),
            )
            if not path
        ]
        if absent:
            raise MissingInputError(request.job_id, absent)
        self._require_inputs(request.job_id, [request.layer_one_path, request.layer_two_path])

        def body(ctx: JobContext) -> str:
            output = self._output_path(resolve_master_output, request)
            ctx.run_ffmpeg(build_master_blend_command(request, output, self.probe))
            ctx.check_cancelled()
            return self._store(lambda repo: repo.store_master_blend(str(output)), output)

        return self.submit(MasterBlendSlot(), request.job_id, body, listener)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require_inputs(self, job_id: str, paths: List[str]) -> None:
        if not paths:
            raise MissingInputError(job_id, [])
        missing = [p for p in paths if not Path(p).is_file()]
        if missing:
            raise MissingInputError(job_id, missing)

    def _output_path(self, resolve, request) -> Path:
        try:
            return resolve(self.settings.render_dir, request)
        except OSError as e:
            raise PreparationError(f"Cannot prepare render directory {self.settings.render_dir}: {e}") from e

    def _stage_source(self, source_path: str, job_id: str) -> Path:
        """Copy the source clip into a private file for this job."""
        source = Path(source_path)
        if not source.is_file():
            raise PreparationError(f"Source clip not found: {source_path}")

        staged_path: Optional[Path] = None
        try:
            self.settings.cache_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.settings.cache_dir,
                prefix=f"{job_id}-",
                suffix=source.suffix,
                delete=False,
            ) as staged:
                staged_path = Path(staged.name)
                with open(source, "rb") as original:
                    shutil.copyfileobj(original, staged)
        except OSError as e:
            if staged_path is not None:
                self._discard(staged_path)
            raise PreparationError(f"Cannot stage {source_path}: {e}") from e

        logger.debug(f"[Scheduler] {job_id}: staged {source_path} as {staged_path}")
        return staged_path

    def _discard(self, staged: Path) -> None:
        try:
            staged.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[Scheduler] Could not remove staged input {staged}: {e}")

    def _store(self, store: Callable[[MediaRepository], object], output: Path) -> str:
        if self.repository is None:
            return str(output)
        try:
            asset = store(self.repository)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Could not record {output}: {e}") from e
        return asset.path

    def _resolve_font(self) -> Optional[str]:
        with self._font_lock:
            if not self._font_resolved:
                self._font_path = find_available_font(self.settings.font_path)
                self._font_resolved = True
            return self._font_path
