"""
Tests for the managed render job and its lifecycle events.

Verifies:
- Started always precedes exactly one terminal event
- Progress is a clamped ratio against the estimated duration
- Failures carry a cause and the last log lines
- Cancellation is reported as Cancelled, never Failed
"""

import threading

import pytest

from conftest import FakeRunner
from gifvision.execution.coordinator import (
    RECENT_LOG_LINES,
    JobContext,
    RenderJob,
    failure_cause,
)
from gifvision.execution.errors import (
    FFmpegTimeoutError,
    MissingInputError,
    PreparationError,
    StorageError,
)
from gifvision.execution.events import (
    RENDER_EVENT_ADAPTER,
    Cancelled,
    Completed,
    Failed,
    FailureCause,
    JobEventLog,
    Progress,
    Started,
    describe,
)
from gifvision.execution.ffmpeg import RunStatus
from gifvision.render.commands import FFmpegCommand


def command(tmp_path, estimated_ms=2000):
    return FFmpegCommand(
        job_id="job-1",
        arguments=("-y",),
        estimated_duration_ms=estimated_ms,
        output_path=str(tmp_path / "out.gif"),
    )


def run_job(body, runner=None, **kwargs):
    job = RenderJob("job-1", body, runner=runner, **kwargs)
    job.start()
    assert job.wait(timeout=5)
    return job, list(job.events(timeout=1))


class TestLifecycle:

    def test_success(self, tmp_path):
        runner = FakeRunner(logs=["line 1", "line 2"], statistics_ms=[500, 1000, 9000])

        def body(ctx):
            ctx.run_ffmpeg(command(tmp_path))
            return "/store/final.gif"

        job, events = run_job(body, runner)

        assert isinstance(events[0], Started)
        progress = [e for e in events if isinstance(e, Progress)]
        assert [p.progress for p in progress] == [0.25, 0.5, 0.999]
        assert progress[0].message == "25.0% complete"
        assert isinstance(events[-1], Completed)
        assert events[-1].output_path == "/store/final.gif"
        assert events[-1].logs == ["line 1", "line 2"]
        assert job.terminal_event is events[-1]

    def test_process_failure_keeps_last_ten_lines(self, tmp_path):
        logs = [f"log {i}" for i in range(25)]
        runner = FakeRunner(status=RunStatus.FAILED, return_code=1, logs=logs)

        def body(ctx):
            ctx.run_ffmpeg(command(tmp_path))
            return "unreachable"

        _, events = run_job(body, runner)
        failed = events[-1]

        assert isinstance(failed, Failed)
        assert failed.cause == FailureCause.PROCESS
        assert failed.recent_logs == logs[-RECENT_LOG_LINES:]
        assert "exited with code 1" in failed.reason

    def test_timeout_is_failed_with_hint(self, tmp_path):
        runner = FakeRunner(status=RunStatus.TIMED_OUT, return_code=-15, logs=["stuck"])

        def body(ctx):
            ctx.run_ffmpeg(command(tmp_path))
            return "unreachable"

        _, events = run_job(body, runner, timeout_seconds=300)
        failed = events[-1]

        assert isinstance(failed, Failed)
        assert failed.cause == FailureCause.TIMEOUT
        assert failed.reason == (
            "FFmpeg command timed out after 5 minutes - check if input files are valid"
        )
        assert failed.recent_logs == ["stuck"]

    def test_preparation_failure_after_started(self):
        def body(ctx):
            raise PreparationError("Cannot stage source")

        _, events = run_job(body)

        assert [type(e) for e in events] == [Started, Failed]
        assert events[1].cause == FailureCause.PREPARATION

    def test_unexpected_error_is_internal(self):
        def body(ctx):
            raise RuntimeError("boom")

        _, events = run_job(body)
        assert events[-1].cause == FailureCause.INTERNAL
        assert events[-1].reason == "boom"

    def test_cancel_before_start(self):
        calls = []

        def body(ctx):
            calls.append(ctx.job_id)
            return "x"

        job = RenderJob("job-1", body)
        job.cancel()
        job.start()
        assert job.wait(timeout=5)

        assert [type(e) for e in job.events(timeout=1)] == [Started, Cancelled]
        assert calls == []

    def test_cancel_during_run(self, tmp_path):
        runner = FakeRunner(block=True)

        def body(ctx):
            ctx.run_ffmpeg(command(tmp_path))
            return "x"

        job = RenderJob("job-1", body, runner=runner)
        job.start()
        assert runner.started.wait(timeout=5)
        job.cancel()
        assert job.wait(timeout=5)

        events = list(job.events(timeout=1))
        assert [type(e) for e in events] == [Started, Cancelled]

    def test_error_while_cancelling_is_still_cancelled(self):
        def body(ctx):
            ctx.cancel_event.set()
            raise RuntimeError("pipe closed")

        _, events = run_job(body)
        assert isinstance(events[-1], Cancelled)

    def test_cancel_racing_success_wins(self):
        def body(ctx):
            ctx.cancel_event.set()
            return "/done.gif"

        _, events = run_job(body)
        assert isinstance(events[-1], Cancelled)

    def test_cancel_between_success_and_report_wins(self, monkeypatch):
        entered = threading.Event()
        proceed = threading.Event()
        captured_logs = JobContext.logs

        def slow_logs(ctx):
            entered.set()
            proceed.wait(timeout=5)
            return captured_logs(ctx)

        # logs() is read while the Completed event is being built
        monkeypatch.setattr(JobContext, "logs", slow_logs)
        job = RenderJob("job-1", lambda ctx: "/a.gif")
        job.start()
        assert entered.wait(timeout=5)

        assert job.cancel() is True
        proceed.set()
        assert job.wait(timeout=5)

        assert [type(e) for e in job.events(timeout=1)] == [Started, Cancelled]

    def test_cancel_after_terminal_reports_false(self):
        job, _ = run_job(lambda ctx: "/a.gif")

        assert job.cancel() is False
        assert isinstance(job.terminal_event, Completed)
        assert not job.cancel_event.is_set()

    def test_nothing_after_terminal(self):
        job = RenderJob("job-1", lambda ctx: "/a.gif")
        job.start()
        job.wait(timeout=5)
        job.emit(Progress(job_id="job-1", progress=0.5))

        assert [type(e) for e in job.events(timeout=1)] == [Started, Completed]

    def test_listener_and_event_log(self):
        seen = []
        log = JobEventLog()
        run_job(lambda ctx: "/a.gif", listener=seen.append, event_log=log)

        assert [type(e) for e in seen] == [Started, Completed]
        assert [type(e) for e in log.get_events("job-1")] == [Started, Completed]

    def test_listener_failure_does_not_break_job(self):
        def listener(event):
            raise ValueError("listener bug")

        _, events = run_job(lambda ctx: "/a.gif", listener=listener)
        assert isinstance(events[-1], Completed)

    def test_no_runner_means_ffmpeg_missing(self, tmp_path):
        def body(ctx):
            ctx.run_ffmpeg(command(tmp_path))
            return "x"

        _, events = run_job(body, runner=None)
        assert events[-1].cause == FailureCause.PROCESS
        assert "FFmpeg not found" in events[-1].reason


class TestFailureCause:

    @pytest.mark.parametrize("exc,cause", [
        (FFmpegTimeoutError(300), FailureCause.TIMEOUT),
        (PreparationError("x"), FailureCause.PREPARATION),
        (MissingInputError("job", ["/a.gif"]), FailureCause.PREPARATION),
        (StorageError("x"), FailureCause.STORAGE),
        (KeyError("x"), FailureCause.INTERNAL),
    ])
    def test_mapping(self, exc, cause):
        assert failure_cause(exc) == cause

    def test_timeout_message_for_odd_limits(self):
        assert "after 90 seconds" in str(FFmpegTimeoutError(90))


class TestEventModel:

    def test_tagged_union_round_trip(self):
        event = Failed(job_id="j", cause=FailureCause.TIMEOUT, reason="slow")
        payload = RENDER_EVENT_ADAPTER.dump_python(event, mode="json")
        assert payload["kind"] == "failed"
        assert RENDER_EVENT_ADAPTER.validate_python(payload) == event

    def test_progress_bounds_enforced(self):
        with pytest.raises(ValueError):
            Progress(job_id="j", progress=1.0)

    def test_describe(self):
        assert describe(Cancelled(job_id="j")) == "j cancelled"
        assert describe(Completed(job_id="j", output_path="/a.gif")) == "j completed -> /a.gif"

    def test_event_log_coalesces_progress(self):
        log = JobEventLog()
        log.record(Started(job_id="j"))
        log.record(Progress(job_id="j", progress=0.1))
        log.record(Progress(job_id="j", progress=0.2))
        log.record(Completed(job_id="j", output_path="/a.gif"))

        events = log.get_events("j")
        assert [type(e) for e in events] == [Started, Progress, Completed]
        assert events[1].progress == 0.2

    def test_event_log_restarts_timeline_on_rerun(self):
        log = JobEventLog()
        for _ in range(3):
            log.record(Started(job_id="j"))
            log.record(Completed(job_id="j", output_path="/a.gif"))
        log.record(Started(job_id="j"))

        assert [type(e) for e in log.get_events("j")] == [Started]

    def test_rerun_becomes_newest_job(self):
        log = JobEventLog(max_jobs=2)
        log.record(Started(job_id="a"))
        log.record(Cancelled(job_id="a"))
        log.record(Started(job_id="b"))
        log.record(Started(job_id="a"))
        log.record(Started(job_id="c"))

        assert log.job_ids() == ["a", "c"]

    def test_event_log_bounded(self):
        log = JobEventLog(max_jobs=2)
        for job_id in ("a", "b", "c"):
            log.record(Started(job_id=job_id))
        assert log.job_ids() == ["b", "c"]
