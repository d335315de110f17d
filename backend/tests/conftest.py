"""
Pytest configuration for the GifVision backend suite.
"""

import sys
import threading
from pathlib import Path
from typing import List, Optional

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from gifvision.execution.ffmpeg import RunOutcome, RunStatus  # noqa: E402
from gifvision.settings import RenderSettings  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that spawn subprocesses"
    )


class FakeRunner:
    """
    Stand-in for FFmpegRunner.

    Emits the scripted log lines and statistics, then either returns the
    scripted outcome or blocks until cancelled (block=True). Records every
    command it was asked to run.
    """

    def __init__(
        self,
        status: RunStatus = RunStatus.SUCCESS,
        return_code: Optional[int] = 0,
        logs: Optional[List[str]] = None,
        statistics_ms: Optional[List[int]] = None,
        block: bool = False,
        write_output: bool = True,
    ):
        self.status = status
        self.return_code = return_code
        self.logs = logs or []
        self.statistics_ms = statistics_ms or []
        self.block = block
        self.write_output = write_output
        self.commands = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.available = True

    def run(self, command, on_log=None, on_statistics=None, cancel_event=None, timeout_seconds=300.0):
        self.commands.append(command)
        self.started.set()
        for line in self.logs:
            if on_log is not None:
                on_log(line)
        for time_ms in self.statistics_ms:
            if on_statistics is not None:
                on_statistics(time_ms)

        if self.block:
            while not self.release.is_set():
                if cancel_event is not None and cancel_event.wait(0.01):
                    return RunOutcome(status=RunStatus.CANCELLED, return_code=-15)

        if cancel_event is not None and cancel_event.is_set():
            return RunOutcome(status=RunStatus.CANCELLED, return_code=-15)
        if self.status == RunStatus.SUCCESS and self.write_output:
            Path(command.output_path).write_bytes(b"GIF89a")
        return RunOutcome(status=self.status, return_code=self.return_code)


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a per-test temporary directory."""
    return RenderSettings(
        ffmpeg_path="ffmpeg",
        ffprobe_path=None,
        render_dir=tmp_path / "renders",
        cache_dir=tmp_path / "cache",
        media_store_dir=tmp_path / "store",
        job_timeout_seconds=5.0,
    )


@pytest.fixture
def source_clip(tmp_path):
    """A fake source clip on disk."""
    clip = tmp_path / "source.mp4"
    clip.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return clip


def make_gif(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"GIF89a")
    return path
