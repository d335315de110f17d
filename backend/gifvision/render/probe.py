"""
Media probe for blend reconciliation.

Reads width, height and duration of a rendered GIF with ffprobe so the
blend builder can decide whether to loop and/or rescale one input.

Every field is independently optional. A value that cannot be read is
reported as None ("unknown"), never as zero; the reconciliation logic
skips an axis whenever either side is unknown.

Command:
    ffprobe -v error -select_streams v:0
            -show_entries stream=width,height,duration:format=duration
            -of json INPUT
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaProbe:
    """Probed properties of one blend input. None means unknown."""

    width: Optional[int] = None
    height: Optional[int] = None
    duration_seconds: Optional[float] = None

    @property
    def has_dimensions(self) -> bool:
        return self.width is not None and self.height is not None

    @property
    def area(self) -> Optional[int]:
        if not self.has_dimensions:
            return None
        return self.width * self.height


UNKNOWN_PROBE = MediaProbe()


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _positive_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_probe_output(raw: str) -> MediaProbe:
    """Parse ffprobe JSON output into a MediaProbe."""
    try:
        data: Dict[str, Any] = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning(f"[Probe] Could not parse ffprobe output: {raw[:200]!r}")
        return UNKNOWN_PROBE

    streams = data.get("streams") or []
    stream = streams[0] if streams else {}
    fmt = data.get("format") or {}

    width = _positive_int(stream.get("width"))
    height = _positive_int(stream.get("height"))
    if width is None or height is None:
        # Half a dimension is as good as none
        width = height = None

    # GIF streams often report duration=N/A; the container value is reliable
    duration = _positive_float(stream.get("duration"))
    if duration is None:
        duration = _positive_float(fmt.get("duration"))

    return MediaProbe(width=width, height=height, duration_seconds=duration)


def probe_media(path: str, ffprobe_path: Optional[str], timeout: float = 10.0) -> MediaProbe:
    """
    Probe one media file.

    Never raises: a missing ffprobe, a timeout or a non-zero exit all
    produce UNKNOWN_PROBE so the blend proceeds without reconciliation.
    """
    if not ffprobe_path:
        logger.warning(f"[Probe] ffprobe not available; skipping reconciliation for {path}")
        return UNKNOWN_PROBE

    cmd = [
        ffprobe_path,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height,duration:format=duration",
        "-of", "json",
        path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning(f"[Probe] ffprobe timed out after {timeout}s for {path}")
        return UNKNOWN_PROBE
    except OSError as e:
        logger.warning(f"[Probe] ffprobe could not be started for {path}: {e}")
        return UNKNOWN_PROBE

    if result.returncode != 0:
        logger.warning(f"[Probe] ffprobe failed for {path}: {result.stderr.strip()}")
        return UNKNOWN_PROBE

    probe = parse_probe_output(result.stdout)
    logger.debug(f"[Probe] {path}: {probe}")
    return probe
