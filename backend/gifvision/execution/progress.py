"""
FFmpeg progress parsing.

FFmpeg writes statistics to stderr in this format:
    frame=   24 fps= 12 q=-0.0 size=     512kB time=00:00:01.60 bitrate=2621.4kbits/s

We parse time=HH:MM:SS.cc into milliseconds of output rendered so far and
turn it into a ratio against the command's estimated duration. The ratio
never reaches 1.0 on its own: only the Completed event means done.
"""

import re
from typing import Optional

# Matches: time=00:00:01.60 or time=01:23:45.67
TIME_PATTERN = re.compile(r'time=(\d{2}):(\d{2}):(\d{2})\.(\d{2})')

MAX_PROGRESS = 0.999


def parse_time_ms(line: str) -> Optional[int]:
    """
    Extract the time= position from one stderr line.

    Returns:
        Position in milliseconds, or None if the line carries no statistics
    """
    match = TIME_PATTERN.search(line)
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    centiseconds = int(match.group(4))
    return ((hours * 3600 + minutes * 60 + seconds) * 1000) + centiseconds * 10


def progress_ratio(time_ms: int, estimated_duration_ms: int) -> float:
    """time_ms / estimated duration, clamped to [0, 0.999]."""
    if estimated_duration_ms <= 0:
        return 0.0
    ratio = time_ms / float(estimated_duration_ms)
    return max(0.0, min(MAX_PROGRESS, ratio))


def format_progress(ratio: float) -> str:
    """Human-readable percentage, e.g. '42.0% complete'."""
    return f"{ratio:.1%} complete"
