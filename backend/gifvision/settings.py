"""
Runtime configuration for the render core.

All values have working defaults. Each one can be overridden with a
GIFVISION_* environment variable, which is read once by load_settings().

Environment overrides (optional):
    GIFVISION_FFMPEG_PATH            ffmpeg executable
    GIFVISION_FFPROBE_PATH           ffprobe executable
    GIFVISION_RENDER_DIR             where FFmpeg writes GIF outputs
    GIFVISION_CACHE_DIR              where source clips are staged per job
    GIFVISION_MEDIA_STORE_DIR        root of the filesystem media repository
    GIFVISION_JOB_TIMEOUT_SECONDS    hard limit for one FFmpeg invocation
    GIFVISION_PROBE_TIMEOUT_SECONDS  hard limit for one ffprobe invocation
    GIFVISION_FONT_PATH              TrueType font for text overlays
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


ENV_FFMPEG_PATH = "GIFVISION_FFMPEG_PATH"
ENV_FFPROBE_PATH = "GIFVISION_FFPROBE_PATH"
ENV_RENDER_DIR = "GIFVISION_RENDER_DIR"
ENV_CACHE_DIR = "GIFVISION_CACHE_DIR"
ENV_MEDIA_STORE_DIR = "GIFVISION_MEDIA_STORE_DIR"
ENV_JOB_TIMEOUT = "GIFVISION_JOB_TIMEOUT_SECONDS"
ENV_PROBE_TIMEOUT = "GIFVISION_PROBE_TIMEOUT_SECONDS"
ENV_FONT_PATH = "GIFVISION_FONT_PATH"

# Complex blends (looping + rescaling) can legitimately take minutes.
DEFAULT_JOB_TIMEOUT_SECONDS = 300.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0

_BASE_DIR = Path(tempfile.gettempdir()) / "gifvision"

# Checked after PATH lookup fails
COMMON_BINARY_DIRS = [
    "/usr/local/bin",
    "/usr/bin",
    "/opt/homebrew/bin",
]


class RenderSettings(BaseModel):
    """Resolved configuration shared by the builder, runner and scheduler."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    render_dir: Path = Field(default_factory=lambda: _BASE_DIR / "renders")
    cache_dir: Path = Field(default_factory=lambda: _BASE_DIR / "cache")
    media_store_dir: Path = Field(default_factory=lambda: _BASE_DIR / "media_store")
    job_timeout_seconds: float = DEFAULT_JOB_TIMEOUT_SECONDS
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    font_path: Optional[str] = None


def find_binary(name: str, override: Optional[str] = None) -> Optional[str]:
    """
    Locate an FFmpeg suite binary.

    Lookup order: explicit override, PATH, common install locations.
    Returns None when nothing executable is found.
    """
    if override:
        if os.path.isfile(override) and os.access(override, os.X_OK):
            return override
        logger.warning(f"[Settings] Override for {name} is not executable: {override}")
        return None

    found = shutil.which(name)
    if found:
        return found

    for directory in COMMON_BINARY_DIRS:
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate

    return None


def _float_from_env(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"[Settings] Ignoring non-numeric {key}={raw!r}")
        return default
    if value <= 0:
        logger.warning(f"[Settings] Ignoring non-positive {key}={raw!r}")
        return default
    return value


def load_settings() -> RenderSettings:
    """Build RenderSettings from defaults plus GIFVISION_* overrides."""
    values = {
        "ffmpeg_path": find_binary("ffmpeg", os.environ.get(ENV_FFMPEG_PATH)),
        "ffprobe_path": find_binary("ffprobe", os.environ.get(ENV_FFPROBE_PATH)),
        "job_timeout_seconds": _float_from_env(ENV_JOB_TIMEOUT, DEFAULT_JOB_TIMEOUT_SECONDS),
        "probe_timeout_seconds": _float_from_env(ENV_PROBE_TIMEOUT, DEFAULT_PROBE_TIMEOUT_SECONDS),
        "font_path": os.environ.get(ENV_FONT_PATH) or None,
    }
    for field_name, key in (
        ("render_dir", ENV_RENDER_DIR),
        ("cache_dir", ENV_CACHE_DIR),
        ("media_store_dir", ENV_MEDIA_STORE_DIR),
    ):
        override = os.environ.get(key)
        if override:
            values[field_name] = Path(override)

    settings = RenderSettings(**values)
    if settings.ffmpeg_path is None:
        logger.warning("[Settings] ffmpeg not found; render jobs will fail until it is installed")
    return settings
