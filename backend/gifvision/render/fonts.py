"""
Font discovery for the drawtext overlay.

drawtext needs a TrueType file on disk. Lookup order:
1. Explicit override (GIFVISION_FONT_PATH via settings)
2. Well-known font files on Linux / macOS
3. First .ttf found in a system font directory
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/Library/Fonts/Arial.ttf",
]

FONT_DIRECTORIES = [
    "/usr/share/fonts",
    "/usr/local/share/fonts",
    "/System/Library/Fonts",
    "/Library/Fonts",
]


def _is_readable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK)


def find_available_font(override: Optional[str] = None) -> Optional[str]:
    """Return an absolute path to a usable TrueType font, or None."""
    if override:
        if _is_readable(override):
            return override
        logger.warning(f"[Fonts] Font override is not readable: {override}")

    for candidate in FONT_CANDIDATES:
        if _is_readable(candidate):
            logger.debug(f"[Fonts] Using font: {candidate}")
            return candidate

    for directory in FONT_DIRECTORIES:
        root = Path(directory)
        if not root.is_dir():
            continue
        try:
            fonts = sorted(p for p in root.rglob("*") if p.suffix.lower() == ".ttf")
        except OSError as e:
            logger.warning(f"[Fonts] Cannot scan {directory}: {e}")
            continue
        for font in fonts:
            if _is_readable(str(font)):
                logger.debug(f"[Fonts] Using first available .ttf: {font}")
                return str(font)

    logger.warning("[Fonts] No TrueType font found; text overlays will be skipped")
    return None
