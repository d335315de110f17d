"""
Single-clip filter graph builder.

Translates AdjustmentSettings into an FFmpeg -filter_complex graph that
renders a palette-optimized GIF.

Graph shape:
    [0:v]<stage>,<stage>,...,format=rgba[prepal];
    [prepal]split[palin][gifin];
    [palin]palettegen=max_colors=N:stats_mode=full[palette];
    [gifin][palette]paletteuse=dither=floyd_steinberg[out]

Stage order is fixed. Optional stages are appended only when their
parameter is away from its neutral value, so a default AdjustmentSettings
produces the minimal graph:
    setpts, fps, scale, format, split, palettegen, paletteuse

Every numeric value is clamped here, and formatted with a fixed '.' decimal
separator (Python format specs never consult the locale).
"""

import math
from typing import List, Optional

from .models import AdjustmentSettings

# Safe ranges
FRAME_RATE_RANGE = (1.0, 60.0)
RESOLUTION_RANGE = (0.05, 1.0)
MAX_COLORS_RANGE = (2, 256)
FONT_SIZE_RANGE = (50, 216)
BRIGHTNESS_RANGE = (-1.0, 1.0)
CONTRAST_RANGE = (0.0, 2.0)
SATURATION_RANGE = (0.0, 2.0)
HUE_RANGE = (-180.0, 180.0)
COLOR_BALANCE_RANGE = (0.0, 2.0)
MAX_COLOR_CYCLE_SPEED = 3.0
MAX_PIXELLATE = 50.0

NEUTRAL_EPSILON = 0.0001

# Classic sepia matrix (rows: output r, g, b; columns: input r, g, b)
SEPIA_MATRIX = (
    (0.393, 0.769, 0.189),
    (0.349, 0.686, 0.168),
    (0.272, 0.534, 0.131),
)

LIGHT_TEXT_COLOR = "white"
DARK_TEXT_COLOR = "black"
DARK_COLOR_NAMES = {"black", "#000000", "#ff000000", "000000"}


# ============================================================================
# Numeric helpers
# ============================================================================

def clamp(value, low, high):
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def fmt(value: float, precision: int = 2) -> str:
    """Fixed-point, locale-independent formatting for filter arguments."""
    return f"{value:.{precision}f}"


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (round() would use banker's rounding)."""
    return int(math.floor(value + 0.5))


def is_approximately(value: float, target: float, epsilon: float = NEUTRAL_EPSILON) -> bool:
    return abs(value - target) < epsilon


def escape_filter_text(text: str) -> str:
    """
    Escape text for a single-quoted filter option value.

    Backslash first, then quote and colon, so the whole string stays one
    literal argument instead of terminating the option or the stage.
    """
    return text.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


# ============================================================================
# Stage builders
# ============================================================================

def build_frame_rate_filter(frame_rate: float) -> str:
    safe = clamp(frame_rate, *FRAME_RATE_RANGE)
    return f"fps={fmt(safe)}"


def build_scale_filter(resolution_percent: float) -> str:
    # trunc(x/2)*2 keeps both dimensions even for yuv/rgb palette formats
    p = fmt(clamp(resolution_percent, *RESOLUTION_RANGE))
    return f"scale='trunc(iw*{p}/2)*2:trunc(ih*{p}/2)*2:flags=lanczos'"


def build_eq_filter(settings: AdjustmentSettings) -> Optional[str]:
    brightness = clamp(settings.brightness, *BRIGHTNESS_RANGE)
    contrast = clamp(settings.contrast, *CONTRAST_RANGE)
    saturation = clamp(settings.saturation, *SATURATION_RANGE)
    if (
        is_approximately(brightness, 0.0)
        and is_approximately(contrast, 1.0)
        and is_approximately(saturation, 1.0)
    ):
        return None
    return (
        f"eq=brightness={fmt(brightness, 3)}"
        f":contrast={fmt(contrast, 3)}"
        f":saturation={fmt(saturation, 3)}"
    )


def build_hue_filter(hue: float) -> Optional[str]:
    safe = clamp(hue, *HUE_RANGE)
    if is_approximately(safe, 0.0):
        return None
    return f"hue=h={fmt(safe)}"


def build_sepia_filter(amount: float) -> Optional[str]:
    if amount <= 0:
        return None
    amount = clamp(amount, 0.0, 1.0)
    inverse = 1.0 - amount
    coefficients = []
    for row_index, (out_channel, row) in enumerate(zip("rgb", SEPIA_MATRIX)):
        for col_index, (in_channel, weight) in enumerate(zip("rgb", row)):
            value = weight * amount
            if row_index == col_index:
                value += inverse
            coefficients.append(f"{out_channel}{in_channel}={fmt(value)}")
    return "colorchannelmixer=" + ":".join(coefficients)


def build_color_balance_filter(settings: AdjustmentSettings) -> Optional[str]:
    red = clamp(settings.color_balance_red, *COLOR_BALANCE_RANGE)
    green = clamp(settings.color_balance_green, *COLOR_BALANCE_RANGE)
    blue = clamp(settings.color_balance_blue, *COLOR_BALANCE_RANGE)
    if all(is_approximately(channel, 1.0) for channel in (red, green, blue)):
        return None
    return f"colorchannelmixer=rr={fmt(red)}:gg={fmt(green)}:bb={fmt(blue)}"


def build_color_cycle_filter(speed: float) -> Optional[str]:
    """Time-driven hue rotation; speed is rotations per second."""
    if speed <= 0 or is_approximately(speed, 0.0):
        return None
    degrees_per_second = clamp(speed, 0.0, MAX_COLOR_CYCLE_SPEED) * 360.0
    return f"hue=h='{fmt(degrees_per_second)}*t':s=1"


def build_motion_trail_filter(amount: float) -> Optional[str]:
    if amount <= 0:
        return None
    safe = clamp(amount, 0.0, 1.0)
    frame_count = clamp(round_half_up(2 + safe * 8), 2, 10)
    weights = " ".join("1" for _ in range(frame_count))
    return f"tmix=frames={frame_count}:weights='{weights}'"


def build_sharpen_filter(amount: float) -> Optional[str]:
    if amount <= 0:
        return None
    sharpness = 1.0 + clamp(amount, 0.0, 1.0) * 4.0
    return f"unsharp=luma_msize_x=5:luma_msize_y=5:luma_amount={fmt(sharpness)}"


def build_pixellate_filter(amount: float) -> Optional[str]:
    if amount <= 0:
        return None
    block = clamp(round_half_up(2 + clamp(amount, 0.0, MAX_PIXELLATE)), 2, 52)
    return f"pixelize=width={block}:height={block}:mode=avg:planes=15"


def edge_thresholds(threshold: float) -> tuple:
    """
    Map the 0..1 slider onto edgedetect's low/high thresholds.

    Inverted: a higher slider value detects more edges (lower thresholds).
    """
    t = clamp(threshold, 0.0, 1.0)
    low = clamp(0.05 + (1.0 - t) * 0.15, 0.05, 0.2)
    high = clamp(0.15 + (1.0 - t) * 0.25, low + 0.05, 0.4)
    return low, high


def build_edge_filter(settings: AdjustmentSettings) -> Optional[str]:
    if not settings.edge_detect_enabled:
        return None
    low, high = edge_thresholds(settings.edge_detect_threshold)
    stages = [f"edgedetect=mode=wires:low={fmt(low)}:high={fmt(high)}"]

    boost = clamp(settings.edge_detect_boost, 0.0, 1.0)
    if boost > 0:
        stages.append(
            f"eq=brightness={fmt(boost * 0.3, 3)}:contrast={fmt(1.0 + boost * 0.5, 3)}"
        )
    return ",".join(stages)


def resolve_text_color(color: str) -> str:
    """Reduce any requested color to one of the two supported overlay colors."""
    if color.strip().lower() in DARK_COLOR_NAMES:
        return DARK_TEXT_COLOR
    return LIGHT_TEXT_COLOR


def build_drawtext_filter(settings: AdjustmentSettings, font_path: Optional[str]) -> Optional[str]:
    if not settings.text_overlay.strip() or not font_path:
        return None
    text = escape_filter_text(settings.text_overlay)
    font = escape_filter_text(font_path)
    size = clamp(settings.font_size, *FONT_SIZE_RANGE)
    color = resolve_text_color(settings.font_color)
    return f"drawtext=fontfile='{font}':text='{text}':fontsize={size}:fontcolor={color}:x=10:y=10"


def build_palette_stages(source_label: str, max_colors: int) -> List[str]:
    """Split → palettegen → paletteuse, ending at the graph's single [out] label."""
    colors = clamp(int(max_colors), *MAX_COLORS_RANGE)
    return [
        f"[{source_label}]split[palin][gifin]",
        f"[palin]palettegen=max_colors={colors}:stats_mode=full[palette]",
        "[gifin][palette]paletteuse=dither=floyd_steinberg[out]",
    ]


# ============================================================================
# Graph assembly
# ============================================================================

def build_stream_filters(settings: AdjustmentSettings, font_path: Optional[str] = None) -> List[str]:
    """Ordered per-frame filter chain (before the palette split)."""
    filters = [
        "setpts=PTS-STARTPTS",
        build_frame_rate_filter(settings.frame_rate),
        build_scale_filter(settings.resolution_percent),
    ]

    optional_stages = [
        build_eq_filter(settings),
        build_hue_filter(settings.hue),
        build_sepia_filter(settings.sepia),
        build_color_balance_filter(settings),
        build_color_cycle_filter(settings.color_cycle_speed),
        build_motion_trail_filter(settings.motion_trails),
        build_sharpen_filter(settings.sharpen),
        build_pixellate_filter(settings.pixellate),
        build_edge_filter(settings),
    ]
    filters.extend(stage for stage in optional_stages if stage)

    if settings.negate_colors:
        filters.append("negate=enable='gte(t,0)'")
    if settings.flip_horizontal:
        filters.append("hflip")
    if settings.flip_vertical:
        filters.append("vflip")

    drawtext = build_drawtext_filter(settings, font_path)
    if drawtext:
        filters.append(drawtext)

    filters.append("format=rgba")
    return filters


def build_stream_filter_graph(settings: AdjustmentSettings, font_path: Optional[str] = None) -> str:
    """Complete -filter_complex value for a single-stream render."""
    stages = [f"[0:v]{','.join(build_stream_filters(settings, font_path))}[prepal]"]
    stages.extend(build_palette_stages("prepal", settings.max_colors))
    return ";".join(stages)
