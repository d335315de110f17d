"""
Blend reconciliation and blend filter graph.

Two independently rendered GIFs rarely line up. Before compositing:

Duration: if both durations are known and differ, the shorter input is
looped ceil(longer / shorter) times (-stream_loop on its -i) and both
streams are trimmed to the longer duration.

Dimensions: if both sizes are known and differ, the input with the smaller
pixel area is upscaled (lanczos) to the larger input's exact size. Equal
areas with different shapes scale the secondary input.

Unknown values on either side skip that axis entirely.

Graph shape:
    [0:v]setpts=PTS-STARTPTS[,trim=duration=D][primary_trimmed];
    [1:v]setpts=PTS-STARTPTS[,trim=duration=D][secondary_trimmed];
    [primary_trimmed](copy|scale=W:H:flags=lanczos)[base];
    [secondary_trimmed](copy|scale=W:H:flags=lanczos)[overlay];
    [base][overlay]blend=all_mode=M:all_opacity=O[blended];
    palette workflow → [out]
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .filters import build_palette_stages, clamp, fmt
from .models import BlendMode
from .probe import MediaProbe

logger = logging.getLogger(__name__)

BLEND_MAX_COLORS = 256


@dataclass(frozen=True)
class BlendReconciliation:
    """How the two blend inputs are aligned before compositing."""

    primary_loops: int = 0
    secondary_loops: int = 0
    trim_duration_seconds: Optional[float] = None
    scale_target: Optional[Tuple[int, int]] = None
    scale_primary: bool = False

    @property
    def matches_duration(self) -> bool:
        return self.trim_duration_seconds is not None

    @property
    def matches_dimensions(self) -> bool:
        return self.scale_target is not None


def reconcile_inputs(primary: MediaProbe, secondary: MediaProbe) -> BlendReconciliation:
    """Decide looping/trimming and rescaling for a pair of probed inputs."""
    primary_loops = 0
    secondary_loops = 0
    trim_duration = None

    d1, d2 = primary.duration_seconds, secondary.duration_seconds
    # A non-positive duration is as good as unknown
    if d1 is not None and d2 is not None and d1 > 0 and d2 > 0 and d1 != d2:
        trim_duration = max(d1, d2)
        if d1 < d2:
            primary_loops = math.ceil(d2 / d1)
            logger.debug(f"[Blend] Looping primary {primary_loops}x ({d1}s → {d2}s)")
        else:
            secondary_loops = math.ceil(d1 / d2)
            logger.debug(f"[Blend] Looping secondary {secondary_loops}x ({d2}s → {d1}s)")

    scale_target = None
    scale_primary = False
    if primary.has_dimensions and secondary.has_dimensions:
        if (primary.width, primary.height) != (secondary.width, secondary.height):
            if primary.area >= secondary.area:
                scale_target = (primary.width, primary.height)
                logger.debug(
                    f"[Blend] Scaling secondary {secondary.width}x{secondary.height} "
                    f"to {primary.width}x{primary.height}"
                )
            else:
                scale_target = (secondary.width, secondary.height)
                scale_primary = True
                logger.debug(
                    f"[Blend] Scaling primary {primary.width}x{primary.height} "
                    f"to {secondary.width}x{secondary.height}"
                )

    return BlendReconciliation(
        primary_loops=primary_loops,
        secondary_loops=secondary_loops,
        trim_duration_seconds=trim_duration,
        scale_target=scale_target,
        scale_primary=scale_primary,
    )


def _input_stage(index: int, label: str, trim_duration: Optional[float]) -> str:
    chain = "setpts=PTS-STARTPTS"
    if trim_duration is not None and trim_duration > 0:
        chain += f",trim=duration={fmt(trim_duration)}"
    return f"[{index}:v]{chain}[{label}]"


def build_blend_filter_graph(
    blend_mode: BlendMode,
    opacity: float,
    reconciliation: Optional[BlendReconciliation] = None,
    max_colors: int = BLEND_MAX_COLORS,
) -> str:
    """Complete -filter_complex value for a two-input blend."""
    plan = reconciliation or BlendReconciliation()

    stages: List[str] = [
        _input_stage(0, "primary_trimmed", plan.trim_duration_seconds),
        _input_stage(1, "secondary_trimmed", plan.trim_duration_seconds),
    ]

    if plan.scale_target is not None and all(v > 0 for v in plan.scale_target):
        width, height = plan.scale_target
        scale = f"scale={width}:{height}:flags=lanczos"
        if plan.scale_primary:
            stages.append(f"[primary_trimmed]{scale}[base]")
            stages.append("[secondary_trimmed]copy[overlay]")
        else:
            stages.append("[primary_trimmed]copy[base]")
            stages.append(f"[secondary_trimmed]{scale}[overlay]")
    else:
        stages.append("[primary_trimmed]copy[base]")
        stages.append("[secondary_trimmed]copy[overlay]")

    safe_opacity = clamp(opacity, 0.0, 1.0)
    stages.append(
        f"[base][overlay]blend=all_mode={blend_mode.keyword}:all_opacity={fmt(safe_opacity)}[blended]"
    )
    stages.extend(build_palette_stages("blended", max_colors))
    return ";".join(stages)
