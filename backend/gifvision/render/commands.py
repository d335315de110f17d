"""
FFmpeg command assembly.

Wraps a filter graph, input/output paths and trim window into an
FFmpegCommand: job id, ordered argument list (executable excluded) and the
estimated output duration used to turn FFmpeg's time= statistics into a
0..1 progress ratio.

Stream render:
    -y [-ss START] -i SOURCE -t DURATION -filter_complex GRAPH
    -map [out] -gifflags +transdiff OUTPUT

Blend:
    -y [-stream_loop N] -i PRIMARY [-stream_loop N] -i SECONDARY
    -filter_complex GRAPH -map [out] -gifflags +transdiff OUTPUT
"""

import logging
import shlex
from pathlib import Path
from typing import Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .blend import build_blend_filter_graph, reconcile_inputs
from .filters import build_stream_filter_graph, fmt
from .models import (
    BlendMode,
    LayerBlendRequest,
    MasterBlendRequest,
    StreamRenderRequest,
)
from .probe import MediaProbe

logger = logging.getLogger(__name__)

# Used when neither input duration can be probed
DEFAULT_BLEND_DURATION_MS = 15_000

OUTPUT_ARGS = ("-map", "[out]", "-gifflags", "+transdiff")


class FFmpegCommand(BaseModel):
    """Immutable description of one FFmpeg invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    job_id: str
    arguments: Tuple[str, ...]
    estimated_duration_ms: int
    output_path: str

    def command_line(self, executable: str = "ffmpeg") -> str:
        """Shell-quoted rendering for logs."""
        return shlex.join([executable, *self.arguments])


# ============================================================================
# Output paths
# ============================================================================

def _prepare_output(render_dir: Path, file_name: str) -> Path:
    render_dir.mkdir(parents=True, exist_ok=True)
    return render_dir / file_name


def _suggested_name(suggested_path: Optional[str]) -> Optional[str]:
    if not suggested_path:
        return None
    name = Path(suggested_path).name
    return name or None


def resolve_stream_output(render_dir: Path, request: StreamRenderRequest) -> Path:
    name = _suggested_name(request.suggested_output_path) or (
        f"layer_{request.layer_id}_stream_{request.stream.value.lower()}.gif"
    )
    return _prepare_output(render_dir, name)


def resolve_layer_output(render_dir: Path, request: LayerBlendRequest) -> Path:
    name = _suggested_name(request.suggested_output_path) or (
        f"layer_{request.layer_id}_blend_{request.blend_mode.value}.gif"
    )
    return _prepare_output(render_dir, name)


def resolve_master_output(render_dir: Path, request: MasterBlendRequest) -> Path:
    name = _suggested_name(request.suggested_output_path) or (
        f"master_blend_{request.blend_mode.value}.gif"
    )
    return _prepare_output(render_dir, name)


# ============================================================================
# Command builders
# ============================================================================

def stream_duration_ms(request: StreamRenderRequest) -> int:
    """Trim window length, or the configured clip duration when no window is set."""
    if request.trim_end_ms > request.trim_start_ms:
        duration = request.trim_end_ms - request.trim_start_ms
    else:
        duration = int(round(request.adjustments.clip_duration_seconds * 1000))
    return max(1, duration)


def build_stream_command(
    request: StreamRenderRequest,
    output_path: Path,
    font_path: Optional[str] = None,
) -> FFmpegCommand:
    """Assemble the palette-aware GIF render for one stream."""
    duration_ms = stream_duration_ms(request)
    graph = build_stream_filter_graph(request.adjustments, font_path)

    # Trim windows are in milliseconds; keep that precision on the command line
    args = ["-y"]
    start_seconds = request.trim_start_ms / 1000.0
    if start_seconds > 0:
        args.extend(["-ss", fmt(start_seconds, 3)])
    args.extend(["-i", request.source_path])
    args.extend(["-t", fmt(duration_ms / 1000.0, 3)])
    args.extend(["-filter_complex", graph])
    args.extend(OUTPUT_ARGS)
    args.append(str(output_path))

    return FFmpegCommand(
        job_id=request.job_id,
        arguments=tuple(args),
        estimated_duration_ms=duration_ms,
        output_path=str(output_path),
    )


def build_blend_command(
    job_id: str,
    primary_path: str,
    secondary_path: str,
    blend_mode: BlendMode,
    opacity: float,
    output_path: Path,
    probe: Callable[[str], MediaProbe],
) -> FFmpegCommand:
    """
    Assemble a two-input blend, reconciling duration and dimensions first.

    `probe` is called once per input; see render.probe.probe_media.
    """
    primary = probe(primary_path)
    secondary = probe(secondary_path)
    plan = reconcile_inputs(primary, secondary)

    known = [d for d in (primary.duration_seconds, secondary.duration_seconds) if d is not None]
    estimated_ms = int(max(known) * 1000) if known else DEFAULT_BLEND_DURATION_MS

    args = ["-y"]
    if plan.primary_loops:
        args.extend(["-stream_loop", str(plan.primary_loops)])
    args.extend(["-i", primary_path])
    if plan.secondary_loops:
        args.extend(["-stream_loop", str(plan.secondary_loops)])
    args.extend(["-i", secondary_path])
    args.extend(["-filter_complex", build_blend_filter_graph(blend_mode, opacity, plan)])
    args.extend(OUTPUT_ARGS)
    args.append(str(output_path))

    return FFmpegCommand(
        job_id=job_id,
        arguments=tuple(args),
        estimated_duration_ms=max(1, estimated_ms),
        output_path=str(output_path),
    )


def build_layer_blend_command(
    request: LayerBlendRequest,
    output_path: Path,
    probe: Callable[[str], MediaProbe],
) -> FFmpegCommand:
    return build_blend_command(
        job_id=request.job_id,
        primary_path=request.stream_a_path,
        secondary_path=request.stream_b_path,
        blend_mode=request.blend_mode,
        opacity=request.opacity,
        output_path=output_path,
        probe=probe,
    )


def build_master_blend_command(
    request: MasterBlendRequest,
    output_path: Path,
    probe: Callable[[str], MediaProbe],
) -> FFmpegCommand:
    return build_blend_command(
        job_id=request.job_id,
        primary_path=request.layer_one_path,
        secondary_path=request.layer_two_path,
        blend_mode=request.blend_mode,
        opacity=request.opacity,
        output_path=output_path,
        probe=probe,
    )
