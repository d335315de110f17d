"""
Render core: filter graphs, blend reconciliation and FFmpeg commands.

Pure builders. Nothing in this package starts a process except the
ffprobe call in probe.py.

Usage:
    from gifvision.render import AdjustmentSettings, build_stream_filter_graph

    graph = build_stream_filter_graph(AdjustmentSettings(frame_rate=24))
"""

from .blend import BlendReconciliation, build_blend_filter_graph, reconcile_inputs
from .commands import (
    FFmpegCommand,
    build_blend_command,
    build_layer_blend_command,
    build_master_blend_command,
    build_stream_command,
)
from .filters import build_stream_filter_graph, build_stream_filters
from .models import (
    AdjustmentSettings,
    BlendMode,
    LayerBlendRequest,
    MasterBlendRequest,
    StreamRenderRequest,
    StreamSelection,
)
from .probe import MediaProbe, probe_media

__all__ = [
    "AdjustmentSettings",
    "BlendMode",
    "StreamSelection",
    "StreamRenderRequest",
    "LayerBlendRequest",
    "MasterBlendRequest",
    "build_stream_filters",
    "build_stream_filter_graph",
    "BlendReconciliation",
    "reconcile_inputs",
    "build_blend_filter_graph",
    "FFmpegCommand",
    "build_stream_command",
    "build_blend_command",
    "build_layer_blend_command",
    "build_master_blend_command",
    "MediaProbe",
    "probe_media",
]
