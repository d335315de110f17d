"""
GifVision render core.

Turns per-clip adjustment settings into FFmpeg palette-aware GIF pipelines,
runs them as cancellable background jobs (one per stream, layer blend, or
master blend slot), and blends pairs of rendered GIFs into composites.

Subpackages:
- render: filter graph builder, command assembler, ffprobe reconciliation probe
- execution: FFmpeg process runner, progress parsing, lifecycle events
- jobs: slot-keyed render scheduler
- media: storage collaborator for finished renders
- routes: HTTP surface over the scheduler
"""

__version__ = "0.1.0"
