"""
Job identifiers.

Single place that formats job IDs so logs, events and the HTTP surface all
agree. Stream and layer-blend IDs are deterministic per slot; master blend
IDs carry a random token because every master mix is a fresh artifact.
"""

import uuid
from typing import Optional

from ..render.models import BlendMode, StreamSelection


def stream_render_id(layer_id: int, stream: StreamSelection) -> str:
    """Job ID for rendering Layer N, Stream A/B."""
    return f"layer-{layer_id}-stream-{stream.value.lower()}-render"


def layer_blend_id(layer_id: int, blend_mode: BlendMode) -> str:
    """Job ID for blending Stream A and B inside a layer."""
    return f"layer-{layer_id}-blend-{blend_mode.value}"


def master_blend_id(blend_mode: BlendMode, token: Optional[uuid.UUID] = None) -> str:
    """Job ID for the master blend of Layer 1 and Layer 2."""
    return f"master-blend-{blend_mode.value}-{token or uuid.uuid4()}"
