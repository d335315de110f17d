"""
Slot keys and slot states.

A slot is a logical output position: one stream of a layer, the blend of a
layer, or the master blend. The scheduler allows at most one active job
per slot; submitting to a busy slot replaces the job running there.

Slot keys are frozen pydantic models, so they are hashable and compare by
value: StreamSlot(layer_id=1, stream="A") == StreamSlot(layer_id=1, stream="A").
"""

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict

from ..render.models import StreamSelection


class StreamSlot(BaseModel):
    """Layer N, Stream A/B render."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    layer_id: int
    stream: StreamSelection

    @property
    def label(self) -> str:
        return f"layer {self.layer_id} stream {self.stream.value}"


class LayerBlendSlot(BaseModel):
    """Stream A + B blend of layer N."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    layer_id: int

    @property
    def label(self) -> str:
        return f"layer {self.layer_id} blend"


class MasterBlendSlot(BaseModel):
    """Layer 1 + Layer 2 master blend. There is only one."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def label(self) -> str:
        return "master blend"


SlotKey = Union[StreamSlot, LayerBlendSlot, MasterBlendSlot]


class SlotState(str, Enum):
    """
    Slot lifecycle.

    A slot goes IDLE → RUNNING → terminal, and back to IDLE once the
    terminal event has been delivered.
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
