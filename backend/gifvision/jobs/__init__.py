"""
Job scheduler: one render per slot, replace on resubmit.

Slots:
- StreamSlot(layer_id, stream)   Layer N, Stream A/B render
- LayerBlendSlot(layer_id)       Stream A + B blend
- MasterBlendSlot()              Layer 1 + Layer 2 blend
"""

from .errors import (
    InvalidStateTransitionError,
    JobNotFoundError,
    SchedulerClosedError,
    SchedulerError,
)
from .models import LayerBlendSlot, MasterBlendSlot, SlotKey, SlotState, StreamSlot
from .scheduler import RenderScheduler

__all__ = [
    "RenderScheduler",
    "SlotKey",
    "StreamSlot",
    "LayerBlendSlot",
    "MasterBlendSlot",
    "SlotState",
    "SchedulerError",
    "JobNotFoundError",
    "InvalidStateTransitionError",
    "SchedulerClosedError",
]
