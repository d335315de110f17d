"""
Render lifecycle events.

Every job emits exactly one Started event, any number of Progress events,
and then exactly one terminal event: Completed, Failed or Cancelled.
Nothing follows the terminal event.

Events are a tagged union on `kind` so consumers dispatch on the type in
one place, and so the HTTP surface can serialize them without adapters:

    if isinstance(event, Failed): ...
    RENDER_EVENT_ADAPTER.validate_python(payload)
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class FailureCause(str, Enum):
    """Where in the job a failure originated."""

    PREPARATION = "preparation"
    PROCESS = "process"
    TIMEOUT = "timeout"
    STORAGE = "storage"
    INTERNAL = "internal"


class _EventBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    job_id: str
    timestamp: datetime = Field(default_factory=datetime.now)


class Started(_EventBase):
    kind: Literal["started"] = "started"
    message: Optional[str] = None


class Progress(_EventBase):
    kind: Literal["progress"] = "progress"
    progress: float = Field(ge=0.0, le=0.999)
    message: Optional[str] = None


class Completed(_EventBase):
    kind: Literal["completed"] = "completed"
    output_path: str
    logs: List[str] = Field(default_factory=list)


class Failed(_EventBase):
    kind: Literal["failed"] = "failed"
    cause: FailureCause
    reason: str
    recent_logs: List[str] = Field(default_factory=list)


class Cancelled(_EventBase):
    kind: Literal["cancelled"] = "cancelled"


RenderEvent = Annotated[
    Union[Started, Progress, Completed, Failed, Cancelled],
    Field(discriminator="kind"),
]

RENDER_EVENT_ADAPTER = TypeAdapter(RenderEvent)

TERMINAL_EVENT_TYPES = (Completed, Failed, Cancelled)


def is_terminal(event) -> bool:
    return isinstance(event, TERMINAL_EVENT_TYPES)


def describe(event) -> str:
    """Human-readable one-liner for logs."""
    if isinstance(event, Started):
        return f"{event.job_id} started"
    if isinstance(event, Progress):
        return f"{event.job_id} {event.message or f'{event.progress:.1%}'}"
    if isinstance(event, Completed):
        return f"{event.job_id} completed -> {event.output_path}"
    if isinstance(event, Failed):
        return f"{event.job_id} failed ({event.cause.value}): {event.reason}"
    if isinstance(event, Cancelled):
        return f"{event.job_id} cancelled"
    raise TypeError(f"Not a render event: {event!r}")


class JobEventLog:
    """
    Append-only record of events per job ID.

    Feeds the events endpoint. Progress events are coalesced to the most
    recent one per job so long renders do not grow the log unbounded. A
    Started event for a job ID whose previous run has ended replaces that
    run's timeline, so a job ID always maps to its latest submission.
    """

    def __init__(self, max_jobs: int = 200):
        self._lock = threading.Lock()
        self._events: Dict[str, List] = {}
        self._max_jobs = max_jobs

    def record(self, event) -> None:
        with self._lock:
            timeline = self._events.get(event.job_id)
            if (
                timeline
                and isinstance(event, Started)
                and is_terminal(timeline[-1])
            ):
                # Stream and layer-blend IDs repeat per slot; keep only the latest run
                del self._events[event.job_id]
                timeline = None
            if timeline is None:
                if len(self._events) >= self._max_jobs:
                    # Dicts keep insertion order; drop the oldest job
                    oldest = next(iter(self._events))
                    del self._events[oldest]
                timeline = self._events[event.job_id] = []
            if isinstance(event, Progress) and timeline and isinstance(timeline[-1], Progress):
                timeline[-1] = event
            else:
                timeline.append(event)

    def get_events(self, job_id: str) -> List:
        with self._lock:
            return list(self._events.get(job_id, []))

    def job_ids(self) -> List[str]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        """Clear all events (for testing only)."""
        with self._lock:
            self._events.clear()
