"""
Render endpoints.

Thin HTTP adapter over RenderScheduler:
- POST   /render/streams                         render Layer N, Stream A/B
- POST   /render/layers/{layer_id}/blend         blend Stream A + B of a layer
- POST   /render/master                          blend Layer 1 + Layer 2
- DELETE /render/slots/streams/{layer_id}/{stream}
- DELETE /render/slots/layers/{layer_id}
- DELETE /render/slots/master
- GET    /render/jobs/{job_id}/events            recorded lifecycle events

Submissions return as soon as the job is started; results are observed
through the events endpoint.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from ..execution.errors import MissingInputError
from ..execution.events import RenderEvent
from ..jobs.errors import JobNotFoundError, SchedulerClosedError
from ..jobs.scheduler import RenderScheduler
from ..render.models import (
    BlendMode,
    LayerBlendRequest,
    MasterBlendRequest,
    StreamRenderRequest,
    StreamSelection,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/render", tags=["render"])


class LayerBlendBody(BaseModel):
    """Request body for a layer blend; the layer comes from the path."""

    model_config = ConfigDict(extra="forbid")

    stream_a_path: Optional[str] = None
    stream_b_path: Optional[str] = None
    blend_mode: BlendMode = BlendMode.NORMAL
    opacity: float = 1.0
    suggested_output_path: Optional[str] = None


class SubmitResponse(BaseModel):
    job_id: str
    slot: str


class CancelResponse(BaseModel):
    slot: str
    cancelled: bool


class JobEventsResponse(BaseModel):
    job_id: str
    events: List[RenderEvent]


def _scheduler(request: Request) -> RenderScheduler:
    return request.app.state.scheduler


def _submit(submit, render_request, slot: str) -> SubmitResponse:
    try:
        job = submit(render_request)
    except MissingInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SchedulerClosedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return SubmitResponse(job_id=job.job_id, slot=slot)


# ============================================================================
# Submission
# ============================================================================

@router.post("/streams", response_model=SubmitResponse)
async def submit_stream_render(body: StreamRenderRequest, request: Request):
    scheduler = _scheduler(request)
    slot = f"layer {body.layer_id} stream {body.stream.value}"
    return _submit(scheduler.submit_stream_render, body, slot)


@router.post("/layers/{layer_id}/blend", response_model=SubmitResponse)
async def submit_layer_blend(layer_id: int, body: LayerBlendBody, request: Request):
    scheduler = _scheduler(request)
    blend_request = LayerBlendRequest(layer_id=layer_id, **body.model_dump())
    return _submit(scheduler.submit_layer_blend, blend_request, f"layer {layer_id} blend")


@router.post("/master", response_model=SubmitResponse)
async def submit_master_blend(body: MasterBlendRequest, request: Request):
    scheduler = _scheduler(request)
    return _submit(scheduler.submit_master_blend, body, "master blend")


# ============================================================================
# Cancellation
# ============================================================================

@router.delete("/slots/streams/{layer_id}/{stream}", response_model=CancelResponse)
async def cancel_stream_render(layer_id: int, stream: StreamSelection, request: Request):
    cancelled = _scheduler(request).cancel_stream_render(layer_id, stream)
    return CancelResponse(slot=f"layer {layer_id} stream {stream.value}", cancelled=cancelled)


@router.delete("/slots/layers/{layer_id}", response_model=CancelResponse)
async def cancel_layer_blend(layer_id: int, request: Request):
    cancelled = _scheduler(request).cancel_layer_blend(layer_id)
    return CancelResponse(slot=f"layer {layer_id} blend", cancelled=cancelled)


@router.delete("/slots/master", response_model=CancelResponse)
async def cancel_master_blend(request: Request):
    cancelled = _scheduler(request).cancel_master_blend()
    return CancelResponse(slot="master blend", cancelled=cancelled)


# ============================================================================
# Observation
# ============================================================================

@router.get("/jobs/{job_id}/events", response_model=JobEventsResponse)
async def get_job_events(job_id: str, request: Request):
    try:
        events = _scheduler(request).events_for(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobEventsResponse(job_id=job_id, events=events)
