"""Deployment queue status endpoints."""

import asyncio
import json

from fastapi import APIRouter
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from deployhook.api.deps import CoordinatorDep, EventsDep
from deployhook.core.events import Event
from deployhook.models.deployment import CoordinatorState, JobSummary

router = APIRouter()

KEEPALIVE_SECONDS = 30.0


class QueueStatusResponse(BaseModel):
    """Snapshot of the deployment queue."""

    state: CoordinatorState
    active: JobSummary | None = None
    pending: list[JobSummary]
    projects: int


@router.get(
    "",
    response_model=QueueStatusResponse,
    summary="Get deployment queue status",
)
async def get_queue_status(coordinator: CoordinatorDep) -> QueueStatusResponse:
    """Return the running job and the jobs waiting behind it."""
    return QueueStatusResponse(
        state=coordinator.state,
        active=coordinator.active_job,
        pending=coordinator.pending_jobs(),
        projects=len(coordinator.registry),
    )


@router.get(
    "/stream",
    summary="Stream deployment events (SSE)",
)
async def stream_deployment_events(
    coordinator: CoordinatorDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream deployment lifecycle events using Server-Sent Events."""

    async def event_generator():
        queue = events.subscribe()

        try:
            yield {
                "event": "connected",
                "data": json.dumps(
                    {
                        "state": coordinator.state.value,
                        "pending": len(coordinator.pending_jobs()),
                    }
                ),
            }

            # Stream until the client disconnects
            while True:
                try:
                    event: Event = await asyncio.wait_for(
                        queue.get(), timeout=KEEPALIVE_SECONDS
                    )
                    yield event.to_sse()
                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}

        finally:
            events.unsubscribe(queue)

    return EventSourceResponse(event_generator())
