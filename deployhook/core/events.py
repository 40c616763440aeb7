"""Event system for Server-Sent Events (SSE)."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from deployhook.models.deployment import CommandResult, DeploymentOutcome, Job


@dataclass
class Event:
    """A deployment lifecycle event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_sse(self) -> dict[str, str]:
        """Convert to an sse-starlette event dict."""
        data_json = json.dumps({**self.data, "timestamp": self.timestamp.isoformat()})
        return {"event": self.event_type, "data": data_json}


def _job_data(job: Job) -> dict[str, Any]:
    return {
        "job_id": str(job.id),
        "project": job.project_name or job.project,
        "branch": job.branch,
        "triggered_by": job.triggered_by,
        "source": job.source.value,
    }


class EventBus:
    """Fan-out of deployment events to every subscriber."""

    def __init__(self, max_queue: int = 1000):
        self._subscribers: set[asyncio.Queue[Event]] = set()
        self._max_queue = max_queue

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[Event]:
        """Subscribe to all deployment events."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        """Stop delivering events to ``queue``."""
        self._subscribers.discard(queue)

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        for queue in list(self._subscribers):
            # A stalled client loses events rather than blocking deployments
            if not queue.full():
                queue.put_nowait(event)

    async def publish_job_queued(self, job: Job, position: int) -> None:
        await self.publish(
            Event(
                event_type="job_queued",
                data={**_job_data(job), "position": position},
            )
        )

    async def publish_job_started(self, job: Job) -> None:
        await self.publish(Event(event_type="job_started", data=_job_data(job)))

    async def publish_command_completed(self, job: Job, result: CommandResult) -> None:
        await self.publish(
            Event(
                event_type="command_completed",
                data={
                    "job_id": str(job.id),
                    "command": result.command,
                    "success": result.success,
                    "exit_code": result.exit_code,
                    "duration_ms": result.duration_ms,
                },
            )
        )

    async def publish_job_finished(self, job: Job, outcome: DeploymentOutcome) -> None:
        """Publish job_completed, job_skipped or job_failed."""
        if not outcome.success:
            event_type = "job_failed"
        elif outcome.up_to_date:
            event_type = "job_skipped"
        else:
            event_type = "job_completed"

        data = {**_job_data(job), "duration_ms": outcome.duration_ms}
        if outcome.failed:
            data["failed_command"] = outcome.failed.command
            data["error_kind"] = (
                outcome.failed.error_kind.value if outcome.failed.error_kind else None
            )
        if outcome.skipped_commands:
            data["skipped_commands"] = outcome.skipped_commands

        await self.publish(Event(event_type=event_type, data=data))

    async def publish_job_discarded(self, job: Job, reason: str) -> None:
        await self.publish(
            Event(
                event_type="job_discarded",
                data={**_job_data(job), "reason": reason},
            )
        )


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
