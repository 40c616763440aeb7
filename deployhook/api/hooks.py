"""Webhook and manual trigger endpoints."""

import json
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from deployhook.api.deps import CoordinatorDep
from deployhook.config import settings
from deployhook.core.exceptions import InvalidPayloadError, SignatureError, UnknownProjectError
from deployhook.core.signature import check_signature
from deployhook.models.deployment import Job, JobSource
from deployhook.models.webhook import ManualTrigger, PushEvent
from deployhook.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class DeployResponse(BaseModel):
    """Response for an accepted or ignored deployment request."""

    status: str
    message: str
    position: int | None = None
    job_id: UUID | None = None
    project: str | None = None
    branch: str | None = None


def parse_push_event(body: bytes) -> PushEvent:
    try:
        return PushEvent.model_validate_json(body)
    except ValidationError as e:
        raise InvalidPayloadError(
            "Webhook body is not a valid push event",
            {"errors": [error["msg"] for error in e.errors()]},
        ) from e


def parse_manual_trigger(body: bytes) -> ManualTrigger:
    if not body.strip():
        return ManualTrigger()
    try:
        return ManualTrigger.model_validate(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise InvalidPayloadError("Request body must be a JSON object") from e


@router.post(
    "/webhook",
    response_model=DeployResponse,
    summary="Receive a source-control push event",
)
@router.post(
    "/api/v1/deployment/webhook",
    response_model=DeployResponse,
    include_in_schema=False,
)
async def receive_webhook(
    request: Request,
    coordinator: CoordinatorDep,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
    x_github_event: Annotated[str | None, Header()] = None,
) -> DeployResponse:
    """Verify a push event and queue a deployment for its branch."""
    if not x_hub_signature_256:
        raise SignatureError(SignatureError.MISSING_SIGNATURE)

    body = await request.body()
    event = parse_push_event(body)

    identity = event.repository_identity
    if not identity:
        raise InvalidPayloadError("Payload has no repository.html_url or repository.name")

    project = coordinator.registry.resolve_by_repository(identity)
    if project is None:
        raise UnknownProjectError(identity)

    check_signature(project.secret, body, x_hub_signature_256)

    if x_github_event == "ping":
        return DeployResponse(status="pong", message="Webhook configured", project=project.name)

    branch = event.branch
    if event.deleted or not branch:
        logger.info(
            "webhook.ignored",
            project=project.name,
            ref=event.ref,
            deleted=event.deleted,
        )
        return DeployResponse(
            status="ignored",
            message=f"Nothing to deploy for ref '{event.ref}'",
            project=project.name,
        )

    job = Job(
        project=project.identity,
        project_name=project.name,
        branch=branch,
        triggered_by=event.sender_login or settings.unknown_actor,
        source=JobSource.PUSH,
        commit_message=event.commit_message,
        forced=event.forced,
    )
    position = await coordinator.enqueue(job)

    return DeployResponse(
        status="queued",
        message=f"Deployment queued at position {position}",
        position=position,
        job_id=job.id,
        project=project.name,
        branch=branch,
    )


@router.post(
    "/deploy",
    response_model=DeployResponse,
    summary="Manually trigger a deployment",
)
@router.post(
    "/rebuild",
    response_model=DeployResponse,
    summary="Manually trigger a rebuild",
)
async def trigger_deployment(
    request: Request,
    coordinator: CoordinatorDep,
    x_project: Annotated[str | None, Header()] = None,
    x_branch: Annotated[str | None, Header()] = None,
    x_triggered_by: Annotated[str | None, Header()] = None,
) -> DeployResponse:
    """Queue a deployment for a project addressed by name or repository."""
    if not settings.manual_trigger_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Manual triggers are disabled",
        )

    trigger = parse_manual_trigger(await request.body())

    project_ref = x_project or trigger.project
    if not project_ref:
        raise InvalidPayloadError(
            "Specify the project with the x-project header or a 'project' field"
        )

    registry = coordinator.registry
    project = registry.require_project(project_ref)
    branch, _ = registry.require_environment(project, x_branch or trigger.branch)

    job = Job(
        project=project.identity,
        project_name=project.name,
        branch=branch,
        triggered_by=x_triggered_by or trigger.triggered_by or settings.default_triggered_by,
        source=JobSource.MANUAL,
    )
    position = await coordinator.enqueue(job)

    return DeployResponse(
        status="queued",
        message=f"Deployment queued at position {position}",
        position=position,
        job_id=job.id,
        project=project.name,
        branch=branch,
    )
