"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends

from deployhook.core.coordinator import DeploymentCoordinator, get_coordinator
from deployhook.core.events import EventBus, get_event_bus


async def get_deployments() -> DeploymentCoordinator:
    """Get the deployment coordinator."""
    return get_coordinator()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


# Type aliases for cleaner signatures
CoordinatorDep = Annotated[DeploymentCoordinator, Depends(get_deployments)]
EventsDep = Annotated[EventBus, Depends(get_events)]
