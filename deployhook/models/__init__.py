"""Data models for deployhook."""

from deployhook.models.deployment import (
    CommandResult,
    CoordinatorState,
    DeploymentOutcome,
    ErrorKind,
    Job,
    JobSource,
    JobSummary,
)
from deployhook.models.notification import (
    NotificationField,
    NotificationMessage,
    Severity,
)
from deployhook.models.project import (
    Environment,
    LogSettings,
    Project,
)
from deployhook.models.webhook import (
    ManualTrigger,
    PushEvent,
)

__all__ = [
    # Project models
    "Project",
    "Environment",
    "LogSettings",
    # Deployment models
    "Job",
    "JobSource",
    "JobSummary",
    "CommandResult",
    "ErrorKind",
    "DeploymentOutcome",
    "CoordinatorState",
    # Notification models
    "NotificationMessage",
    "NotificationField",
    "Severity",
    # Request models
    "PushEvent",
    "ManualTrigger",
]
