"""Deployment job and result models."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from deployhook.core.exceptions import CommandError

# Longest chunk of command output carried into notifications
OUTPUT_TAIL_CHARS = 1500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobSource(str, Enum):
    """What created a job."""

    PUSH = "push"
    MANUAL = "manual"


class CoordinatorState(str, Enum):
    """Worker state of the deployment coordinator."""

    IDLE = "idle"
    PROCESSING = "processing"


class ErrorKind(str, Enum):
    """Classification of a failed command."""

    ORDINARY = "ordinary"
    PERMISSION_DENIED = "permission_denied"


class Job(BaseModel):
    """A queued deployment request."""

    id: UUID = Field(default_factory=uuid4)
    project: str
    project_name: str = ""
    branch: str
    triggered_by: str = "unknown"
    source: JobSource = JobSource.MANUAL
    enqueued_at: datetime = Field(default_factory=utcnow)

    # Push metadata, reported in notifications only
    commit_message: str | None = None
    forced: bool = False

    @property
    def label(self) -> str:
        return f"{self.project_name or self.project}@{self.branch}"


class JobSummary(BaseModel):
    """Read-only view of a job for status responses."""

    id: UUID
    project: str
    branch: str
    triggered_by: str
    source: JobSource
    enqueued_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(
            id=job.id,
            project=job.project_name or job.project,
            branch=job.branch,
            triggered_by=job.triggered_by,
            source=job.source,
            enqueued_at=job.enqueued_at,
        )


class CommandResult(BaseModel):
    """Outcome of one executed command."""

    command: str
    working_directory: str
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    error_kind: ErrorKind | None = None
    strategy: str = "direct"
    duration_ms: int = 0

    @property
    def permission_denied(self) -> bool:
        return self.error_kind == ErrorKind.PERMISSION_DENIED

    @property
    def error_detail(self) -> str:
        """Tail of the captured error output, falling back to stdout."""
        text = (self.stderr or self.stdout).strip()
        if len(text) > OUTPUT_TAIL_CHARS:
            text = "..." + text[-OUTPUT_TAIL_CHARS:]
        return text

    def raise_for_status(self) -> None:
        """Raise CommandError if the command failed."""
        if not self.success:
            raise CommandError(self)


class DeploymentOutcome(BaseModel):
    """Aggregate result of running an environment's commands for one job."""

    job_id: UUID
    success: bool
    results: list[CommandResult] = Field(default_factory=list)
    failed: CommandResult | None = None
    skipped_commands: int = 0
    duration_ms: int = 0

    @property
    def up_to_date(self) -> bool:
        return self.success and self.skipped_commands > 0
