"""Notification messages for each stage of a deployment."""

from datetime import datetime

from deployhook.models.deployment import CommandResult, DeploymentOutcome, Job, JobSource
from deployhook.models.notification import NotificationMessage, Severity

PERMISSION_HINT = (
    "The command was refused by the operating system. Run the service with "
    "an account that can write to the deploy path, or grant it the needed "
    "privileges."
)
FAILURE_HINT = "Check the command output above and the service logs."


def format_duration(duration_ms: int) -> str:
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes}m {seconds}s"


def _timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _base_fields(message: NotificationMessage, job: Job) -> NotificationMessage:
    return (
        message.add_field("Project", job.project_name or job.project)
        .add_field("Branch", job.branch)
        .add_field("Triggered By", job.triggered_by)
    )


def push_summary(job: Job) -> str:
    """Body text describing the push or trigger behind a job."""
    lines = [f"Branch: {job.branch}", f"Sender: {job.triggered_by}"]
    if job.source == JobSource.PUSH:
        lines.append(f"Commit: {job.commit_message or 'no commit message'}")
        if job.forced:
            lines.append("Force Push: true")
    else:
        lines.append("Manual deployment")
    return "\n".join(lines)


def queued_message(job: Job, ahead: int) -> NotificationMessage:
    noun = "deployment" if ahead == 1 else "deployments"
    message = NotificationMessage(
        title=f"Deployment Queued: {job.label}",
        text=f"Waiting for {ahead} {noun} ahead of this one.",
        severity=Severity.QUEUED,
    )
    return _base_fields(message, job).add_field("Jobs Ahead", ahead)


def started_message(job: Job, started_at: datetime) -> NotificationMessage:
    message = NotificationMessage(
        title=f"Deployment Started: {job.label}",
        text=push_summary(job),
        severity=Severity.IN_PROGRESS,
    )
    return _base_fields(message, job).add_field("Started", _timestamp(started_at))


def command_failed_message(job: Job, result: CommandResult) -> NotificationMessage:
    hint = PERMISSION_HINT if result.permission_denied else FAILURE_HINT
    detail = result.error_detail or "no output"
    message = NotificationMessage(
        title=f"Deployment Failed: {job.label}",
        text=f"`{result.command}` failed.\n```{detail}```\n{hint}",
        severity=Severity.FAILURE,
    )
    return (
        _base_fields(message, job)
        .add_field("Command", result.command, short=False)
        .add_field("Directory", result.working_directory, short=False)
        .add_field("Exit Code", result.exit_code if result.exit_code is not None else "n/a")
        .add_field(
            "Error",
            "Permission denied" if result.permission_denied else "Command error",
        )
    )


def completed_message(
    job: Job, outcome: DeploymentOutcome, finished_at: datetime
) -> NotificationMessage:
    if outcome.up_to_date:
        text = (
            "Already up to date; skipped "
            f"{outcome.skipped_commands} remaining command(s)."
        )
    else:
        text = f"Ran {len(outcome.results)} command(s) successfully."
    message = NotificationMessage(
        title=f"Deployment Completed: {job.label}",
        text=text,
        severity=Severity.SUCCESS,
    )
    return (
        _base_fields(message, job)
        .add_field("Finished", _timestamp(finished_at))
        .add_field("Duration", format_duration(outcome.duration_ms))
    )
