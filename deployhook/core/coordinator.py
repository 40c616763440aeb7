"""Deployment Coordinator.

Serializes deployment requests into a single worker that runs each job's
commands in order and reports progress through the notifier.

States:
    idle        no worker task is running
    processing  one worker task is draining the queue

``enqueue`` only starts a worker on the idle -> processing transition;
the worker returns the coordinator to idle once the queue is empty.
"""

import asyncio
import re
import time
from collections import deque

from deployhook.config import settings
from deployhook.core.events import EventBus, get_event_bus
from deployhook.core.exceptions import CommandError, ResolutionError, UnknownProjectError
from deployhook.core.executor import CommandExecutor
from deployhook.core.messages import (
    command_failed_message,
    completed_message,
    queued_message,
    started_message,
)
from deployhook.core.notifier import Notifier
from deployhook.core.registry import ProjectRegistry
from deployhook.models.deployment import (
    CommandResult,
    CoordinatorState,
    DeploymentOutcome,
    Job,
    JobSource,
    JobSummary,
    utcnow,
)
from deployhook.models.notification import NotificationMessage
from deployhook.models.project import Environment, Project
from deployhook.utils.logging import get_logger

# Output of `git pull` when nothing was fetched
NO_CHANGES_PHRASES = frozenset({"Already up to date.", "Already up-to-date."})

PULL_COMMAND = re.compile(r"^\s*git\s+pull\b")


def is_pull_command(command: str) -> bool:
    return bool(PULL_COMMAND.match(command))


def reports_no_changes(output: str) -> bool:
    """Whether pull output is exactly the 'nothing changed' phrase."""
    return output.strip() in NO_CHANGES_PHRASES


class DeploymentCoordinator:
    """Single-worker FIFO deployment queue."""

    def __init__(
        self,
        registry: ProjectRegistry,
        executor: CommandExecutor | None = None,
        notifier: Notifier | None = None,
        events: EventBus | None = None,
    ):
        self._registry = registry
        self.executor = executor or CommandExecutor()
        self.notifier = notifier or Notifier()
        self.events = events or get_event_bus()
        self.logger = get_logger("coordinator")

        # Guarded by _lock
        self._lock = asyncio.Lock()
        self._queue: deque[Job] = deque()
        self._active: Job | None = None
        self._state = CoordinatorState.IDLE
        self._worker: asyncio.Task[None] | None = None

        # Pending "queued" notifications, awaited before the job starts
        self._announcements: dict[str, asyncio.Task[None]] = {}

    @property
    def registry(self) -> ProjectRegistry:
        return self._registry

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def active_job(self) -> JobSummary | None:
        return JobSummary.from_job(self._active) if self._active else None

    def pending_jobs(self) -> list[JobSummary]:
        """Snapshot of queued jobs in execution order."""
        return [JobSummary.from_job(job) for job in self._queue]

    def reload(self, registry: ProjectRegistry) -> None:
        """Swap in a new registry.

        Queued jobs are re-resolved against it when they reach the head of
        the queue.
        """
        self._registry = registry
        self.logger.info("coordinator.registry_reloaded", projects=len(registry))

    def resolve(self, job: Job) -> tuple[Project, Environment]:
        """Find the project and environment a job targets.

        Raises:
            ResolutionError: If the project or branch is not configured
        """
        project = self._registry.resolve_by_repository(job.project)
        if project is None:
            raise UnknownProjectError(job.project)
        _, environment = self._registry.require_environment(project, job.branch)
        return project, environment

    async def enqueue(self, job: Job) -> int:
        """Queue a job and return its 1-based position.

        Position 1 means the job runs next; the active job counts as ahead.

        Raises:
            ResolutionError: If the job does not resolve; nothing is queued
        """
        project, environment = self.resolve(job)
        if not job.project_name:
            job.project_name = project.name

        async with self._lock:
            ahead = len(self._queue) + (1 if self._active else 0)
            busy = self._state == CoordinatorState.PROCESSING or bool(self._queue)
            self._queue.append(job)
            position = ahead + 1

            if busy:
                self._announcements[str(job.id)] = asyncio.create_task(
                    self._notify(environment, queued_message(job, ahead))
                )
            else:
                self._state = CoordinatorState.PROCESSING
                self._worker = asyncio.create_task(self._drain())

        self.logger.info(
            "coordinator.job.queued",
            job_id=str(job.id),
            project=project.name,
            branch=job.branch,
            triggered_by=job.triggered_by,
            position=position,
        )
        await self.events.publish_job_queued(job, position)
        return position

    async def join(self) -> None:
        """Wait until the queue has drained and the worker has stopped."""
        while self._worker is not None:
            await self._worker

    async def shutdown(self) -> None:
        """Log what is left behind; running commands are not interrupted."""
        self.logger.info(
            "coordinator.shutdown",
            state=self._state.value,
            active=self._active.label if self._active else None,
            pending=len(self._queue),
        )

    async def _drain(self) -> None:
        """Run queued jobs one at a time until the queue is empty."""
        self.logger.info("coordinator.worker.started")
        while True:
            async with self._lock:
                self._active = None
                if not self._queue:
                    self._state = CoordinatorState.IDLE
                    self._worker = None
                    self.logger.info("coordinator.worker.idle")
                    return
                job = self._queue.popleft()
                self._active = job

            try:
                await self._process(job)
            except Exception as e:
                # A broken job must not stop the jobs behind it
                self.logger.exception(
                    "coordinator.job.crashed",
                    job_id=str(job.id),
                    error=str(e),
                )

    async def _process(self, job: Job) -> DeploymentOutcome | None:
        announcement = self._announcements.pop(str(job.id), None)
        if announcement is not None:
            await announcement

        try:
            _, environment = self.resolve(job)
        except ResolutionError as e:
            self.logger.warning(
                "coordinator.job.discarded",
                job_id=str(job.id),
                project=job.project,
                branch=job.branch,
                reason=e.message,
            )
            await self.events.publish_job_discarded(job, e.message)
            return None

        return await self.run_deployment(job, environment)

    async def run_deployment(self, job: Job, environment: Environment) -> DeploymentOutcome:
        """Run every command of ``environment`` for ``job`` in order.

        The first failing command aborts the rest. A push job whose pull
        reports no changes skips the commands after the pull.
        """
        log = self.logger.bind(
            job_id=str(job.id),
            project=job.project_name or job.project,
            branch=job.branch,
        )
        start_time = time.perf_counter()
        started_at = utcnow()

        log.info("coordinator.job.started", triggered_by=job.triggered_by)
        await self._notify(environment, started_message(job, started_at))
        await self.events.publish_job_started(job)

        results: list[CommandResult] = []
        skipped = 0
        commands = environment.commands

        try:
            for index, command in enumerate(commands):
                result = await self.executor.execute(command, environment.deploy_path)
                results.append(result)
                self._log_result(log, result, environment.verbose)
                await self.events.publish_command_completed(job, result)
                result.raise_for_status()

                if (
                    job.source == JobSource.PUSH
                    and is_pull_command(command)
                    and reports_no_changes(result.stdout)
                ):
                    skipped = len(commands) - index - 1
                    log.info("coordinator.job.up_to_date", skipped=skipped)
                    break

        except CommandError as e:
            outcome = DeploymentOutcome(
                job_id=job.id,
                success=False,
                results=results,
                failed=e.result,
                duration_ms=int((time.perf_counter() - start_time) * 1000),
            )
            log.error(
                "coordinator.job.failed",
                command=e.result.command,
                exit_code=e.result.exit_code,
                permission_denied=e.permission_denied,
                remaining=len(commands) - len(results),
            )
            await self._notify(environment, command_failed_message(job, e.result))
            await self.events.publish_job_finished(job, outcome)
            return outcome

        outcome = DeploymentOutcome(
            job_id=job.id,
            success=True,
            results=results,
            skipped_commands=skipped,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )
        log.info(
            "coordinator.job.completed",
            duration_ms=outcome.duration_ms,
            skipped=skipped,
        )
        await self._notify(environment, completed_message(job, outcome, utcnow()))
        await self.events.publish_job_finished(job, outcome)
        return outcome

    def _log_result(self, log, result: CommandResult, verbose: bool) -> None:
        fields = {
            "command": result.command,
            "success": result.success,
            "exit_code": result.exit_code,
            "strategy": result.strategy,
            "duration_ms": result.duration_ms,
        }
        if verbose:
            fields["stdout"] = result.stdout
            fields["stderr"] = result.stderr
        else:
            fields["stdout_len"] = len(result.stdout)
            fields["stderr_len"] = len(result.stderr)
        log.info("coordinator.command.finished", **fields)

    async def _notify(self, environment: Environment, message: NotificationMessage) -> None:
        """Send a notification; failures never reach the deployment."""
        try:
            await self.notifier.notify(environment.notify_url, message)
        except Exception as e:
            self.logger.exception(
                "coordinator.notify_failed",
                title=message.title,
                error=str(e),
            )


# Singleton instance
_coordinator: DeploymentCoordinator | None = None


def get_coordinator() -> DeploymentCoordinator:
    """Get the deployment coordinator singleton.

    The registry is loaded from ``settings.config_path`` on first use.
    """
    global _coordinator
    if _coordinator is None:
        _coordinator = DeploymentCoordinator(ProjectRegistry.from_file(settings.config_path))
    return _coordinator
