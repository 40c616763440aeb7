"""Unit tests for data models."""

from uuid import uuid4

import pytest

from deployhook.core.exceptions import CommandError
from deployhook.models.deployment import (
    OUTPUT_TAIL_CHARS,
    CommandResult,
    DeploymentOutcome,
    ErrorKind,
    Job,
    JobSource,
)
from deployhook.models.notification import NotificationMessage, Severity
from deployhook.models.webhook import ManualTrigger, PushEvent


class TestSeverity:
    """Tests for notification tiers."""

    def test_four_distinct_colors(self):
        colors = {severity.color for severity in Severity}
        assert len(colors) == 4

    def test_known_colors(self):
        assert Severity.SUCCESS.color == "#7CD197"
        assert Severity.FAILURE.color == "#FF0000"


class TestNotificationMessage:
    """Tests for NotificationMessage."""

    def test_payload_shape(self):
        message = NotificationMessage(
            title="Deployment Completed: demo@main",
            severity=Severity.SUCCESS,
        )
        message.add_field("Duration", "1.2s").add_field("Branch", "main")

        attachment = message.to_payload()["attachments"][0]

        assert attachment["color"] == "#7CD197"
        assert [f["title"] for f in attachment["fields"]] == ["Duration", "Branch"]
        assert isinstance(attachment["ts"], int)


class TestCommandResult:
    """Tests for CommandResult."""

    def _failed(self, **overrides) -> CommandResult:
        data = {
            "command": "make build",
            "working_directory": "/srv/demo",
            "success": False,
            "stderr": "boom",
            "exit_code": 2,
            "error_kind": ErrorKind.ORDINARY,
        }
        data.update(overrides)
        return CommandResult(**data)

    def test_raise_for_status(self):
        result = self._failed()
        with pytest.raises(CommandError) as exc_info:
            result.raise_for_status()
        assert exc_info.value.result is result
        assert exc_info.value.details["exit_code"] == 2

    def test_success_does_not_raise(self):
        CommandResult(command="true", working_directory="/", success=True).raise_for_status()

    def test_permission_denied(self):
        assert self._failed(error_kind=ErrorKind.PERMISSION_DENIED).permission_denied

    def test_error_detail_falls_back_to_stdout(self):
        assert self._failed(stderr="", stdout="out").error_detail == "out"

    def test_error_detail_is_trimmed(self):
        detail = self._failed(stderr="x" * (OUTPUT_TAIL_CHARS + 100)).error_detail
        assert detail.startswith("...")
        assert len(detail) == OUTPUT_TAIL_CHARS + 3


class TestDeploymentOutcome:
    def test_up_to_date(self):
        outcome = DeploymentOutcome(job_id=uuid4(), success=True, skipped_commands=2)
        assert outcome.up_to_date

    def test_failure_is_not_up_to_date(self):
        outcome = DeploymentOutcome(job_id=uuid4(), success=False, skipped_commands=2)
        assert not outcome.up_to_date


class TestJob:
    def test_defaults(self):
        job = Job(project="https://example.com/org/demo", branch="main")
        assert job.source == JobSource.MANUAL
        assert job.triggered_by == "unknown"
        assert job.label == "https://example.com/org/demo@main"


class TestPushEvent:
    """Tests for push payload parsing."""

    def test_branch_from_ref(self):
        event = PushEvent(ref="refs/heads/feature/login")
        assert event.branch == "feature/login"

    def test_tag_has_no_branch(self):
        assert PushEvent(ref="refs/tags/v1.0.0").branch is None

    def test_identity_prefers_html_url(self):
        event = PushEvent.model_validate(
            {"repository": {"html_url": "https://example.com/org/demo", "name": "demo"}}
        )
        assert event.repository_identity == "https://example.com/org/demo"

    def test_identity_falls_back_to_name(self):
        event = PushEvent.model_validate({"repository": {"name": "demo"}})
        assert event.repository_identity == "demo"

    def test_sender_and_commit(self):
        event = PushEvent.model_validate(
            {
                "sender": {"login": "octocat"},
                "head_commit": {"message": "Fix build"},
                "forced": True,
            }
        )
        assert event.sender_login == "octocat"
        assert event.commit_message == "Fix build"
        assert event.forced is True


class TestManualTrigger:
    def test_camel_case_alias(self):
        trigger = ManualTrigger.model_validate({"project": "demo", "triggeredBy": "alice"})
        assert trigger.triggered_by == "alice"
        assert trigger.branch is None
