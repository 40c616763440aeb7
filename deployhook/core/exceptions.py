"""Custom exceptions for deployhook."""

from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from deployhook.models.deployment import CommandResult


class DeployhookError(Exception):
    """Base exception for deployhook."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(DeployhookError):
    """The project configuration document is invalid."""

    def __init__(self, message: str, location: str | None = None):
        details = {}
        if location:
            details["location"] = location
        super().__init__(f"Invalid configuration: {message}", details)


class SignatureError(DeployhookError):
    """Webhook signature could not be verified."""

    MISSING_SECRET = "missing_secret"
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_SIGNATURE = "malformed_signature"
    SIGNATURE_MISMATCH = "signature_mismatch"

    _MESSAGES = {
        MISSING_SECRET: "No webhook secret is configured for this project",
        MISSING_SIGNATURE: "Missing x-hub-signature-256 header",
        MALFORMED_SIGNATURE: "Signature header is not a sha256 HMAC",
        SIGNATURE_MISMATCH: "Signature does not match payload",
    }

    def __init__(self, reason: str):
        super().__init__(
            self._MESSAGES.get(reason, "Signature verification failed"),
            {"reason": reason},
        )
        self.reason = reason


class InvalidPayloadError(DeployhookError):
    """Request body could not be interpreted."""

    pass


class ResolutionError(DeployhookError):
    """A request could not be resolved to a configured project environment."""

    pass


class UnknownProjectError(ResolutionError):
    """No project is configured for the given identity or name."""

    def __init__(self, identity: str):
        super().__init__(
            f"No project configured for '{identity}'",
            {"project": identity},
        )
        self.identity = identity


class UnknownBranchError(ResolutionError):
    """The project exists but has no environment for the branch."""

    def __init__(self, project: str, branch: str, available_branches: Iterable[str]):
        branches = sorted(available_branches)
        super().__init__(
            f"Branch '{branch}' is not configured for project '{project}'. "
            f"Available branches: {', '.join(branches) or 'none'}",
            {"project": project, "branch": branch, "available_branches": branches},
        )
        self.branch = branch
        self.available_branches = branches


class BranchRequiredError(ResolutionError):
    """A manual trigger omitted the branch for a multi-environment project."""

    def __init__(self, project: str, available_branches: Iterable[str]):
        branches = sorted(available_branches)
        super().__init__(
            f"Project '{project}' has several environments; specify a branch. "
            f"Available branches: {', '.join(branches)}",
            {"project": project, "available_branches": branches},
        )
        self.available_branches = branches


class CommandError(DeployhookError):
    """A deployment command failed."""

    def __init__(self, result: "CommandResult"):
        super().__init__(
            f"Command failed: {result.command}",
            {
                "command": result.command,
                "exit_code": result.exit_code,
                "error_kind": result.error_kind.value if result.error_kind else None,
            },
        )
        self.result = result

    @property
    def permission_denied(self) -> bool:
        return self.result.permission_denied


class NotificationError(DeployhookError):
    """Delivering a notification failed."""

    def __init__(self, endpoint: str, message: str, status_code: int | None = None):
        details: dict[str, Any] = {"endpoint": endpoint}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"Notification delivery failed: {message}", details)
        self.status_code = status_code
