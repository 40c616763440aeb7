"""Core functionality for deployhook."""

from deployhook.core.exceptions import (
    BranchRequiredError,
    CommandError,
    ConfigurationError,
    DeployhookError,
    InvalidPayloadError,
    NotificationError,
    ResolutionError,
    SignatureError,
    UnknownBranchError,
    UnknownProjectError,
)

__all__ = [
    "DeployhookError",
    "ConfigurationError",
    "SignatureError",
    "InvalidPayloadError",
    "ResolutionError",
    "UnknownProjectError",
    "UnknownBranchError",
    "BranchRequiredError",
    "CommandError",
    "NotificationError",
]
