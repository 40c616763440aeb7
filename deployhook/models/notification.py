"""Outbound notification models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from deployhook.models.deployment import utcnow


class Severity(str, Enum):
    """Notification tier, rendered as an attachment color."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"
    QUEUED = "queued"

    @property
    def color(self) -> str:
        return _COLORS[self]


_COLORS = {
    Severity.IN_PROGRESS: "#FFA500",
    Severity.SUCCESS: "#7CD197",
    Severity.FAILURE: "#FF0000",
    Severity.QUEUED: "#439FE0",
}


class NotificationField(BaseModel):
    """A labeled value shown alongside the message."""

    title: str
    value: str
    short: bool = True


class NotificationMessage(BaseModel):
    """A structured status message."""

    title: str
    text: str = ""
    severity: Severity
    fields: list[NotificationField] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)

    def add_field(self, title: str, value: Any, short: bool = True) -> "NotificationMessage":
        self.fields.append(NotificationField(title=title, value=str(value), short=short))
        return self

    def to_payload(self) -> dict[str, Any]:
        """Render as a Slack-compatible attachment payload."""
        return {
            "attachments": [
                {
                    "title": self.title,
                    "text": self.text,
                    "color": self.severity.color,
                    "fields": [field.model_dump() for field in self.fields],
                    "ts": int(self.timestamp.timestamp()),
                }
            ]
        }
