"""Project and environment configuration models.

These mirror the configuration document::

    {
      "https://github.com/org/repo": {
        "name": "demo",
        "secret": "...",
        "environments": {
          "main": {
            "deployPath": "/srv/demo",
            "commands": ["git pull", "make build"],
            "notifyUrl": "https://hooks.slack.com/services/...",
            "logSettings": {"verbose": true}
          }
        }
      }
    }
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class LogSettings(BaseModel):
    """Per-environment logging options."""

    model_config = ConfigDict(frozen=True)

    verbose: bool = False


class Environment(BaseModel):
    """A deployment target for one branch of a project."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    deploy_path: str = Field(..., alias="deployPath", min_length=1)
    commands: tuple[str, ...] = Field(..., min_length=1)
    notify_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("notifyUrl", "slackWebhookUrl", "notify_url"),
    )
    log_settings: LogSettings | None = Field(default=None, alias="logSettings")

    @field_validator("commands")
    @classmethod
    def _commands_not_blank(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        commands = tuple(command.strip() for command in value)
        if any(not command for command in commands):
            raise ValueError("commands must not contain blank entries")
        return commands

    @property
    def verbose(self) -> bool:
        return bool(self.log_settings and self.log_settings.verbose)


class Project(BaseModel):
    """A configured repository and its environments keyed by branch."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    identity: str = ""
    name: str = Field(..., min_length=1)
    secret: str = ""
    environments: dict[str, Environment] = Field(..., min_length=1)

    @property
    def branches(self) -> set[str]:
        """All configured branch names."""
        return set(self.environments)
