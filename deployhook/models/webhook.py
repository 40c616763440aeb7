"""Inbound request payload models."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

BRANCH_REF_PREFIX = "refs/heads/"


class Repository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    html_url: str | None = None
    name: str | None = None


class Sender(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str | None = None


class HeadCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None


class PushEvent(BaseModel):
    """The parts of a GitHub push event the coordinator needs."""

    model_config = ConfigDict(extra="ignore")

    ref: str = ""
    repository: Repository | None = None
    sender: Sender | None = None
    head_commit: HeadCommit | None = None
    forced: bool = False
    deleted: bool = False

    @property
    def repository_identity(self) -> str | None:
        """Repository URL, or its name when the URL is absent.

        The name fallback only matches configs keyed by bare repository name.
        """
        if not self.repository:
            return None
        return self.repository.html_url or self.repository.name or None

    @property
    def branch(self) -> str | None:
        """Branch name for ``refs/heads/...`` refs, None for tags and others."""
        if not self.ref.startswith(BRANCH_REF_PREFIX):
            return None
        return self.ref[len(BRANCH_REF_PREFIX):] or None

    @property
    def sender_login(self) -> str | None:
        return self.sender.login if self.sender else None

    @property
    def commit_message(self) -> str | None:
        return self.head_commit.message if self.head_commit else None


class ManualTrigger(BaseModel):
    """Body of a manual deploy/rebuild request."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    project: str | None = None
    branch: str | None = None
    triggered_by: str | None = Field(
        default=None,
        validation_alias=AliasChoices("triggeredBy", "triggered_by"),
    )
