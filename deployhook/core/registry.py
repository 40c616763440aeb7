"""Read-only lookup of configured projects and environments."""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import ValidationError

from deployhook.core.exceptions import (
    BranchRequiredError,
    ConfigurationError,
    UnknownBranchError,
    UnknownProjectError,
)
from deployhook.models.project import Environment, Project
from deployhook.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_identity(identity: str) -> str:
    """Canonical form of a repository URL or name.

    Surrounding whitespace, trailing slashes and a trailing ``.git`` are
    removed, so ``https://host/org/repo.git`` and ``https://host/org/repo/``
    both become ``https://host/org/repo``.
    """
    value = identity.strip().rstrip("/")
    if value.endswith(".git"):
        value = value[: -len(".git")]
    return value.rstrip("/")


class ProjectRegistry:
    """Immutable mapping of repository identity to Project."""

    def __init__(self, projects: Mapping[str, Project] | None = None):
        self._projects: Mapping[str, Project] = MappingProxyType(dict(projects or {}))

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ProjectRegistry":
        """Build a registry from a parsed configuration document."""
        if not isinstance(document, Mapping):
            raise ConfigurationError("top level must be an object keyed by repository")

        projects: dict[str, Project] = {}
        names: dict[str, str] = {}

        for raw_identity, entry in document.items():
            identity = normalize_identity(str(raw_identity))
            if not identity:
                raise ConfigurationError("empty repository key", location=str(raw_identity))
            if identity in projects:
                raise ConfigurationError(
                    f"'{raw_identity}' duplicates repository '{identity}'",
                    location=str(raw_identity),
                )

            try:
                project = Project.model_validate(entry)
            except ValidationError as e:
                error = e.errors()[0]
                location = ".".join(str(part) for part in (raw_identity, *error["loc"]))
                raise ConfigurationError(error["msg"], location=location) from e

            if project.name in names:
                raise ConfigurationError(
                    f"project name '{project.name}' is used by both "
                    f"'{names[project.name]}' and '{identity}'",
                    location=str(raw_identity),
                )
            names[project.name] = identity
            projects[identity] = project.model_copy(update={"identity": identity})

        return cls(projects)

    @classmethod
    def from_file(cls, path: str | Path) -> "ProjectRegistry":
        """Load and validate the configuration document at ``path``."""
        config_path = Path(path)
        try:
            with open(config_path, encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(
                f"configuration file not found: {config_path}"
            ) from None
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"{config_path} is not valid JSON: {e.msg}",
                location=f"line {e.lineno}",
            ) from e

        registry = cls.from_document(document)
        logger.info(
            "registry.loaded",
            path=str(config_path),
            projects=len(registry),
        )
        return registry

    def __len__(self) -> int:
        return len(self._projects)

    def __iter__(self):
        return iter(self._projects.values())

    def resolve_by_repository(self, identity: str) -> Project | None:
        """Find a project by repository URL or name."""
        return self._projects.get(normalize_identity(identity))

    def resolve_by_name(self, name: str) -> tuple[Project, str] | None:
        """Find a project by its display name."""
        for identity, project in self._projects.items():
            if project.name == name:
                return project, identity
        return None

    def resolve(self, project_ref: str) -> Project | None:
        """Find a project by display name, then by repository identity."""
        found = self.resolve_by_name(project_ref)
        if found:
            return found[0]
        return self.resolve_by_repository(project_ref)

    @staticmethod
    def environment(project: Project, branch: str) -> Environment | None:
        return project.environments.get(branch)

    @staticmethod
    def available_branches(project: Project) -> set[str]:
        return project.branches

    def require_project(self, project_ref: str) -> Project:
        """Like resolve() but raises UnknownProjectError."""
        project = self.resolve(project_ref)
        if project is None:
            raise UnknownProjectError(project_ref)
        return project

    def require_environment(
        self, project: Project, branch: str | None
    ) -> tuple[str, Environment]:
        """Pick the environment for ``branch``.

        A project with a single environment accepts an omitted branch.
        """
        if not branch:
            if len(project.environments) == 1:
                (branch, environment), = project.environments.items()
                return branch, environment
            raise BranchRequiredError(project.name, project.branches)

        environment = self.environment(project, branch)
        if environment is None:
            raise UnknownBranchError(project.name, branch, project.branches)
        return branch, environment
