"""Unit tests for the project registry."""

import json
from pathlib import Path

import pytest

from deployhook.core.exceptions import (
    BranchRequiredError,
    ConfigurationError,
    UnknownBranchError,
    UnknownProjectError,
)
from deployhook.core.registry import ProjectRegistry, normalize_identity

DEMO_URL = "https://example.com/org/demo"
SHOP_URL = "https://example.com/org/shop"


class TestNormalizeIdentity:
    """Tests for normalize_identity()."""

    @pytest.mark.parametrize(
        "value",
        [
            "https://example.com/org/demo",
            "https://example.com/org/demo.git",
            "https://example.com/org/demo/",
            "  https://example.com/org/demo.git  ",
        ],
    )
    def test_url_forms(self, value: str):
        assert normalize_identity(value) == DEMO_URL

    def test_bare_name(self):
        assert normalize_identity("demo.git") == "demo"


class TestProjectRegistry:
    """Tests for ProjectRegistry lookups."""

    def test_resolve_with_and_without_git_suffix(self, registry: ProjectRegistry):
        plain = registry.resolve_by_repository(DEMO_URL)
        suffixed = registry.resolve_by_repository(DEMO_URL + ".git")

        assert plain is not None
        assert plain is suffixed
        assert plain.name == "demo"

    def test_configured_key_with_git_suffix(self, registry: ProjectRegistry):
        """Keys are normalized when the document is loaded."""
        project = registry.resolve_by_repository(SHOP_URL)
        assert project is not None
        assert project.identity == SHOP_URL

    def test_resolve_unknown_repository(self, registry: ProjectRegistry):
        assert registry.resolve_by_repository("https://example.com/org/nope") is None

    def test_resolve_by_name(self, registry: ProjectRegistry):
        found = registry.resolve_by_name("shop")
        assert found is not None
        project, identity = found
        assert project.name == "shop"
        assert identity == SHOP_URL

    def test_resolve_by_unknown_name(self, registry: ProjectRegistry):
        assert registry.resolve_by_name("missing") is None

    def test_resolve_prefers_name_then_repository(self, registry: ProjectRegistry):
        assert registry.resolve("demo").identity == DEMO_URL
        assert registry.resolve(DEMO_URL + ".git").name == "demo"

    def test_environment_lookup(self, registry: ProjectRegistry):
        project = registry.resolve_by_repository(SHOP_URL)

        staging = registry.environment(project, "staging")
        assert staging is not None
        assert staging.commands == ("deploy staging",)
        assert staging.verbose is True
        assert registry.environment(project, "feature-x") is None

    def test_available_branches(self, registry: ProjectRegistry):
        project = registry.resolve_by_repository(SHOP_URL)
        assert registry.available_branches(project) == {"main", "staging"}

    def test_legacy_slack_key(self, registry: ProjectRegistry):
        project = registry.resolve_by_repository(SHOP_URL)
        assert project.environments["main"].notify_url == "https://hooks.example.com/shop"
        assert project.environments["staging"].notify_url is None

    def test_require_project_unknown(self, registry: ProjectRegistry):
        with pytest.raises(UnknownProjectError):
            registry.require_project("missing")

    def test_single_environment_is_implicit(self, registry: ProjectRegistry):
        project = registry.resolve("demo")
        branch, environment = registry.require_environment(project, None)
        assert branch == "main"
        assert environment.deploy_path == "/srv/demo"

    def test_branch_required_for_several_environments(self, registry: ProjectRegistry):
        project = registry.resolve("shop")
        with pytest.raises(BranchRequiredError) as exc_info:
            registry.require_environment(project, None)
        assert exc_info.value.available_branches == ["main", "staging"]

    def test_unknown_branch_lists_branches(self, registry: ProjectRegistry):
        project = registry.resolve("demo")
        with pytest.raises(UnknownBranchError) as exc_info:
            registry.require_environment(project, "feature-x")

        error = exc_info.value
        assert error.available_branches == ["main"]
        assert "main" in error.message
        assert error.details["branch"] == "feature-x"

    def test_registry_is_read_only(self, registry: ProjectRegistry):
        with pytest.raises(TypeError):
            registry._projects["x"] = None  # type: ignore[index]


class TestRegistryLoading:
    """Tests for configuration validation."""

    def _environment(self, **overrides):
        return {"deployPath": "/srv/app", "commands": ["make"], **overrides}

    def test_rejects_duplicate_names(self):
        document = {
            "https://example.com/a": {"name": "app", "environments": {"main": self._environment()}},
            "https://example.com/b": {"name": "app", "environments": {"main": self._environment()}},
        }
        with pytest.raises(ConfigurationError, match="project name 'app'"):
            ProjectRegistry.from_document(document)

    def test_rejects_keys_that_normalize_together(self):
        document = {
            "https://example.com/a": {"name": "a", "environments": {"main": self._environment()}},
            "https://example.com/a.git": {"name": "b", "environments": {"main": self._environment()}},
        }
        with pytest.raises(ConfigurationError, match="duplicates"):
            ProjectRegistry.from_document(document)

    def test_rejects_empty_command_list(self):
        document = {
            "https://example.com/a": {
                "name": "a",
                "environments": {"main": self._environment(commands=[])},
            },
        }
        with pytest.raises(ConfigurationError) as exc_info:
            ProjectRegistry.from_document(document)
        assert "commands" in exc_info.value.details["location"]

    def test_rejects_missing_deploy_path(self):
        document = {
            "https://example.com/a": {
                "name": "a",
                "environments": {"main": {"commands": ["make"]}},
            },
        }
        with pytest.raises(ConfigurationError):
            ProjectRegistry.from_document(document)

    def test_rejects_non_object_document(self):
        with pytest.raises(ConfigurationError):
            ProjectRegistry.from_document(["not", "a", "mapping"])  # type: ignore[arg-type]

    def test_from_file(self, tmp_path: Path, config_document):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config_document))

        registry = ProjectRegistry.from_file(path)

        assert len(registry) == 2
        assert {project.name for project in registry} == {"demo", "shop"}

    def test_from_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            ProjectRegistry.from_file(tmp_path / "missing.json")

    def test_from_invalid_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            ProjectRegistry.from_file(path)
