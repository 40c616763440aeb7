"""Pytest configuration and fixtures."""

import asyncio
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from deployhook.api.deps import get_deployments, get_events
from deployhook.core.coordinator import DeploymentCoordinator
from deployhook.core.events import EventBus
from deployhook.core.executor import classify_error
from deployhook.core.notifier import Notifier
from deployhook.core.registry import ProjectRegistry
from deployhook.main import app
from deployhook.models.deployment import CommandResult
from deployhook.models.notification import NotificationMessage

DEMO_URL = "https://example.com/org/demo"
SHOP_URL = "https://example.com/org/shop"


class FakeExecutor:
    """Records commands instead of running them."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.outputs: dict[str, tuple[bool, str, str]] = {}
        self.delays: dict[str, float] = {}
        self.errors: dict[str, Exception] = {}

    async def execute(self, command: str, working_directory) -> CommandResult:
        self.calls.append((command, str(working_directory)))
        if command in self.delays:
            await asyncio.sleep(self.delays[command])
        if command in self.errors:
            raise self.errors[command]

        success, stdout, stderr = self.outputs.get(command, (True, "", ""))
        return CommandResult(
            command=command,
            working_directory=str(working_directory),
            success=success,
            stdout=stdout,
            stderr=stderr,
            exit_code=0 if success else 1,
            error_kind=None if success else classify_error(stderr),
        )

    @property
    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]


class RecordingNotifier(Notifier):
    """Keeps notifications in memory."""

    def __init__(self):
        super().__init__(timeout=1.0)
        self.sent: list[tuple[str | None, NotificationMessage]] = []

    async def notify(self, endpoint: str | None, message: NotificationMessage) -> bool:
        self.sent.append((endpoint, message))
        return True

    @property
    def titles(self) -> list[str]:
        return [message.title for _, message in self.sent]


@pytest.fixture
def config_document() -> dict[str, Any]:
    """Configuration with a single-branch and a two-branch project."""
    return {
        DEMO_URL: {
            "name": "demo",
            "secret": "demo-secret",
            "environments": {
                "main": {
                    "deployPath": "/srv/demo",
                    "commands": ["git pull", "make build"],
                    "notifyUrl": "https://hooks.example.com/demo",
                },
            },
        },
        SHOP_URL + ".git": {
            "name": "shop",
            "secret": "shop-secret",
            "environments": {
                "main": {
                    "deployPath": "/srv/shop",
                    "commands": ["git pull", "npm run build"],
                    "slackWebhookUrl": "https://hooks.example.com/shop",
                },
                "staging": {
                    "deployPath": "/srv/shop-staging",
                    "commands": ["deploy staging"],
                    "logSettings": {"verbose": True},
                },
            },
        },
    }


@pytest.fixture
def registry(config_document: dict[str, Any]) -> ProjectRegistry:
    return ProjectRegistry.from_document(config_document)


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def events() -> EventBus:
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def coordinator(
    registry: ProjectRegistry,
    executor: FakeExecutor,
    notifier: RecordingNotifier,
    events: EventBus,
) -> DeploymentCoordinator:
    return DeploymentCoordinator(
        registry, executor=executor, notifier=notifier, events=events
    )


@pytest.fixture
async def client(coordinator: DeploymentCoordinator, events: EventBus) -> AsyncClient:
    """Create an async test client wired to the test coordinator."""
    app.dependency_overrides[get_deployments] = lambda: coordinator
    app.dependency_overrides[get_events] = lambda: events

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await coordinator.join()
    app.dependency_overrides.clear()
