"""Shared fixtures for dbconsole unit tests."""

import logging
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from dbconsole.core.circuit_breaker import reset_all_circuit_breakers
from dbconsole.core.domain import InstanceStatus
from dbconsole.core.interfaces import Clipboard, ControlPlane, FileSink, Navigator, Notifier
from dbconsole.core.models import Instance


class RecordingNotifier(Notifier):
    """Notifier that keeps every message."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class RecordingNavigator(Navigator):
    def __init__(self) -> None:
        self.paths: list[str] = []

    def navigate(self, path: str) -> None:
        self.paths.append(path)


class RecordingClipboard(Clipboard):
    def __init__(self) -> None:
        self.writes: list[str] = []

    def write(self, text: str) -> None:
        self.writes.append(text)


class RecordingFileSink(FileSink):
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    def save(self, filename: str, data: bytes) -> None:
        self.files[filename] = data


@pytest.fixture(autouse=True)
def reset_circuit_breakers() -> None:
    """Circuit breakers are process-global; start every test closed."""
    reset_all_circuit_breakers()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Console.start() installs a root handler; undo it after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def control_plane() -> AsyncMock:
    """ControlPlane mock with empty defaults."""
    cp = AsyncMock(spec=ControlPlane)
    cp.list_instances = AsyncMock(return_value=[])
    cp.get_instance = AsyncMock()
    cp.create_instance = AsyncMock(return_value=None)
    cp.start_instance = AsyncMock(return_value=None)
    cp.stop_instance = AsyncMock(return_value=None)
    cp.terminate_instance = AsyncMock(return_value=None)
    cp.get_connection = AsyncMock()
    cp.list_users = AsyncMock(return_value=[])
    cp.create_user = AsyncMock(return_value=None)
    cp.update_user = AsyncMock(return_value=None)
    cp.delete_user = AsyncMock(return_value=None)
    cp.fetch_logs = AsyncMock(return_value=[])
    cp.close = AsyncMock()
    return cp


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def clipboard() -> RecordingClipboard:
    return RecordingClipboard()


@pytest.fixture
def file_sink() -> RecordingFileSink:
    return RecordingFileSink()


@pytest.fixture
def make_instance() -> Callable[..., Instance]:
    """Factory for Instance models with sensible defaults."""

    def factory(
        instance_id: str = "i-1",
        status: InstanceStatus | str = InstanceStatus.RUNNING,
        **overrides,
    ) -> Instance:
        data = {
            "instance_id": instance_id,
            "name": f"db-{instance_id}",
            "database_type": "postgresql",
            "database_version": "13",
            "instance_type": "t3.micro",
            "status": status,
            "master_username": "dbadmin",
        }
        data.update(overrides)
        return Instance(**data)

    return factory
