"""Fixtures for lifecycle controller tests."""

from __future__ import annotations

from collections import deque
from typing import Any
from unittest.mock import MagicMock

import pytest

from cloudmanager.manage.client import ServiceClient
from cloudmanager.manage.deployment_manager import CloudDeploymentModule, ServiceSession
from cloudmanager.models.deployment import DeploymentSpec
from cloudmanager.models.operation import Deployment, Operation

PROJECT_ID = "test-project"


class ScriptedServiceClient(ServiceClient):
    """Service client that replays scripted responses in order.

    Each scripted result is returned as-is, or raised if it is an exception.
    A call with nothing scripted fails the test.
    """

    def __init__(self) -> None:
        self._responses: dict[str, deque[Any]] = {
            "submit_insert": deque(),
            "submit_delete": deque(),
            "fetch_operation": deque(),
            "fetch_deployment": deque(),
        }
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.sleeps = 0

    def when(self, method: str, *results: Any) -> ScriptedServiceClient:
        self._responses[method].extend(results)
        return self

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def saw_all(self) -> bool:
        return all(not queue for queue in self._responses.values())

    def submit_insert(self, project_id: str, spec: DeploymentSpec) -> Operation | None:
        return self._next("submit_insert", project_id, spec)

    def submit_delete(self, project_id: str, name: str) -> Operation | None:
        return self._next("submit_delete", project_id, name)

    def fetch_operation(self, project_id: str, operation_name: str) -> Operation:
        return self._next("fetch_operation", project_id, operation_name)

    def fetch_deployment(self, project_id: str, name: str) -> Deployment:
        return self._next("fetch_deployment", project_id, name)

    def sleep(self) -> None:
        self.sleeps += 1

    def _next(self, method: str, *args: Any) -> Any:
        self.calls.append((method, args))
        queue = self._responses[method]
        if not queue:
            raise AssertionError(f"Unexpected call to {method}{args}")
        result = queue.popleft()
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def client() -> ScriptedServiceClient:
    """Create a scripted service client."""
    return ScriptedServiceClient()


@pytest.fixture
def module(client: ScriptedServiceClient) -> MagicMock:
    """Create a module that hands out sessions on the scripted client."""
    mock_module = MagicMock(spec=CloudDeploymentModule)
    mock_module.connect.return_value = ServiceSession(
        client=client, project_id=PROJECT_ID
    )
    return mock_module


@pytest.fixture
def log_lines() -> list[str]:
    """Collect lines written to the log sink."""
    return []
