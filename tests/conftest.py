"""Root pytest fixtures for azure-deploy-mcp tests."""

from __future__ import annotations

import pytest

from azure_deploy_mcp.config import DeploymentSettings
from azure_deploy_mcp.resilience import ResilientExecutor, RetryPolicy
from azure_deploy_mcp.services import RemoteClients, RemoteOperations
from tests.fakes import VALID_SETTINGS, make_clients


@pytest.fixture
def settings() -> DeploymentSettings:
    """Valid settings for the default profile."""
    return DeploymentSettings.load(VALID_SETTINGS)


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested through `record_sleep`."""
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]):
    """Sleep replacement that records instead of waiting."""

    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return sleep


@pytest.fixture
def executor(record_sleep) -> ResilientExecutor:
    """Executor with three retries, no spacing and recorded backoff."""
    return ResilientExecutor(
        RetryPolicy(max_attempts=3, base_delay_ms=1000, max_delay_ms=30000),
        min_interval_ms=0,
        sleep=record_sleep,
    )


@pytest.fixture
def clients() -> RemoteClients:
    return make_clients()


@pytest.fixture
def remote(clients: RemoteClients, executor: ResilientExecutor) -> RemoteOperations:
    return RemoteOperations(clients, executor)
