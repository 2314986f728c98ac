"""
Health check utilities for azure-deploy-mcp.

Combines configuration validation with a live connectivity probe into a
single report.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from azure_deploy_mcp.errors import DeployError

if TYPE_CHECKING:
    from azure_deploy_mcp.config.profiles import ProfileStore
    from azure_deploy_mcp.services.remote import RemoteOperations


class HealthStatus(str, Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    """Result of a single health check.

    Attributes:
        name: Check name
        passed: Whether the check passed
        message: Status message
        latency_ms: Check latency in milliseconds
    """

    name: str
    passed: bool
    message: str = ""
    latency_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }


@dataclass
class HealthReport:
    """Aggregated health status.

    Attributes:
        status: Overall health status
        checks: Individual check results
        version: Package version
        timestamp: Report timestamp
    """

    status: HealthStatus
    checks: list[HealthCheckResult] = field(default_factory=list)
    version: str = ""
    timestamp: float = field(default_factory=time.time)

    def check(self, name: str) -> HealthCheckResult | None:
        """Look up a check by name."""
        return next((c for c in self.checks if c.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "checks": {c.name: c.passed for c in self.checks},
            "details": [c.to_dict() for c in self.checks],
            "version": self.version,
            "timestamp": self.timestamp,
        }


def _overall_status(checks: list[HealthCheckResult]) -> HealthStatus:
    failed = {c.name for c in checks if not c.passed}
    if not failed:
        return HealthStatus.HEALTHY
    if failed == {"azure_connectivity"}:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


async def check_health(
    remote: RemoteOperations,
    store: ProfileStore,
) -> HealthReport:
    """Run the configuration, credential and connectivity checks.

    Args:
        remote: Remote operations bound to the active profile
        store: Profile store holding the active profile

    Returns:
        HealthReport; degraded when only connectivity fails
    """
    from azure_deploy_mcp import __version__

    checks: list[HealthCheckResult] = []

    try:
        store.get()
        checks.append(HealthCheckResult("configuration_valid", True))
    except DeployError as e:
        checks.append(HealthCheckResult("configuration_valid", False, e.message))

    valid, error = store.validate()
    checks.append(HealthCheckResult("credentials_valid", valid, error or ""))

    start = time.monotonic()
    result = await remote.test_connection()
    checks.append(
        HealthCheckResult(
            "azure_connectivity",
            result.success,
            result.error or "",
            latency_ms=round((time.monotonic() - start) * 1000, 1),
        )
    )

    return HealthReport(
        status=_overall_status(checks),
        checks=checks,
        version=__version__,
    )
