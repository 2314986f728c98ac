"""azure-deploy-mcp: Azure deployment tools behind a resilient remote-call executor.

Every remote call goes through one executor that spaces calls apart,
retries transient failures with bounded exponential backoff and logs each
attempt with secrets redacted.
"""
from __future__ import annotations

from azure_deploy_mcp._features import HAS_AZURE, HAS_AZURE_BLOB, require_extra
from azure_deploy_mcp.config import DeploymentSettings, ProfileStore
from azure_deploy_mcp.errors import (
    CallTimeoutError,
    ConfigurationError,
    DeployError,
    FailureClass,
    RemoteOperationError,
    ValidationError,
    classify_failure,
)
from azure_deploy_mcp.resilience import (
    CallContext,
    CallOutcome,
    ExecutorStatistics,
    MinIntervalRateLimiter,
    ResilientExecutor,
    RetryPolicy,
)
from azure_deploy_mcp.services import ConnectionTestResult, RemoteClients, RemoteOperations
from azure_deploy_mcp.telemetry import check_health, configure_logging, get_logger
from azure_deploy_mcp.tools import DeploymentOperations, call_tool, list_tools

__version__ = "1.0.0"

__all__ = [
    # Resilience
    "CallContext",
    "CallOutcome",
    # Errors
    "CallTimeoutError",
    "ConfigurationError",
    # Services
    "ConnectionTestResult",
    "DeployError",
    # Tools
    "DeploymentOperations",
    # Config
    "DeploymentSettings",
    "ExecutorStatistics",
    "FailureClass",
    # Feature flags
    "HAS_AZURE",
    "HAS_AZURE_BLOB",
    "MinIntervalRateLimiter",
    "ProfileStore",
    "RemoteClients",
    "RemoteOperationError",
    "RemoteOperations",
    "ResilientExecutor",
    "RetryPolicy",
    "ValidationError",
    # Version
    "__version__",
    "call_tool",
    "check_health",
    "classify_failure",
    "configure_logging",
    "get_logger",
    "list_tools",
    "require_extra",
]
