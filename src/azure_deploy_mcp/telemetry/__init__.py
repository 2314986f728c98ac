"""
Telemetry module for azure-deploy-mcp.

Provides structured logging with secret redaction and health checks.
"""

from azure_deploy_mcp.telemetry.health import (
    HealthCheckResult,
    HealthReport,
    HealthStatus,
    check_health,
)
from azure_deploy_mcp.telemetry.logger import (
    REDACTED,
    DeployLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    configure_logging,
    get_log_context,
    get_logger,
    set_log_context,
)

__all__ = [
    "REDACTED",
    # Logger
    "DeployLogger",
    # Health
    "HealthCheckResult",
    "HealthReport",
    "HealthStatus",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "TextFormatter",
    "check_health",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "get_logger",
    "set_log_context",
]
