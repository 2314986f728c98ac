"""
Remote operation layer - Azure management calls behind the resilient executor.
"""

from azure_deploy_mcp.services.clients import (
    CLOUD_ENDPOINTS,
    CloudEndpoints,
    RemoteClients,
    endpoints_for,
)
from azure_deploy_mcp.services.remote import (
    COMPUTE_RESOURCE_FILTER,
    CREATED_BY,
    ConnectionTestResult,
    RemoteOperations,
    linux_fx_version,
    plan_tier,
)

__all__ = [
    "CLOUD_ENDPOINTS",
    "COMPUTE_RESOURCE_FILTER",
    "CREATED_BY",
    "CloudEndpoints",
    "ConnectionTestResult",
    "RemoteClients",
    "RemoteOperations",
    "endpoints_for",
    "linux_fx_version",
    "plan_tier",
]
