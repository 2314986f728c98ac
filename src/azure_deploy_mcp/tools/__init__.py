"""
Deployment tools - argument models, operations and the tool catalogue.
"""

from azure_deploy_mcp.tools.catalogue import (
    TOOL_DEFINITIONS,
    ToolDefinition,
    call_tool,
    get_tool,
    list_tools,
)
from azure_deploy_mcp.tools.models import (
    AccessInfo,
    BackendDeploymentResult,
    ComputeResource,
    DeployBackendParams,
    DeployFrontendParams,
    DeploymentResult,
    DeployMinimalInstanceParams,
    FrontendDeploymentResult,
    ToolError,
    ToolResponse,
)
from azure_deploy_mcp.tools.operations import (
    DeploymentOperations,
    error_code_for,
    generate_password,
    resource_group_from_id,
    to_tool_error,
)

__all__ = [
    "TOOL_DEFINITIONS",
    "AccessInfo",
    "BackendDeploymentResult",
    "ComputeResource",
    "DeployBackendParams",
    "DeployFrontendParams",
    "DeployMinimalInstanceParams",
    "DeploymentOperations",
    "DeploymentResult",
    "FrontendDeploymentResult",
    "ToolDefinition",
    "ToolError",
    "ToolResponse",
    "call_tool",
    "error_code_for",
    "generate_password",
    "get_tool",
    "list_tools",
    "resource_group_from_id",
    "to_tool_error",
]
