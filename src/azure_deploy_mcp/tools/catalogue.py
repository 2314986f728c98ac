"""
Tool catalogue and dispatch.

Each tool pairs a name and description with the pydantic model that
validates its arguments; the JSON input schema is derived from that model.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from azure_deploy_mcp.tools.models import (
    DeployBackendParams,
    DeployFrontendParams,
    DeployMinimalInstanceParams,
    ToolError,
    ToolResponse,
)
from azure_deploy_mcp.tools.operations import to_tool_error

if TYPE_CHECKING:
    from azure_deploy_mcp.tools.operations import DeploymentOperations


class _NoArguments(BaseModel):
    """Tools that take no arguments."""


@dataclass(frozen=True)
class ToolDefinition:
    """A tool exposed to clients.

    Attributes:
        name: Tool name
        description: What the tool does
        params_model: Model validating the tool arguments
        method: DeploymentOperations method implementing the tool
    """

    name: str
    description: str
    params_model: type[BaseModel]
    method: str

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool arguments (camelCase keys)."""
        schema = self.params_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.pop("description", None)
        schema.setdefault("properties", {})
        return schema

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="azure.getExistingServers",
        description="List all compute resources (VMs, App Services) in Azure subscription",
        params_model=_NoArguments,
        method="list_compute_resources",
    ),
    ToolDefinition(
        name="azure.deployMinimalInstance",
        description="Create a basic Azure compute instance (VM or App Service)",
        params_model=DeployMinimalInstanceParams,
        method="deploy_minimal_instance",
    ),
    ToolDefinition(
        name="azure.deployBackend",
        description="Deploy backend application code to Azure instance",
        params_model=DeployBackendParams,
        method="deploy_backend",
    ),
    ToolDefinition(
        name="azure.deployFrontend",
        description="Deploy frontend static files to Azure with CDN support",
        params_model=DeployFrontendParams,
        method="deploy_frontend",
    ),
)

_TOOLS_BY_NAME = {tool.name: tool for tool in TOOL_DEFINITIONS}


def get_tool(name: str) -> ToolDefinition | None:
    """Look up a tool by name."""
    return _TOOLS_BY_NAME.get(name)


def list_tools() -> list[dict[str, Any]]:
    """Describe every tool for a tools listing."""
    return [tool.to_dict() for tool in TOOL_DEFINITIONS]


async def call_tool(
    operations: DeploymentOperations,
    name: str,
    arguments: Mapping[str, Any] | None = None,
) -> ToolResponse | ToolError:
    """Validate arguments and dispatch a tool call.

    Args:
        operations: Deployment operations bound to the active profile
        name: Tool name
        arguments: Raw tool arguments

    Returns:
        Response envelope; unknown tools and invalid arguments yield ToolError
    """
    tool = get_tool(name)
    if tool is None:
        return ToolError(
            operation=name,
            error=f"Unknown tool: {name}",
            error_code="METHOD_NOT_FOUND",
            details={"available_tools": list(_TOOLS_BY_NAME)},
        )

    try:
        params = tool.params_model.model_validate(dict(arguments or {}))
    except PydanticValidationError as e:
        return to_tool_error(name, e)

    method = getattr(operations, tool.method)
    if isinstance(params, _NoArguments):
        return await method()
    return await method(params)
