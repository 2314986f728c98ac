"""
Tool parameter, result and envelope models.

Arguments arrive as camelCase JSON; every model also accepts snake_case
field names. Results serialize back to camelCase.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Runtime = Literal["node", "python", "dotnet", "java", "php"]


def utc_timestamp() -> str:
    """Current time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class ToolModel(BaseModel):
    """Base for tool models: camelCase aliases, snake_case accepted."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# -- Parameters --------------------------------------------------------------


class DeployMinimalInstanceParams(ToolModel):
    """Parameters for deploying a minimal VM or App Service."""

    instance_type: Literal["vm", "appservice"] = Field(
        description="Type of instance to deploy"
    )
    region: str = Field(min_length=1, description="Azure region for deployment")
    name_prefix: str = Field(
        min_length=1, max_length=20, description="Prefix for resource names"
    )
    size: str | None = Field(
        default=None, description="VM size or App Service plan SKU"
    )
    os_type: Literal["Linux", "Windows"] = Field(
        default="Linux", description="Operating system for VMs"
    )
    admin_username: str = Field(default="azureuser", description="VM admin username")
    admin_password: str | None = Field(
        default=None, description="VM admin password (generated when omitted)"
    )
    resource_group_name: str | None = Field(
        default=None, description="Existing or new resource group name"
    )
    tags: dict[str, str] = Field(default_factory=dict, description="Resource tags")
    dry_run: bool = Field(default=False, description="Plan without creating anything")


class DeployBackendParams(ToolModel):
    """Parameters for deploying backend code to an instance."""

    instance_id: str = Field(min_length=1, description="Target instance name")
    deployment_package: str = Field(
        min_length=1, description="Path or URL of the deployment package"
    )
    runtime: Runtime = Field(description="Application runtime")
    environment_variables: dict[str, str] = Field(
        default_factory=dict, description="Application settings"
    )
    startup_command: str | None = Field(default=None, description="Startup command")
    health_check_path: str | None = Field(
        default=None, description="Health check endpoint path"
    )
    dry_run: bool = False


class DeployFrontendParams(ToolModel):
    """Parameters for deploying static frontend files."""

    instance_id: str = Field(min_length=1, description="Target instance name")
    build_directory: str = Field(
        min_length=1, description="Directory holding the built static files"
    )
    custom_domain: str | None = Field(default=None, description="Custom domain name")
    enable_cdn: bool = Field(default=False, description="Put a CDN in front")
    index_document: str = "index.html"
    error_document: str = "404.html"
    cache_control: str | None = None
    dry_run: bool = False


# -- Results -----------------------------------------------------------------


class ComputeResource(ToolModel):
    """A virtual machine or App Service as reported by the listing tool."""

    id: str
    name: str
    type: Literal["Virtual Machine", "App Service"]
    status: str = "Unknown"
    region: str = "Unknown"
    resource_group: str
    creation_date: str = "Unknown"
    tags: dict[str, str] = Field(default_factory=dict)

    # Virtual machine details
    size: str | None = None
    os_type: str | None = None
    power_state: str | None = None

    # App Service details
    url: str | None = None
    state: str | None = None
    default_host_name: str | None = None
    enabled_host_names: list[str] | None = None
    kind: str | None = None


class AccessInfo(ToolModel):
    public_url: str | None = None
    admin_url: str | None = None
    credentials: dict[str, str] | None = None


class DeploymentResult(ToolModel):
    """Result of a minimal instance deployment."""

    resource_id: str
    name: str
    resource_group: str
    status: str
    region: str
    created_at: str = Field(default_factory=utc_timestamp)
    url: str | None = None
    access_info: AccessInfo | None = None


class BackendDeploymentResult(ToolModel):
    """Result of a backend deployment."""

    deployment_id: str
    application_url: str
    status: Literal["pending", "running", "succeeded", "failed"]
    runtime: str
    environment_variables: list[str] = Field(default_factory=list)
    health_check_url: str | None = None
    startup_command: str | None = None


class FrontendDeploymentResult(ToolModel):
    """Result of a frontend deployment."""

    deployment_id: str
    public_url: str
    status: Literal["pending", "succeeded", "failed"]
    storage_account_name: str | None = None
    cdn_url: str | None = None
    custom_domain_url: str | None = None


# -- Envelopes ---------------------------------------------------------------


class ToolResponse(ToolModel):
    """Successful tool response envelope."""

    success: Literal[True] = True
    operation: str
    resource_id: str | None = None
    details: Any = None
    dry_run: bool | None = None
    timestamp: str = Field(default_factory=utc_timestamp)


class ToolError(ToolModel):
    """Failed tool response envelope."""

    success: Literal[False] = False
    operation: str
    error: str
    error_code: str = "INTERNAL_ERROR"
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_timestamp)
