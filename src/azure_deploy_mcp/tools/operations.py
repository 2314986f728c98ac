"""
Deployment tool operations.

High-level operations built on RemoteOperations: listing compute
resources and deploying minimal instances, backends and frontends. Each
operation runs under its own log context and returns a response envelope;
failures become ToolError envelopes instead of propagating.
"""

from __future__ import annotations

import re
import secrets
import string
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from azure_deploy_mcp.errors import DeployError, ValidationError
from azure_deploy_mcp.services.remote import CREATED_BY
from azure_deploy_mcp.telemetry.logger import (
    LogContext,
    SensitiveDataMasker,
    clear_log_context,
    get_logger,
    set_log_context,
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

if TYPE_CHECKING:
    from azure_deploy_mcp.config.settings import DeploymentSettings
    from azure_deploy_mcp.services.remote import RemoteOperations

logger = get_logger(__name__)

VM_RESOURCE_TYPE = "Microsoft.Compute/virtualMachines"
SITE_RESOURCE_TYPE = "Microsoft.Web/sites"
PORTAL_URL = "https://portal.azure.com/#resource"

_RESOURCE_GROUP_PATTERN = re.compile(r"/resourceGroups/([^/]+)/", re.IGNORECASE)
_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"

IMAGE_REFERENCES: dict[str, dict[str, str]] = {
    "Linux": {
        "publisher": "Canonical",
        "offer": "0001-com-ubuntu-server-focal",
        "sku": "20_04-lts-gen2",
        "version": "latest",
    },
    "Windows": {
        "publisher": "MicrosoftWindowsServer",
        "offer": "WindowsServer",
        "sku": "2019-Datacenter",
        "version": "latest",
    },
}

_masker = SensitiveDataMasker()


def resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group name from an ARM resource id.

    Raises:
        ValidationError: If the id has no resource group segment
    """
    match = _RESOURCE_GROUP_PATTERN.search(resource_id or "")
    if not match:
        raise ValidationError(
            f"Unable to extract resource group from resource ID: {resource_id}",
            field="id",
        )
    return match.group(1)


def generate_password(length: int = 16) -> str:
    """Generate a random admin password."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def error_code_for(error: BaseException) -> str:
    """Map an exception to a tool error code."""
    if isinstance(error, DeployError):
        return error.error_code
    if isinstance(error, PydanticValidationError):
        return "VALIDATION_ERROR"
    if isinstance(error, TimeoutError):
        return "TIMEOUT"
    if getattr(error, "status_code", None) is not None or type(
        error
    ).__module__.startswith("azure."):
        return "REMOTE_ERROR"
    return "INTERNAL_ERROR"


def to_tool_error(operation: str, error: BaseException) -> ToolError:
    """Build a ToolError envelope with secrets masked out of the message."""
    details: dict[str, Any] = {"error_type": type(error).__name__}
    if isinstance(error, PydanticValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in error.errors()
        )
        details["errors"] = error.errors(
            include_url=False, include_context=False, include_input=False
        )
    elif isinstance(error, DeployError):
        message = error.message
        details.update(_masker.mask_dict(error.context.details))
    else:
        message = str(error) or type(error).__name__
    return ToolError(
        operation=operation,
        error=_masker.mask(message),
        error_code=error_code_for(error),
        details=details,
    )


def _attr(obj: Any, *path: str) -> Any:
    for name in path:
        if obj is None:
            return None
        obj = getattr(obj, name, None)
    return obj


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


class DeploymentOperations:
    """Deployment tools over a RemoteOperations façade.

    Example:
        >>> ops = DeploymentOperations(remote, settings)
        >>> response = await ops.deploy_minimal_instance(
        ...     DeployMinimalInstanceParams(
        ...         instance_type="appservice", region="eastus", name_prefix="demo"
        ...     )
        ... )
    """

    def __init__(
        self,
        remote: RemoteOperations,
        settings: DeploymentSettings,
        *,
        now_ms: Callable[[], int] | None = None,
    ) -> None:
        """Initialize deployment operations.

        Args:
            remote: Remote operations façade
            settings: Active profile settings
            now_ms: Millisecond clock used for generated names
        """
        self._remote = remote
        self._settings = settings
        self._now_ms = now_ms or (lambda: int(time.time() * 1000))

    @property
    def remote(self) -> RemoteOperations:
        return self._remote

    async def _run(
        self,
        operation: str,
        body: Callable[[], Awaitable[ToolResponse]],
        *,
        resource_id: str | None = None,
    ) -> ToolResponse | ToolError:
        """Run one tool operation under a fresh log context."""
        set_log_context(
            LogContext(
                correlation_id=str(uuid.uuid4()),
                operation=operation,
                resource_id=resource_id,
            )
        )
        start = time.monotonic()
        logger.info("Starting operation", operation=operation)
        try:
            response = await body()
        except Exception as e:
            logger.error(
                "Operation failed",
                operation=operation,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
                error=str(e),
                error_type=type(e).__name__,
            )
            return to_tool_error(operation, e)
        else:
            logger.info(
                "Operation completed",
                operation=operation,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
            )
            return response
        finally:
            clear_log_context()

    # -- Listing -------------------------------------------------------------

    async def list_compute_resources(self) -> ToolResponse | ToolError:
        """List VMs and App Services with their runtime details."""
        operation = "azure.getExistingServers"

        async def body() -> ToolResponse:
            resources = await self._remote.list_compute_resources({"tool": operation})
            described: list[ComputeResource] = []
            for resource in resources:
                try:
                    item = await self._describe(resource)
                except Exception as e:
                    logger.warning(
                        "Failed to process resource",
                        resource_id=_attr(resource, "id"),
                        error=str(e),
                    )
                    continue
                if item is not None:
                    described.append(item)
            return ToolResponse(
                operation=operation,
                details=[item.to_dict() for item in described],
            )

        return await self._run(operation, body)

    async def _describe(self, resource: Any) -> ComputeResource | None:
        resource_type = _attr(resource, "type")
        if resource_type == VM_RESOURCE_TYPE:
            return await self._describe_virtual_machine(resource)
        if resource_type == SITE_RESOURCE_TYPE:
            return await self._describe_app_service(resource)
        return None

    async def _describe_virtual_machine(self, resource: Any) -> ComputeResource:
        resource_group = resource_group_from_id(resource.id)
        vm = await self._remote.get_virtual_machine(resource_group, resource.name)
        view = await self._remote.get_virtual_machine_instance_view(
            resource_group, resource.name
        )

        power_state = next(
            (
                _attr(status, "display_status")
                for status in (_attr(view, "statuses") or [])
                if (_attr(status, "code") or "").startswith("PowerState/")
            ),
            None,
        ) or "Unknown"
        created = _attr(vm, "time_created")

        return ComputeResource(
            id=resource.id,
            name=resource.name,
            type="Virtual Machine",
            status=power_state,
            region=_attr(resource, "location") or "Unknown",
            resource_group=resource_group,
            creation_date=created.isoformat() if created else "Unknown",
            tags=_attr(resource, "tags") or {},
            size=_text(_attr(vm, "hardware_profile", "vm_size")) or "Unknown",
            os_type=_text(_attr(vm, "storage_profile", "os_disk", "os_type")) or "Unknown",
            power_state=power_state,
        )

    async def _describe_app_service(self, resource: Any) -> ComputeResource:
        resource_group = resource_group_from_id(resource.id)
        site = await self._remote.get_app_service(resource_group, resource.name)
        host = _attr(site, "default_host_name")
        state = _attr(site, "state")

        return ComputeResource(
            id=resource.id,
            name=resource.name,
            type="App Service",
            status=state or "Unknown",
            region=_attr(resource, "location") or "Unknown",
            resource_group=resource_group,
            tags=_attr(resource, "tags") or {},
            url=f"https://{host}" if host else None,
            state=state,
            default_host_name=host,
            enabled_host_names=_attr(site, "enabled_host_names"),
            kind=_attr(site, "kind"),
        )

    # -- Minimal instance ----------------------------------------------------

    async def deploy_minimal_instance(
        self, params: DeployMinimalInstanceParams
    ) -> ToolResponse | ToolError:
        """Create a resource group plus a VM or an App Service."""
        operation = "azure.deployMinimalInstance"

        async def body() -> ToolResponse:
            # Names are fixed here so retried calls target the same resources
            stamp = self._now_ms()
            resource_group = params.resource_group_name or (
                f"{self._settings.resource_group_prefix}-{params.name_prefix}-{stamp}"
            )
            if params.instance_type == "vm":
                result = await self._deploy_virtual_machine(params, resource_group)
            else:
                result = await self._deploy_app_service(params, resource_group, stamp)
            return ToolResponse(
                operation=operation,
                resource_id=result.resource_id or None,
                details=result.to_dict(),
                dry_run=params.dry_run or None,
            )

        return await self._run(operation, body)

    def virtual_machine_parameters(
        self,
        params: DeployMinimalInstanceParams,
        vm_name: str,
        admin_password: str,
    ) -> dict[str, Any]:
        """Build the create parameters for a minimal VM."""
        return {
            "location": params.region,
            "hardware_profile": {
                "vm_size": params.size or self._settings.default_vm_size,
            },
            "storage_profile": {
                "image_reference": dict(IMAGE_REFERENCES[params.os_type]),
                "os_disk": {
                    "name": f"{vm_name}-osdisk",
                    "caching": "ReadWrite",
                    "create_option": "FromImage",
                },
            },
            "os_profile": {
                "computer_name": vm_name,
                "admin_username": params.admin_username,
                "admin_password": admin_password,
            },
            "network_profile": {"network_interfaces": []},
            "tags": {
                "createdBy": CREATED_BY,
                "instanceType": "minimal",
                **params.tags,
            },
        }

    async def _deploy_virtual_machine(
        self, params: DeployMinimalInstanceParams, resource_group: str
    ) -> DeploymentResult:
        vm_name = f"{params.name_prefix}-vm"
        credentials = {"username": params.admin_username, "password": "[REDACTED]"}

        if params.dry_run:
            return DeploymentResult(
                resource_id="",
                name=vm_name,
                resource_group=resource_group,
                status="Planned",
                region=params.region,
                access_info=AccessInfo(credentials=credentials),
            )

        vm_parameters = self.virtual_machine_parameters(
            params, vm_name, params.admin_password or generate_password()
        )
        await self._remote.create_resource_group(resource_group, params.region, params.tags)
        vm = await self._remote.create_virtual_machine(resource_group, vm_name, vm_parameters)

        vm_id = _attr(vm, "id") or ""
        return DeploymentResult(
            resource_id=vm_id,
            name=vm_name,
            resource_group=resource_group,
            status="Created",
            region=params.region,
            access_info=AccessInfo(
                admin_url=f"{PORTAL_URL}{vm_id}",
                credentials=credentials,
            ),
        )

    async def _deploy_app_service(
        self,
        params: DeployMinimalInstanceParams,
        resource_group: str,
        stamp: int,
    ) -> DeploymentResult:
        app_name = f"{params.name_prefix}-app-{stamp}"
        plan_name = f"{params.name_prefix}-plan"
        sku = params.size or self._settings.default_app_service_plan

        if params.dry_run:
            return DeploymentResult(
                resource_id="",
                name=app_name,
                resource_group=resource_group,
                status="Planned",
                region=params.region,
            )

        server_farm_id = (
            f"/subscriptions/{self._settings.subscription_id}"
            f"/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Web/serverfarms/{plan_name}"
        )
        await self._remote.create_resource_group(resource_group, params.region, params.tags)
        await self._remote.create_app_service_plan(resource_group, plan_name, params.region, sku)
        site = await self._remote.create_app_service(
            resource_group, app_name, server_farm_id, params.region, "node"
        )

        site_id = _attr(site, "id") or ""
        host = _attr(site, "default_host_name")
        public_url = f"https://{host}" if host else None
        return DeploymentResult(
            resource_id=site_id,
            name=app_name,
            resource_group=resource_group,
            status="Created",
            region=params.region,
            url=public_url,
            access_info=AccessInfo(
                public_url=public_url,
                admin_url=f"{PORTAL_URL}{site_id}",
            ),
        )

    # -- Backend / frontend --------------------------------------------------

    async def deploy_backend(self, params: DeployBackendParams) -> ToolResponse | ToolError:
        """Record a backend deployment against an App Service instance.

        Package upload is not performed; the result describes where the
        application will be served.
        """
        operation = "azure.deployBackend"

        async def body() -> ToolResponse:
            base_url = f"https://{params.instance_id}.azurewebsites.net"
            result = BackendDeploymentResult(
                deployment_id=f"deploy-{self._now_ms()}",
                application_url=base_url,
                status="pending" if params.dry_run else "succeeded",
                runtime=params.runtime,
                environment_variables=sorted(params.environment_variables),
                startup_command=params.startup_command,
                health_check_url=(
                    f"{base_url}{params.health_check_path}"
                    if params.health_check_path
                    else None
                ),
            )
            return ToolResponse(
                operation=operation,
                resource_id=params.instance_id,
                details=result.to_dict(),
                dry_run=params.dry_run or None,
            )

        return await self._run(operation, body, resource_id=params.instance_id)

    async def deploy_frontend(self, params: DeployFrontendParams) -> ToolResponse | ToolError:
        """Record a static frontend deployment backed by a storage account."""
        operation = "azure.deployFrontend"

        async def body() -> ToolResponse:
            stamp = self._now_ms()
            account = f"frontend{stamp}"
            result = FrontendDeploymentResult(
                deployment_id=f"frontend-deploy-{stamp}",
                public_url=f"https://{account}.z13.web.core.windows.net/",
                status="pending" if params.dry_run else "succeeded",
                storage_account_name=account,
                custom_domain_url=(
                    f"https://{params.custom_domain}" if params.custom_domain else None
                ),
                cdn_url=f"https://{account}.azureedge.net/" if params.enable_cdn else None,
            )
            return ToolResponse(
                operation=operation,
                resource_id=params.instance_id,
                details=result.to_dict(),
                dry_run=params.dry_run or None,
            )

        return await self._run(operation, body, resource_id=params.instance_id)
