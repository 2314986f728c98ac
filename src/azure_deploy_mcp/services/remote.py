"""
Remote operations over the Azure management clients.

Each method wraps exactly one logical remote call in a closure and hands it
to the resilient executor, so every call is rate limited, retried on
transient failures and logged. Values that must stay fixed across retries
(timestamps, tags) are computed before the closure is built.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from azure_deploy_mcp.errors import RemoteOperationError
from azure_deploy_mcp.resilience.executor import CallContext, ResilientExecutor
from azure_deploy_mcp.telemetry.logger import get_logger

if TYPE_CHECKING:
    from azure_deploy_mcp.config.settings import DeploymentSettings
    from azure_deploy_mcp.resilience.rate_limiter import ExecutorStatistics
    from azure_deploy_mcp.services.clients import RemoteClients

logger = get_logger(__name__)

CREATED_BY = "mcp-azure-deployment-service"

COMPUTE_RESOURCE_FILTER = (
    "resourceType eq 'Microsoft.Compute/virtualMachines' "
    "or resourceType eq 'Microsoft.Web/sites'"
)

LINUX_FX_VERSIONS: dict[str, str] = {
    "node": "NODE|18-lts",
    "python": "PYTHON|3.9",
    "dotnet": "DOTNETCORE|6.0",
    "java": "JAVA|11-java11",
    "php": "PHP|8.0",
}
DEFAULT_LINUX_FX_VERSION = LINUX_FX_VERSIONS["node"]

ContextLike = CallContext | Mapping[str, Any] | None


def linux_fx_version(runtime: str) -> str:
    """Map a runtime name to an App Service Linux FX version string."""
    return LINUX_FX_VERSIONS.get(runtime.lower(), DEFAULT_LINUX_FX_VERSION)


def plan_tier(sku: str) -> str:
    """Derive the App Service plan tier from its SKU name."""
    if sku == "F1":
        return "Free"
    if sku.startswith("B"):
        return "Basic"
    return "Standard"


@dataclass
class ConnectionTestResult:
    """Outcome of the connectivity probe."""

    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        return result


def _call_fields(
    context: ContextLike, operation: str, resource_id: str | None = None
) -> dict[str, Any]:
    if isinstance(context, CallContext):
        fields = dict(context.metadata)
    else:
        fields = dict(context or {})
    fields["operation"] = operation
    if resource_id is not None:
        fields["resource_id"] = resource_id
    return fields


class RemoteOperations:
    """Façade over the Azure management clients.

    The façade itself never retries or sleeps; all of that is the
    executor's job. Results are returned exactly as the SDK produced them.

    Example:
        >>> remote = RemoteOperations.from_settings(settings)
        >>> vm = await remote.get_virtual_machine("mcp-rg-web", "web-vm")
        >>> print(remote.get_statistics().request_count)
    """

    def __init__(self, clients: RemoteClients, executor: ResilientExecutor) -> None:
        """Initialize the façade.

        Args:
            clients: Azure client handles
            executor: Executor every remote call is routed through
        """
        self._clients = clients
        self._executor = executor

    @classmethod
    def from_settings(cls, settings: DeploymentSettings) -> RemoteOperations:
        """Build clients and executor from a profile."""
        from azure_deploy_mcp.services.clients import RemoteClients

        return cls(
            RemoteClients.from_settings(settings),
            ResilientExecutor.from_settings(settings),
        )

    @property
    def clients(self) -> RemoteClients:
        return self._clients

    @property
    def executor(self) -> ResilientExecutor:
        return self._executor

    async def close(self) -> None:
        """Close the underlying clients."""
        await self._clients.close()

    # -- Reads ---------------------------------------------------------------

    async def list_compute_resources(self, context: ContextLike = None) -> list[Any]:
        """List every virtual machine and web site in the subscription."""

        async def operation() -> list[Any]:
            pages = self._clients.resource.resources.list(filter=COMPUTE_RESOURCE_FILTER)
            return [resource async for resource in pages]

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "list_compute_resources")
        )

    async def get_virtual_machine(
        self, resource_group: str, vm_name: str, context: ContextLike = None
    ) -> Any:
        """Get a virtual machine."""
        return await self._executor.execute_with_retry(
            lambda: self._clients.compute.virtual_machines.get(resource_group, vm_name),
            _call_fields(context, "get_virtual_machine", vm_name),
        )

    async def get_virtual_machine_instance_view(
        self, resource_group: str, vm_name: str, context: ContextLike = None
    ) -> Any:
        """Get the runtime instance view of a virtual machine."""
        return await self._executor.execute_with_retry(
            lambda: self._clients.compute.virtual_machines.instance_view(
                resource_group, vm_name
            ),
            _call_fields(context, "get_virtual_machine_instance_view", vm_name),
        )

    async def get_app_service(
        self, resource_group: str, site_name: str, context: ContextLike = None
    ) -> Any:
        """Get an App Service web app."""
        return await self._executor.execute_with_retry(
            lambda: self._clients.web.web_apps.get(resource_group, site_name),
            _call_fields(context, "get_app_service", site_name),
        )

    # -- Writes --------------------------------------------------------------

    async def create_resource_group(
        self,
        resource_group: str,
        location: str,
        tags: Mapping[str, str] | None = None,
        context: ContextLike = None,
    ) -> Any:
        """Create or update a resource group stamped with creation tags.

        Caller tags override the ``createdBy``/``createdAt`` stamps.
        """
        parameters = {
            "location": location,
            "tags": {
                "createdBy": CREATED_BY,
                "createdAt": datetime.now(timezone.utc).isoformat(),
                **(tags or {}),
            },
        }
        return await self._executor.execute_with_retry(
            lambda: self._clients.resource.resource_groups.create_or_update(
                resource_group, parameters
            ),
            _call_fields(context, "create_resource_group", resource_group),
        )

    async def create_virtual_machine(
        self,
        resource_group: str,
        vm_name: str,
        parameters: Mapping[str, Any],
        context: ContextLike = None,
    ) -> Any:
        """Create a virtual machine and wait for provisioning."""

        async def operation() -> Any:
            poller = await self._clients.compute.virtual_machines.begin_create_or_update(
                resource_group, vm_name, parameters
            )
            return await poller.result()

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "create_virtual_machine", vm_name)
        )

    async def create_app_service_plan(
        self,
        resource_group: str,
        plan_name: str,
        location: str,
        sku: str,
        context: ContextLike = None,
    ) -> Any:
        """Create an App Service plan."""
        parameters = {
            "location": location,
            "sku": {"name": sku, "tier": plan_tier(sku)},
        }

        async def operation() -> Any:
            poller = await self._clients.web.app_service_plans.begin_create_or_update(
                resource_group, plan_name, parameters
            )
            return await poller.result()

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "create_app_service_plan", plan_name)
        )

    async def create_app_service(
        self,
        resource_group: str,
        site_name: str,
        server_farm_id: str,
        location: str,
        runtime: str,
        context: ContextLike = None,
    ) -> Any:
        """Create a Linux web app on an existing plan."""
        parameters = {
            "location": location,
            "server_farm_id": server_farm_id,
            "site_config": {
                "linux_fx_version": linux_fx_version(runtime),
                "app_settings": [
                    {"name": "WEBSITES_ENABLE_APP_SERVICE_STORAGE", "value": "false"}
                ],
            },
        }

        async def operation() -> Any:
            poller = await self._clients.web.web_apps.begin_create_or_update(
                resource_group, site_name, parameters
            )
            return await poller.result()

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "create_app_service", site_name)
        )

    async def create_storage_account(
        self,
        resource_group: str,
        account_name: str,
        location: str,
        sku: str,
        context: ContextLike = None,
    ) -> Any:
        """Create a StorageV2 account with hot access tier."""
        parameters = {
            "sku": {"name": sku},
            "kind": "StorageV2",
            "location": location,
            "access_tier": "Hot",
            "allow_blob_public_access": True,
            "minimum_tls_version": "TLS1_2",
        }

        async def operation() -> Any:
            poller = await self._clients.storage.storage_accounts.begin_create(
                resource_group, account_name, parameters
            )
            return await poller.result()

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "create_storage_account", account_name)
        )

    async def get_storage_account_keys(
        self, resource_group: str, account_name: str, context: ContextLike = None
    ) -> str:
        """Get the primary access key of a storage account.

        Raises:
            RemoteOperationError: If the account has no usable key
        """

        async def operation() -> str:
            result = await self._clients.storage.storage_accounts.list_keys(
                resource_group, account_name
            )
            keys = getattr(result, "keys", None)
            if not keys:
                raise RemoteOperationError(
                    "No storage account keys found",
                    operation="get_storage_account_keys",
                    resource_id=account_name,
                )
            primary = getattr(keys[0], "value", None)
            if not primary:
                raise RemoteOperationError(
                    "Primary storage account key is undefined",
                    operation="get_storage_account_keys",
                    resource_id=account_name,
                )
            return primary

        return await self._executor.execute_with_retry(
            operation, _call_fields(context, "get_storage_account_keys", account_name)
        )

    async def create_blob_service_client(
        self, resource_group: str, account_name: str, context: ContextLike = None
    ) -> Any:
        """Build a blob service client authenticated with the account key.

        Only the key lookup is a remote call; building the client is local.
        """
        from azure_deploy_mcp._features import require_extra

        require_extra("azure", "azure-storage-blob")
        from azure.storage.blob.aio import BlobServiceClient

        account_key = await self.get_storage_account_keys(
            resource_group, account_name, context
        )
        return BlobServiceClient(
            self._clients.blob_account_url(account_name),
            credential={"account_name": account_name, "account_key": account_key},
        )

    # -- Diagnostics ---------------------------------------------------------

    async def test_connection(self, context: ContextLike = None) -> ConnectionTestResult:
        """Probe connectivity by reading the first resource group.

        Goes straight to the client, bypassing rate limiting and retry, and
        reports failure instead of raising.
        """
        try:
            async for _ in self._clients.resource.resource_groups.list():
                break
        except Exception as e:
            logger.error(
                "Azure connection test failed",
                **_call_fields(context, "test_connection"),
                error=str(e),
                error_type=type(e).__name__,
            )
            return ConnectionTestResult(success=False, error=str(e) or type(e).__name__)
        return ConnectionTestResult(success=True)

    def get_statistics(self) -> ExecutorStatistics:
        """Request statistics of the underlying executor."""
        return self._executor.get_statistics()
