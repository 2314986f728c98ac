"""
Azure management client bundle.

The remote operations only rely on the method shapes of the azure-mgmt
async clients, so tests can hand in fakes. `RemoteClients.from_settings`
builds the real SDK clients from a profile; it needs the ``azure`` extra.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from azure_deploy_mcp._features import require_extra
from azure_deploy_mcp.telemetry.logger import get_logger

if TYPE_CHECKING:
    from azure_deploy_mcp.config.settings import DeploymentSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class CloudEndpoints:
    """Endpoints of one Azure cloud."""

    authority_host: str
    resource_manager: str
    storage_suffix: str

    @property
    def credential_scope(self) -> str:
        return f"{self.resource_manager}/.default"


CLOUD_ENDPOINTS: dict[str, CloudEndpoints] = {
    "AzureCloud": CloudEndpoints(
        "https://login.microsoftonline.com",
        "https://management.azure.com",
        "core.windows.net",
    ),
    "AzureChinaCloud": CloudEndpoints(
        "https://login.chinacloudapi.cn",
        "https://management.chinacloudapi.cn",
        "core.chinacloudapi.cn",
    ),
    "AzureUSGovernment": CloudEndpoints(
        "https://login.microsoftonline.us",
        "https://management.usgovcloudapi.net",
        "core.usgovcloudapi.net",
    ),
    "AzureGermanCloud": CloudEndpoints(
        "https://login.microsoftonline.de",
        "https://management.microsoftazure.de",
        "core.cloudapi.de",
    ),
}


def endpoints_for(settings: DeploymentSettings) -> CloudEndpoints:
    """Resolve endpoints for a profile.

    An explicitly configured authority host wins over the cloud default.
    """
    endpoints = CLOUD_ENDPOINTS[settings.environment]
    if "authority_host" in settings.model_fields_set:
        return CloudEndpoints(
            settings.authority_host.rstrip("/"),
            endpoints.resource_manager,
            endpoints.storage_suffix,
        )
    return endpoints


@dataclass
class RemoteClients:
    """Handles to the Azure management clients of one subscription.

    Attributes:
        subscription_id: Subscription the clients are bound to
        resource: ResourceManagementClient-shaped client
        compute: ComputeManagementClient-shaped client
        web: WebSiteManagementClient-shaped client
        storage: StorageManagementClient-shaped client
        credential: Credential shared by the clients
        storage_suffix: DNS suffix for storage account endpoints
    """

    subscription_id: str
    resource: Any
    compute: Any
    web: Any
    storage: Any
    credential: Any = None
    storage_suffix: str = "core.windows.net"

    @classmethod
    def from_settings(cls, settings: DeploymentSettings) -> RemoteClients:
        """Build the Azure SDK clients for a profile.

        Raises:
            ImportError: If the ``azure`` extra is not installed
        """
        for package in (
            "azure-identity",
            "azure-mgmt-resource",
            "azure-mgmt-compute",
            "azure-mgmt-web",
            "azure-mgmt-storage",
        ):
            require_extra("azure", package)

        from azure.identity.aio import ClientSecretCredential
        from azure.mgmt.compute.aio import ComputeManagementClient
        from azure.mgmt.resource.aio import ResourceManagementClient
        from azure.mgmt.storage.aio import StorageManagementClient
        from azure.mgmt.web.aio import WebSiteManagementClient

        endpoints = endpoints_for(settings)
        credential = ClientSecretCredential(
            settings.tenant_id,
            settings.client_id,
            settings.client_secret.get_secret_value(),
            authority=endpoints.authority_host,
        )
        options: dict[str, Any] = {
            "base_url": endpoints.resource_manager,
            "credential_scopes": [endpoints.credential_scope],
        }

        logger.info(
            "Azure clients initialized",
            subscription_id=settings.subscription_id,
            environment=settings.environment,
        )
        return cls(
            subscription_id=settings.subscription_id,
            resource=ResourceManagementClient(credential, settings.subscription_id, **options),
            compute=ComputeManagementClient(credential, settings.subscription_id, **options),
            web=WebSiteManagementClient(credential, settings.subscription_id, **options),
            storage=StorageManagementClient(credential, settings.subscription_id, **options),
            credential=credential,
            storage_suffix=endpoints.storage_suffix,
        )

    def blob_account_url(self, account_name: str) -> str:
        """Blob endpoint of a storage account."""
        return f"https://{account_name}.blob.{self.storage_suffix}"

    async def close(self) -> None:
        """Close every client, then the credential.

        A failing close does not stop the others; the first error is
        re-raised once all of them have been attempted.
        """
        first_error: Exception | None = None
        for client in (self.resource, self.compute, self.web, self.storage, self.credential):
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(
                    "Failed to close Azure client",
                    client=type(client).__name__,
                    error=str(e),
                )
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    async def __aenter__(self) -> RemoteClients:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
