"""Tests for the remote operations façade and client bundle."""

from types import SimpleNamespace

import pytest

from azure_deploy_mcp.config import DeploymentSettings
from azure_deploy_mcp.errors import RemoteOperationError
from azure_deploy_mcp.resilience import ResilientExecutor
from azure_deploy_mcp.services import (
    CLOUD_ENDPOINTS,
    COMPUTE_RESOURCE_FILTER,
    CREATED_BY,
    ConnectionTestResult,
    RemoteClients,
    RemoteOperations,
    endpoints_for,
    linux_fx_version,
    plan_tier,
)
from tests.fakes import (
    AsyncCall,
    AsyncPaged,
    Closable,
    FakePoller,
    HttpError,
    SyncCall,
    VALID_SETTINGS,
    make_clients,
)


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.parametrize(
        "sku,tier",
        [("F1", "Free"), ("B1", "Basic"), ("B3", "Basic"), ("S1", "Standard"),
         ("P1V2", "Standard"), ("D1", "Standard")],
    )  # fmt: skip
    def test_plan_tier(self, sku: str, tier: str) -> None:
        assert plan_tier(sku) == tier

    def test_linux_fx_version(self) -> None:
        assert linux_fx_version("python") == "PYTHON|3.9"
        assert linux_fx_version("Java") == "JAVA|11-java11"
        assert linux_fx_version("cobol") == "NODE|18-lts"

    def test_connection_result_to_dict(self) -> None:
        assert ConnectionTestResult(True).to_dict() == {"success": True}
        assert ConnectionTestResult(False, "denied").to_dict() == {
            "success": False,
            "error": "denied",
        }


class TestEndpoints:
    """Tests for cloud endpoint resolution."""

    def test_public_cloud(self, settings: DeploymentSettings) -> None:
        endpoints = endpoints_for(settings)
        assert endpoints is CLOUD_ENDPOINTS["AzureCloud"]
        assert endpoints.credential_scope == "https://management.azure.com/.default"

    def test_sovereign_cloud(self) -> None:
        settings = DeploymentSettings.load({**VALID_SETTINGS, "environment": "AzureChinaCloud"})
        endpoints = endpoints_for(settings)
        assert endpoints.authority_host == "https://login.chinacloudapi.cn"
        assert endpoints.storage_suffix == "core.chinacloudapi.cn"

    def test_explicit_authority_host_wins(self) -> None:
        settings = DeploymentSettings.load(
            {
                **VALID_SETTINGS,
                "environment": "AzureUSGovernment",
                "authorityHost": "https://login.example.test/",
            }
        )
        endpoints = endpoints_for(settings)
        assert endpoints.authority_host == "https://login.example.test"
        assert endpoints.resource_manager == "https://management.usgovcloudapi.net"


class TestRemoteClients:
    """Tests for RemoteClients."""

    def test_blob_account_url(self) -> None:
        clients = make_clients()
        assert clients.blob_account_url("acct") == "https://acct.blob.core.windows.net"

    @pytest.mark.asyncio
    async def test_close_closes_clients_and_credential(self) -> None:
        handles = [Closable() for _ in range(5)]
        clients = RemoteClients("sub", *handles)

        async with clients:
            pass

        assert all(handle.closed for handle in handles)

    @pytest.mark.asyncio
    async def test_close_skips_clients_without_close(self) -> None:
        await make_clients().close()

    @pytest.mark.asyncio
    async def test_close_continues_after_failure(self) -> None:
        """Every handle is closed and the first failure surfaces."""

        class FailingClose(Closable):
            def __init__(self, error: Exception) -> None:
                super().__init__()
                self.error = error

            async def close(self) -> None:
                await super().close()
                raise self.error

        first = FailingClose(RuntimeError("resource close failed"))
        second = FailingClose(RuntimeError("web close failed"))
        handles = [first, Closable(), second, Closable(), Closable()]
        clients = RemoteClients("sub", *handles)

        with pytest.raises(RuntimeError) as exc_info:
            await clients.close()

        assert exc_info.value is first.error
        assert all(handle.closed for handle in handles)


class TestRemoteReads:
    """Tests for read operations."""

    @pytest.mark.asyncio
    async def test_get_virtual_machine_passes_result_through(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        expected = clients.compute.virtual_machines.get.outcomes[0]

        vm = await remote.get_virtual_machine("rg-a", "vm1")

        assert vm is expected
        assert clients.compute.virtual_machines.get.calls == [(("rg-a", "vm1"), {})]

    @pytest.mark.asyncio
    async def test_transient_failure_retried(
        self, remote: RemoteOperations, clients: RemoteClients, sleeps
    ) -> None:
        site = SimpleNamespace(name="site1")
        clients.web.web_apps.get = AsyncCall(HttpError("ServiceUnavailable", 503), site)

        assert await remote.get_app_service("rg-a", "site1") is site
        assert clients.web.web_apps.get.call_count == 2
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_fatal_failure_not_retried(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        error = HttpError("AuthorizationFailed", 403)
        clients.compute.virtual_machines.instance_view = AsyncCall(error)

        with pytest.raises(HttpError) as exc_info:
            await remote.get_virtual_machine_instance_view("rg-a", "vm1")

        assert exc_info.value is error
        assert clients.compute.virtual_machines.instance_view.call_count == 1

    @pytest.mark.asyncio
    async def test_list_compute_resources(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        items = [SimpleNamespace(name="vm1"), SimpleNamespace(name="site1")]
        clients.resource.resources.list = SyncCall(AsyncPaged(items))

        assert await remote.list_compute_resources() == items
        assert clients.resource.resources.list.calls == [
            ((), {"filter": COMPUTE_RESOURCE_FILTER})
        ]

    @pytest.mark.asyncio
    async def test_list_retries_whole_enumeration(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        """A pager failing mid-read restarts the listing."""
        items = [SimpleNamespace(name="vm1")]
        clients.resource.resources.list = SyncCall(
            AsyncPaged(error=ConnectionResetError("reset")), AsyncPaged(items)
        )

        assert await remote.list_compute_resources() == items
        assert clients.resource.resources.list.call_count == 2


class TestRemoteWrites:
    """Tests for create operations."""

    @pytest.mark.asyncio
    async def test_create_resource_group_tags(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        await remote.create_resource_group("rg-new", "eastus", {"env": "dev"})

        (name, parameters), _ = clients.resource.resource_groups.create_or_update.calls[0]
        assert name == "rg-new"
        assert parameters["location"] == "eastus"
        assert parameters["tags"]["createdBy"] == CREATED_BY
        assert parameters["tags"]["env"] == "dev"
        assert "createdAt" in parameters["tags"]

    @pytest.mark.asyncio
    async def test_caller_tags_override_stamps(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        await remote.create_resource_group("rg-new", "eastus", {"createdBy": "me"})

        (_, parameters), _ = clients.resource.resource_groups.create_or_update.calls[0]
        assert parameters["tags"]["createdBy"] == "me"

    @pytest.mark.asyncio
    async def test_tags_stable_across_retries(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        """Every attempt sends the same createdAt stamp."""
        clients.resource.resource_groups.create_or_update = AsyncCall(
            HttpError("TooManyRequests", 429),
            HttpError("InternalServerError", 500),
            SimpleNamespace(name="rg-new"),
        )

        await remote.create_resource_group("rg-new", "eastus")

        calls = clients.resource.resource_groups.create_or_update.calls
        assert len(calls) == 3
        stamps = {args[1]["tags"]["createdAt"] for args, _ in calls}
        assert len(stamps) == 1

    @pytest.mark.asyncio
    async def test_create_virtual_machine_waits_for_poller(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        vm = SimpleNamespace(name="web-vm")
        clients.compute.virtual_machines.begin_create_or_update = AsyncCall(FakePoller(vm))

        result = await remote.create_virtual_machine("rg-a", "web-vm", {"location": "eastus"})

        assert result is vm

    @pytest.mark.asyncio
    async def test_create_app_service_plan_sku(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        await remote.create_app_service_plan("rg-a", "web-plan", "eastus", "B1")

        (_, name, parameters), _ = clients.web.app_service_plans.begin_create_or_update.calls[0]
        assert name == "web-plan"
        assert parameters["sku"] == {"name": "B1", "tier": "Basic"}

    @pytest.mark.asyncio
    async def test_create_app_service_site_config(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        await remote.create_app_service("rg-a", "web-app", "/plan/id", "eastus", "python")

        (_, _, parameters), _ = clients.web.web_apps.begin_create_or_update.calls[0]
        assert parameters["server_farm_id"] == "/plan/id"
        assert parameters["site_config"]["linux_fx_version"] == "PYTHON|3.9"
        assert parameters["site_config"]["app_settings"] == [
            {"name": "WEBSITES_ENABLE_APP_SERVICE_STORAGE", "value": "false"}
        ]

    @pytest.mark.asyncio
    async def test_create_storage_account(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        await remote.create_storage_account("rg-a", "acct", "eastus", "Standard_LRS")

        (_, name, parameters), _ = clients.storage.storage_accounts.begin_create.calls[0]
        assert name == "acct"
        assert parameters["kind"] == "StorageV2"
        assert parameters["access_tier"] == "Hot"
        assert parameters["minimum_tls_version"] == "TLS1_2"
        assert parameters["sku"] == {"name": "Standard_LRS"}


class TestStorageKeys:
    """Tests for storage key lookup."""

    @pytest.mark.asyncio
    async def test_primary_key(self, remote: RemoteOperations) -> None:
        assert await remote.get_storage_account_keys("rg-a", "acct") == "primary-key"

    @pytest.mark.asyncio
    async def test_no_keys(self, remote: RemoteOperations, clients: RemoteClients) -> None:
        """An empty key list fails at once; it is not a transient condition."""
        clients.storage.storage_accounts.list_keys = AsyncCall(SimpleNamespace(keys=[]))

        with pytest.raises(RemoteOperationError, match="No storage account keys found"):
            await remote.get_storage_account_keys("rg-a", "acct")

        assert clients.storage.storage_accounts.list_keys.call_count == 1

    @pytest.mark.asyncio
    async def test_undefined_primary_key(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        clients.storage.storage_accounts.list_keys = AsyncCall(
            SimpleNamespace(keys=[SimpleNamespace(key_name="key1", value=None)])
        )

        with pytest.raises(RemoteOperationError, match="Primary storage account key"):
            await remote.get_storage_account_keys("rg-a", "acct")

    @pytest.mark.asyncio
    async def test_blob_service_client(self, remote: RemoteOperations) -> None:
        pytest.importorskip("azure.storage.blob")

        client = await remote.create_blob_service_client("rg-a", "acct")
        try:
            assert client.account_name == "acct"
            assert client.url.startswith("https://acct.blob.core.windows.net")
        finally:
            await client.close()


class TestConnectionProbe:
    """Tests for test_connection."""

    @pytest.mark.asyncio
    async def test_success(self, remote: RemoteOperations, clients: RemoteClients) -> None:
        result = await remote.test_connection()

        assert result.success
        assert result.error is None
        assert clients.resource.resource_groups.list.outcomes[0].reads == 1

    @pytest.mark.asyncio
    async def test_empty_subscription_is_success(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        clients.resource.resource_groups.list = SyncCall(AsyncPaged([]))
        assert (await remote.test_connection()).success

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        clients.resource.resource_groups.list = SyncCall(
            AsyncPaged(error=HttpError("AuthenticationFailed: invalid client secret", 401))
        )

        result = await remote.test_connection()

        assert not result.success
        assert "AuthenticationFailed" in result.error

    @pytest.mark.asyncio
    async def test_bypasses_executor(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        """The probe neither counts as a request nor retries."""
        clients.resource.resource_groups.list = SyncCall(
            AsyncPaged(error=ConnectionResetError("reset"))
        )

        await remote.test_connection()

        assert remote.get_statistics().request_count == 0
        assert clients.resource.resource_groups.list.call_count == 1


class TestStatistics:
    """Tests for request statistics through the façade."""

    @pytest.mark.asyncio
    async def test_one_request_per_operation(
        self, remote: RemoteOperations, clients: RemoteClients
    ) -> None:
        clients.compute.virtual_machines.get = AsyncCall(
            HttpError("ServiceUnavailable", 503), SimpleNamespace(name="vm1")
        )

        await remote.get_virtual_machine("rg-a", "vm1")
        await remote.get_app_service("rg-a", "site1")

        stats = remote.get_statistics()
        assert stats.request_count == 2
        assert stats.last_request_time > 0

    def test_executor_exposed(self, remote: RemoteOperations, executor: ResilientExecutor) -> None:
        assert remote.executor is executor
        assert remote.get_statistics().request_count == 0
