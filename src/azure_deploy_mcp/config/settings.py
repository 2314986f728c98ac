"""
Deployment settings models.

These Pydantic models describe one configuration profile: the service
principal used to authenticate, deployment defaults, and the resilience
block that drives the executor. Keys may be given in snake_case or in the
camelCase used by JSON profile documents.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from azure_deploy_mcp.errors import DEFAULT_RETRYABLE_SIGNATURES, ConfigurationError
from azure_deploy_mcp.resilience.rate_limiter import DEFAULT_MIN_INTERVAL_MS
from azure_deploy_mcp.resilience.retry import RetryPolicy

_UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

Region = Literal[
    "eastus", "westus", "westus2", "eastus2", "centralus", "northcentralus",
    "southcentralus", "westcentralus", "canadacentral", "canadaeast",
    "brazilsouth", "northeurope", "westeurope", "uksouth", "ukwest",
    "francecentral", "germanywestcentral", "switzerlandnorth", "norwayeast",
    "japaneast", "japanwest", "southeastasia", "eastasia", "australiaeast",
    "australiasoutheast", "centralindia", "southindia", "westindia",
    "koreacentral", "koreasouth", "southafricanorth", "uaenorth",
]  # fmt: skip

CloudEnvironment = Literal[
    "AzureCloud", "AzureChinaCloud", "AzureUSGovernment", "AzureGermanCloud"
]

AppServicePlanSku = Literal[
    "F1", "D1", "B1", "B2", "B3", "S1", "S2", "S3", "P1V2", "P2V2", "P3V2"
]

StorageSku = Literal["Standard_LRS", "Standard_GRS", "Standard_RAGRS", "Premium_LRS"]

# Environment variable -> settings field
_ENV_FIELDS: dict[str, str] = {
    "AZURE_SUBSCRIPTION_ID": "subscription_id",
    "AZURE_TENANT_ID": "tenant_id",
    "AZURE_CLIENT_ID": "client_id",
    "AZURE_CLIENT_SECRET": "client_secret",
    "AZURE_DEFAULT_REGION": "default_region",
    "AZURE_RESOURCE_GROUP_PREFIX": "resource_group_prefix",
    "AZURE_ENVIRONMENT": "environment",
    "AZURE_AUTHORITY_HOST": "authority_host",
    "AZURE_DEFAULT_VM_SIZE": "default_vm_size",
    "AZURE_DEFAULT_APP_SERVICE_PLAN": "default_app_service_plan",
    "AZURE_DEFAULT_STORAGE_SKU": "default_storage_sku",
    "AZURE_MIN_REQUEST_INTERVAL_MS": "min_interval_ms",
    "AZURE_CALL_TIMEOUT_SECS": "call_timeout",
}

_ENV_RETRY_FIELDS: dict[str, str] = {
    "AZURE_MAX_RETRIES": "max_retries",
    "AZURE_RETRY_BASE_DELAY_MS": "base_delay_ms",
    "AZURE_RETRY_MAX_DELAY_MS": "max_delay_ms",
}


class RetrySettings(BaseModel):
    """Retry block of a profile."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    max_retries: int = Field(default=3, ge=0, alias="maxRetries")
    base_delay_ms: int = Field(default=1000, ge=0, alias="baseDelay")
    max_delay_ms: int = Field(default=30000, ge=0, alias="maxDelay")
    retryable_errors: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_RETRYABLE_SIGNATURES),
        alias="retryableErrors",
        description="Substrings marking an error as transient",
    )

    @model_validator(mode="after")
    def _check_delays(self) -> RetrySettings:
        if self.base_delay_ms > self.max_delay_ms:
            raise ValueError("baseDelay must not exceed maxDelay")
        return self

    def to_policy(self) -> RetryPolicy:
        """Build the immutable retry policy."""
        return RetryPolicy(
            max_attempts=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            retryable_signatures=frozenset(self.retryable_errors),
        )


class DeploymentSettings(BaseModel):
    """Validated configuration for one profile.

    Example:
        >>> settings = DeploymentSettings.from_env()
        >>> executor = ResilientExecutor.from_settings(settings)
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    subscription_id: str = Field(alias="subscriptionId", pattern=_UUID_PATTERN)
    tenant_id: str = Field(alias="tenantId", pattern=_UUID_PATTERN)
    client_id: str = Field(alias="clientId", pattern=_UUID_PATTERN)
    client_secret: SecretStr = Field(alias="clientSecret")

    default_region: Region = Field(default="eastus", alias="defaultRegion")
    resource_group_prefix: str = Field(
        default="mcp-rg", alias="resourceGroupPrefix", pattern=r"^[a-zA-Z0-9_-]+$"
    )
    environment: CloudEnvironment = "AzureCloud"
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        alias="authorityHost",
        pattern=r"^https?://\S+$",
    )
    default_vm_size: str = Field(default="Standard_B1s", alias="defaultVmSize")
    default_app_service_plan: AppServicePlanSku = Field(
        default="F1", alias="defaultAppServicePlan"
    )
    default_storage_sku: StorageSku = Field(
        default="Standard_LRS", alias="defaultStorageSku"
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    min_interval_ms: int = Field(
        default=DEFAULT_MIN_INTERVAL_MS, ge=0, alias="minIntervalMs"
    )
    call_timeout: float | None = Field(default=None, gt=0, alias="callTimeout")

    @field_validator("client_secret")
    @classmethod
    def _secret_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("client secret cannot be empty")
        return value

    @classmethod
    def load(
        cls, data: Mapping[str, Any], *, profile: str | None = None
    ) -> DeploymentSettings:
        """Validate a raw mapping, raising ConfigurationError on failure.

        Args:
            data: Raw settings (snake_case or camelCase keys)
            profile: Profile name for error messages

        Returns:
            DeploymentSettings instance
        """
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as e:
            messages = [
                f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
                for err in e.errors()
            ]
            where = f" for profile '{profile}'" if profile else ""
            raise ConfigurationError(
                f"Configuration validation failed{where}: {'; '.join(messages)}",
                profile=profile,
                errors=messages,
            ) from None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> DeploymentSettings:
        """Read settings from AZURE_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            DeploymentSettings instance

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        env = os.environ if environ is None else environ
        raw: dict[str, Any] = {}
        for var, name in _ENV_FIELDS.items():
            value = env.get(var)
            if value:
                raw[name] = value

        retry: dict[str, Any] = {}
        for var, name in _ENV_RETRY_FIELDS.items():
            value = env.get(var)
            if value:
                retry[name] = value
        if retry:
            raw["retry"] = retry

        return cls.load(raw, profile="default")

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy for this profile."""
        return self.retry.to_policy()

    def summary(self) -> dict[str, Any]:
        """Describe the settings without sensitive values."""
        return {
            "subscription_id": self.subscription_id,
            "tenant_id": self.tenant_id,
            "default_region": self.default_region,
            "resource_group_prefix": self.resource_group_prefix,
            "environment": self.environment,
            "default_vm_size": self.default_vm_size,
            "default_app_service_plan": self.default_app_service_plan,
            "default_storage_sku": self.default_storage_sku,
            "max_retries": self.retry.max_retries,
            "min_interval_ms": self.min_interval_ms,
            "client_id_present": bool(self.client_id),
            "client_secret_present": bool(self.client_secret.get_secret_value()),
        }
