"""
Configuration for azure-deploy-mcp.

Settings are explicit values: build a ProfileStore (or a single
DeploymentSettings) at start-up and pass it down.
"""

from azure_deploy_mcp.config.profiles import DEFAULT_PROFILE, ProfileStore
from azure_deploy_mcp.config.settings import DeploymentSettings, RetrySettings

__all__ = [
    "DEFAULT_PROFILE",
    "DeploymentSettings",
    "ProfileStore",
    "RetrySettings",
]
