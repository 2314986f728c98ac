"""
Configuration profile store.

Holds named DeploymentSettings profiles. The ``default`` profile comes
from the environment; additional profiles can be loaded from a local
JSON/YAML document or fetched from a URL. A store is an ordinary value
created at start-up and passed to whatever needs it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
import yaml

from azure_deploy_mcp.config.settings import DeploymentSettings
from azure_deploy_mcp.errors import ConfigurationError, DeployError
from azure_deploy_mcp.telemetry.logger import get_logger

DEFAULT_PROFILE = "default"
DEFAULT_PROFILES_FILE = "config.json"

logger = get_logger(__name__)


def _parse_document(content: str, source: str) -> dict[str, Any]:
    """Parse a JSON or YAML profiles document."""
    try:
        if source.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to parse profiles document {source}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Profiles document {source} must be a mapping")
    return data


class ProfileStore:
    """Named configuration profiles with one active profile.

    Example:
        >>> store = ProfileStore.from_env()
        >>> store.load_file("config.json")
        >>> store.activate("staging")
        >>> settings = store.get()
    """

    def __init__(
        self,
        default: DeploymentSettings | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            default: Settings for the default profile
        """
        self._profiles: dict[str, DeploymentSettings] = {}
        self._active = DEFAULT_PROFILE
        if default is not None:
            self._profiles[DEFAULT_PROFILE] = default

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        profiles_file: str | Path | None = None,
    ) -> ProfileStore:
        """Create a store whose default profile is read from the environment.

        Also loads ``config.json`` from the working directory when present
        (or the explicit ``profiles_file``). A broken profiles document is
        logged and skipped; the environment profile must be valid.
        """
        store = cls(DeploymentSettings.from_env(environ))

        path = Path(profiles_file) if profiles_file else Path.cwd() / DEFAULT_PROFILES_FILE
        if path.is_file():
            try:
                store.load_file(path)
            except ConfigurationError as e:
                logger.warning("Failed to load profiles file", path=str(path), error=str(e))
        return store

    @property
    def active(self) -> str:
        """Name of the active profile."""
        return self._active

    @property
    def names(self) -> list[str]:
        """Names of every loaded profile."""
        return list(self._profiles)

    def get(self, name: str | None = None) -> DeploymentSettings:
        """Get settings for a profile (the active one by default).

        Raises:
            ConfigurationError: If the profile is unknown
        """
        key = name or self._active
        try:
            return self._profiles[key]
        except KeyError:
            raise ConfigurationError(f"Profile '{key}' not found", profile=key) from None

    def add(
        self, name: str, config: DeploymentSettings | Mapping[str, Any]
    ) -> DeploymentSettings:
        """Add or replace a profile, validating raw mappings."""
        settings = (
            config
            if isinstance(config, DeploymentSettings)
            else DeploymentSettings.load(config, profile=name)
        )
        self._profiles[name] = settings
        return settings

    def remove(self, name: str) -> bool:
        """Remove a profile; the default profile cannot be removed.

        Returns:
            True if a profile was removed
        """
        if name == DEFAULT_PROFILE:
            raise ConfigurationError("Cannot remove default profile", profile=name)
        if self._active == name:
            self._active = DEFAULT_PROFILE
        return self._profiles.pop(name, None) is not None

    def activate(self, name: str) -> None:
        """Make a profile the active one."""
        if name not in self._profiles:
            raise ConfigurationError(f"Profile '{name}' not found", profile=name)
        self._active = name

    def load_data(self, data: Mapping[str, Any]) -> list[str]:
        """Register every profile in a parsed profiles document.

        Entries without a name or config are skipped.

        Returns:
            Names of the profiles loaded
        """
        profiles = data.get("profiles")
        if not isinstance(profiles, list):
            raise ConfigurationError("Profiles document has no 'profiles' list")

        loaded: list[str] = []
        for entry in profiles:
            if not isinstance(entry, Mapping):
                continue
            name, config = entry.get("name"), entry.get("config")
            if not name or not isinstance(config, Mapping):
                continue
            self.add(str(name), config)
            loaded.append(str(name))
        return loaded

    def load_file(self, path: str | Path) -> list[str]:
        """Load profiles from a local JSON or YAML document."""
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read profiles file {path}: {e}") from e

        loaded = self.load_data(_parse_document(content, path.name))
        logger.info("Configuration profiles loaded", source=str(path), profiles=loaded)
        return loaded

    async def load_url(self, url: str, *, timeout: float = 10.0) -> list[str]:
        """Fetch and load profiles from a URL."""
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(url, timeout=timeout)
            except httpx.HTTPError as e:
                raise ConfigurationError(f"Failed to fetch profiles from {url}: {e}") from e

        if response.status_code != 200:
            raise ConfigurationError(
                f"Failed to fetch profiles from {url} (status {response.status_code})"
            )

        source = httpx.URL(url).path or url
        loaded = self.load_data(_parse_document(response.text, source))
        logger.info("Configuration profiles loaded", source=url, profiles=loaded)
        return loaded

    def validate(self, name: str | None = None) -> tuple[bool, str | None]:
        """Check that a profile exists and carries usable credentials.

        Returns:
            (valid, error message)
        """
        try:
            settings = self.get(name)
        except DeployError as e:
            return False, e.message

        if not all(
            (
                settings.subscription_id,
                settings.tenant_id,
                settings.client_id,
                settings.client_secret.get_secret_value(),
            )
        ):
            return False, "Missing required Azure credentials"
        return True, None

    def summary(self) -> dict[str, Any]:
        """Describe the active profile without sensitive values."""
        return {
            "active_profile": self._active,
            "available_profiles": self.names,
            **self.get().summary(),
        }
