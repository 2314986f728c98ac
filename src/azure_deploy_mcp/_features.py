"""Runtime feature detection for optional extras.

The Azure SDK packages live in the ``azure`` extra; the resilience,
configuration and tool layers work without them.
"""
from __future__ import annotations


def _check_import(module_name: str) -> bool:
    """Check if a module is importable."""
    try:
        __import__(module_name)
        return True
    except ImportError:
        return False


HAS_AZURE: bool = _check_import("azure.identity") and _check_import("azure.mgmt.resource")
HAS_AZURE_BLOB: bool = _check_import("azure.storage.blob")


# Map pip package names to import module names (when they differ)
_PACKAGE_TO_MODULE: dict[str, str] = {
    "azure-identity": "azure.identity",
    "azure-mgmt-resource": "azure.mgmt.resource",
    "azure-mgmt-compute": "azure.mgmt.compute",
    "azure-mgmt-web": "azure.mgmt.web",
    "azure-mgmt-storage": "azure.mgmt.storage",
    "azure-storage-blob": "azure.storage.blob",
}


def require_extra(extra_name: str, package_name: str) -> None:
    """Raise ImportError with installation hint if extra is not available.

    Args:
        extra_name: Name of the pip extra (e.g., 'azure')
        package_name: Name of the required package (e.g., 'azure-identity')

    Raises:
        ImportError: With installation instructions when package is not available.
    """
    module_name = _PACKAGE_TO_MODULE.get(package_name, package_name)
    if _check_import(module_name):
        return
    raise ImportError(
        f"The '{extra_name}' extra is required for this feature. "
        f"Install it with: pip install azure-deploy-mcp[{extra_name}]"
    )
