"""
Base error classes for azure-deploy-mcp.

Provides a layered error hierarchy:
- DeployError: Base class for all library errors
- ConfigurationError: Settings loading/validation errors
- ValidationError: Tool parameter validation errors
- RemoteOperationError: Remote responses the service cannot use
- CallTimeoutError: A logical call exceeded its deadline

Errors raised by the remote management APIs themselves are never wrapped
in these types; they reach callers unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    field_path: str | None = None
    """Path to the problematic field (e.g., 'profiles[1].config.tenant_id')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'config', 'validation', 'remote')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class DeployError(Exception):
    """Base class for all azure-deploy-mcp errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> DeployError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ConfigurationError(DeployError):
    """Error while loading or validating deployment settings.

    Raised when:
    - Required AZURE_* variables are missing
    - A value fails validation (UUID, region, SKU...)
    - A profiles document cannot be read or parsed
    - A profile name is unknown
    """

    error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        profile: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="config")
        if profile:
            ctx.details["profile"] = profile
        if errors:
            ctx.details["errors"] = errors
        super().__init__(message, ctx)
        self.profile = profile
        self.errors = errors or []


class ValidationError(DeployError):
    """Validation error for tool parameters."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        super().__init__(message, ctx)
        self.field = field


class RemoteOperationError(DeployError):
    """A remote call succeeded but returned something unusable.

    Example: a storage account that reports no access keys.
    """

    error_code = "REMOTE_ERROR"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        operation: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="remote")
        if operation:
            ctx.details["operation"] = operation
        if resource_id:
            ctx.details["resource_id"] = resource_id
        super().__init__(message, ctx)
        self.operation = operation
        self.resource_id = resource_id


class CallTimeoutError(DeployError, TimeoutError):
    """A logical call (all attempts and waits included) ran past its deadline."""

    error_code = "TIMEOUT"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        timeout: float | None = None,
    ) -> None:
        ctx = ErrorContext(source="executor")
        if operation:
            ctx.details["operation"] = operation
        if timeout is not None:
            ctx.details["timeout"] = timeout
        super().__init__(message, ctx)
        self.operation = operation
        self.timeout = timeout
