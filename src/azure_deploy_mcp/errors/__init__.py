"""
Error hierarchy for azure-deploy-mcp.

Provides structured error types and the retryable/fatal failure classifier.
"""

from azure_deploy_mcp.errors.base import (
    CallTimeoutError,
    ConfigurationError,
    DeployError,
    ErrorContext,
    RemoteOperationError,
    ValidationError,
)
from azure_deploy_mcp.errors.classification import (
    DEFAULT_RETRYABLE_SIGNATURES,
    STATUS_SIGNATURES,
    FailureClass,
    classify_failure,
    failure_signatures,
    is_retryable_failure,
    matches_signature,
)

__all__ = [
    "DEFAULT_RETRYABLE_SIGNATURES",
    # Base errors
    "CallTimeoutError",
    "ConfigurationError",
    "DeployError",
    "ErrorContext",
    # Classification
    "FailureClass",
    "RemoteOperationError",
    "STATUS_SIGNATURES",
    "ValidationError",
    "classify_failure",
    "failure_signatures",
    "is_retryable_failure",
    "matches_signature",
]
