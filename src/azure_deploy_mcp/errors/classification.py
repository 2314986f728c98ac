"""
Failure classification for remote management calls.

Decides whether a failed attempt is worth repeating. An attempt is
retryable exactly when one of the configured retryable signatures occurs in
the error. Structured signals (HTTP status codes, transport exception
types) are translated into the signature names they stand for, so a status
503 matches ``ServiceUnavailable`` and a refused connection matches
``ECONNREFUSED``; they never bypass the configured set.
"""

from __future__ import annotations

import socket
from collections.abc import Iterable
from enum import Enum


class FailureClass(str, Enum):
    """Outcome of classifying a failed attempt."""

    RETRYABLE = "retryable"
    """Transient failure; repeat after backoff."""

    FATAL = "fatal"
    """Permanent or unknown failure; surface immediately."""


# Default markers of transient failures
DEFAULT_RETRYABLE_SIGNATURES: frozenset[str] = frozenset(
    {
        "ETIMEDOUT",
        "ECONNRESET",
        "ENOTFOUND",
        "ECONNREFUSED",
        "ThrottledRequest",
        "TooManyRequests",
        "InternalServerError",
        "ServiceUnavailable",
        "RequestTimeout",
    }
)

# HTTP status -> signature names it stands for
STATUS_SIGNATURES: dict[int, tuple[str, ...]] = {
    408: ("RequestTimeout",),
    429: ("TooManyRequests", "ThrottledRequest"),
    500: ("InternalServerError",),
    502: ("BadGateway", "ServiceUnavailable"),
    503: ("ServiceUnavailable",),
    504: ("GatewayTimeout", "RequestTimeout"),
}

# Transport exception type -> signature names; first match wins
_TRANSPORT_SIGNATURES: tuple[tuple[type[BaseException], tuple[str, ...]], ...] = (
    (ConnectionRefusedError, ("ECONNREFUSED",)),
    (ConnectionResetError, ("ECONNRESET",)),
    (ConnectionAbortedError, ("ECONNRESET",)),
    (ConnectionError, ("ECONNRESET",)),
    (TimeoutError, ("ETIMEDOUT",)),
    (socket.gaierror, ("ENOTFOUND",)),
)

# azure-core transport failures, matched by name so the classifier works
# without the azure extra installed
_AZURE_TRANSPORT_SIGNATURES: dict[str, tuple[str, ...]] = {
    "ServiceRequestTimeoutError": ("ETIMEDOUT",),
    "ServiceResponseTimeoutError": ("ETIMEDOUT",),
    "ServiceRequestError": ("ECONNREFUSED",),
    "ServiceResponseError": ("ECONNRESET",),
}


def _status_code(error: BaseException) -> int | None:
    """Extract an HTTP status code if the error carries one."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def failure_signatures(error: BaseException) -> list[str]:
    """Signature names implied by an error's status code or transport type.

    Args:
        error: The exception to inspect

    Returns:
        Signature names, empty if the error carries no structured signal
    """
    names: list[str] = []
    status = _status_code(error)
    if status is not None:
        names.extend(STATUS_SIGNATURES.get(status, ()))

    for error_type, signatures in _TRANSPORT_SIGNATURES:
        if isinstance(error, error_type):
            names.extend(signatures)
            break
    else:
        for cls in type(error).__mro__:
            if cls.__name__ in _AZURE_TRANSPORT_SIGNATURES:
                names.extend(_AZURE_TRANSPORT_SIGNATURES[cls.__name__])
                break
    return names


def matches_signature(error: BaseException, signatures: Iterable[str]) -> bool:
    """Check an error against signatures.

    The message, type name, error codes and the signature names implied by
    the status code or transport type are searched, case-insensitively, for
    each signature as a substring.

    Args:
        error: The exception to inspect
        signatures: Markers of transient failures

    Returns:
        True if any signature occurs in the error's text
    """
    haystacks = [str(error).lower(), type(error).__name__.lower()]
    codes = [
        getattr(error, "error_code", None),
        getattr(error, "code", None),
        # azure-core keeps the OData error body on `.error`
        getattr(getattr(error, "error", None), "code", None),
    ]
    haystacks.extend(code.lower() for code in codes if isinstance(code, str))
    haystacks.extend(name.lower() for name in failure_signatures(error))

    for signature in signatures:
        needle = signature.lower()
        if needle and any(needle in h for h in haystacks):
            return True
    return False


def classify_failure(
    error: BaseException,
    signatures: Iterable[str] = DEFAULT_RETRYABLE_SIGNATURES,
) -> FailureClass:
    """Classify a failed attempt as retryable or fatal.

    Retryable iff a configured signature matches the error's message, type
    name, error code, or the signature names of its HTTP status or
    transport type. Everything else is fatal.

    Args:
        error: The exception raised by the attempt
        signatures: Configured retryable signatures

    Returns:
        FailureClass for the error
    """
    if matches_signature(error, signatures):
        return FailureClass.RETRYABLE
    return FailureClass.FATAL


def is_retryable_failure(
    error: BaseException,
    signatures: Iterable[str] = DEFAULT_RETRYABLE_SIGNATURES,
) -> bool:
    """Check if an error should trigger a retry."""
    return classify_failure(error, signatures) is FailureClass.RETRYABLE
