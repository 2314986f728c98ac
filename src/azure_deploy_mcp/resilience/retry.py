"""
Retry policy with bounded exponential backoff.

The backoff is deterministic: delay(attempt) = min(base * 2**(attempt-1), max).
The retry loop lives in `run_with_retry`, which knows nothing about rate
limiting or logging; the executor layers those on top.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from azure_deploy_mcp.errors import (
    DEFAULT_RETRYABLE_SIGNATURES,
    ConfigurationError,
    FailureClass,
    classify_failure,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration.

    Attributes:
        max_attempts: Retries after the first try (0 = try once)
        base_delay_ms: Delay before the first retry in milliseconds
        max_delay_ms: Upper bound on any single delay in milliseconds
        retryable_signatures: Markers that classify an error as transient
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    retryable_signatures: frozenset[str] = field(
        default_factory=lambda: DEFAULT_RETRYABLE_SIGNATURES
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ConfigurationError(
                f"max_attempts must be >= 0, got {self.max_attempts}"
            )
        if self.base_delay_ms < 0:
            raise ConfigurationError(
                f"base_delay_ms must be >= 0, got {self.base_delay_ms}"
            )
        if self.base_delay_ms > self.max_delay_ms:
            raise ConfigurationError(
                f"base_delay_ms ({self.base_delay_ms}) must not exceed "
                f"max_delay_ms ({self.max_delay_ms})"
            )
        if not isinstance(self.retryable_signatures, frozenset):
            object.__setattr__(
                self, "retryable_signatures", frozenset(self.retryable_signatures)
            )

    @property
    def total_attempts(self) -> int:
        """Upper bound on how many times an operation runs."""
        return self.max_attempts + 1

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Create a policy that tries exactly once."""
        return cls(max_attempts=0)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> RetryPolicy:
        """Create a policy from a configuration mapping.

        Accepts snake_case keys as well as the camelCase keys used by
        JSON profile documents (maxRetries, baseDelay, maxDelay,
        retryableErrors).

        Args:
            data: Retry configuration mapping

        Returns:
            RetryPolicy instance
        """
        if not data:
            return cls()

        def pick(*names: str) -> Any:
            for name in names:
                if name in data and data[name] is not None:
                    return data[name]
            return None

        changes: dict[str, Any] = {}
        if (value := pick("max_attempts", "max_retries", "maxRetries")) is not None:
            changes["max_attempts"] = int(value)
        if (value := pick("base_delay_ms", "baseDelay")) is not None:
            changes["base_delay_ms"] = int(value)
        if (value := pick("max_delay_ms", "maxDelay")) is not None:
            changes["max_delay_ms"] = int(value)
        if (value := pick("retryable_signatures", "retryableErrors")) is not None:
            changes["retryable_signatures"] = frozenset(value)
        return cls(**changes)

    def with_overrides(self, **changes: Any) -> RetryPolicy:
        """Return a copy with some fields replaced (validated again)."""
        return replace(self, **changes)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the wait after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-based)

        Returns:
            Delay in seconds
        """
        exponent = max(attempt - 1, 0)
        # Cap the exponent so huge attempt numbers cannot overflow
        if exponent > 62:
            return self.max_delay_ms / 1000.0
        delay_ms = min(self.base_delay_ms * (2**exponent), self.max_delay_ms)
        return delay_ms / 1000.0

    def classify(self, error: BaseException) -> FailureClass:
        """Classify an error against this policy's signatures."""
        return classify_failure(error, self.retryable_signatures)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Check if a failed attempt should be followed by another.

        Args:
            error: The exception that occurred
            attempt: The attempt that failed (1-based)

        Returns:
            True if another attempt is allowed and the error is transient
        """
        if attempt > self.max_attempts:
            return False
        return self.classify(error) is FailureClass.RETRYABLE


@dataclass
class CallOutcome(Generic[T]):
    """Result of one logical call.

    Attributes:
        success: Whether the operation eventually succeeded
        value: The result value (if success)
        error: The last error (if failed)
        attempts: Number of attempts made
        delays: Backoff delays slept between attempts, in seconds
        elapsed_ms: Wall time of the whole call in milliseconds
    """

    success: bool
    value: T | None = None
    error: Exception | None = None
    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def retried(self) -> bool:
        return self.attempts > 1

    @property
    def total_delay_ms(self) -> float:
        return sum(self.delays) * 1000

    def unwrap(self) -> T:
        """Return the value, or re-raise the last error unchanged."""
        if self.success:
            return self.value  # type: ignore[return-value]
        if self.error is None:
            raise RuntimeError("Call failed without recording an error")
        raise self.error


async def invoke(operation: Callable[[], Any]) -> Any:
    """Run a zero-argument operation that may or may not be async.

    An exception raised before an awaitable is produced surfaces the same
    way as one raised while awaiting it.
    """
    result = operation()
    if inspect.isawaitable(result):
        return await result
    return result


async def run_with_retry(
    operation: Callable[[], Awaitable[T] | T],
    policy: RetryPolicy,
    *,
    on_attempt: Callable[[int], None] | None = None,
    on_failure: Callable[[int, Exception, FailureClass], None] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CallOutcome[T]:
    """Execute an operation under a retry policy.

    Never raises the operation's error; the outcome carries it. Only
    ``Exception`` subclasses are caught, so cancellation propagates and
    interrupts a pending backoff sleep.

    Args:
        operation: Zero-argument callable returning a value or awaitable
        policy: Retry policy
        on_attempt: Called with the attempt number before each try
        on_failure: Called with (attempt, error, classification) after a failure
        on_retry: Called with (attempt, error, delay_seconds) before sleeping
        sleep: Sleep function (injectable for tests)

    Returns:
        CallOutcome with success status and value/error
    """
    start = time.monotonic()
    delays: list[float] = []
    attempt = 0

    while True:
        attempt += 1
        if on_attempt:
            on_attempt(attempt)

        try:
            value = await invoke(operation)
        except Exception as e:
            classification = policy.classify(e)
            if on_failure:
                on_failure(attempt, e, classification)

            if attempt > policy.max_attempts or classification is FailureClass.FATAL:
                return CallOutcome(
                    success=False,
                    error=e,
                    attempts=attempt,
                    delays=delays,
                    elapsed_ms=(time.monotonic() - start) * 1000,
                )

            delay = policy.calculate_delay(attempt)
            if on_retry:
                on_retry(attempt, e, delay)
            delays.append(delay)
            await sleep(delay)
            continue

        return CallOutcome(
            success=True,
            value=value,
            attempts=attempt,
            delays=delays,
            elapsed_ms=(time.monotonic() - start) * 1000,
        )


async def with_retry(
    operation: Callable[[], Awaitable[T] | T],
    policy: RetryPolicy | None = None,
) -> T:
    """Execute an operation with retry, raising the last error on failure."""
    outcome = await run_with_retry(operation, policy or RetryPolicy())
    return outcome.unwrap()
