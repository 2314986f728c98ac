"""
Resilient executor combining rate limiting and retry.

Every remote call goes through `ResilientExecutor.execute_with_retry`:
one rate-limit admission per logical call, then the retry loop, with each
attempt, backoff and final outcome logged under a per-call operation id.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from azure_deploy_mcp.errors import CallTimeoutError, FailureClass
from azure_deploy_mcp.resilience.rate_limiter import (
    DEFAULT_MIN_INTERVAL_MS,
    ExecutorStatistics,
    MinIntervalRateLimiter,
)
from azure_deploy_mcp.resilience.retry import CallOutcome, RetryPolicy, run_with_retry
from azure_deploy_mcp.telemetry.logger import DeployLogger, get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from azure_deploy_mcp.config.settings import DeploymentSettings

T = TypeVar("T")

# Emit a rate-limit status line every this many requests
_STATUS_LOG_EVERY = 100


@dataclass
class CallContext:
    """Per-call correlation data, never shared between calls.

    Attributes:
        operation_id: Fresh identifier tying together the log lines of one call
        label: Operation name
        metadata: Free-form caller fields (resource id, correlation id...)
        attempt: Current attempt number, starting at 1
    """

    label: str = "remote_operation"
    metadata: dict[str, Any] = field(default_factory=dict)
    operation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempt: int = 1

    @classmethod
    def create(cls, label: str | None = None, **metadata: Any) -> CallContext:
        """Create a context for one logical call."""
        return cls(label=label or "remote_operation", metadata=metadata)

    @classmethod
    def coerce(
        cls,
        context: CallContext | Mapping[str, Any] | None,
        metadata: Mapping[str, Any] | None = None,
    ) -> CallContext:
        """Build a fresh context from a mapping or an existing context.

        An ``operation`` key in a mapping becomes the label.
        """
        extra = dict(metadata or {})
        if isinstance(context, CallContext):
            return cls(label=context.label, metadata={**context.metadata, **extra})
        fields = {**(context or {}), **extra}
        label = fields.pop("operation", None)
        return cls.create(label, **fields)

    def log_fields(self, **kwargs: Any) -> dict[str, Any]:
        """Fields attached to every log line of this call."""
        return {
            **self.metadata,
            "operation": self.label,
            "operation_id": self.operation_id,
            **kwargs,
        }


class ResilientExecutor:
    """Executor combining rate limiting and bounded retry.

    Executes operations with:
    1. Minimum spacing between logical calls
    2. Retry with exponential backoff on transient failures
    3. An optional deadline over the whole call

    Terminal failures re-raise the last error unchanged.

    Example:
        >>> executor = ResilientExecutor(RetryPolicy(max_attempts=3))
        >>> vm = await executor.execute_with_retry(
        ...     lambda: compute.virtual_machines.get("rg", "vm"),
        ...     operation="get_virtual_machine",
        ... )
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        call_timeout: float | None = None,
        logger: DeployLogger | None = None,
        rate_limiter: MinIntervalRateLimiter | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize resilient executor.

        Args:
            policy: Retry policy
            min_interval_ms: Spacing between logical calls
            call_timeout: Deadline in seconds over a whole logical call
            logger: Logging sink (default: module logger)
            rate_limiter: Pre-built limiter (overrides min_interval_ms)
            sleep: Backoff sleep function (injectable for tests)
        """
        if call_timeout is not None and call_timeout <= 0:
            raise ValueError(f"call_timeout must be positive, got {call_timeout}")
        self._policy = policy or RetryPolicy()
        self._rate_limiter = rate_limiter or MinIntervalRateLimiter(min_interval_ms)
        self._call_timeout = call_timeout
        self._logger = logger or get_logger(__name__)
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: DeploymentSettings,
        *,
        logger: DeployLogger | None = None,
    ) -> ResilientExecutor:
        """Create an executor from deployment settings."""
        return cls(
            settings.retry_policy(),
            min_interval_ms=settings.min_interval_ms,
            call_timeout=settings.call_timeout,
            logger=logger,
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def rate_limiter(self) -> MinIntervalRateLimiter:
        return self._rate_limiter

    def get_statistics(self) -> ExecutorStatistics:
        """Get request statistics for external monitoring."""
        return self._rate_limiter.snapshot()

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T] | T],
        context: CallContext | Mapping[str, Any] | None = None,
        **metadata: Any,
    ) -> T:
        """Execute an operation with rate limiting and retry.

        Args:
            operation: Zero-argument callable performing one remote call
            context: Call context or mapping of log metadata
            **metadata: Extra log metadata

        Returns:
            Operation result

        Raises:
            Exception: The last error raised by the operation, unchanged
            CallTimeoutError: If the call deadline expires
        """
        outcome = await self.execute_with_outcome(operation, context, **metadata)
        return outcome.unwrap()

    async def execute_with_outcome(
        self,
        operation: Callable[[], Awaitable[T] | T],
        context: CallContext | Mapping[str, Any] | None = None,
        **metadata: Any,
    ) -> CallOutcome[T]:
        """Execute and return the outcome instead of raising.

        Args:
            operation: Zero-argument callable performing one remote call
            context: Call context or mapping of log metadata
            **metadata: Extra log metadata

        Returns:
            CallOutcome with value or last error and attempt count
        """
        ctx = CallContext.coerce(context, metadata)
        start = time.monotonic()

        if self._call_timeout is None:
            return await self._execute(operation, ctx, start)

        try:
            return await asyncio.wait_for(
                self._execute(operation, ctx, start), self._call_timeout
            )
        except asyncio.TimeoutError:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._logger.error(
                "Remote operation timed out",
                **ctx.log_fields(
                    attempt=ctx.attempt,
                    elapsed_ms=round(elapsed_ms, 1),
                    timeout=self._call_timeout,
                ),
            )
            return CallOutcome(
                success=False,
                error=CallTimeoutError(
                    f"{ctx.label} did not complete within {self._call_timeout}s",
                    operation=ctx.label,
                    timeout=self._call_timeout,
                ),
                attempts=ctx.attempt,
                elapsed_ms=elapsed_ms,
            )

    async def _execute(
        self,
        operation: Callable[[], Awaitable[T] | T],
        ctx: CallContext,
        start: float,
    ) -> CallOutcome[T]:
        """Admit the call through the rate limiter, then run the retry loop.

        Every log line of the call carries the operation id, the attempt
        number and the elapsed time since the call started.
        """

        def elapsed() -> float:
            return round((time.monotonic() - start) * 1000, 1)

        waited = await self._rate_limiter.acquire()
        if waited > 0:
            self._logger.debug(
                "Rate limit delay applied",
                **ctx.log_fields(
                    attempt=ctx.attempt,
                    wait_ms=round(waited * 1000, 1),
                    elapsed_ms=elapsed(),
                ),
            )
        stats = self._rate_limiter.snapshot()
        if stats.request_count % _STATUS_LOG_EVERY == 0:
            self._logger.debug(
                "Request rate limiting status",
                total_requests=stats.request_count,
                min_interval_ms=self._rate_limiter.min_interval_ms,
            )

        max_attempts = self._policy.max_attempts

        def on_attempt(attempt: int) -> None:
            ctx.attempt = attempt
            self._logger.debug(
                "Executing remote operation",
                **ctx.log_fields(
                    attempt=attempt,
                    max_retries=max_attempts,
                    elapsed_ms=elapsed(),
                ),
            )

        def on_failure(attempt: int, error: Exception, kind: FailureClass) -> None:
            self._logger.warning(
                "Remote operation failed",
                **ctx.log_fields(
                    attempt=attempt,
                    error=str(error),
                    error_type=type(error).__name__,
                    failure_class=kind.value,
                    elapsed_ms=elapsed(),
                ),
            )

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            self._logger.debug(
                "Retrying remote operation after delay",
                **ctx.log_fields(
                    attempt=attempt,
                    delay_ms=round(delay * 1000, 1),
                    next_attempt=attempt + 1,
                    elapsed_ms=elapsed(),
                ),
            )

        outcome: CallOutcome[T] = await run_with_retry(
            operation,
            self._policy,
            on_attempt=on_attempt,
            on_failure=on_failure,
            on_retry=on_retry,
            sleep=self._sleep,
        )

        if outcome.success:
            self._logger.info(
                "Remote operation completed successfully",
                **ctx.log_fields(attempt=outcome.attempts, elapsed_ms=elapsed()),
            )
        else:
            self._logger.error(
                "Remote operation failed after all retries"
                if outcome.retried
                else "Remote operation failed",
                **ctx.log_fields(
                    attempt=outcome.attempts,
                    elapsed_ms=elapsed(),
                    final_error=str(outcome.error),
                ),
            )
        return outcome
