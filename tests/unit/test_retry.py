"""Tests for the retry policy and retry combinator."""

import asyncio

import pytest

from azure_deploy_mcp.errors import ConfigurationError, FailureClass
from azure_deploy_mcp.resilience import CallOutcome, RetryPolicy, run_with_retry, with_retry


class Counter:
    """Operation failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception, value: object = 42) -> None:
        self.failures = failures
        self.error = error
        self.value = value
        self.attempts = 0

    async def __call__(self) -> object:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return self.value


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self) -> None:
        """Test default policy values."""
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay_ms == 1000
        assert policy.max_delay_ms == 30000
        assert policy.total_attempts == 4
        assert "ServiceUnavailable" in policy.retryable_signatures

    def test_no_retry(self) -> None:
        policy = RetryPolicy.no_retry()
        assert policy.max_attempts == 0
        assert policy.total_attempts == 1

    def test_signatures_coerced_to_frozenset(self) -> None:
        policy = RetryPolicy(retryable_signatures=["ServiceUnavailable"])
        assert policy.retryable_signatures == frozenset({"ServiceUnavailable"})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": -1},
            {"base_delay_ms": -5},
            {"base_delay_ms": 5000, "max_delay_ms": 1000},
        ],
    )
    def test_invalid_policy_rejected(self, kwargs: dict) -> None:
        """Test that broken invariants raise at construction."""
        with pytest.raises(ConfigurationError):
            RetryPolicy(**kwargs)

    def test_from_mapping_camel_case(self) -> None:
        """Test building a policy from a JSON profile block."""
        policy = RetryPolicy.from_mapping(
            {
                "maxRetries": 5,
                "baseDelay": 200,
                "maxDelay": 800,
                "retryableErrors": ["Throttled"],
            }
        )
        assert policy.max_attempts == 5
        assert policy.base_delay_ms == 200
        assert policy.max_delay_ms == 800
        assert policy.retryable_signatures == frozenset({"Throttled"})

    def test_from_mapping_empty(self) -> None:
        assert RetryPolicy.from_mapping(None) == RetryPolicy()

    def test_with_overrides_revalidates(self) -> None:
        policy = RetryPolicy()
        assert policy.with_overrides(max_attempts=1).max_attempts == 1
        with pytest.raises(ConfigurationError):
            policy.with_overrides(max_delay_ms=10)

    def test_calculate_delay_exponential(self) -> None:
        """Test exponential backoff calculation."""
        policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=30000)
        assert policy.calculate_delay(1) == 1.0
        assert policy.calculate_delay(2) == 2.0
        assert policy.calculate_delay(3) == 4.0
        assert policy.calculate_delay(5) == 16.0

    def test_calculate_delay_ceiling(self) -> None:
        """Test that delays never exceed the maximum."""
        policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=5000)
        delays = [policy.calculate_delay(a) for a in range(1, 200)]
        assert max(delays) == 5.0
        assert delays == sorted(delays)
        assert policy.calculate_delay(10_000) == 5.0

    def test_should_retry(self) -> None:
        policy = RetryPolicy(max_attempts=2, retryable_signatures={"ServiceUnavailable"})
        transient = RuntimeError("ServiceUnavailable: try again")
        assert policy.should_retry(transient, 1)
        assert policy.should_retry(transient, 2)
        assert not policy.should_retry(transient, 3)
        assert not policy.should_retry(RuntimeError("Bad request"), 1)


class TestRunWithRetry:
    """Tests for the retry combinator."""

    @pytest.mark.asyncio
    async def test_transient_then_success(self, sleeps, record_sleep) -> None:
        """Three ServiceUnavailable failures, then 42 on the fourth attempt."""
        policy = RetryPolicy(
            max_attempts=3,
            base_delay_ms=1000,
            max_delay_ms=30000,
            retryable_signatures={"ServiceUnavailable"},
        )
        operation = Counter(3, RuntimeError("ServiceUnavailable: try again"))

        outcome = await run_with_retry(operation, policy, sleep=record_sleep)

        assert outcome.success
        assert outcome.value == 42
        assert outcome.attempts == 4
        assert outcome.delays == [1.0, 2.0, 4.0]
        assert sleeps == [1.0, 2.0, 4.0]
        assert outcome.total_delay_ms == 7000

    @pytest.mark.asyncio
    async def test_fatal_error_attempted_once(self, sleeps, record_sleep) -> None:
        """An unrecognized error fails fast with its message intact."""
        policy = RetryPolicy(max_attempts=3, retryable_signatures={"ServiceUnavailable"})
        error = ValueError("Bad request: malformed payload")
        operation = Counter(100, error)

        outcome = await run_with_retry(operation, policy, sleep=record_sleep)

        assert not outcome.success
        assert operation.attempts == 1
        assert outcome.attempts == 1
        assert outcome.error is error
        assert str(outcome.error) == "Bad request: malformed payload"
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retry_count_bound(self, sleeps, record_sleep) -> None:
        """An always-transient failure runs max_attempts + 1 times."""
        policy = RetryPolicy(max_attempts=4, base_delay_ms=10, max_delay_ms=25)
        error = RuntimeError("ECONNRESET")
        operation = Counter(100, error)

        outcome = await run_with_retry(operation, policy, sleep=record_sleep)

        assert operation.attempts == 5
        assert outcome.error is error
        assert sleeps == [0.01, 0.02, 0.025, 0.025]

    @pytest.mark.asyncio
    async def test_zero_retries(self, sleeps, record_sleep) -> None:
        """max_attempts=0 tries once and inserts no delay."""
        operation = Counter(100, RuntimeError("ServiceUnavailable"))

        outcome = await run_with_retry(operation, RetryPolicy.no_retry(), sleep=record_sleep)

        assert operation.attempts == 1
        assert not outcome.success
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_success_stops_retrying(self, sleeps, record_sleep) -> None:
        operation = Counter(1, RuntimeError("TooManyRequests"), value="ok")

        outcome = await run_with_retry(operation, RetryPolicy(max_attempts=5), sleep=record_sleep)

        assert outcome.value == "ok"
        assert operation.attempts == 2
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_sync_and_async_failures_handled_alike(self, record_sleep) -> None:
        """A synchronous raise is classified like an awaited one."""
        policy = RetryPolicy(max_attempts=2)
        calls = 0

        def sync_operation() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectionResetError("reset by peer")
            return "done"

        outcome = await run_with_retry(sync_operation, policy, sleep=record_sleep)
        assert outcome.value == "done"
        assert outcome.attempts == 3

    @pytest.mark.asyncio
    async def test_callbacks(self, record_sleep) -> None:
        """Test attempt, failure and retry hooks."""
        events: list[tuple] = []
        operation = Counter(1, RuntimeError("ETIMEDOUT"))

        await run_with_retry(
            operation,
            RetryPolicy(max_attempts=2),
            on_attempt=lambda a: events.append(("attempt", a)),
            on_failure=lambda a, e, kind: events.append(("failure", a, kind)),
            on_retry=lambda a, e, d: events.append(("retry", a, d)),
            sleep=record_sleep,
        )

        assert events == [
            ("attempt", 1),
            ("failure", 1, FailureClass.RETRYABLE),
            ("retry", 1, 1.0),
            ("attempt", 2),
        ]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, record_sleep) -> None:
        """CancelledError is not treated as an attempt failure."""

        async def operation() -> None:
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_with_retry(operation, RetryPolicy(), sleep=record_sleep)


class TestCallOutcome:
    """Tests for CallOutcome."""

    def test_unwrap_success(self) -> None:
        assert CallOutcome(success=True, value=7, attempts=1).unwrap() == 7

    def test_unwrap_reraises_same_error(self) -> None:
        error = KeyError("missing")
        outcome: CallOutcome[int] = CallOutcome(success=False, error=error, attempts=2)
        assert outcome.retried
        with pytest.raises(KeyError) as exc_info:
            outcome.unwrap()
        assert exc_info.value is error


class TestWithRetry:
    """Tests for with_retry helper."""

    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        async def operation() -> str:
            return "value"

        assert await with_retry(operation) == "value"

    @pytest.mark.asyncio
    async def test_raises_last_error(self) -> None:
        error = PermissionError("AuthorizationFailed")

        async def operation() -> None:
            raise error

        with pytest.raises(PermissionError) as exc_info:
            await with_retry(operation, RetryPolicy(max_attempts=3))
        assert exc_info.value is error
