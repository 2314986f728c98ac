"""
Resilience layer - rate limiting and retry for remote calls.

This module provides:
- RetryPolicy: Bounded exponential backoff, no jitter
- run_with_retry: Reusable retry loop returning a CallOutcome
- MinIntervalRateLimiter: Fixed spacing between logical calls
- ResilientExecutor: Rate limiting + retry + per-call logging
"""

from azure_deploy_mcp.resilience.executor import CallContext, ResilientExecutor
from azure_deploy_mcp.resilience.rate_limiter import (
    DEFAULT_MIN_INTERVAL_MS,
    ExecutorStatistics,
    MinIntervalRateLimiter,
)
from azure_deploy_mcp.resilience.retry import (
    CallOutcome,
    RetryPolicy,
    invoke,
    run_with_retry,
    with_retry,
)

__all__ = [
    # Executor
    "CallContext",
    # Retry
    "CallOutcome",
    # Rate limiting
    "DEFAULT_MIN_INTERVAL_MS",
    "ExecutorStatistics",
    "MinIntervalRateLimiter",
    "ResilientExecutor",
    "RetryPolicy",
    "invoke",
    "run_with_retry",
    "with_retry",
]
