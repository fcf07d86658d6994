"""
Resilience primitives: cancellation tokens and the retry/backoff executor.
"""

from storefront.resilience.cancellation import CancellationToken
from storefront.resilience.executor import (
    NO_FALLBACK,
    AttemptInfo,
    ExecutionReport,
    ExecutionState,
    RetryExecutor,
    RetryPolicy,
)

__all__ = [
    "AttemptInfo",
    "CancellationToken",
    "ExecutionReport",
    "ExecutionState",
    "NO_FALLBACK",
    "RetryExecutor",
    "RetryPolicy",
]
