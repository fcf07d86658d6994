"""
Retry/backoff executor for single logical operations.

Wraps one operation with:
- A deadline covering every attempt and backoff sleep
- Bounded retries with linear backoff (retry_delay * attempt)
- An explicit error-kind retry policy (timeouts and cancellations end the loop)
- Fallback substitution once attempts are exhausted
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from storefront.exceptions import (
    ErrorKind,
    RequestTimeoutError,
    StorefrontError,
    classify_error,
)
from storefront.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class _NoFallback:
    def __repr__(self) -> str:
        return "NO_FALLBACK"


# Sentinel: None is a valid fallback value
NO_FALLBACK: Any = _NoFallback()

# Timeouts and cancellations are the caller giving up, not the network failing.
# An expired session stays expired: the store is already cleared.
DEFAULT_RETRYABLE_KINDS: dict[ErrorKind, bool] = {
    ErrorKind.NETWORK: True,
    ErrorKind.HTTP: True,
    ErrorKind.AUTH_EXPIRED: False,
    ErrorKind.CONFIGURATION: True,
    ErrorKind.UNKNOWN: True,
    ErrorKind.TIMEOUT: False,
    ErrorKind.CANCELLED: False,
}


class ExecutionState(str, Enum):
    """States of one execute() invocation."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"
    FALLBACK_APPLIED = "fallback_applied"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """Explicit mapping from error kind to retryability."""

    retryable_kinds: dict[ErrorKind, bool] = field(
        default_factory=lambda: dict(DEFAULT_RETRYABLE_KINDS)
    )

    def is_retryable(self, exc: BaseException) -> bool:
        """Whether a failure of this kind earns another attempt.

        Args:
            exc: The failure.

        Returns:
            True if the executor should retry.
        """
        if not isinstance(exc, Exception):
            return False
        return self.retryable_kinds.get(classify_error(exc), True)


@dataclass
class AttemptInfo:
    """What a retry hook sees about the failed attempt."""

    name: str
    attempt: int  # Number of the attempt that just failed (0-indexed)
    error: BaseException
    delay: float  # Seconds before the next attempt


@dataclass
class ExecutionReport(Generic[T]):
    """Outcome of one execute() invocation."""

    name: str
    state: ExecutionState = ExecutionState.IDLE
    attempts: int = 0
    value: Any = None
    error: BaseException | None = None
    elapsed: float = 0.0
    history: list[ExecutionState] = field(default_factory=lambda: [ExecutionState.IDLE])

    def transition(self, state: ExecutionState) -> None:
        """Record a state change."""
        self.state = state
        self.history.append(state)

    @property
    def succeeded(self) -> bool:
        """True for SUCCESS and FALLBACK_APPLIED."""
        return self.state in (ExecutionState.SUCCESS, ExecutionState.FALLBACK_APPLIED)


class RetryExecutor:
    """Runs async operations with deadline, retries and fallback.

    Usage:
        executor = RetryExecutor(timeout=15.0, max_retries=3, retry_delay=1.0)
        products = await executor.execute(
            lambda: transport.get("/products"),
            fallback=[],
        )
    """

    def __init__(
        self,
        timeout: float | None = 15.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Callable[[AttemptInfo], Any] | None = None,
    ) -> None:
        """Initialize the executor with default limits.

        Args:
            timeout: Deadline in seconds for a whole invocation (None disables).
            max_retries: Retries after the first attempt.
            retry_delay: Linear backoff step in seconds.
            policy: Retry classification (default: all but timeout/cancel).
            sleep: Awaitable sleep used between attempts.
            on_retry: Optional hook called before each retry.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.on_retry = on_retry

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        fallback: Any = NO_FALLBACK,
        name: str | None = None,
    ) -> T:
        """Run an operation and return its value (or the fallback).

        Args:
            operation: Zero-argument coroutine function performing one attempt.
            timeout: Override the invocation deadline in seconds.
            max_retries: Override the retry count.
            retry_delay: Override the backoff step in seconds.
            fallback: Value returned when attempts are exhausted.
            name: Label for logs.

        Returns:
            The operation's value, or the fallback.

        Raises:
            Exception: The last error when no fallback was supplied.
            asyncio.CancelledError: If the caller was cancelled.
        """
        report = await self.execute_with_report(
            operation,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            fallback=fallback,
            name=name,
        )
        if report.state is ExecutionState.FAILED:
            assert report.error is not None
            raise report.error
        return report.value

    async def execute_with_report(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        fallback: Any = NO_FALLBACK,
        name: str | None = None,
    ) -> ExecutionReport[T]:
        """Run an operation and report how it ended instead of raising.

        Same arguments as execute(). Caller cancellation still propagates.
        """
        deadline = self.timeout if timeout is None else timeout
        retries = self.max_retries if max_retries is None else max_retries
        delay = self.retry_delay if retry_delay is None else retry_delay
        label = name or getattr(operation, "__name__", "operation")

        report: ExecutionReport[T] = ExecutionReport(name=label)
        started = time.monotonic()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_incrementing(start=delay, increment=delay),
            retry=retry_if_exception(self.policy.is_retryable),
            before_sleep=lambda state: self._before_retry(report, state),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async with asyncio.timeout(deadline):
                async for attempt in retrying:
                    with attempt:
                        report.attempts += 1
                        report.transition(ExecutionState.ATTEMPTING)
                        value = await operation()
        except asyncio.CancelledError:
            report.elapsed = time.monotonic() - started
            report.transition(ExecutionState.CANCELLED)
            logger.debug("Operation cancelled by caller", operation=label, attempts=report.attempts)
            raise
        except Exception as e:
            report.elapsed = time.monotonic() - started
            error: Exception = e
            if isinstance(e, TimeoutError) and not isinstance(e, StorefrontError):
                error = RequestTimeoutError(
                    f"{label} exceeded its {deadline}s deadline",
                    timeout=deadline,
                )
                error.__cause__ = e
            self._finish_failure(report, error, fallback)
            return report

        report.elapsed = time.monotonic() - started
        report.value = value
        report.transition(ExecutionState.SUCCESS)
        if report.attempts > 1:
            logger.info(
                "Operation succeeded after retries",
                operation=label,
                attempts=report.attempts,
            )
        return report

    def _finish_failure(
        self,
        report: ExecutionReport[Any],
        error: Exception,
        fallback: Any,
    ) -> None:
        report.error = error
        kind = classify_error(error)
        if kind in (ErrorKind.TIMEOUT, ErrorKind.CANCELLED):
            report.transition(ExecutionState.CANCELLED)
        else:
            report.transition(ExecutionState.EXHAUSTED)

        if fallback is not NO_FALLBACK:
            report.value = fallback
            report.transition(ExecutionState.FALLBACK_APPLIED)
            logger.warning(
                "Using fallback data",
                operation=report.name,
                attempts=report.attempts,
                error=str(error),
            )
            return

        report.transition(ExecutionState.FAILED)
        logger.error(
            "Operation failed",
            operation=report.name,
            attempts=report.attempts,
            kind=kind.value,
            error=str(error),
        )

    def _before_retry(self, report: ExecutionReport[Any], state: RetryCallState) -> None:
        """Log and notify before a backoff sleep. Never raises."""
        report.transition(ExecutionState.RETRYING)
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        info = AttemptInfo(
            name=report.name,
            attempt=state.attempt_number - 1,
            error=error,
            delay=delay,
        )
        try:
            logger.warning(
                "Attempt failed, retrying",
                operation=report.name,
                attempt=info.attempt,
                retry_in=round(delay, 3),
                error=str(error),
            )
            if self.on_retry is not None:
                self.on_retry(info)
        except Exception as hook_error:
            logger.debug("Retry hook failed", error=str(hook_error))
