"""
Bounded retry with timeout for repository calls.

Retries on RepositoryUnavailable and timeouts only. Domain errors such as
EntityNotFound are raised immediately. Append-only writes are not retried
after a timeout since the write may already have landed.
"""
import asyncio
import inspect
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from revenue_analytics import metrics
from revenue_analytics.errors import RepositoryUnavailable

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Store methods that insert a new row on every call
APPEND_ONLY_OPERATIONS = frozenset(
    {
        "append_churn",
        "append_forecast",
        "append_opportunities",
        "insert",
        "insert_if_not_duplicate",
    }
)


class RetryPolicy:
    """
    Timeout and backoff schedule applied to each repository call.

    Total attempts = 1 + len(delays).
    """

    def __init__(self, timeout_seconds: float, delays: Sequence[float] = ()):
        self.timeout_seconds = timeout_seconds
        self.delays = list(delays)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            timeout_seconds=settings.repository_timeout_seconds,
            delays=settings.repository_retry_delays_seconds,
        )

    async def run(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        retry_timeouts: bool = True,
    ) -> T:
        """
        Await `call()` under the timeout, retrying retryable failures.

        Args:
            operation: Name used in logs, metrics and the raised error
            call: Zero-argument factory returning a fresh awaitable per attempt
            retry_timeouts: When False a timeout fails the call at once

        Returns:
            Result of the first successful attempt

        Raises:
            RepositoryUnavailable: When every attempt failed or timed out
        """
        max_attempts = len(self.delays) + 1
        last_reason = ""

        for attempt in range(1, max_attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                last_reason = f"timed out after {self.timeout_seconds}s"
                if not retry_timeouts:
                    break
            except RepositoryUnavailable as e:
                last_reason = str(e)

            if attempt == max_attempts:
                break

            delay = self.delays[attempt - 1]
            metrics.repository_retries_total.labels(operation=operation).inc()
            logger.info(
                "repository_call_retrying",
                operation=operation,
                attempt=attempt,
                max_attempts=max_attempts,
                delay_seconds=delay,
                reason=last_reason,
            )
            await asyncio.sleep(delay)

        logger.warning("repository_call_exhausted", operation=operation, attempts=attempt, reason=last_reason)
        raise RepositoryUnavailable(operation, last_reason, attempts=attempt)


class ResilientProxy:
    """
    Wraps a repository so every coroutine method runs under a RetryPolicy.

    Synchronous attributes are passed through unchanged. Methods named in
    `append_only` are retried on RepositoryUnavailable but not on timeout.
    """

    def __init__(self, target, policy: RetryPolicy, append_only: frozenset[str] = APPEND_ONLY_OPERATIONS):
        self._target = target
        self._policy = policy
        self._append_only = append_only

    def __getattr__(self, name: str):
        attribute = getattr(self._target, name)
        if not inspect.iscoroutinefunction(attribute):
            return attribute

        retry_timeouts = name not in self._append_only

        async def call_with_retry(*args, **kwargs):
            return await self._policy.run(name, lambda: attribute(*args, **kwargs), retry_timeouts=retry_timeouts)

        return call_with_retry
