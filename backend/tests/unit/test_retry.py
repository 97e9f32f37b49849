"""Unit tests for repository timeouts and bounded retry."""
import asyncio
from uuid import uuid4

import pytest

from revenue_analytics.errors import EntityNotFound, RepositoryUnavailable
from revenue_analytics.utils.retry import ResilientProxy, RetryPolicy


class Flaky:
    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or RepositoryUnavailable("load", "connection reset")
        self.calls = 0

    async def load(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return value

    async def slow(self):
        self.calls += 1
        await asyncio.sleep(1)

    def name(self) -> str:
        return "flaky"


@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    """Test transient failures are retried."""
    target = Flaky(failures=2)
    policy = RetryPolicy(timeout_seconds=1.0, delays=[0, 0])

    result = await policy.run("load", lambda: target.load(42))

    assert result == 42
    assert target.calls == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise() -> None:
    """Test the error after the last attempt carries the attempt count."""
    target = Flaky(failures=10)
    policy = RetryPolicy(timeout_seconds=1.0, delays=[0, 0])

    with pytest.raises(RepositoryUnavailable) as exc_info:
        await policy.run("load", lambda: target.load(1))

    assert exc_info.value.attempts == 3
    assert exc_info.value.operation == "load"
    assert target.calls == 3


@pytest.mark.asyncio
async def test_timeout_is_retryable() -> None:
    """Test a call exceeding the timeout counts as unavailable."""
    target = Flaky(failures=0)
    policy = RetryPolicy(timeout_seconds=0.01, delays=[0])

    with pytest.raises(RepositoryUnavailable) as exc_info:
        await policy.run("slow", target.slow)

    assert "timed out" in str(exc_info.value)
    assert target.calls == 2


@pytest.mark.asyncio
async def test_domain_errors_are_not_retried() -> None:
    """Test EntityNotFound propagates immediately."""
    target = Flaky(failures=5, error=EntityNotFound("business", uuid4()))
    policy = RetryPolicy(timeout_seconds=1.0, delays=[0, 0])

    with pytest.raises(EntityNotFound):
        await policy.run("load", lambda: target.load(1))

    assert target.calls == 1


@pytest.mark.asyncio
async def test_resilient_proxy(fast_settings) -> None:
    """Test the proxy retries coroutine methods and passes other attributes through."""
    target = Flaky(failures=1)
    proxy = ResilientProxy(target, RetryPolicy.from_settings(fast_settings))

    assert await proxy.load("ok") == "ok"
    assert target.calls == 2
    assert proxy.name() == "flaky"
    assert proxy.failures == 1


class SlowAckStore:
    """Store whose writes land before the acknowledgement times out."""

    def __init__(self):
        self.rows = []
        self.reads = 0

    async def append_churn(self, prediction):
        self.rows.append(prediction)
        await asyncio.sleep(0.2)

    async def churn_history(self):
        self.reads += 1
        await asyncio.sleep(0.2)


@pytest.mark.asyncio
async def test_append_is_not_retried_after_timeout() -> None:
    """Test a timed-out append fails once instead of writing the row again."""
    store = SlowAckStore()
    proxy = ResilientProxy(store, RetryPolicy(timeout_seconds=0.05, delays=[0, 0]))

    with pytest.raises(RepositoryUnavailable) as exc_info:
        await proxy.append_churn("prediction")

    assert store.rows == ["prediction"]
    assert exc_info.value.attempts == 1
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
async def test_read_is_retried_after_timeout() -> None:
    """Test reads keep the full retry schedule on timeout."""
    store = SlowAckStore()
    proxy = ResilientProxy(store, RetryPolicy(timeout_seconds=0.05, delays=[0, 0]))

    with pytest.raises(RepositoryUnavailable) as exc_info:
        await proxy.churn_history()

    assert store.reads == 3
    assert exc_info.value.attempts == 3


@pytest.mark.asyncio
async def test_append_is_retried_when_unavailable() -> None:
    """Test an append that failed outright is still retried."""
    target = Flaky(failures=1)
    proxy = ResilientProxy(target, RetryPolicy(timeout_seconds=1.0, delays=[0]), append_only=frozenset({"load"}))

    assert await proxy.load("row") == "row"
    assert target.calls == 2
