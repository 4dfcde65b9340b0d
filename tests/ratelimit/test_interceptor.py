"""
Unit tests for the rate limit interceptor and decorator.
"""

import asyncio
from unittest.mock import Mock

import pytest

from banking_gateway.ratelimit import (
    RateLimiterRegistry,
    RateLimitInterceptor,
    RateLimitExceededError,
    MetricsAggregator,
    rate_limited,
)


@pytest.fixture
def registry(clock):
    return RateLimiterRegistry({"compliance": 2}, clock=clock)


@pytest.fixture
def interceptor(registry, metrics):
    return RateLimitInterceptor(registry, metrics=metrics)


def test_execute_passes_through_result(interceptor):
    """Test that an admitted call returns the operation's result unchanged."""
    func = Mock(return_value={"status": "COMPLIANT"})

    result = interceptor.execute("compliance", func, "ACC001", flag=True)

    assert result == {"status": "COMPLIANT"}
    func.assert_called_once_with("ACC001", flag=True)


def test_rejected_call_is_not_invoked(interceptor):
    """Test that the operation never runs once the bucket is empty."""
    func = Mock(return_value="ok")
    interceptor.execute("compliance", func)
    interceptor.execute("compliance", func)

    with pytest.raises(RateLimitExceededError):
        interceptor.execute("compliance", func)

    assert func.call_count == 2


def test_rejection_payload(interceptor):
    """Test the advisory data carried by a rejection."""
    for _ in range(2):
        interceptor.admit("compliance")

    with pytest.raises(RateLimitExceededError) as exc_info:
        interceptor.admit("compliance")

    error = exc_info.value
    assert error.status_code == 429
    assert error.service == "compliance"
    assert error.headers == {"X-RateLimit-Limit": "0", "Retry-After": "60"}
    assert error.to_dict() == {
        "detail": "Rate limit exceeded for service: compliance",
        "service": "compliance",
        "retry_after": 60,
    }


def test_rejection_is_recorded(interceptor, metrics):
    """Test that rejections are counted in the metrics aggregator."""
    for _ in range(2):
        interceptor.admit("compliance")
    for _ in range(3):
        with pytest.raises(RateLimitExceededError):
            interceptor.admit("compliance")

    assert metrics.get_snapshot()["rejections"] == {"compliance": 3}


def test_admission_recovers_after_refill(interceptor, clock):
    """Test that a throttled service is admitted again after the window."""
    for _ in range(2):
        interceptor.admit("compliance")
    with pytest.raises(RateLimitExceededError):
        interceptor.admit("compliance")

    clock.advance(60)
    interceptor.admit("compliance")


def test_unknown_service_fails_open(interceptor, caplog):
    """Test that unconfigured services are admitted with a warning."""
    func = Mock(return_value="ok")

    for _ in range(10):
        assert interceptor.execute("unknown-service", func) == "ok"

    assert func.call_count == 10
    assert "No rate limit bucket found for service: unknown-service" in caplog.text


def test_operation_errors_propagate(interceptor):
    """Test that exceptions from the operation pass through unchanged."""
    def failing():
        raise KeyError("boom")

    with pytest.raises(KeyError, match="boom"):
        interceptor.execute("compliance", failing)


def test_failed_operation_still_consumes_token(interceptor):
    """Test that admission is charged before the operation runs."""
    def failing():
        raise RuntimeError("boom")

    for _ in range(2):
        with pytest.raises(RuntimeError):
            interceptor.execute("compliance", failing)

    with pytest.raises(RateLimitExceededError):
        interceptor.admit("compliance")


def test_disabled_interceptor_admits_everything(registry):
    """Test that a disabled interceptor never rejects."""
    interceptor = RateLimitInterceptor(registry, enabled=False)

    for _ in range(10):
        interceptor.admit("compliance")

    assert registry.get_bucket("compliance").available_tokens() == 2


def test_interceptor_without_metrics(registry):
    """Test that rejections work without an aggregator."""
    interceptor = RateLimitInterceptor(registry)
    for _ in range(2):
        interceptor.admit("compliance")

    with pytest.raises(RateLimitExceededError):
        interceptor.admit("compliance")


def test_execute_async(interceptor):
    """Test the coroutine variant."""
    async def operation(value):
        return value * 2

    async def run():
        first = await interceptor.execute_async("compliance", operation, 2)
        second = await interceptor.execute_async("compliance", operation, 3)
        with pytest.raises(RateLimitExceededError):
            await interceptor.execute_async("compliance", operation, 4)
        return first, second

    assert asyncio.run(run()) == (4, 6)


def test_rate_limited_decorator(interceptor):
    """Test decorating a plain function."""
    @rate_limited(interceptor, "compliance")
    def check(account_number):
        """Run a check."""
        return f"checked {account_number}"

    assert check("ACC001") == "checked ACC001"
    assert check.__name__ == "check"
    assert check.__doc__ == "Run a check."

    check("ACC002")
    with pytest.raises(RateLimitExceededError):
        check("ACC003")


def test_rate_limited_decorator_async(interceptor):
    """Test decorating a coroutine function."""
    @rate_limited(interceptor, "compliance")
    async def check(account_number):
        return account_number

    async def run():
        results = [await check("A"), await check("B")]
        with pytest.raises(RateLimitExceededError):
            await check("C")
        return results

    assert asyncio.run(run()) == ["A", "B"]
