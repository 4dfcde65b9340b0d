"""
Unit tests for rate limit configuration loading and validation.
"""

import pytest

from banking_gateway.ratelimit.config import (
    RateLimitConfig,
    DEFAULT_SERVICE_LIMITS,
    load_rate_limit_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RATE_LIMITS", "RATE_LIMIT_ENABLED", "RATE_LIMIT_REFILL_POLICY"):
        monkeypatch.delenv(name, raising=False)


def test_default_service_table():
    """Test the built-in per-minute limits."""
    config = RateLimitConfig()

    assert config.enabled is True
    assert config.refill_policy == "interval"
    assert config.window_seconds == 60.0
    assert config.get_service_limit("fraud-detection") == 100
    assert config.get_service_limit("transaction-analysis") == 200
    assert config.get_service_limit("customer-service") == 500
    assert config.get_service_limit("risk-assessment") == 50
    assert config.get_service_limit("compliance") == 50
    assert config.get_service_limit("code-generation") == 30
    assert config.get_service_limit("document-search") == 100
    assert config.get_service_limit("recommendation") == 200
    assert config.get_service_limit("unknown") is None


def test_default_table_is_not_shared():
    """Test that instances get their own copy of the service table."""
    config = RateLimitConfig()
    config.service_limits["compliance"] = 1

    assert DEFAULT_SERVICE_LIMITS["compliance"] == 50


def test_from_env_defaults():
    config = load_rate_limit_config()

    assert config.enabled is True
    assert config.service_limits == DEFAULT_SERVICE_LIMITS


def test_from_env_overrides(monkeypatch):
    """Test overriding and adding limits through the environment."""
    monkeypatch.setenv("RATE_LIMITS", '{"compliance": 5, "statement-export": 7}')
    monkeypatch.setenv("RATE_LIMIT_REFILL_POLICY", "GREEDY")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")

    config = load_rate_limit_config()

    assert config.enabled is False
    assert config.refill_policy == "greedy"
    assert config.get_service_limit("compliance") == 5
    assert config.get_service_limit("statement-export") == 7
    assert config.get_service_limit("fraud-detection") == 100


@pytest.mark.parametrize("value", ["not json", "[1, 2]"])
def test_from_env_rejects_malformed_limits(monkeypatch, value):
    monkeypatch.setenv("RATE_LIMITS", value)

    with pytest.raises(ValueError, match="RATE_LIMITS"):
        RateLimitConfig.from_env()


def test_validate_rejects_unknown_policy(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_REFILL_POLICY", "leaky")

    with pytest.raises(ValueError, match="Invalid refill_policy"):
        load_rate_limit_config()


def test_validate_rejects_non_positive_limit():
    config = RateLimitConfig(service_limits={"compliance": 0})

    with pytest.raises(ValueError, match="compliance"):
        config.validate()


def test_validate_rejects_non_positive_window():
    config = RateLimitConfig(window_seconds=0)

    with pytest.raises(ValueError, match="window_seconds"):
        config.validate()


@pytest.mark.parametrize("value", ["1.9", "true", '"10"', "null"])
def test_from_env_rejects_non_integer_limits(monkeypatch, value):
    """Test that a limit must be a plain JSON integer."""
    monkeypatch.setenv("RATE_LIMITS", f'{{"compliance": 5, "statement-export": {value}}}')

    with pytest.raises(ValueError, match="statement-export"):
        RateLimitConfig.from_env()
