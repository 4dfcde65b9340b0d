"""
Rate Limiting & AI Metrics

This module governs access to the LLM backend:
- Per-service admission control (token bucket)
- Call-site interceptor producing 429 rejections
- Thread-safe aggregation of call outcomes, token usage and cost
"""

from .config import RateLimitConfig, load_rate_limit_config, DEFAULT_SERVICE_LIMITS, RETRY_AFTER_SECONDS
from .limiter import TokenBucket, RateLimiterRegistry
from .metrics import MetricsAggregator
from .middleware import RateLimitInterceptor, RateLimitExceededError, rate_limited

__all__ = [
    "RateLimitConfig",
    "load_rate_limit_config",
    "DEFAULT_SERVICE_LIMITS",
    "RETRY_AFTER_SECONDS",
    "TokenBucket",
    "RateLimiterRegistry",
    "MetricsAggregator",
    "RateLimitInterceptor",
    "RateLimitExceededError",
    "rate_limited",
]
