"""
Rate Limiting Middleware

Call-site interceptor that admits or rejects AI operations against the
per-service token buckets before the operation runs.
"""

import logging
import functools
import inspect
from typing import Optional, Dict, Any, Callable, Awaitable, TypeVar

from banking_gateway.observability.tracing import add_span_attributes
from .config import RETRY_AFTER_SECONDS
from .limiter import RateLimiterRegistry, TokenBucket
from .metrics import MetricsAggregator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitExceededError(Exception):
    """Raised when a service's token bucket has no tokens left."""

    status_code = 429

    def __init__(self, service: str, limit: int, retry_after: int = RETRY_AFTER_SECONDS):
        super().__init__(f"Rate limit exceeded for service: {service}")
        self.service = service
        self.limit = limit
        self.retry_after = retry_after

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "Retry-After": str(self.retry_after),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": str(self),
            "service": self.service,
            "retry_after": self.retry_after,
        }


class RateLimitInterceptor:
    """
    Guards rate-limited operations.

    For a configured service one token is consumed per call; when none is
    left the operation is not invoked and RateLimitExceededError is raised.
    Unconfigured services are let through with a warning.
    """

    def __init__(
        self,
        registry: RateLimiterRegistry,
        metrics: Optional[MetricsAggregator] = None,
        enabled: bool = True,
    ):
        """
        Initialize interceptor.

        Args:
            registry: Buckets keyed by service name
            metrics: Optional aggregator notified of rejections
            enabled: When False every call is admitted
        """
        self.registry = registry
        self.metrics = metrics
        self.enabled = enabled

    def admit(self, service_name: str) -> None:
        """
        Run the admission check for one call.

        Raises:
            RateLimitExceededError: If the service's bucket is empty
        """
        if not self.enabled:
            return

        bucket: Optional[TokenBucket] = self.registry.get_bucket(service_name)

        if bucket is None:
            logger.warning(f"No rate limit bucket found for service: {service_name}")
            return

        if bucket.try_consume(1):
            add_span_attributes(None, {
                "ratelimit.service": service_name,
                "ratelimit.admitted": True,
            })
            return

        available = bucket.available_tokens()
        logger.warning(f"Rate limit exceeded for service: {service_name}")

        add_span_attributes(None, {
            "ratelimit.service": service_name,
            "ratelimit.admitted": False,
            "ratelimit.available_tokens": available,
        })
        if self.metrics is not None:
            self.metrics.record_rejection(service_name)

        raise RateLimitExceededError(service_name, limit=available)

    def execute(self, service_name: str, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Execute an operation under the service's rate limit.

        Args:
            service_name: Service the operation is billed against
            func: Operation to run on admission
            *args, **kwargs: Passed through to func

        Returns:
            Result from func, unchanged

        Raises:
            RateLimitExceededError: If rejected (func is not called)
            Exception: Any exception from func
        """
        self.admit(service_name)
        return func(*args, **kwargs)

    async def execute_async(
        self, service_name: str, func: Callable[..., Awaitable[T]], *args, **kwargs
    ) -> T:
        """Coroutine variant of execute()."""
        self.admit(service_name)
        return await func(*args, **kwargs)


def rate_limited(interceptor: RateLimitInterceptor, service_name: str) -> Callable:
    """
    Decorator that routes every call of a function through an interceptor.

    Works for both plain and coroutine functions.

    Usage:
        @rate_limited(interceptor, "code-generation")
        def generate(request):
            ...
    """

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await interceptor.execute_async(service_name, func, *args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return interceptor.execute(service_name, func, *args, **kwargs)

        return wrapper

    return decorator
