"""
Token Bucket Rate Limiter

Implements a per-service token bucket with lazy refill and a registry
holding one bucket per configured service:
- interval refill (default): whole refills every window, bursty at boundaries
- greedy refill: continuous trickle proportional to elapsed time
"""

import math
import time
import logging
import threading
from typing import Callable, Dict, Any, Optional, Iterator

from .config import RateLimitConfig, REFILL_POLICIES

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenBucket:
    """
    Thread-safe token bucket for a single service.

    Refill is computed lazily from the injected clock whenever the bucket
    is consumed or read, so no background thread is needed.
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: int,
        refill_interval: float,
        refill_policy: str = "interval",
        clock: Clock = time.monotonic,
    ):
        """
        Initialize a full bucket.

        Args:
            capacity: Maximum number of tokens held
            refill_rate: Tokens added per refill interval
            refill_interval: Refill interval in seconds
            refill_policy: "interval" or "greedy"
            clock: Monotonic time source in seconds
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        if refill_interval <= 0:
            raise ValueError("refill_interval must be positive")
        if refill_policy not in REFILL_POLICIES:
            raise ValueError(f"Unknown refill policy: {refill_policy}")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.refill_interval = refill_interval
        self.refill_policy = refill_policy
        self._clock = clock

        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        """Add tokens due since the last refill. Caller must hold the lock."""
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return

        if self.refill_policy == "interval":
            periods = int(elapsed // self.refill_interval)
            if periods == 0:
                return
            self._tokens = min(self.capacity, self._tokens + periods * self.refill_rate)
            # Stay aligned to interval boundaries
            self._last_refill += periods * self.refill_interval
        else:
            tokens_to_add = elapsed * self.refill_rate / self.refill_interval
            self._tokens = min(self.capacity, self._tokens + tokens_to_add)
            self._last_refill = now

    def try_consume(self, tokens: int = 1) -> bool:
        """
        Consume tokens if enough are available.

        Returns:
            True if admitted, False if rejected (state unchanged)
        """
        with self._lock:
            self._refill()

            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def available_tokens(self) -> int:
        """Best-effort count of whole tokens currently available."""
        with self._lock:
            self._refill()
            return int(math.floor(self._tokens))

    def status(self) -> Dict[str, Any]:
        """Get current bucket status."""
        return {
            "available_tokens": self.available_tokens(),
            "capacity": self.capacity,
            "refill_rate": self.refill_rate,
            "refill_interval_sec": self.refill_interval,
            "refill_policy": self.refill_policy,
        }


class RateLimiterRegistry:
    """
    One token bucket per configured service name.

    Built once at startup and never modified; a lookup for an unconfigured
    service simply returns None.
    """

    def __init__(
        self,
        service_limits: Dict[str, int],
        refill_policy: str = "interval",
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
    ):
        """
        Initialize the registry.

        Args:
            service_limits: Service name -> requests per window
            refill_policy: Refill policy shared by all buckets
            window_seconds: Refill interval for every bucket
            clock: Time source shared by all buckets
        """
        buckets: Dict[str, TokenBucket] = {}

        for service, limit in service_limits.items():
            buckets[service] = TokenBucket(
                capacity=limit,
                refill_rate=limit,
                refill_interval=window_seconds,
                refill_policy=refill_policy,
                clock=clock,
            )
            logger.info(f"Configured rate limit for {service}: {limit} requests/minute")

        self._buckets = buckets

    @classmethod
    def from_config(cls, config: RateLimitConfig, clock: Clock = time.monotonic) -> "RateLimiterRegistry":
        """Build a registry from a RateLimitConfig."""
        return cls(
            config.service_limits,
            refill_policy=config.refill_policy,
            window_seconds=config.window_seconds,
            clock=clock,
        )

    def get_bucket(self, service_name: str) -> Optional[TokenBucket]:
        """Get the bucket for a service, or None if the service is unconfigured."""
        return self._buckets.get(service_name)

    def services(self) -> Iterator[str]:
        return iter(sorted(self._buckets))

    def __contains__(self, service_name: str) -> bool:
        return service_name in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)

    def status(self) -> Dict[str, Dict[str, Any]]:
        """Status of every configured bucket, keyed by service name."""
        return {service: self._buckets[service].status() for service in self.services()}
