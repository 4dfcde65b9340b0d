"""
Rate Limiting Configuration Module

Loads and validates the per-service admission limits from environment
variables, falling back to the built-in service table.
"""

import os
import json
from typing import Dict, Optional
from dataclasses import dataclass, field


# Requests per minute for each rate-limited AI service
DEFAULT_SERVICE_LIMITS: Dict[str, int] = {
    "fraud-detection": 100,
    "transaction-analysis": 200,
    "customer-service": 500,
    "risk-assessment": 50,
    "compliance": 50,
    "code-generation": 30,
    "document-search": 100,
    "recommendation": 200,
}

REFILL_POLICIES = ("interval", "greedy")

# Advisory backoff sent to throttled callers (seconds)
RETRY_AFTER_SECONDS = 60


@dataclass
class RateLimitConfig:
    """Configuration for per-service admission control."""

    enabled: bool = True

    # Service name -> requests per minute
    service_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SERVICE_LIMITS))

    # interval: refill to full in whole increments every window
    # greedy: continuous trickle across the window
    refill_policy: str = "interval"

    window_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "RateLimitConfig":
        """Load configuration from environment variables."""
        limits = dict(DEFAULT_SERVICE_LIMITS)

        overrides = os.getenv("RATE_LIMITS")
        if overrides:
            try:
                parsed = json.loads(overrides)
            except json.JSONDecodeError as e:
                raise ValueError(f"RATE_LIMITS must be a JSON object: {e}")
            if not isinstance(parsed, dict):
                raise ValueError("RATE_LIMITS must be a JSON object of service -> limit")
            for service, limit in parsed.items():
                # bool is an int subclass; floats and strings are not accepted
                if isinstance(limit, bool) or not isinstance(limit, int):
                    raise ValueError(
                        f"RATE_LIMITS entry for '{service}' must be an integer, got {limit!r}"
                    )
                limits[str(service)] = limit

        return cls(
            enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
            service_limits=limits,
            refill_policy=os.getenv("RATE_LIMIT_REFILL_POLICY", "interval").lower(),
        )

    def get_service_limit(self, service_name: str) -> Optional[int]:
        """Requests per minute for a service, or None when unconfigured."""
        return self.service_limits.get(service_name)

    def validate(self) -> None:
        """Validate configuration values."""
        if self.refill_policy not in REFILL_POLICIES:
            raise ValueError(
                f"Invalid refill_policy: {self.refill_policy}. Must be 'interval' or 'greedy'."
            )

        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        for service, limit in self.service_limits.items():
            if limit <= 0:
                raise ValueError(f"Rate limit for '{service}' must be positive, got {limit}")


def load_rate_limit_config() -> RateLimitConfig:
    """
    Build and validate a rate limit configuration from the environment.

    Returns:
        RateLimitConfig instance loaded from environment variables
    """
    config = RateLimitConfig.from_env()
    config.validate()
    return config
