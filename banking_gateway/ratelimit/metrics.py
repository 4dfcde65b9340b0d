"""
Metrics Collection for AI Calls

Tracks call outcomes, latencies, token usage and cost per service.
In-memory implementation where every counter carries its own lock, mirrored
into a Prometheus registry for scraping.
"""

import time
import logging
import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple, Callable, TypeVar

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)

# Cost is stored as an integer number of nano-units to avoid float drift
COST_SCALE = 1_000_000_000

# Observations kept per key for latency percentiles
MAX_OBSERVATIONS = 1000

T = TypeVar("T")


class _AtomicCounter:
    """Integer/float accumulator guarded by its own lock."""

    __slots__ = ("_value", "_lock")

    def __init__(self, initial=0):
        self._value = initial
        self._lock = threading.Lock()

    def add(self, amount) -> None:
        with self._lock:
            self._value += amount

    def get(self):
        with self._lock:
            return self._value


class _CallStats:
    """Call count, summed duration and recent duration samples for one key."""

    __slots__ = ("count", "total_duration_ms", "durations", "_lock")

    def __init__(self):
        self.count = 0
        self.total_duration_ms = 0.0
        self.durations = deque(maxlen=MAX_OBSERVATIONS)
        self._lock = threading.Lock()

    def observe(self, duration_ms: float) -> None:
        with self._lock:
            self.count += 1
            self.total_duration_ms += duration_ms
            self.durations.append(duration_ms)

    def read(self) -> Dict[str, Any]:
        with self._lock:
            count = self.count
            total = self.total_duration_ms
            values = sorted(self.durations)

        stats: Dict[str, Any] = {"count": count, "totalDurationMs": total}
        if values:
            n = len(values)
            stats["latency"] = {
                "min": values[0],
                "max": values[-1],
                "avg": sum(values) / n,
                "p50": values[int(n * 0.5)],
                "p95": values[min(n - 1, int(n * 0.95))],
                "p99": values[min(n - 1, int(n * 0.99))],
            }
        return stats


class MetricsAggregator:
    """
    Process-wide aggregator for AI call instrumentation.

    Tracks, per service name:
    - Call counts and durations by operation and outcome
    - Input, output and total token usage
    - Cumulative cost
    - Rate limit rejections

    Recording methods never raise; instrumentation failures are logged.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize the aggregator.

        Args:
            registry: Prometheus registry to mirror into (a private one by default)
        """
        # Guards lazy creation of per-key entries only
        self._create_lock = threading.Lock()

        self._calls: Dict[Tuple[str, str, str], _CallStats] = {}
        self._tokens: Dict[str, _AtomicCounter] = {}
        self._costs: Dict[str, _AtomicCounter] = {}
        self._rejections: Dict[str, _AtomicCounter] = {}

        self.start_time = datetime.now(timezone.utc)

        self.registry = registry if registry is not None else CollectorRegistry()
        self._call_counter = Counter(
            "ai_call_count",
            "AI calls by service, operation and outcome",
            ["service", "operation", "status"],
            registry=self.registry,
        )
        self._call_duration = Histogram(
            "ai_call_duration_seconds",
            "AI call duration",
            ["service", "operation", "status"],
            registry=self.registry,
        )
        self._input_tokens = Counter(
            "ai_tokens_input", "Input tokens sent to the model", ["service"], registry=self.registry
        )
        self._output_tokens = Counter(
            "ai_tokens_output", "Output tokens returned by the model", ["service"], registry=self.registry
        )
        self._total_tokens = Counter(
            "ai_tokens", "Input plus output tokens", ["service"], registry=self.registry
        )
        self._cost = Counter(
            "ai_cost", "Estimated model cost in USD", ["service"], registry=self.registry
        )
        self._rejected = Counter(
            "ai_ratelimit_rejections",
            "Requests rejected by the rate limiter",
            ["service"],
            registry=self.registry,
        )

    def _entry(self, mapping: Dict, key, factory: Callable[[], T]) -> T:
        entry = mapping.get(key)
        if entry is None:
            with self._create_lock:
                entry = mapping.get(key)
                if entry is None:
                    entry = factory()
                    mapping[key] = entry
        return entry

    def record_call(self, service_name: str, operation_name: str, duration_ms: float, success: bool) -> None:
        """
        Record the outcome and duration of an AI call.

        Args:
            service_name: Rate-limited service the call belongs to
            operation_name: Handler operation (e.g. "detect_fraud")
            duration_ms: Wall time of the call in milliseconds
            success: Whether the call completed without error
        """
        try:
            status = "success" if success else "failure"
            duration_ms = float(duration_ms)

            stats = self._entry(self._calls, (service_name, operation_name, status), _CallStats)
            stats.observe(duration_ms)

            self._call_counter.labels(service_name, operation_name, status).inc()
            self._call_duration.labels(service_name, operation_name, status).observe(duration_ms / 1000.0)

            logger.debug(
                f"Recorded AI call: service={service_name}, operation={operation_name}, "
                f"duration={duration_ms:.1f}ms, success={success}"
            )
        except Exception:
            logger.exception(f"Failed to record AI call for {service_name}")

    def record_token_usage(self, service_name: str, input_tokens: int, output_tokens: int) -> None:
        """Add input/output token counts to the service's running totals."""
        try:
            input_tokens = int(input_tokens)
            output_tokens = int(output_tokens)
            if input_tokens < 0 or output_tokens < 0:
                logger.warning(
                    f"Ignoring negative token usage for {service_name}: "
                    f"input={input_tokens}, output={output_tokens}"
                )
                return

            total = input_tokens + output_tokens
            self._entry(self._tokens, f"{service_name}.input", _AtomicCounter).add(input_tokens)
            self._entry(self._tokens, f"{service_name}.output", _AtomicCounter).add(output_tokens)
            self._entry(self._tokens, f"{service_name}.total", _AtomicCounter).add(total)

            self._input_tokens.labels(service_name).inc(input_tokens)
            self._output_tokens.labels(service_name).inc(output_tokens)
            self._total_tokens.labels(service_name).inc(total)

            logger.debug(f"Recorded token usage: service={service_name}, input={input_tokens}, output={output_tokens}")
        except Exception:
            logger.exception(f"Failed to record token usage for {service_name}")

    def record_cost(self, service_name: str, cost: float) -> None:
        """
        Add a non-negative monetary amount (USD) to the service's running total.

        Each amount is rounded to the nearest nano-USD before it is added.
        """
        try:
            cost = float(cost)
            if cost < 0:
                logger.warning(f"Ignoring negative cost for {service_name}: {cost}")
                return

            self._entry(self._costs, service_name, _AtomicCounter).add(round(cost * COST_SCALE))
            self._cost.labels(service_name).inc(cost)

            logger.debug(f"Recorded cost: service={service_name}, cost=${cost}")
        except Exception:
            logger.exception(f"Failed to record cost for {service_name}")

    def record_rejection(self, service_name: str) -> None:
        """Record a rate limit rejection."""
        try:
            self._entry(self._rejections, service_name, _AtomicCounter).add(1)
            self._rejected.labels(service_name).inc()
        except Exception:
            logger.exception(f"Failed to record rejection for {service_name}")

    @contextmanager
    def timed(self, service_name: str, operation_name: str):
        """
        Time a block and record it as a call.

        The call is recorded as a failure if the block raises; the exception
        is re-raised unchanged.

        Example:
            with metrics.timed("fraud-detection", "detect_fraud"):
                response = model.generate(prompt)
        """
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.record_call(service_name, operation_name, duration_ms, success)

    def get_snapshot(self) -> Dict[str, Any]:
        """
        Get a point-in-time view of all counters.

        Individual values are read atomically; the snapshot as a whole is
        not consistent across keys.
        """
        with self._create_lock:
            calls = list(self._calls.items())
            tokens = list(self._tokens.items())
            costs = list(self._costs.items())
            rejections = list(self._rejections.items())

        now = datetime.now(timezone.utc)
        return {
            "tokenUsage": {key: counter.get() for key, counter in tokens},
            "costs": {key: counter.get() / COST_SCALE for key, counter in costs},
            "calls": {
                f"{service}.{operation}.{status}": stats.read()
                for (service, operation, status), stats in calls
            },
            "rejections": {key: counter.get() for key, counter in rejections},
            "metadata": {
                "start_time": self.start_time.isoformat(),
                "uptime_seconds": (now - self.start_time).total_seconds(),
            },
        }

    def render_prometheus(self) -> bytes:
        """Render the mirrored metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
