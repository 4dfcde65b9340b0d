"""
Unit tests for the AI metrics aggregator.
"""

import threading

import pytest

from banking_gateway.ratelimit.metrics import MetricsAggregator


def test_token_usage_accumulates(metrics):
    """Test input/output/total token keys."""
    metrics.record_token_usage("fraud-detection", 120, 30)
    metrics.record_token_usage("fraud-detection", 80, 20)

    usage = metrics.get_snapshot()["tokenUsage"]
    assert usage["fraud-detection.input"] == 200
    assert usage["fraud-detection.output"] == 50
    assert usage["fraud-detection.total"] == 250


def test_cost_accumulates_without_drift(metrics):
    """Test that three 0.015 charges sum to 0.045."""
    for _ in range(3):
        metrics.record_cost("fraud-detection", 0.015)

    assert metrics.get_snapshot()["costs"]["fraud-detection"] == pytest.approx(0.045, abs=1e-6)


def test_small_costs_are_not_truncated(metrics):
    """Test that fractions of a micro-dollar are kept."""
    metrics.record_cost("code-generation", 0.0000019)

    assert metrics.get_snapshot()["costs"]["code-generation"] == pytest.approx(0.0000019, abs=1e-12)


def test_tiny_charges_add_up(metrics):
    """Test that 4 tokens at $0.10/M (4e-7 USD) are not rounded away."""
    for _ in range(10):
        metrics.record_cost("document-search", 4e-7)

    assert metrics.get_snapshot()["costs"]["document-search"] == pytest.approx(4e-6, abs=1e-12)


def test_concurrent_token_usage_is_additive(metrics):
    """Test that no update is lost under concurrent reporting."""
    threads_count = 20
    calls_per_thread = 200
    barrier = threading.Barrier(threads_count)

    def worker():
        barrier.wait()
        for _ in range(calls_per_thread):
            metrics.record_token_usage("customer-service", 3, 2)
            metrics.record_cost("customer-service", 0.001)

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snapshot = metrics.get_snapshot()
    total_calls = threads_count * calls_per_thread
    assert snapshot["tokenUsage"]["customer-service.input"] == 3 * total_calls
    assert snapshot["tokenUsage"]["customer-service.output"] == 2 * total_calls
    assert snapshot["tokenUsage"]["customer-service.total"] == 5 * total_calls
    assert snapshot["costs"]["customer-service"] == pytest.approx(0.001 * total_calls, abs=1e-6)


def test_concurrent_first_reports_share_one_entry(metrics):
    """Test lazy creation when many threads report a new key at once."""
    threads_count = 30
    barrier = threading.Barrier(threads_count)

    def worker():
        barrier.wait()
        metrics.record_rejection("document-search")

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert metrics.get_snapshot()["rejections"]["document-search"] == threads_count


def test_record_call_statistics(metrics):
    """Test call counts and latency summary per outcome."""
    metrics.record_call("compliance", "check_compliance", 100, True)
    metrics.record_call("compliance", "check_compliance", 300, True)
    metrics.record_call("compliance", "check_compliance", 50, False)

    calls = metrics.get_snapshot()["calls"]
    success = calls["compliance.check_compliance.success"]
    assert success["count"] == 2
    assert success["totalDurationMs"] == 400
    assert success["latency"]["min"] == 100
    assert success["latency"]["max"] == 300
    assert success["latency"]["avg"] == 200

    assert calls["compliance.check_compliance.failure"]["count"] == 1


def test_timed_records_success(metrics):
    """Test the timing context manager on success."""
    with metrics.timed("recommendation", "recommend_products"):
        pass

    calls = metrics.get_snapshot()["calls"]
    assert calls["recommendation.recommend_products.success"]["count"] == 1


def test_timed_records_failure_and_reraises(metrics):
    """Test the timing context manager when the block raises."""
    with pytest.raises(ValueError):
        with metrics.timed("recommendation", "recommend_products"):
            raise ValueError("model down")

    calls = metrics.get_snapshot()["calls"]
    assert calls["recommendation.recommend_products.failure"]["count"] == 1
    assert "recommendation.recommend_products.success" not in calls


def test_recording_never_raises(metrics):
    """Test that malformed input is logged, not raised."""
    metrics.record_token_usage("svc", "not-a-number", 1)
    metrics.record_cost("svc", None)
    metrics.record_call("svc", "op", "slow", True)

    snapshot = metrics.get_snapshot()
    assert snapshot["tokenUsage"] == {}
    assert snapshot["costs"] == {}
    assert snapshot["calls"] == {}


def test_negative_values_are_ignored(metrics):
    """Test that counters never decrease."""
    metrics.record_token_usage("svc", 10, 5)
    metrics.record_token_usage("svc", -10, 5)
    metrics.record_cost("svc", 0.5)
    metrics.record_cost("svc", -0.5)

    snapshot = metrics.get_snapshot()
    assert snapshot["tokenUsage"]["svc.input"] == 10
    assert snapshot["costs"]["svc"] == pytest.approx(0.5)


def test_snapshot_shape(metrics):
    """Test the snapshot sections."""
    snapshot = metrics.get_snapshot()

    assert set(snapshot) == {"tokenUsage", "costs", "calls", "rejections", "metadata"}
    assert snapshot["metadata"]["uptime_seconds"] >= 0
    assert "start_time" in snapshot["metadata"]


def test_aggregators_are_isolated():
    """Test that separate instances do not share state or registries."""
    first = MetricsAggregator()
    second = MetricsAggregator()

    first.record_rejection("compliance")

    assert second.get_snapshot()["rejections"] == {}
    assert first.registry is not second.registry


def test_render_prometheus(metrics):
    """Test the Prometheus text exposition."""
    metrics.record_call("fraud-detection", "detect_fraud", 250, True)
    metrics.record_token_usage("fraud-detection", 100, 50)
    metrics.record_cost("fraud-detection", 0.01)
    metrics.record_rejection("fraud-detection")

    call_labels = {"service": "fraud-detection", "operation": "detect_fraud", "status": "success"}
    assert metrics.registry.get_sample_value("ai_call_count_total", call_labels) == 1.0
    assert metrics.registry.get_sample_value("ai_call_duration_seconds_count", call_labels) == 1.0
    assert metrics.registry.get_sample_value("ai_tokens_input_total", {"service": "fraud-detection"}) == 100.0
    assert metrics.registry.get_sample_value("ai_tokens_total", {"service": "fraud-detection"}) == 150.0
    assert metrics.registry.get_sample_value("ai_cost_total", {"service": "fraud-detection"}) == pytest.approx(0.01)

    text = metrics.render_prometheus().decode("utf-8")
    assert 'ai_ratelimit_rejections_total{service="fraud-detection"} 1.0' in text
    assert "ai_call_duration_seconds_bucket" in text
