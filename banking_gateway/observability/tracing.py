"""
Centralized Tracing Utility for Distributed Tracing

Provides OpenTelemetry-based tracing with an OTLP exporter by default.
Supports configuration via environment variables and safe failure handling.
"""

import os
import logging
from typing import Optional
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer

logger = logging.getLogger(__name__)

# Global tracer provider
_tracer_provider: Optional[TracerProvider] = None
_tracing_configured = False


def configure_tracing():
    """
    Configure OpenTelemetry tracing.

    Environment Variables:
    - TRACING_ENABLED: Enable/disable tracing (default: false)
    - TRACING_EXPORTER: otlp | console | none (default: otlp)
    - TRACING_SERVICE_NAME: Service name (default: banking-ai-gateway)
    - OTEL_EXPORTER_OTLP_ENDPOINT: Collector endpoint used by the OTLP exporter

    Safe Failure: If configuration fails, tracing is disabled but app continues.
    """
    global _tracer_provider, _tracing_configured

    if _tracing_configured:
        return

    try:
        tracing_enabled = os.getenv("TRACING_ENABLED", "false").lower() == "true"

        if not tracing_enabled:
            logger.info("Tracing is disabled via TRACING_ENABLED=false")
            _tracing_configured = True
            return

        service_name = os.getenv("TRACING_SERVICE_NAME", "banking-ai-gateway")
        exporter_type = os.getenv("TRACING_EXPORTER", "otlp").lower()

        resource = Resource(attributes={SERVICE_NAME: service_name})
        _tracer_provider = TracerProvider(resource=resource)

        if exporter_type == "otlp":
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

            _tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
            logger.info("OTLP tracing configured")

        elif exporter_type == "console":
            _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            logger.info("Console tracing configured")

        elif exporter_type == "none":
            logger.info("Tracing exporter set to 'none' - no spans will be exported")

        else:
            logger.warning(f"Unknown exporter type: {exporter_type}. Tracing disabled.")
            _tracer_provider = None

        if _tracer_provider:
            trace.set_tracer_provider(_tracer_provider)

        _tracing_configured = True
        logger.info(f"Tracing configured successfully (service: {service_name})")

    except Exception as e:
        logger.error(f"Failed to configure tracing: {e}. Tracing will be disabled.")
        _tracer_provider = None
        _tracing_configured = True


def is_tracing_enabled() -> bool:
    """
    Check if tracing is enabled.

    Returns:
        True if tracing is configured and enabled, False otherwise
    """
    return _tracer_provider is not None


def get_tracer(component: str) -> Tracer:
    """
    Get a tracer for the given component.

    Returns a no-op tracer until a provider has been configured.
    """
    return trace.get_tracer(component)


@contextmanager
def trace_span(tracer: Tracer, span_name: str, attributes: Optional[dict] = None):
    """
    Context manager for creating a traced span.

    Yields None when tracing is disabled so callers can guard attribute
    writes with ``if span``.

    Example:
        with trace_span(tracer, "fraud.detect", {"account": number}) as span:
            add_span_attributes(span, {"result": "ok"})
    """
    if not is_tracing_enabled():
        yield None
        return

    with tracer.start_as_current_span(span_name, record_exception=False, set_status_on_exception=False) as span:
        if attributes:
            add_span_attributes(span, attributes)
        try:
            yield span
        except Exception as e:
            set_span_error(span, e)
            raise


def set_span_error(span, error: Exception):
    """Mark a span as errored with exception details."""
    if span and is_tracing_enabled():
        try:
            span.set_status(Status(StatusCode.ERROR, str(error)))
            span.record_exception(error)
        except Exception as e:
            logger.error(f"Error setting span error: {e}")


def add_span_attributes(span, attributes: dict):
    """
    Add attributes to a span safely.

    Args:
        span: Span instance, or None for the current span
        attributes: Dictionary of attributes to add
    """
    if not is_tracing_enabled():
        return

    try:
        target = span if span is not None else trace.get_current_span()
        for key, value in attributes.items():
            target.set_attribute(key, value)
    except Exception as e:
        logger.error(f"Error adding span attributes: {e}")
