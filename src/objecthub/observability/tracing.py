"""OpenTelemetry tracing setup for objecthub.

Tracing is off unless OBJECTHUB_OTEL_ENABLED=1. When enabled, a tracer
provider is installed once per process; storage backend calls then emit spans.

Environment Variables:
    OBJECTHUB_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    OBJECTHUB_REQUIRE_OTEL: Set to "1" to fail startup if tracing cannot initialize
    OBJECTHUB_OTEL_SERVICE_NAME: Service name for spans (default: "objecthub")
    OBJECTHUB_OTEL_TEST_CAPTURE: Set to "1" to keep spans in memory for tests
"""

from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

OBJECTHUB_OTEL_ENABLED_ENV = "OBJECTHUB_OTEL_ENABLED"
OBJECTHUB_REQUIRE_OTEL_ENV = "OBJECTHUB_REQUIRE_OTEL"
OBJECTHUB_OTEL_SERVICE_NAME_ENV = "OBJECTHUB_OTEL_SERVICE_NAME"
OBJECTHUB_OTEL_TEST_CAPTURE_ENV = "OBJECTHUB_OTEL_TEST_CAPTURE"

_tracer_provider: Any = None
_test_exporter: Any = None


class TracingConfigError(Exception):
    """Raised when tracing is required but cannot be configured."""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def is_tracing_enabled() -> bool:
    return get_env_bool(OBJECTHUB_OTEL_ENABLED_ENV, False)


def configure_tracing() -> bool:
    """Install the OpenTelemetry tracer provider.

    Idempotent. Spans go to an in-memory exporter when test capture is on,
    otherwise to the console.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If OBJECTHUB_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _test_exporter

    if not is_tracing_enabled():
        logger.debug("OpenTelemetry tracing disabled (%s not set)", OBJECTHUB_OTEL_ENABLED_ENV)
        return False

    if _tracer_provider is not None:
        return True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        service_name = os.environ.get(OBJECTHUB_OTEL_SERVICE_NAME_ENV, "objecthub")
        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if get_env_bool(OBJECTHUB_OTEL_TEST_CAPTURE_ENV, False):
            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        else:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info("OpenTelemetry tracing configured: service=%s", service_name)
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if get_env_bool(OBJECTHUB_REQUIRE_OTEL_ENV, False):
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


def get_finished_spans() -> list[Any]:
    """Spans captured by the in-memory exporter. For testing only."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())
