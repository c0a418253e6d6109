"""Observability setup for objecthub (OpenTelemetry tracing)."""
