"""OpenTelemetry tracing for storage backend operations.

Spans carry the storage id (a digest, never a path), the backend name and,
for reads and writes, the byte count. Filesystem paths are never exported.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar, cast

from objecthub.observability.tracing import is_tracing_enabled

F = TypeVar("F", bound=Callable[..., Any])


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace storage backend calls with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "exists", "read", "write").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, storage_id: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, storage_id, *args, **kwargs)

            from opentelemetry import trace

            tracer = trace.get_tracer("objecthub.storage")

            with tracer.start_as_current_span(f"objecthub.storage.{operation}") as span:
                span.set_attribute("objecthub.storage_id", storage_id)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                try:
                    result = func(self, storage_id, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add result-based attributes to span safely."""
    if operation == "exists" and isinstance(result, bool):
        span.set_attribute("objecthub.blob_exists", result)
    elif operation == "read" and isinstance(result, bytes):
        span.set_attribute("objecthub.blob_size_bytes", len(result))
    elif operation == "write" and isinstance(result, int):
        span.set_attribute("objecthub.blob_size_bytes", result)
