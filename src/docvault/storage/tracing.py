"""OpenTelemetry tracing for object store gateway calls.

Spans never carry raw object keys; keys are exported as a SHA-256 digest so
operations can be correlated without leaking file names.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from docvault.observability.tracing import is_tracing_enabled
from docvault.storage.models import ObjectStat, StoredObject

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def key_digest(key: str) -> str:
    """Return the hex SHA-256 of an object key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def traced_gateway_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace gateway operations with OpenTelemetry.

    The wrapped method must take ``bucket`` as its first positional argument
    and may take ``key`` as its second.

    Args:
        operation: Operation name (e.g., "put", "get", "stat", "list").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, bucket: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, bucket, *args, **kwargs)

            tracer = trace.get_tracer("docvault.object_store")
            with tracer.start_as_current_span(f"docvault.object_store.{operation}") as span:
                span.set_attribute("docvault.bucket", bucket)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                key = args[0] if args and isinstance(args[0], str) else kwargs.get("key")
                if isinstance(key, str):
                    span.set_attribute("docvault.object_key_sha256", key_digest(key))

                try:
                    result = func(self, bucket, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                if result is not None:
                    _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add size/etag attributes from a gateway result."""
    stat: ObjectStat | None = None
    if isinstance(result, ObjectStat):
        stat = result
    elif isinstance(result, StoredObject):
        stat = result.stat

    if stat is not None:
        span.set_attribute("docvault.object_size_bytes", stat.size)
        span.set_attribute("docvault.object_etag", stat.etag)
        if stat.content_type:
            span.set_attribute("docvault.object_content_type", stat.content_type)

    if operation == "list" and isinstance(result, list):
        span.set_attribute("docvault.object_count", len(result))
