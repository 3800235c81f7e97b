"""OpenTelemetry tracing configuration for docvault.

Environment Variables:
    DOCVAULT_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    DOCVAULT_OTEL_SERVICE_NAME: Service name for spans (default: "docvault")
    DOCVAULT_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    DOCVAULT_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    DOCVAULT_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    DOCVAULT_OTEL_TEST_CAPTURE: Set to "1" to capture spans in memory (tests)

Object keys and tag values are never exported; see docvault.storage.tracing.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes"})

_provider: TracerProvider | None = None
_capture: InMemorySpanExporter | None = None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def _env_str(name: str) -> str:
    return os.environ.get(name, "").strip()


def is_tracing_enabled() -> bool:
    """Check whether span emission is switched on."""
    return _env_flag("DOCVAULT_OTEL_ENABLED")


@dataclass(frozen=True)
class TracingSettings:
    """Exporter selection read from the environment."""

    service_name: str = "docvault"
    exporter: str = "otlp"
    otlp_endpoint: str | None = None
    otlp_protocol: str = "grpc"
    test_capture: bool = False

    @classmethod
    def from_env(cls) -> TracingSettings:
        return cls(
            service_name=_env_str("DOCVAULT_OTEL_SERVICE_NAME") or "docvault",
            exporter=_env_str("DOCVAULT_OTEL_EXPORTER").lower() or "otlp",
            otlp_endpoint=_env_str("DOCVAULT_OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            otlp_protocol=_env_str("DOCVAULT_OTEL_EXPORTER_OTLP_PROTOCOL").lower() or "grpc",
            test_capture=_env_flag("DOCVAULT_OTEL_TEST_CAPTURE"),
        )


def _otlp_exporter(settings: TracingSettings) -> Any:
    kwargs: dict[str, Any] = {}
    if settings.otlp_endpoint:
        kwargs["endpoint"] = settings.otlp_endpoint

    if settings.otlp_protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HTTPExporter,
        )

        return HTTPExporter(**kwargs)

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter as GRPCExporter,
    )

    return GRPCExporter(**kwargs)


def _span_processor(settings: TracingSettings) -> SpanProcessor:
    global _capture

    if settings.test_capture:
        _capture = InMemorySpanExporter()
        return SimpleSpanProcessor(_capture)
    if settings.exporter == "console":
        return SimpleSpanProcessor(ConsoleSpanExporter())
    return BatchSpanProcessor(_otlp_exporter(settings))


def configure_tracing() -> bool:
    """Install the docvault tracer provider when tracing is enabled.

    Idempotent: OpenTelemetry accepts one global provider per process, so
    later calls reuse the first. A failure to build the exporter is logged
    and leaves tracing off.

    Returns:
        True if spans will be recorded, False otherwise.
    """
    global _provider

    if not is_tracing_enabled():
        logger.debug("OpenTelemetry tracing disabled (DOCVAULT_OTEL_ENABLED not set)")
        return False
    if _provider is not None:
        return True

    settings = TracingSettings.from_env()
    try:
        processor = _span_processor(settings)
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": settings.service_name}))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    _provider = provider

    logger.info(
        "OpenTelemetry tracing configured: service=%s, exporter=%s",
        settings.service_name,
        "in-memory" if settings.test_capture else settings.exporter,
    )
    return True


def get_test_spans() -> list[ReadableSpan]:
    """Spans captured by the in-memory exporter."""
    if _capture is None:
        return []
    return list(_capture.get_finished_spans())


def clear_test_spans() -> None:
    if _capture is not None:
        _capture.clear()


def reset_tracing() -> None:
    """Drop captured spans between tests; the provider itself stays installed."""
    clear_test_spans()
