"""Lightweight helpers for configuring OpenTelemetry exporters."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Final

from opentelemetry import trace

_telemetry_configured: Final[dict[str, bool]] = {"configured": False}
_TRACER_NAME = "issuefold"


@lru_cache(maxsize=1)
def _load_opentelemetry_sdk() -> dict[str, Any] | None:
    try:  # pragma: no cover - optional dependency
        resources_module = importlib.import_module("opentelemetry.sdk.resources")
        trace_sdk_module = importlib.import_module("opentelemetry.sdk.trace")
        export_module = importlib.import_module("opentelemetry.sdk.trace.export")
    except ImportError:
        return None

    runtime: dict[str, Any] = {
        "TracerProvider": trace_sdk_module.TracerProvider,
        "Resource": resources_module.Resource,
        "BatchSpanProcessor": export_module.BatchSpanProcessor,
        "ConsoleSpanExporter": export_module.ConsoleSpanExporter,
        "OTLPSpanExporter": None,
    }
    try:  # pragma: no cover - optional dependency
        exporter_module = importlib.import_module("opentelemetry.exporter.otlp.proto.http.trace_exporter")
        runtime["OTLPSpanExporter"] = exporter_module.OTLPSpanExporter
    except ImportError:
        pass
    return runtime


def configure_telemetry(
    *,
    service_name: str,
    exporter: str = "console",
    endpoint: str | None = None,
) -> None:
    """Configure OpenTelemetry once per process."""

    if _telemetry_configured["configured"]:
        return

    runtime = _load_opentelemetry_sdk()
    if runtime is None:
        logging.getLogger(__name__).debug("OpenTelemetry SDK not installed; spans are no-ops")
        trace.set_tracer_provider(trace.NoOpTracerProvider())
        _telemetry_configured["configured"] = True
        return

    resource = runtime["Resource"].create({"service.name": service_name})
    provider = runtime["TracerProvider"](resource=resource)

    otlp_cls = runtime["OTLPSpanExporter"]
    if exporter.lower() == "otlp" and otlp_cls is not None:
        span_exporter = otlp_cls(endpoint=endpoint) if endpoint else otlp_cls()
    else:
        if exporter.lower() == "otlp":
            logging.getLogger(__name__).warning("OTLP exporter not installed; using console exporter")
        span_exporter = runtime["ConsoleSpanExporter"]()

    provider.add_span_processor(runtime["BatchSpanProcessor"](span_exporter))
    trace.set_tracer_provider(provider)
    _telemetry_configured["configured"] = True


@contextmanager
def operation_span(name: str, **attributes: Any) -> Iterator[Any]:
    """Run a block inside a span; the global provider decides whether it is recorded."""
    tracer = trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span


__all__ = ["configure_telemetry", "operation_span"]
