from opentelemetry import trace

from issuefold import observability
from issuefold.observability import configure_telemetry, operation_span


def test_configure_telemetry_sets_tracer_provider():
    configure_telemetry(service_name="issuefold-test", exporter="console")
    tracer = trace.get_tracer("issuefold-test")
    with tracer.start_as_current_span("demo") as span:
        assert span is not None


def test_configure_telemetry_runs_once(monkeypatch):
    monkeypatch.setitem(observability._telemetry_configured, "configured", True)
    calls: list[str] = []
    monkeypatch.setattr(observability, "_load_opentelemetry_sdk", lambda: calls.append("load"))
    configure_telemetry(service_name="issuefold-test")
    assert calls == []


def test_configure_telemetry_without_sdk_uses_noop_provider(monkeypatch):
    monkeypatch.setitem(observability._telemetry_configured, "configured", False)
    monkeypatch.setattr(observability, "_load_opentelemetry_sdk", lambda: None)
    chosen: list[object] = []
    monkeypatch.setattr(observability.trace, "set_tracer_provider", chosen.append)
    configure_telemetry(service_name="issuefold-test")
    assert isinstance(chosen[0], trace.NoOpTracerProvider)


def test_operation_span_sets_attributes():
    with operation_span("issuefold.test", dry_run=True, count=3) as span:
        span.set_attribute("extra", "value")
