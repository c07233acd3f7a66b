"""Tests for OpenTelemetry helpers."""

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from contractor_crm.core import telemetry
from contractor_crm.core.telemetry import parse_otlp_headers, service_span


@pytest.fixture
def exporter(monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
    """Route service spans to an in-memory exporter."""
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    monkeypatch.setattr(telemetry.trace, "get_tracer", lambda name: provider.get_tracer(name))
    return span_exporter


class TestServiceSpan:
    """Tests for service_span."""

    def test_records_attributes_and_ok_status(self, exporter: InMemorySpanExporter) -> None:
        """Test that a successful block ends with OK status and peer.service set."""
        with service_span("turnstile.verify", "cloudflare-turnstile", kind=SpanKind.CLIENT, attempt=1):
            pass

        (span,) = exporter.get_finished_spans()
        assert span.name == "turnstile.verify"
        assert span.kind == SpanKind.CLIENT
        assert span.attributes["peer.service"] == "cloudflare-turnstile"
        assert span.attributes["attempt"] == 1
        assert span.status.status_code == StatusCode.OK

    def test_error_status_on_exception(self, exporter: InMemorySpanExporter) -> None:
        """Test that an exception marks the span as failed and propagates."""
        with pytest.raises(ValueError, match="boom"), service_span("lead_intake.persist", "database"):
            msg = "boom"
            raise ValueError(msg)

        (span,) = exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR


class TestParseOtlpHeaders:
    """Tests for OTLP header parsing."""

    def test_parses_pairs(self) -> None:
        """Test comma-separated key=value pairs."""
        assert parse_otlp_headers("Authorization=Bearer abc, X-Team = crm") == {
            "Authorization": "Bearer abc",
            "X-Team": "crm",
        }

    def test_empty(self) -> None:
        """Test that blank input gives no headers."""
        assert parse_otlp_headers("  ") == {}

    def test_skips_malformed(self) -> None:
        """Test that entries without '=' are ignored."""
        assert parse_otlp_headers("novalue,a=b") == {"a": "b"}
