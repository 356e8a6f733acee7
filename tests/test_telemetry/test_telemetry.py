"""
Tests for OpenTelemetry setup and registry assembly.

Covers:
- create_observation_registry: handlers and filters per config
- setup_telemetry with console and json-file exporters
- JsonFileSpanExporter output format
- TelemetryProviders shutdown
"""

import json
from unittest.mock import MagicMock

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor

from chatscope.config.schema import ObservationsConfig, TelemetryConfig
from chatscope.observation import (
    CompletionContentObservationFilter,
    LoggingObservationHandler,
    MetricsObservationHandler,
    ObservationRegistry,
    PromptContentObservationFilter,
    TracingObservationHandler,
)
from chatscope.telemetry import (
    JsonFileSpanExporter,
    TelemetryProviders,
    create_observation_registry,
    setup_telemetry,
)
from chatscope.telemetry.otel import SERVICE_NAME, SERVICE_VERSION


# -- create_observation_registry ----------------------------------------------


class TestCreateObservationRegistry:
    def test_defaults(self):
        registry = create_observation_registry(ObservationsConfig())
        kinds = [type(h) for h in registry.handlers]
        assert kinds == [TracingObservationHandler, MetricsObservationHandler, LoggingObservationHandler]
        assert registry.filters == ()
        assert not registry.is_noop

    def test_disabled_is_noop(self):
        registry = create_observation_registry(ObservationsConfig(enabled=False))
        assert registry.is_noop
        assert registry.filters == ()

    def test_without_metrics_and_logs(self):
        registry = create_observation_registry(ObservationsConfig(metrics=False, log_events=False))
        assert [type(h) for h in registry.handlers] == [TracingObservationHandler]

    def test_content_filters(self):
        registry = create_observation_registry(
            ObservationsConfig(include_prompt=True, include_completion=True)
        )
        assert [type(f) for f in registry.filters] == [
            PromptContentObservationFilter,
            CompletionContentObservationFilter,
        ]

    def test_populates_given_registry(self):
        registry = ObservationRegistry()
        assert create_observation_registry(ObservationsConfig(), registry=registry) is registry
        assert registry.handlers

    def test_uses_provider_tracer_and_meter(self):
        providers = MagicMock(spec=TelemetryProviders)
        create_observation_registry(ObservationsConfig(), providers)
        providers.get_tracer.assert_called_once()
        providers.get_meter.assert_called_once()


# -- setup_telemetry ----------------------------------------------------------


class TestSetupTelemetry:
    def test_console(self):
        providers = setup_telemetry(TelemetryConfig(enabled=True, exporter="console"), install_global=False)
        try:
            assert isinstance(providers.tracer_provider, TracerProvider)
            resource = providers.tracer_provider.resource.attributes
            assert resource["service.name"] == SERVICE_NAME
            assert resource["service.version"] == SERVICE_VERSION
            assert providers.get_tracer() is not None
            assert providers.get_meter() is not None
        finally:
            providers.shutdown()

    def test_json_file_writes_spans(self, tmp_path):
        trace_file = tmp_path / "out" / "traces.json"
        providers = setup_telemetry(
            TelemetryConfig(enabled=True, exporter="json-file", trace_file=str(trace_file)),
            install_global=False,
        )
        tracer = providers.get_tracer()
        with tracer.start_as_current_span("chat claude-3-haiku-20240307") as span:
            span.set_attribute("gen_ai.system", "anthropic")
        providers.shutdown()

        lines = trace_file.read_text().strip().splitlines()
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert data["name"] == "chat claude-3-haiku-20240307"
        assert data["attributes"] == {"gen_ai.system": "anthropic"}
        assert data["parent_span_id"] is None
        assert len(data["trace_id"]) == 32

    def test_shutdown_errors_are_logged_not_raised(self):
        tracer_provider = MagicMock()
        tracer_provider.shutdown.side_effect = RuntimeError("exporter gone")
        meter_provider = MagicMock()
        TelemetryProviders(tracer_provider, meter_provider).shutdown()
        meter_provider.shutdown.assert_called_once()


# -- JsonFileSpanExporter -----------------------------------------------------


class TestJsonFileSpanExporter:
    def test_child_span_has_parent_id(self, tmp_path):
        path = tmp_path / "spans.json"
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(JsonFileSpanExporter(str(path))))
        tracer = provider.get_tracer("test")

        with tracer.start_as_current_span("outer"):
            with tracer.start_as_current_span("inner"):
                pass

        inner, outer = (json.loads(line) for line in path.read_text().splitlines())
        assert inner["parent_span_id"] == outer["span_id"]
        assert inner["trace_id"] == outer["trace_id"]
        assert outer["status"] == "UNSET"
