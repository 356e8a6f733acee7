"""
OpenTelemetry setup for chatscope.

Builds the tracer and meter providers that observation handlers write
to, and assembles the ObservationRegistry described by the
configuration.

Supported exporters:
- otlp: OpenTelemetry Protocol (gRPC)
- console: prints spans and metrics to stderr (debugging)
- json-file: appends one JSON line per span to a file

With telemetry disabled the handlers still run against the global
OpenTelemetry API, which is a no-op until an SDK provider is installed.
"""

import json
import sys
from pathlib import Path
from typing import Any, Sequence

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from ..config.schema import ObservationsConfig, TelemetryConfig
from ..observation.filters import (
    CompletionContentObservationFilter,
    PromptContentObservationFilter,
)
from ..observation.handlers import (
    INSTRUMENTATION_NAME,
    LoggingObservationHandler,
    MetricsObservationHandler,
    TracingObservationHandler,
)
from ..observation.observation import ObservationRegistry

logger = structlog.get_logger()

__all__ = [
    "JsonFileSpanExporter",
    "TelemetryProviders",
    "create_observation_registry",
    "setup_telemetry",
]

# Service name and version for traces
SERVICE_NAME = "chatscope"
SERVICE_VERSION = "0.3.0"


class JsonFileSpanExporter(SpanExporter):
    """Writes spans as JSON lines to a file."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        with open(self.file_path, "a", encoding="utf-8") as f:
            for span in spans:
                data = {
                    "name": span.name,
                    "trace_id": format(span.context.trace_id, "032x"),
                    "span_id": format(span.context.span_id, "016x"),
                    "parent_span_id": format(span.parent.span_id, "016x") if span.parent else None,
                    "start_time": span.start_time,
                    "end_time": span.end_time,
                    "attributes": dict(span.attributes) if span.attributes else {},
                    "status": span.status.status_code.name,
                }
                f.write(json.dumps(data, default=str) + "\n")
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        pass


class TelemetryProviders:
    """SDK providers installed by setup_telemetry().

    Attributes:
        tracer_provider: TracerProvider receiving observation spans
        meter_provider: MeterProvider receiving observation metrics
    """

    def __init__(self, tracer_provider: TracerProvider, meter_provider: MeterProvider) -> None:
        self.tracer_provider = tracer_provider
        self.meter_provider = meter_provider
        self.log = logger.bind(component="telemetry")

    def get_tracer(self) -> Any:
        return self.tracer_provider.get_tracer(INSTRUMENTATION_NAME, SERVICE_VERSION)

    def get_meter(self) -> Any:
        return self.meter_provider.get_meter(INSTRUMENTATION_NAME, SERVICE_VERSION)

    def shutdown(self) -> None:
        """Flush pending spans and metrics and stop the exporters."""
        for provider in (self.tracer_provider, self.meter_provider):
            try:
                provider.shutdown()
            except Exception as e:
                self.log.warning("telemetry.shutdown_error", error=str(e))


def _span_exporter(config: TelemetryConfig) -> tuple[SpanExporter, bool]:
    """Return the span exporter and whether it should be batched."""
    match config.exporter:
        case "otlp":
            return OTLPSpanExporter(endpoint=config.endpoint), True
        case "json-file":
            path = config.trace_file or ".chatscope/traces.json"
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            return JsonFileSpanExporter(path), False
        case _:
            return ConsoleSpanExporter(out=sys.stderr), False


def setup_telemetry(config: TelemetryConfig, install_global: bool = True) -> TelemetryProviders:
    """Create SDK tracer/meter providers according to config.

    Args:
        config: Telemetry configuration (exporter, endpoint, trace_file)
        install_global: If True, also registers the providers as the
            global OpenTelemetry providers

    Returns:
        The created providers; call shutdown() before exiting.
    """
    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
    })

    tracer_provider = TracerProvider(resource=resource)
    exporter, batched = _span_exporter(config)
    processor = BatchSpanProcessor(exporter) if batched else SimpleSpanProcessor(exporter)
    tracer_provider.add_span_processor(processor)

    if config.exporter == "otlp":
        metric_exporter = OTLPMetricExporter(endpoint=config.endpoint)
    else:
        metric_exporter = ConsoleMetricExporter(out=sys.stderr)
    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[PeriodicExportingMetricReader(metric_exporter)],
    )

    if install_global:
        trace.set_tracer_provider(tracer_provider)
        metrics.set_meter_provider(meter_provider)

    logger.info(
        "telemetry.initialized",
        exporter=config.exporter,
        endpoint=config.endpoint if config.exporter == "otlp" else None,
    )
    return TelemetryProviders(tracer_provider, meter_provider)


def create_observation_registry(
    config: ObservationsConfig,
    providers: TelemetryProviders | None = None,
    registry: ObservationRegistry | None = None,
) -> ObservationRegistry:
    """Build the observation registry described by config.

    Args:
        config: Which handlers and content filters to enable
        providers: SDK providers from setup_telemetry(); when None, the
            global OpenTelemetry providers are used
        registry: Registry to populate (a new one when None)

    Returns:
        The populated registry. A disabled config yields a registry
        without handlers.
    """
    registry = registry if registry is not None else ObservationRegistry()
    if not config.enabled:
        return registry

    tracer = providers.get_tracer() if providers else None
    registry.add_handler(TracingObservationHandler(tracer))
    if config.metrics:
        meter = providers.get_meter() if providers else None
        registry.add_handler(MetricsObservationHandler(meter))
    if config.log_events:
        registry.add_handler(LoggingObservationHandler())

    if config.include_prompt:
        registry.add_filter(PromptContentObservationFilter())
    if config.include_completion:
        registry.add_filter(CompletionContentObservationFilter())

    logger.debug(
        "observation.registry_created",
        handlers=[type(h).__name__ for h in registry.handlers],
        filters=[type(f).__name__ for f in registry.filters],
    )
    return registry
