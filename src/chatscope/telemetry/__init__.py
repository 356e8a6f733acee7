"""
Telemetry -- OpenTelemetry providers and observation registry wiring.
"""

from .otel import (
    JsonFileSpanExporter,
    TelemetryProviders,
    create_observation_registry,
    setup_telemetry,
)

__all__ = [
    "JsonFileSpanExporter",
    "TelemetryProviders",
    "create_observation_registry",
    "setup_telemetry",
]
