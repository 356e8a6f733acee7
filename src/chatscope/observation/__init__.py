"""
Observation module - Instrumentation around chat calls.

Exports the observation lifecycle, the chat naming convention, and the
OpenTelemetry/structlog handlers.
"""

from .context import ChatObservationContext, ObservationContext
from .convention import ChatObservationConvention, DefaultChatObservationConvention
from .conventions import (
    DEFAULT_OBSERVATION_NAME,
    NONE_VALUE,
    AiOperationType,
    AiProvider,
    HighCardinalityKeyNames,
    LowCardinalityKeyNames,
)
from .filters import CompletionContentObservationFilter, PromptContentObservationFilter
from .handlers import (
    LoggingObservationHandler,
    MetricsObservationHandler,
    TracingObservationHandler,
)
from .observation import (
    Observation,
    ObservationConvention,
    ObservationFilter,
    ObservationHandler,
    ObservationRegistry,
    ObservationStateError,
)

__all__ = [
    "AiOperationType",
    "AiProvider",
    "ChatObservationContext",
    "ChatObservationConvention",
    "CompletionContentObservationFilter",
    "DEFAULT_OBSERVATION_NAME",
    "DefaultChatObservationConvention",
    "HighCardinalityKeyNames",
    "LoggingObservationHandler",
    "LowCardinalityKeyNames",
    "MetricsObservationHandler",
    "NONE_VALUE",
    "Observation",
    "ObservationContext",
    "ObservationConvention",
    "ObservationFilter",
    "ObservationHandler",
    "ObservationRegistry",
    "ObservationStateError",
    "PromptContentObservationFilter",
    "TracingObservationHandler",
]
