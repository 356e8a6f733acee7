"""
Observation handlers backed by OpenTelemetry and structlog.

- TracingObservationHandler: one CLIENT span per observation. All
  key-values become span attributes when the observation stops.
- MetricsObservationHandler: token usage counter and duration histogram,
  dimensioned by low-cardinality key-values only.
- LoggingObservationHandler: structured log line per lifecycle event.
"""

import time
from typing import Any

import structlog
from opentelemetry import context as otel_context
from opentelemetry import metrics, trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from .context import ChatObservationContext, ObservationContext
from .conventions import TOKEN_TYPE_KEY, AiMetricNames, AiTokenType
from .observation import ObservationHandler

logger = structlog.get_logger()

INSTRUMENTATION_NAME = "chatscope"

_SPAN_KEY = "otel.span"
_SCOPE_TOKENS_KEY = "otel.scope_tokens"
_START_KEY = "metrics.start"


class TracingObservationHandler(ObservationHandler):
    """Maps observations to OpenTelemetry spans.

    The span is named after the contextual name ("chat <model>") and is
    parented to the span of the parent observation when there is one,
    otherwise to whatever span is current in the OpenTelemetry context.
    """

    def __init__(self, tracer: Any = None) -> None:
        self._tracer = tracer or trace.get_tracer(INSTRUMENTATION_NAME)

    def on_start(self, context: ObservationContext) -> None:
        parent_context = None
        parent = context.parent_observation
        if parent is not None:
            parent_span = parent.context.get(_SPAN_KEY)
            if parent_span is not None:
                parent_context = trace.set_span_in_context(parent_span)

        span = self._tracer.start_span(
            context.contextual_name or context.name or "unknown",
            context=parent_context,
            kind=SpanKind.CLIENT,
        )
        context.put(_SPAN_KEY, span)

    def on_scope_opened(self, context: ObservationContext) -> None:
        span = context.get(_SPAN_KEY)
        if span is None:
            return
        token = otel_context.attach(trace.set_span_in_context(span))
        tokens = context.get(_SCOPE_TOKENS_KEY)
        if tokens is None:
            tokens = []
            context.put(_SCOPE_TOKENS_KEY, tokens)
        tokens.append(token)

    def on_scope_closed(self, context: ObservationContext) -> None:
        tokens = context.get(_SCOPE_TOKENS_KEY)
        if tokens:
            otel_context.detach(tokens.pop())

    def on_error(self, context: ObservationContext) -> None:
        span = context.get(_SPAN_KEY)
        if span is None or context.error is None:
            return
        span.record_exception(context.error)
        span.set_status(Status(StatusCode.ERROR, str(context.error)))

    def on_stop(self, context: ObservationContext) -> None:
        span = context.remove(_SPAN_KEY)
        if span is None:
            return
        if context.contextual_name:
            span.update_name(context.contextual_name)
        span.set_attributes(context.all_key_values)
        if context.error is not None:
            span.set_attribute("error.type", type(context.error).__name__)
        span.end()


class MetricsObservationHandler(ObservationHandler):
    """Records gen_ai.client.* metrics for chat observations."""

    def __init__(self, meter: Any = None) -> None:
        meter = meter or metrics.get_meter(INSTRUMENTATION_NAME)
        self._token_usage = meter.create_counter(
            AiMetricNames.TOKEN_USAGE.value,
            unit="{token}",
            description="Measures number of input and output tokens used",
        )
        self._duration = meter.create_histogram(
            AiMetricNames.OPERATION_DURATION.value,
            unit="s",
            description="Duration of the chat operation",
        )

    def supports_context(self, context: ObservationContext) -> bool:
        return isinstance(context, ChatObservationContext)

    def on_start(self, context: ObservationContext) -> None:
        context.put(_START_KEY, time.perf_counter())

    def on_stop(self, context: ChatObservationContext) -> None:
        attributes = dict(context.low_cardinality_key_values)
        if context.error is not None:
            attributes["error.type"] = type(context.error).__name__

        started = context.remove(_START_KEY)
        if started is not None:
            self._duration.record(time.perf_counter() - started, attributes=attributes)

        usage = context.response.metadata.usage if context.response is not None else None
        if usage is None:
            return
        for token_type, value in (
            (AiTokenType.INPUT, usage.prompt_tokens),
            (AiTokenType.OUTPUT, usage.generation_tokens),
            (AiTokenType.TOTAL, usage.total_tokens),
        ):
            self._token_usage.add(value, attributes={**attributes, TOKEN_TYPE_KEY: token_type.value})


class LoggingObservationHandler(ObservationHandler):
    """Logs observation lifecycle events through structlog."""

    def __init__(self) -> None:
        self.log = logger.bind(component="observation")

    def on_start(self, context: ObservationContext) -> None:
        self.log.debug(
            "observation.start",
            name=context.name,
            contextual_name=context.contextual_name,
        )

    def on_error(self, context: ObservationContext) -> None:
        self.log.warning(
            "observation.error",
            name=context.name,
            contextual_name=context.contextual_name,
            error=str(context.error),
            error_type=type(context.error).__name__,
        )

    def on_stop(self, context: ObservationContext) -> None:
        self.log.info(
            "observation.stop",
            name=context.name,
            contextual_name=context.contextual_name,
            **{key.replace(".", "_"): value for key, value in context.low_cardinality_key_values.items()},
        )
