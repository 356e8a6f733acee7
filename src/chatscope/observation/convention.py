"""
Default naming convention for chat observations.

Turns request options and response metadata into the observation name,
contextual name, and key-values. Every key listed in
LowCardinalityKeyNames / HighCardinalityKeyNames is always present;
absent values are recorded as NONE_VALUE.
"""

import json
from typing import Any

from .context import ChatObservationContext, ObservationContext
from .conventions import (
    DEFAULT_OBSERVATION_NAME,
    NONE_VALUE,
    HighCardinalityKeyNames,
    LowCardinalityKeyNames,
)
from .observation import ObservationConvention


def format_value(value: Any) -> str:
    """Render an attribute value; None becomes NONE_VALUE."""
    if value is None:
        return NONE_VALUE
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def format_list(values: list[str] | None) -> str:
    """Render a list as a JSON array string; empty or None becomes NONE_VALUE."""
    if not values:
        return NONE_VALUE
    return json.dumps(list(values))


class ChatObservationConvention(ObservationConvention):
    """Base for conventions that apply to chat calls."""

    def supports_context(self, context: ObservationContext) -> bool:
        return isinstance(context, ChatObservationContext)


class DefaultChatObservationConvention(ChatObservationConvention):
    """Convention used by ChatClient unless another one is supplied."""

    DEFAULT_NAME = DEFAULT_OBSERVATION_NAME

    def __init__(self, name: str = DEFAULT_OBSERVATION_NAME) -> None:
        self._name = name

    def get_name(self) -> str:
        return self._name

    def get_contextual_name(self, context: ChatObservationContext) -> str:
        if context.options.model:
            return f"{context.operation_type} {context.options.model}"
        return context.operation_type

    # -- Low cardinality -----------------------------------------------------

    def get_low_cardinality_key_values(self, context: ChatObservationContext) -> dict[str, str]:
        response_model = None
        if context.response is not None:
            response_model = context.response.metadata.model

        return {
            LowCardinalityKeyNames.AI_OPERATION_TYPE.value: context.operation_type,
            LowCardinalityKeyNames.AI_PROVIDER.value: context.provider,
            LowCardinalityKeyNames.REQUEST_MODEL.value: format_value(context.options.model),
            LowCardinalityKeyNames.RESPONSE_MODEL.value: format_value(response_model or None),
        }

    # -- High cardinality ----------------------------------------------------

    def get_high_cardinality_key_values(self, context: ChatObservationContext) -> dict[str, str]:
        key_values = self._request_key_values(context)
        key_values.update(self._response_key_values(context))
        return key_values

    def _request_key_values(self, context: ChatObservationContext) -> dict[str, str]:
        options = context.options
        return {
            HighCardinalityKeyNames.REQUEST_FREQUENCY_PENALTY.value: format_value(options.frequency_penalty),
            HighCardinalityKeyNames.REQUEST_MAX_TOKENS.value: format_value(options.max_tokens),
            HighCardinalityKeyNames.REQUEST_PRESENCE_PENALTY.value: format_value(options.presence_penalty),
            HighCardinalityKeyNames.REQUEST_STOP_SEQUENCES.value: format_list(options.stop_sequences),
            HighCardinalityKeyNames.REQUEST_TEMPERATURE.value: format_value(options.temperature),
            HighCardinalityKeyNames.REQUEST_TOP_K.value: format_value(options.top_k),
            HighCardinalityKeyNames.REQUEST_TOP_P.value: format_value(options.top_p),
        }

    def _response_key_values(self, context: ChatObservationContext) -> dict[str, str]:
        metadata = context.response.metadata if context.response is not None else None
        usage = metadata.usage if metadata is not None else None

        return {
            HighCardinalityKeyNames.RESPONSE_ID.value: format_value(metadata.id if metadata else None),
            HighCardinalityKeyNames.RESPONSE_FINISH_REASONS.value: format_list(
                metadata.finish_reasons if metadata else None
            ),
            HighCardinalityKeyNames.USAGE_INPUT_TOKENS.value: format_value(
                usage.prompt_tokens if usage else None
            ),
            HighCardinalityKeyNames.USAGE_OUTPUT_TOKENS.value: format_value(
                usage.generation_tokens if usage else None
            ),
            HighCardinalityKeyNames.USAGE_TOTAL_TOKENS.value: format_value(
                usage.total_tokens if usage else None
            ),
        }
