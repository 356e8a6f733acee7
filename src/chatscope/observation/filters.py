"""
Opt-in content capture.

Prompt and completion text can be large and may hold sensitive data,
so they are only recorded when the corresponding filter is registered
(observations.include_prompt / include_completion).
"""

from .context import ChatObservationContext, ObservationContext
from .convention import format_list
from .conventions import HighCardinalityKeyNames
from .observation import ObservationFilter


class PromptContentObservationFilter(ObservationFilter):
    """Adds gen_ai.prompt: the message contents as a JSON array."""

    def map(self, context: ObservationContext) -> ObservationContext:
        if not isinstance(context, ChatObservationContext):
            return context
        contents = [m.content for m in context.prompt.messages]
        context.high_cardinality_key_values[HighCardinalityKeyNames.PROMPT.value] = format_list(contents)
        return context


class CompletionContentObservationFilter(ObservationFilter):
    """Adds gen_ai.completion: the generated texts as a JSON array."""

    def map(self, context: ObservationContext) -> ObservationContext:
        if not isinstance(context, ChatObservationContext) or context.response is None:
            return context
        contents = [g.content for g in context.response.results if g.content]
        context.high_cardinality_key_values[HighCardinalityKeyNames.COMPLETION.value] = format_list(contents)
        return context
