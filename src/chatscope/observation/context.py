"""
Observation contexts.

A context is the mutable record an observation carries through its
lifecycle: names and key-values filled in by the convention, the error
(if any), and a small per-handler store so handlers can keep state
(spans, timers) between on_start and on_stop.
"""

from typing import TYPE_CHECKING, Any

from .conventions import AiOperationType

if TYPE_CHECKING:
    from ..chat.model import ChatOptions, ChatResponse, Prompt


class ObservationContext:
    """Generic observation context."""

    def __init__(self) -> None:
        self.name: str | None = None
        self.contextual_name: str | None = None
        self.low_cardinality_key_values: dict[str, str] = {}
        self.high_cardinality_key_values: dict[str, str] = {}
        self.error: BaseException | None = None
        self.parent_observation: Any = None
        self._store: dict[Any, Any] = {}

    def put(self, key: Any, value: Any) -> None:
        self._store[key] = value

    def get(self, key: Any, default: Any = None) -> Any:
        return self._store.get(key, default)

    def remove(self, key: Any) -> Any:
        return self._store.pop(key, None)

    @property
    def all_key_values(self) -> dict[str, str]:
        return {**self.low_cardinality_key_values, **self.high_cardinality_key_values}

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(name={self.name!r}, "
            f"contextual_name={self.contextual_name!r}, error={self.error!r})>"
        )


class ChatObservationContext(ObservationContext):
    """Context of one chat call.

    Attributes:
        prompt: The prompt as sent by the caller
        options: Effective request options (prompt options merged over defaults)
        provider: Provider identifier recorded as gen_ai.system
        operation_type: Always "chat" for chat calls
        response: Final response; for streams, the aggregate of all elements
    """

    def __init__(
        self,
        prompt: "Prompt",
        options: "ChatOptions",
        provider: str,
        operation_type: str = AiOperationType.CHAT.value,
    ) -> None:
        super().__init__()
        self.prompt = prompt
        self.options = options
        self.provider = provider
        self.operation_type = operation_type
        self.response: "ChatResponse | None" = None
