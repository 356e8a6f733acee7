"""
Chat request and response models.

Provider-independent types shared by the client and the observation
convention. All of them are immutable once built.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ChatOptions(BaseModel):
    """Options for a single chat request.

    Every field is optional: unset values fall back to the client defaults
    (see merge()) and are recorded as "none" in observations.
    """

    model: str | None = None
    max_tokens: int | None = Field(default=None, ge=1)
    stop_sequences: list[str] | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_k: int | None = Field(default=None, ge=1)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    model_config = {"extra": "forbid", "frozen": True}

    def merge(self, defaults: "ChatOptions") -> "ChatOptions":
        """Return new options where unset fields take the value from defaults."""
        values = defaults.model_dump()
        values.update(self.model_dump(exclude_none=True))
        return ChatOptions(**values)


class Message(BaseModel):
    """A single chat message."""

    role: Literal["system", "user", "assistant"] = "user"
    content: str

    model_config = {"extra": "forbid", "frozen": True}


class Prompt(BaseModel):
    """Messages plus request options.

    A plain string is accepted as the messages value and becomes a
    single user message:

        Prompt(messages="Why does a raven look like a desk?", options=opts)
    """

    messages: tuple[Message, ...]
    options: ChatOptions = Field(default_factory=ChatOptions)

    model_config = {"extra": "forbid", "frozen": True}

    def __init__(self, messages: str | list | tuple | None = None, **data) -> None:
        if isinstance(messages, str):
            messages = (Message(content=messages),)
        super().__init__(messages=messages, **data)

    @field_validator("messages")
    @classmethod
    def _validate_messages(cls, v: tuple[Message, ...]) -> tuple[Message, ...]:
        if not v:
            raise ValueError("A prompt needs at least one message")
        return v

    def to_openai_messages(self) -> list[dict[str, str]]:
        """Messages in the OpenAI format LiteLLM expects."""
        return [{"role": m.role, "content": m.content} for m in self.messages]


class Usage(BaseModel):
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    generation_tokens: int = 0
    total_tokens: int = 0

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("total_tokens"):
            data = dict(data)
            data["total_tokens"] = (data.get("prompt_tokens") or 0) + (
                data.get("generation_tokens") or 0
            )
        return data


class Generation(BaseModel):
    """One generated output and why generation stopped."""

    content: str = ""
    finish_reason: str | None = None

    model_config = {"extra": "forbid", "frozen": True}


class ResponseMetadata(BaseModel):
    """Provider metadata attached to every response."""

    id: str | None = None
    model: str | None = None
    usage: Usage | None = None
    finish_reasons: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}


class ChatResponse(BaseModel):
    """A complete response, or one element of a stream.

    Stream elements may carry no generation at all (usage-only chunks),
    in which case result is None.
    """

    results: list[Generation] = Field(default_factory=list)
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def result(self) -> Generation | None:
        return self.results[0] if self.results else None
