"""
Observable chat client on top of LiteLLM.

Every call is wrapped in an observation that is started before the
request goes out and stopped once the response (or the whole stream)
is available, on success and on failure alike.

Provider failures go through the RetryPolicy: transient ones (rate
limits, 5xx, connection problems) are retried with backoff, the rest
surface immediately as NonTransientProviderError.
"""

import os
from typing import Any, Generator

import litellm
import structlog

from ..config.schema import LLMConfig, RetryConfig
from ..observation.context import ChatObservationContext
from ..observation.convention import DefaultChatObservationConvention
from ..observation.conventions import AiProvider
from ..observation.observation import ObservationConvention, ObservationRegistry
from .model import ChatOptions, ChatResponse, Generation, Prompt, ResponseMetadata, Usage
from .retry import RetryPolicy

logger = structlog.get_logger()

# gen_ai.system values whose LiteLLM route prefix is spelled differently
_LITELLM_ROUTES: dict[str, str] = {
    AiProvider.AZURE_OPENAI.value: "azure",
    AiProvider.MISTRAL_AI.value: "mistral",
}

# LiteLLM rewrites finish reasons to OpenAI's vocabulary; these restore the
# provider's own codes. "stop" covers both end_turn and stop_sequence.
_NATIVE_FINISH_REASONS: dict[str, dict[str, str]] = {
    AiProvider.ANTHROPIC.value: {
        "stop": "end_turn",
        "length": "max_tokens",
        "tool_calls": "tool_use",
        "content_filter": "refusal",
    },
}


class StreamAggregator:
    """Folds stream elements into the single response an observation records.

    Content is concatenated; id, model and usage keep the last value seen.
    The metadata finish reasons are those of the last element, so a stream
    ending on a usage-only element records none.
    """

    def __init__(self) -> None:
        self.count = 0
        self._content: list[str] = []
        self._last_finish_reason: str | None = None
        self._finish_reasons: list[str] = []
        self._id: str | None = None
        self._model: str | None = None
        self._usage: Usage | None = None

    def add(self, response: ChatResponse) -> None:
        self.count += 1
        metadata = response.metadata
        if metadata.id:
            self._id = metadata.id
        if metadata.model:
            self._model = metadata.model
        if metadata.usage is not None:
            self._usage = metadata.usage
        for generation in response.results:
            if generation.content:
                self._content.append(generation.content)
            if generation.finish_reason:
                self._last_finish_reason = generation.finish_reason
        self._finish_reasons = list(metadata.finish_reasons)

    def build(self) -> ChatResponse | None:
        if not self.count:
            return None
        return ChatResponse(
            results=[Generation(content="".join(self._content), finish_reason=self._last_finish_reason)],
            metadata=ResponseMetadata(
                id=self._id,
                model=self._model,
                usage=self._usage,
                finish_reasons=list(self._finish_reasons),
            ),
        )


class ChatClient:
    """Chat client with retries and observations.

    Provides:
    - call(): one blocking request, one ChatResponse
    - stream(): lazy generator of partial ChatResponses
    - Default options from LLMConfig, overridden per prompt
    - API key read from the environment variable named in the config
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        observation_registry: ObservationRegistry | None = None,
        convention: ObservationConvention | None = None,
        default_options: ChatOptions | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider configuration
            retry_policy: Retry policy (defaults to RetryConfig defaults)
            observation_registry: Registry receiving the observations;
                a registry without handlers records nothing
            convention: Observation naming convention
            default_options: Options used where the prompt leaves a field unset;
                built from config when omitted
        """
        self.config = config or LLMConfig()
        self.provider = self.config.provider
        self.route = self.config.litellm_provider or _LITELLM_ROUTES.get(self.provider, self.provider)
        self.default_options = default_options or ChatOptions(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        self.retry_policy = retry_policy or RetryPolicy(RetryConfig(), provider=self.provider)
        self.observation_registry = observation_registry or ObservationRegistry()
        self.convention = convention or DefaultChatObservationConvention()
        self.log = logger.bind(component="chat_client", provider=self.provider)

        self._api_key = self._resolve_api_key()
        litellm.suppress_debug_info = True

        self.log.info(
            "chat.client.initialized",
            model=self.default_options.model,
            max_attempts=self.retry_policy.config.max_attempts,
            observations=not self.observation_registry.is_noop,
        )

    def _resolve_api_key(self) -> str | None:
        api_key = os.environ.get(self.config.api_key_env)
        if api_key:
            self.log.debug("chat.api_key_configured", env_var=self.config.api_key_env)
        else:
            self.log.warning(
                "chat.no_api_key",
                env_var=self.config.api_key_env,
                message=f"Environment variable {self.config.api_key_env} not found",
            )
        return api_key

    def _litellm_model(self, model: str) -> str:
        """LiteLLM routes on a "route/model" prefix."""
        if "/" in model:
            return model
        return f"{self.route}/{model}"

    def _effective_options(self, prompt: Prompt) -> ChatOptions:
        options = prompt.options.merge(self.default_options)
        if not options.model:
            raise ValueError("No model set on the prompt options or the client defaults")
        return options

    def _build_request(self, prompt: Prompt, options: ChatOptions, stream: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._litellm_model(options.model),
            "messages": prompt.to_openai_messages(),
            "timeout": self.config.timeout,
            "stream": stream,
            # Anthropic rejects frequency/presence penalties
            "drop_params": True,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            kwargs["stop"] = list(options.stop_sequences)
        for name in ("temperature", "top_p", "top_k", "frequency_penalty", "presence_penalty"):
            value = getattr(options, name)
            if value is not None:
                kwargs[name] = value
        if stream:
            kwargs["stream_options"] = {"include_usage": True}
        return kwargs

    def _new_observation(self, prompt: Prompt, options: ChatOptions):
        context = ChatObservationContext(prompt=prompt, options=options, provider=self.provider)
        return self.observation_registry.observation(context, self.convention), context

    def call(self, prompt: Prompt) -> ChatResponse:
        """Send the prompt and wait for the complete response.

        Args:
            prompt: Messages and options

        Returns:
            The normalized response

        Raises:
            TransientProviderError: If retries for a transient failure are exhausted
            NonTransientProviderError: Immediately (no retry)
        """
        options = self._effective_options(prompt)
        request = self._build_request(prompt, options, stream=False)
        observation, context = self._new_observation(prompt, options)

        observation.start()
        try:
            with observation.open_scope():
                self.log.info(
                    "chat.call.start",
                    model=options.model,
                    messages_count=len(prompt.messages),
                )
                raw = self.retry_policy.call(litellm.completion, **request)
                response = self._normalize_response(raw)
                context.response = response

            self.log.info(
                "chat.call.success",
                response_id=response.metadata.id,
                finish_reasons=response.metadata.finish_reasons,
                usage=response.metadata.usage.model_dump() if response.metadata.usage else None,
            )
            return response

        except Exception as e:
            observation.error(e)
            self.log.error(
                "chat.call.error",
                error=str(e),
                error_type=type(e).__name__,
                status_code=getattr(e, "status_code", None),
            )
            raise

        finally:
            observation.stop()

    def stream(self, prompt: Prompt) -> Generator[ChatResponse, None, None]:
        """Send the prompt and yield partial responses as they arrive.

        The returned generator is lazy and single-pass: nothing is sent until
        the first element is requested. Only opening the stream is retried;
        a failure after the first element propagates as a provider error.
        The observation is stopped when the stream ends, fails, or the
        consumer closes the generator.

        Args:
            prompt: Messages and options

        Yields:
            ChatResponse per provider chunk. Elements without generated
            content (e.g. the usage-only tail) have result None.
        """
        options = self._effective_options(prompt)
        request = self._build_request(prompt, options, stream=True)
        observation, context = self._new_observation(prompt, options)
        aggregator = StreamAggregator()

        observation.start()
        try:
            with observation.open_scope():
                self.log.info(
                    "chat.stream.start",
                    model=options.model,
                    messages_count=len(prompt.messages),
                )
                chunks = self.retry_policy.call(litellm.completion, **request)

            for chunk in chunks:
                response = self._normalize_chunk(chunk)
                aggregator.add(response)
                yield response

            self.log.info("chat.stream.complete", elements=aggregator.count)

        except Exception as e:
            error = self.retry_policy.classify(e) or e
            observation.error(error)
            self.log.error(
                "chat.stream.error",
                error=str(error),
                error_type=type(error).__name__,
                status_code=getattr(error, "status_code", None),
                elements=aggregator.count,
            )
            if error is e:
                raise
            raise error from e

        finally:
            context.response = aggregator.build()
            observation.stop()

    def _normalize_usage(self, raw_usage: Any) -> Usage | None:
        if not raw_usage:
            return None
        prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
        total_tokens = getattr(raw_usage, "total_tokens", 0) or 0
        if not (prompt_tokens or completion_tokens or total_tokens):
            return None
        return Usage(
            prompt_tokens=prompt_tokens,
            generation_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

    def _native_finish_reason(self, choice: Any) -> str | None:
        """The provider's own finish reason for a LiteLLM choice.

        LiteLLM keeps the original value under provider_specific_fields
        when it builds the choice itself; otherwise the normalized value
        is mapped back.
        """
        reason = getattr(choice, "finish_reason", None)
        if not reason:
            return None
        fields = getattr(choice, "provider_specific_fields", None)
        if isinstance(fields, dict) and fields.get("native_finish_reason"):
            return fields["native_finish_reason"]
        return _NATIVE_FINISH_REASONS.get(self.provider, {}).get(reason, reason)

    def _normalize_response(self, raw: Any) -> ChatResponse:
        """Normalize a LiteLLM ModelResponse."""
        results = []
        for choice in getattr(raw, "choices", None) or []:
            message = getattr(choice, "message", None)
            results.append(
                Generation(
                    content=getattr(message, "content", None) or "",
                    finish_reason=self._native_finish_reason(choice),
                )
            )
        return ChatResponse(
            results=results,
            metadata=ResponseMetadata(
                id=getattr(raw, "id", None),
                model=getattr(raw, "model", None),
                usage=self._normalize_usage(getattr(raw, "usage", None)),
                finish_reasons=[g.finish_reason for g in results if g.finish_reason],
            ),
        )

    def _normalize_chunk(self, chunk: Any) -> ChatResponse:
        """Normalize one streaming chunk.

        Chunks with neither content nor a finish reason produce no generation.
        """
        results = []
        for choice in getattr(chunk, "choices", None) or []:
            delta = getattr(choice, "delta", None)
            content = getattr(delta, "content", None) or ""
            finish_reason = self._native_finish_reason(choice)
            if content or finish_reason:
                results.append(Generation(content=content, finish_reason=finish_reason))
        return ChatResponse(
            results=results,
            metadata=ResponseMetadata(
                id=getattr(chunk, "id", None),
                model=getattr(chunk, "model", None),
                usage=self._normalize_usage(getattr(chunk, "usage", None)),
                finish_reasons=[g.finish_reason for g in results if g.finish_reason],
            ),
        )

    def __repr__(self) -> str:
        return f"<ChatClient(model='{self.default_options.model}', provider='{self.provider}')>"
