"""
Attribute names for chat observations.

Follows the OpenTelemetry GenAI semantic conventions so spans and
metrics line up with what tracing and metrics backends already expect.
These strings are a compatibility contract: do not rename them.
"""

from enum import Enum

# Value recorded for any attribute whose source value is absent
NONE_VALUE = "none"

DEFAULT_OBSERVATION_NAME = "gen_ai.client.operation"


class AiOperationType(str, Enum):
    """Kind of model operation."""

    CHAT = "chat"
    EMBEDDING = "embedding"
    TEXT_COMPLETION = "text_completion"


class AiProvider(str, Enum):
    """Provider identifiers as recorded in gen_ai.system."""

    ANTHROPIC = "anthropic"
    AZURE_OPENAI = "azure_openai"
    BEDROCK = "bedrock"
    MISTRAL_AI = "mistral_ai"
    OLLAMA = "ollama"
    OPENAI = "openai"
    VERTEX_AI = "vertex_ai"


class LowCardinalityKeyNames(str, Enum):
    """Bounded-domain keys, safe as metric dimensions."""

    AI_OPERATION_TYPE = "gen_ai.operation.name"
    AI_PROVIDER = "gen_ai.system"
    REQUEST_MODEL = "gen_ai.request.model"
    RESPONSE_MODEL = "gen_ai.response.model"


class HighCardinalityKeyNames(str, Enum):
    """Unbounded-domain keys, recorded on traces only."""

    REQUEST_FREQUENCY_PENALTY = "gen_ai.request.frequency_penalty"
    REQUEST_MAX_TOKENS = "gen_ai.request.max_tokens"
    REQUEST_PRESENCE_PENALTY = "gen_ai.request.presence_penalty"
    REQUEST_STOP_SEQUENCES = "gen_ai.request.stop_sequences"
    REQUEST_TEMPERATURE = "gen_ai.request.temperature"
    REQUEST_TOP_K = "gen_ai.request.top_k"
    REQUEST_TOP_P = "gen_ai.request.top_p"
    RESPONSE_FINISH_REASONS = "gen_ai.response.finish_reasons"
    RESPONSE_ID = "gen_ai.response.id"
    USAGE_INPUT_TOKENS = "gen_ai.usage.input_tokens"
    USAGE_OUTPUT_TOKENS = "gen_ai.usage.output_tokens"
    USAGE_TOTAL_TOKENS = "gen_ai.usage.total_tokens"
    # Opt-in content capture (see observation.filters)
    PROMPT = "gen_ai.prompt"
    COMPLETION = "gen_ai.completion"


class AiTokenType(str, Enum):
    """Values of gen_ai.token.type on the token usage metric."""

    INPUT = "input"
    OUTPUT = "output"
    TOTAL = "total"


class AiMetricNames(str, Enum):
    TOKEN_USAGE = "gen_ai.client.token.usage"
    OPERATION_DURATION = "gen_ai.client.operation.duration"


TOKEN_TYPE_KEY = "gen_ai.token.type"
