"""
Pydantic models for chatscope configuration.

Defines all configuration schemas using Pydantic v2 for validation,
defaults, and serialization.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class LLMConfig(BaseModel):
    """Chat provider configuration.

    ``provider`` is the gen_ai.system value recorded on observations;
    ``litellm_provider`` is the prefix LiteLLM routes on, when the two differ.
    ``model``, ``max_tokens`` and ``temperature`` are the default chat
    options; any value set on a prompt's options wins over them.
    """

    provider: str = "anthropic"
    litellm_provider: str | None = Field(
        default=None,
        description="LiteLLM route prefix (e.g. \"azure\"). Derived from provider when unset.",
    )
    model: str = "claude-3-5-sonnet-20240620"
    api_base: str | None = None
    api_key_env: str = "ANTHROPIC_API_KEY"
    timeout: int = 60
    max_tokens: int = Field(default=500, ge=1)
    temperature: float | None = Field(default=0.8, ge=0.0, le=2.0)

    model_config = {"extra": "forbid"}


class RetryConfig(BaseModel):
    """Retry policy for provider calls.

    Classification of an HTTP status, in order:
    1. In ``on_http_codes`` -> transient (retried)
    2. 4xx and ``on_client_errors`` is False -> not retried
    3. In ``exclude_on_http_codes`` -> not retried
    4. Anything else (5xx, connection failures, timeouts) -> transient
    """

    max_attempts: int = Field(default=10, ge=1)
    on_http_codes: list[int] = Field(default_factory=lambda: [429])
    exclude_on_http_codes: list[int] = Field(default_factory=list)
    on_client_errors: bool = False
    backoff_initial_interval: float = Field(
        default=2.0,
        ge=0.0,
        description="Seconds to wait before the first retry.",
    )
    backoff_multiplier: float = Field(default=5.0, ge=1.0)
    backoff_max_interval: float = Field(
        default=180.0,
        ge=0.0,
        description="Upper bound in seconds for a single wait.",
    )

    model_config = {"extra": "forbid"}

    @field_validator("on_http_codes", "exclude_on_http_codes")
    @classmethod
    def _validate_codes(cls, v: list[int]) -> list[int]:
        for code in v:
            if not 100 <= code <= 599:
                raise ValueError(f"Invalid HTTP status code: {code}")
        return v


class ObservationsConfig(BaseModel):
    """Observation instrumentation around chat calls."""

    enabled: bool = True
    include_prompt: bool = Field(
        default=False,
        description="If True, records the prompt text as gen_ai.prompt (high cardinality).",
    )
    include_completion: bool = Field(
        default=False,
        description="If True, records the completion text as gen_ai.completion (high cardinality).",
    )
    metrics: bool = Field(
        default=True,
        description="If True, records token usage and duration metrics.",
    )
    log_events: bool = Field(
        default=True,
        description="If True, logs each observation start/stop through structlog.",
    )

    model_config = {"extra": "forbid"}


class TelemetryConfig(BaseModel):
    """OpenTelemetry export configuration.

    When enabled, spans and metrics produced by observations are sent
    to the configured exporter.
    """

    enabled: bool = Field(
        default=False,
        description="If True, configures OpenTelemetry trace and metric export.",
    )
    exporter: Literal["otlp", "console", "json-file"] = Field(
        default="console",
        description="Exporter type: otlp (gRPC), console (stderr), json-file.",
    )
    endpoint: str = Field(
        default="http://localhost:4317",
        description="Endpoint for the OTLP exporter.",
    )
    trace_file: str | None = Field(
        default=None,
        description="File path for the json-file exporter.",
    )

    model_config = {"extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "warn", "error"] = "warn"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Complete application configuration.

    This is the root of the configuration tree. It combines all sections
    and is the entry point for validation.
    """

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    observations: ObservationsConfig = Field(default_factory=ObservationsConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
