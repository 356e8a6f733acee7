"""
Configuration module for chatscope.

Exports the main components for convenient imports.
"""

from .loader import ConfigError, load_config
from .schema import (
    AppConfig,
    LLMConfig,
    LoggingConfig,
    ObservationsConfig,
    RetryConfig,
    TelemetryConfig,
)

__all__ = [
    "load_config",
    "ConfigError",
    "AppConfig",
    "LLMConfig",
    "LoggingConfig",
    "ObservationsConfig",
    "RetryConfig",
    "TelemetryConfig",
]
