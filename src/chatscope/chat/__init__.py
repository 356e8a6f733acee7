"""
Chat module - Observable chat client and its request/response models.
"""

from .model import (
    ChatOptions,
    ChatResponse,
    Generation,
    Message,
    Prompt,
    ResponseMetadata,
    Usage,
)
from .errors import NonTransientProviderError, ProviderError, TransientProviderError
from .retry import RetryPolicy
from .client import ChatClient, StreamAggregator

__all__ = [
    "ChatClient",
    "ChatOptions",
    "ChatResponse",
    "Generation",
    "Message",
    "NonTransientProviderError",
    "Prompt",
    "ProviderError",
    "ResponseMetadata",
    "RetryPolicy",
    "StreamAggregator",
    "TransientProviderError",
    "Usage",
]
