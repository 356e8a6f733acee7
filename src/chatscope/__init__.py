"""
chatscope - Chat model client with observations on every call.

Wraps a LiteLLM chat provider (Anthropic by default) with retries and
emits an observation per call: a named record with low-cardinality
key-values for metrics and high-cardinality key-values for traces.
"""

__version__ = "0.3.0"
__author__ = "chatscope contributors"
