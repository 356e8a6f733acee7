"""
Provider errors raised by the chat client.

Every failure coming back from the provider is normalized into one of
two classes so callers can tell a retry-worthy failure from a final one
without knowing LiteLLM's exception hierarchy.
"""


class ProviderError(Exception):
    """Error returned by the chat provider.

    Attributes:
        status_code: Upstream HTTP status (None for connection failures)
        provider: Provider identifier (e.g. "anthropic")
        message: Human-readable error description
    """

    transient = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.provider = provider
        prefix = f"[{status_code}] " if status_code is not None else ""
        super().__init__(f"{prefix}{message}")


class TransientProviderError(ProviderError):
    """Retryable failure: rate limiting, 5xx, connection problems, timeouts.

    Reaches the caller only after the retry policy gives up.
    """

    transient = True


class NonTransientProviderError(ProviderError):
    """Failure that retrying will not fix: bad request, authentication."""
