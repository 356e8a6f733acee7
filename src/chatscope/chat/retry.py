"""
Retry policy for provider calls.

Classifies LiteLLM failures by HTTP status into transient and
non-transient provider errors, and retries only the transient ones with
exponential backoff (tenacity). Each retry is logged with the attempt
number and the wait time.
"""

from typing import Any, Callable, TypeVar

import litellm
import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.schema import RetryConfig
from .errors import NonTransientProviderError, ProviderError, TransientProviderError

logger = structlog.get_logger()

T = TypeVar("T")

# Failures before any HTTP status is available
_CONNECTION_ERRORS = (
    litellm.APIConnectionError,
    litellm.Timeout,
)


class RetryPolicy:
    """Retries transient provider failures according to RetryConfig.

    Invariant: call() raises only ProviderError for provider failures;
    exceptions that carry no HTTP status (programming errors) propagate
    unchanged and are never retried.
    """

    def __init__(self, config: RetryConfig | None = None, provider: str | None = None) -> None:
        self.config = config or RetryConfig()
        self.provider = provider
        self.log = logger.bind(component="retry_policy")

    def classify(self, exc: BaseException) -> ProviderError | None:
        """Map an exception to a provider error.

        Args:
            exc: Exception raised by the transport

        Returns:
            A TransientProviderError or NonTransientProviderError, or None
            if the exception does not come from the provider.
        """
        if isinstance(exc, ProviderError):
            return exc

        message = str(getattr(exc, "message", None) or exc)
        status = getattr(exc, "status_code", None)

        if isinstance(exc, _CONNECTION_ERRORS):
            return TransientProviderError(message, status_code=status, provider=self.provider)

        if not isinstance(status, int):
            return None

        if status in self.config.on_http_codes:
            return TransientProviderError(message, status_code=status, provider=self.provider)
        if not self.config.on_client_errors and 400 <= status < 500:
            return NonTransientProviderError(message, status_code=status, provider=self.provider)
        if status in self.config.exclude_on_http_codes:
            return NonTransientProviderError(message, status_code=status, provider=self.provider)
        return TransientProviderError(message, status_code=status, provider=self.provider)

    def _on_retry_sleep(self, retry_state: RetryCallState) -> None:
        """Callback called before each retry. Logs the attempt and wait time."""
        next_wait = retry_state.next_action.sleep if retry_state.next_action else 0
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.log.warning(
            "chat.retry",
            attempt=retry_state.attempt_number,
            wait_seconds=round(next_wait, 1),
            status_code=getattr(exc, "status_code", None),
            error=str(exc) if exc else None,
        )

    def _attempt(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except ProviderError:
            raise
        except Exception as e:
            error = self.classify(e)
            if error is None:
                raise
            raise error from e

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute fn, retrying transient provider failures.

        Raises:
            TransientProviderError: When all attempts are exhausted
            NonTransientProviderError: Immediately, without retrying
        """
        for attempt in Retrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=self.config.backoff_initial_interval,
                exp_base=self.config.backoff_multiplier,
                max=self.config.backoff_max_interval,
            ),
            before_sleep=self._on_retry_sleep,
            reraise=True,
        ):
            with attempt:
                return self._attempt(fn, *args, **kwargs)
