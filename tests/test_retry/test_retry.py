"""
Tests for RetryPolicy.

Covers:
- Status classification (on_http_codes, client errors, exclusions)
- LiteLLM connection errors and timeouts
- Retry loop: attempts, exhaustion, non-retryable short-circuit
"""

from unittest.mock import Mock

import litellm
import pytest

from chatscope.chat.errors import NonTransientProviderError, ProviderError, TransientProviderError
from chatscope.chat.retry import RetryPolicy
from chatscope.config.schema import RetryConfig

from fakes import FakeStatusError


def _policy(**overrides) -> RetryPolicy:
    values = {"max_attempts": 4, "backoff_initial_interval": 0.0, "backoff_max_interval": 0.0}
    values.update(overrides)
    return RetryPolicy(RetryConfig(**values), provider="anthropic")


class TestClassify:
    def test_on_http_codes_are_transient(self):
        error = _policy(on_http_codes=[429]).classify(FakeStatusError(429))
        assert isinstance(error, TransientProviderError)
        assert error.status_code == 429
        assert error.provider == "anthropic"

    def test_client_errors_not_retried_by_default(self):
        for status in (400, 401, 403, 404, 422):
            error = _policy().classify(FakeStatusError(status))
            assert isinstance(error, NonTransientProviderError), status

    def test_429_not_retried_when_not_listed(self):
        error = _policy(on_http_codes=[]).classify(FakeStatusError(429))
        assert isinstance(error, NonTransientProviderError)

    def test_client_errors_retried_when_enabled(self):
        error = _policy(on_client_errors=True).classify(FakeStatusError(409))
        assert isinstance(error, TransientProviderError)

    def test_server_errors_transient(self):
        for status in (500, 502, 503, 529):
            assert isinstance(_policy().classify(FakeStatusError(status)), TransientProviderError)

    def test_excluded_server_error(self):
        error = _policy(exclude_on_http_codes=[501]).classify(FakeStatusError(501))
        assert isinstance(error, NonTransientProviderError)
        assert error.status_code == 501

    def test_on_http_codes_wins_over_exclusion(self):
        error = _policy(on_http_codes=[503], exclude_on_http_codes=[503]).classify(FakeStatusError(503))
        assert isinstance(error, TransientProviderError)

    def test_litellm_rate_limit_error(self):
        exc = litellm.RateLimitError(message="slow down", llm_provider="anthropic", model="claude")
        error = _policy().classify(exc)
        assert isinstance(error, TransientProviderError)
        assert error.status_code == 429

    def test_litellm_authentication_error(self):
        exc = litellm.AuthenticationError(message="bad key", llm_provider="anthropic", model="claude")
        error = _policy().classify(exc)
        assert isinstance(error, NonTransientProviderError)
        assert error.status_code == 401

    def test_connection_error_transient(self):
        exc = litellm.APIConnectionError(message="reset", llm_provider="anthropic", model="claude")
        assert isinstance(_policy().classify(exc), TransientProviderError)

    def test_unrelated_exception_not_classified(self):
        assert _policy().classify(ValueError("nope")) is None

    def test_provider_error_passes_through(self):
        original = NonTransientProviderError("x", status_code=400)
        assert _policy().classify(original) is original


class TestCall:
    def test_success_first_attempt(self):
        fn = Mock(return_value="ok")
        assert _policy().call(fn, 1, key="v") == "ok"
        fn.assert_called_once_with(1, key="v")

    def test_transient_then_success(self):
        fn = Mock(side_effect=[FakeStatusError(503), FakeStatusError(429), "ok"])
        assert _policy().call(fn) == "ok"
        assert fn.call_count == 3

    def test_exhaustion_raises_last_error(self):
        fn = Mock(side_effect=FakeStatusError(503, "overloaded"))
        with pytest.raises(TransientProviderError) as exc_info:
            _policy(max_attempts=4).call(fn)
        assert fn.call_count == 4
        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, FakeStatusError)

    def test_non_transient_not_retried(self):
        fn = Mock(side_effect=FakeStatusError(400))
        with pytest.raises(NonTransientProviderError):
            _policy().call(fn)
        assert fn.call_count == 1

    def test_single_attempt(self):
        fn = Mock(side_effect=FakeStatusError(503))
        with pytest.raises(TransientProviderError):
            _policy(max_attempts=1).call(fn)
        assert fn.call_count == 1

    def test_unrelated_exception_propagates(self):
        fn = Mock(side_effect=ValueError("bug"))
        with pytest.raises(ValueError):
            _policy().call(fn)
        assert fn.call_count == 1


class TestProviderError:
    def test_message_includes_status(self):
        error = TransientProviderError("overloaded", status_code=529)
        assert str(error) == "[529] overloaded"
        assert error.transient

    def test_message_without_status(self):
        error = NonTransientProviderError("refused")
        assert str(error) == "refused"
        assert not error.transient
        assert isinstance(error, ProviderError)
