"""
Shared fixtures.
"""

import logging
import sys

import pytest
import structlog

from chatscope.config.schema import LLMConfig, RetryConfig
from chatscope.observation.testing import TestObservationRegistry


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging() between tests."""
    yield
    structlog.reset_defaults()
    logging.root.handlers.clear()
    # reset_defaults() leaves module-level proxies that cached a bound
    # logger (cache_logger_on_first_use) pinned to the old configuration.
    for name, module in list(sys.modules.items()):
        if name.startswith("chatscope"):
            for value in list(vars(module).values()):
                if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                    value.__dict__.pop("bind", None)


@pytest.fixture
def observation_registry():
    return TestObservationRegistry()


@pytest.fixture
def llm_config():
    return LLMConfig(api_key_env="CHATSCOPE_TEST_API_KEY")


@pytest.fixture
def fast_retry_config():
    """Retry config without backoff waits."""
    return RetryConfig(
        max_attempts=3,
        on_http_codes=[429],
        backoff_initial_interval=0.0,
        backoff_max_interval=0.0,
    )
