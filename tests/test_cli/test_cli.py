"""
Tests for the Click CLI.

LiteLLM is patched; no request leaves the process.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from chatscope.cli import (
    EXIT_AUTH_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_PROVIDER_ERROR,
    main,
)

from fakes import FakeStatusError, make_stream_chunks, model_response


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    for name in ("CHATSCOPE_MODEL", "CHATSCOPE_API_BASE", "CHATSCOPE_LOG_LEVEL", "CHATSCOPE_RETRY_ON_HTTP_CODES"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


class TestChat:
    def test_call(self, runner):
        with patch("litellm.completion", return_value=model_response()) as completion:
            result = runner.invoke(
                main,
                ["chat", "Why does a raven look like a desk?", "--max-tokens", "2048",
                 "--stop", "this-is-the-end", "--top-k", "1", "--quiet"],
            )

        assert result.exit_code == 0, result.output
        assert "A raven is not a desk." in result.output
        kwargs = completion.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3-5-sonnet-20240620"
        assert kwargs["max_tokens"] == 2048
        assert kwargs["stop"] == ["this-is-the-end"]
        assert kwargs["top_k"] == 1
        assert kwargs["messages"] == [{"role": "user", "content": "Why does a raven look like a desk?"}]

    def test_system_message_and_model(self, runner):
        with patch("litellm.completion", return_value=model_response()) as completion:
            result = runner.invoke(
                main,
                ["chat", "hi", "--system", "Be brief.", "-m", "claude-3-haiku-20240307", "--quiet"],
            )

        assert result.exit_code == 0, result.output
        kwargs = completion.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3-haiku-20240307"
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief."}

    def test_stream_with_usage(self, runner):
        with patch("litellm.completion", return_value=iter(make_stream_chunks())):
            result = runner.invoke(main, ["chat", "hi", "--stream", "--show-usage", "--quiet"])

        assert result.exit_code == 0, result.output
        assert "A raven and a desk both" in result.output
        assert "in=17 out=42 total=59" in result.output

    def test_provider_error(self, runner):
        with patch("litellm.completion", side_effect=FakeStatusError(400, "bad request")):
            result = runner.invoke(main, ["chat", "hi", "--quiet"])

        assert result.exit_code == EXIT_PROVIDER_ERROR
        assert "[400] bad request" in result.output

    def test_auth_error(self, runner):
        with patch("litellm.completion", side_effect=FakeStatusError(401, "invalid x-api-key")):
            result = runner.invoke(main, ["chat", "hi", "--quiet"])

        assert result.exit_code == EXIT_AUTH_ERROR

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("llm:\n  unknown: 1\n")
        result = runner.invoke(main, ["chat", "hi", "-c", str(path), "--quiet"])
        assert result.exit_code == EXIT_CONFIG_ERROR


class TestValidateConfig:
    def test_valid(self, runner, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("retry:\n  on_http_codes: [429, 529]\n")
        result = runner.invoke(main, ["validate-config", "-c", str(path)])
        assert result.exit_code == 0
        assert "Valid configuration" in result.output
        assert "[429, 529]" in result.output

    def test_invalid(self, runner, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("retry:\n  max_attempts: 0\n")
        result = runner.invoke(main, ["validate-config", "-c", str(path)])
        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.3.0" in result.output
