"""
Tests for configuration loading.

Precedence: defaults < YAML < environment < CLI.
"""

import pytest
from pydantic import ValidationError

from chatscope.config import AppConfig, ConfigError, RetryConfig, load_config
from chatscope.config.loader import (
    apply_cli_overrides,
    deep_merge,
    load_env_overrides,
    load_yaml_config,
)

ENV_VARS = (
    "CHATSCOPE_MODEL",
    "CHATSCOPE_API_BASE",
    "CHATSCOPE_LOG_LEVEL",
    "CHATSCOPE_RETRY_ON_HTTP_CODES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDeepMerge:
    def test_nested(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        override = {"a": {"b": 99}, "e": 4}
        assert deep_merge(base, override) == {"a": {"b": 99, "c": 2}, "d": 3, "e": 4}

    def test_does_not_modify_base(self):
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}

    def test_non_dict_override_replaces(self):
        assert deep_merge({"a": {"b": 1}}, {"a": [1, 2]}) == {"a": [1, 2]}


class TestYaml:
    def test_none_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_config(path) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("llm: [unclosed\n")
        with pytest.raises(ConfigError):
            load_yaml_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_config(path)


class TestEnvOverrides:
    def test_empty(self):
        assert load_env_overrides() == {}

    def test_values(self, monkeypatch):
        monkeypatch.setenv("CHATSCOPE_MODEL", "claude-3-haiku-20240307")
        monkeypatch.setenv("CHATSCOPE_API_BASE", "http://localhost:8080")
        monkeypatch.setenv("CHATSCOPE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("CHATSCOPE_RETRY_ON_HTTP_CODES", "429, 529")
        assert load_env_overrides() == {
            "llm": {"model": "claude-3-haiku-20240307", "api_base": "http://localhost:8080"},
            "logging": {"level": "debug"},
            "retry": {"on_http_codes": [429, 529]},
        }

    def test_bad_http_code(self, monkeypatch):
        monkeypatch.setenv("CHATSCOPE_RETRY_ON_HTTP_CODES", "429,abc")
        with pytest.raises(ConfigError, match="abc"):
            load_env_overrides()


class TestCliOverrides:
    def test_applied(self):
        result = apply_cli_overrides(
            {"llm": {"model": "a", "timeout": 30}},
            {"model": "b", "verbose": 2, "telemetry": True, "log_file": "out.jsonl"},
        )
        assert result == {
            "llm": {"model": "b", "timeout": 30},
            "logging": {"verbose": 2, "file": "out.jsonl"},
            "telemetry": {"enabled": True},
        }

    def test_unset_values_ignored(self):
        base = {"llm": {"model": "a"}}
        assert apply_cli_overrides(base, {"model": None, "telemetry": None}) == base

    def test_false_and_zero_are_overrides(self):
        base = {"logging": {"verbose": 2}, "telemetry": {"enabled": True}}
        assert apply_cli_overrides(base, {"verbose": 0, "telemetry": False, "api_base": ""}) == {
            "logging": {"verbose": 0},
            "telemetry": {"enabled": False},
        }

    def test_unrelated_options_ignored(self):
        assert apply_cli_overrides({}, {"stream": True, "show_usage": True, "quiet": True}) == {}


class TestRouteConfig:
    def test_route_defaults_to_unset(self):
        assert load_config().llm.litellm_provider is None

    def test_route_from_yaml(self, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("llm:\n  provider: azure_openai\n  litellm_provider: azure\n")
        config = load_config(path)
        assert config.llm.provider == "azure_openai"
        assert config.llm.litellm_provider == "azure"


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert isinstance(config, AppConfig)
        assert config.llm.provider == "anthropic"
        assert config.llm.api_key_env == "ANTHROPIC_API_KEY"
        assert config.retry.on_http_codes == [429]
        assert config.retry.max_attempts == 10
        assert config.observations.enabled
        assert not config.observations.include_prompt
        assert not config.telemetry.enabled
        assert config.logging.level == "warn"

    def test_precedence(self, tmp_path, monkeypatch):
        path = tmp_path / "chatscope.yaml"
        path.write_text(
            "llm:\n"
            "  model: from-yaml\n"
            "  max_tokens: 2048\n"
            "retry:\n"
            "  on_http_codes: [503]\n"
        )
        monkeypatch.setenv("CHATSCOPE_MODEL", "from-env")
        config = load_config(path)
        assert config.llm.model == "from-env"
        assert config.llm.max_tokens == 2048
        assert config.retry.on_http_codes == [503]

        config = load_config(path, cli_args={"model": "from-cli"})
        assert config.llm.model == "from-cli"

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("llm:\n  modle: typo\n")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_invalid_status_code_rejected(self):
        with pytest.raises(ValidationError, match="Invalid HTTP status code"):
            RetryConfig(on_http_codes=[42])

    def test_invalid_exporter_rejected(self, tmp_path):
        path = tmp_path / "chatscope.yaml"
        path.write_text("telemetry:\n  exporter: zipkin\n")
        with pytest.raises(ValidationError):
            load_config(path)
