"""
Layered configuration for chatscope.

Every source yields a partial mapping shaped like AppConfig. The layers are
folded left to right, later ones replacing earlier leaves:

    schema defaults < chatscope.yaml < CHATSCOPE_* variables < command line

Only the merged result is validated, so a YAML file may hold a partial
section that the environment or the command line completes.
"""

import os
from pathlib import Path
from typing import Any, Callable

import yaml

from .schema import AppConfig


class ConfigError(Exception):
    """A configuration source could not be read."""


def parse_http_codes(raw: str) -> list[int]:
    """Parse a comma-separated status list such as "429, 529"."""
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ConfigError(f"Invalid HTTP status code list {raw!r}: {e}") from e


# variable -> (section, key, parser)
ENV_VARIABLES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "CHATSCOPE_MODEL": ("llm", "model", str),
    "CHATSCOPE_API_BASE": ("llm", "api_base", str),
    "CHATSCOPE_LOG_LEVEL": ("logging", "level", str.lower),
    "CHATSCOPE_RETRY_ON_HTTP_CODES": ("retry", "on_http_codes", parse_http_codes),
}

# click parameter -> (section, key)
CLI_OPTIONS: dict[str, tuple[str, str]] = {
    "model": ("llm", "model"),
    "api_base": ("llm", "api_base"),
    "log_file": ("logging", "file"),
    "verbose": ("logging", "verbose"),
    "telemetry": ("telemetry", "enabled"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new mapping with ``override`` folded into ``base``.

    Nested mappings merge key by key; any other value replaces what
    was there. Neither argument is modified.

        >>> deep_merge({"llm": {"model": "a", "timeout": 30}}, {"llm": {"model": "b"}})
        {'llm': {'model': 'b', 'timeout': 30}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge(current, value)
        merged[key] = value
    return merged


def _layer(settings: dict[tuple[str, str], Any]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for (section, key), value in settings.items():
        layer.setdefault(section, {})[key] = value
    return layer


def load_yaml_config(config_path: Path | None) -> dict[str, Any]:
    """Read the YAML layer; no path means an empty layer.

    Raises:
        FileNotFoundError: If config_path does not exist
        ConfigError: If the document is malformed or not a mapping
    """
    if not config_path:
        return {}
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{config_path} is not valid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must hold a mapping of sections, got {type(data).__name__}")
    return data


def load_env_overrides() -> dict[str, Any]:
    """Build the environment layer from the ENV_VARIABLES that are set."""
    settings = {}
    for name, (section, key, parse) in ENV_VARIABLES.items():
        raw = os.environ.get(name)
        if raw:
            settings[section, key] = parse(raw)
    return _layer(settings)


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Fold the command-line layer onto ``config_dict``.

    Options left at None (or an empty string) are not overrides;
    False and 0 are.
    """
    settings = {
        target: cli_args[option]
        for option, target in CLI_OPTIONS.items()
        if cli_args.get(option) not in (None, "")
    }
    return deep_merge(config_dict, _layer(settings))


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Merge every layer and validate the result.

    Raises:
        FileNotFoundError: If config_path does not exist
        ConfigError: If a source is malformed
        ValidationError: If the merged configuration is invalid
    """
    merged = deep_merge(load_yaml_config(config_path), load_env_overrides())
    merged = apply_cli_overrides(merged, cli_args or {})
    return AppConfig(**merged)
