"""
Command line interface for chatscope using Click.

    $ chatscope chat "Why does a raven look like a desk?" --max-tokens 2048
    $ chatscope chat "Tell me a story" --stream --telemetry
    $ chatscope validate-config -c chatscope.yaml
"""

import sys
from pathlib import Path

import click
from pydantic import ValidationError

from .chat import ChatClient, ChatOptions, Message, Prompt, ProviderError, RetryPolicy
from .chat.model import ChatResponse
from .config.loader import ConfigError, load_config
from .logging import configure_logging
from .telemetry import create_observation_registry, setup_telemetry

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_PROVIDER_ERROR = 2
EXIT_CONFIG_ERROR = 3
EXIT_AUTH_ERROR = 4
EXIT_INTERRUPTED = 130

_VERSION = "0.3.0"


def _print_usage(response: ChatResponse | None) -> None:
    if response is None or response.metadata.usage is None:
        return
    usage = response.metadata.usage
    click.echo(
        f"[{response.metadata.model or '?'}] "
        f"in={usage.prompt_tokens} out={usage.generation_tokens} total={usage.total_tokens} "
        f"finish={','.join(response.metadata.finish_reasons) or 'none'}",
        err=True,
    )


@click.group()
@click.version_option(version=_VERSION, prog_name="chatscope")
def main() -> None:
    """chatscope - chat with an LLM provider, with an observation on every call."""


@main.command()
@click.argument("prompt", required=True)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the YAML configuration file",
)
@click.option("-m", "--model", help="Model to use (overrides llm.model)")
@click.option("--api-base", help="Provider API base URL")
@click.option("--system", "system_prompt", help="System message sent before the prompt")
@click.option("--max-tokens", type=int, help="Maximum tokens to generate")
@click.option(
    "--stop",
    "stop_sequences",
    multiple=True,
    help="Stop sequence (repeatable)",
)
@click.option("--temperature", type=float, help="Sampling temperature")
@click.option("--top-k", type=int, help="Top-k sampling")
@click.option("--top-p", type=float, help="Nucleus sampling probability")
@click.option("--stream/--no-stream", default=False, help="Print the response as it is generated")
@click.option(
    "--telemetry/--no-telemetry",
    default=None,
    help="Export spans and metrics (overrides telemetry.enabled)",
)
@click.option("--show-usage", is_flag=True, help="Print token usage to stderr")
@click.option("--log-file", type=click.Path(path_type=Path), help="Write JSON logs to this file")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv, -vvv)")
@click.option("--quiet", is_flag=True, help="Only print the response")
def chat(prompt: str, **kwargs) -> None:  # type: ignore
    """Send PROMPT to the configured chat model.

    Examples:

        \b
        $ chatscope chat "Why does a raven look like a desk?" \\
            --max-tokens 2048 --stop this-is-the-end --temperature 0.7 --top-k 1 --top-p 1.0

        \b
        $ chatscope chat "Tell me a story" --stream --show-usage
    """
    try:
        config = load_config(config_path=kwargs.get("config"), cli_args=kwargs)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except (ConfigError, ValidationError) as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(config.logging, quiet=kwargs.get("quiet", False))

    providers = setup_telemetry(config.telemetry) if config.telemetry.enabled else None
    registry = create_observation_registry(config.observations, providers)
    client = ChatClient(
        config.llm,
        retry_policy=RetryPolicy(config.retry, provider=config.llm.provider),
        observation_registry=registry,
    )

    messages = []
    if kwargs.get("system_prompt"):
        messages.append(Message(role="system", content=kwargs["system_prompt"]))
    messages.append(Message(role="user", content=prompt))

    options = ChatOptions(
        max_tokens=kwargs.get("max_tokens"),
        stop_sequences=list(kwargs["stop_sequences"]) or None,
        temperature=kwargs.get("temperature"),
        top_k=kwargs.get("top_k"),
        top_p=kwargs.get("top_p"),
    )
    chat_prompt = Prompt(messages=messages, options=options)

    exit_code = EXIT_SUCCESS
    try:
        if kwargs.get("stream"):
            last = None
            for element in client.stream(chat_prompt):
                if element.result is not None and element.result.content:
                    click.echo(element.result.content, nl=False)
                if element.metadata.usage is not None:
                    last = element
            click.echo()
            if kwargs.get("show_usage"):
                _print_usage(last)
        else:
            response = client.call(chat_prompt)
            click.echo(response.result.content if response.result else "")
            if kwargs.get("show_usage"):
                _print_usage(response)

    except ProviderError as e:
        click.echo(f"Provider error: {e}", err=True)
        exit_code = EXIT_AUTH_ERROR if e.status_code in (401, 403) else EXIT_PROVIDER_ERROR
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        exit_code = EXIT_INTERRUPTED
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        exit_code = EXIT_FAILED
    finally:
        if providers is not None:
            providers.shutdown()

    if exit_code != EXIT_SUCCESS:
        sys.exit(exit_code)


@main.command()
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the configuration file to validate",
)
def validate_config(config: Path | None) -> None:
    """Validate a YAML configuration file."""
    try:
        app_config = load_config(config_path=config)
        click.echo("Valid configuration")
        click.echo(f"  Provider: {app_config.llm.provider}")
        click.echo(f"  Model: {app_config.llm.model}")
        click.echo(f"  Retry on HTTP codes: {app_config.retry.on_http_codes}")
        click.echo(f"  Observations: {'on' if app_config.observations.enabled else 'off'}")
        click.echo(f"  Telemetry: {app_config.telemetry.exporter if app_config.telemetry.enabled else 'off'}")
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except Exception as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_FAILED)


if __name__ == "__main__":
    main()
