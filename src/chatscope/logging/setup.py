"""
structlog on top of the stdlib root logger.

chatscope logs through structlog; the stdlib root logger owns the
handlers so LiteLLM, httpx and OpenTelemetry records end up in the
same places:

- ``logging.file`` set: every record, DEBUG and up, as one JSON object
  per line.
- stderr, unless ``--quiet``: human-readable, at ``console_level()``.

Calling configure_logging() again replaces the previous setup.
"""

import logging
import sys
from pathlib import Path

import structlog

from ..config.schema import LoggingConfig

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Third-party loggers held at WARNING until -vvv
_CHATTY_LOGGERS = ("LiteLLM", "httpx")


def console_level(config: LoggingConfig) -> int:
    """Level of the stderr handler.

    ``logging.level`` applies as is; one -v lowers it to at most INFO,
    two or more to DEBUG.
    """
    if config.verbose >= 2:
        return logging.DEBUG
    level = _LEVELS[config.level]
    if config.verbose == 1:
        return min(level, logging.INFO)
    return level


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _json_file_handler(path: Path, shared: list) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared,
        )
    )
    return handler


def configure_logging(config: LoggingConfig, quiet: bool = False) -> None:
    """Install the handlers and configure structlog.

    Args:
        config: Logging configuration (level, file, verbose)
        quiet: Drop the stderr handler; the JSON file still records
    """
    logging.root.handlers.clear()
    logging.root.setLevel(logging.DEBUG)
    structlog.reset_defaults()

    shared = _shared_processors()
    renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    if config.file:
        logging.root.addHandler(_json_file_handler(Path(config.file), shared))

    if not quiet:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(console_level(config))
        if config.file:
            console.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared))
        logging.root.addHandler(console)

    # With a file, rendering moves into each handler's ProcessorFormatter;
    # otherwise structlog renders once and the console prints the string.
    last = structlog.stdlib.ProcessorFormatter.wrap_for_formatter if config.file else renderer
    structlog.configure(
        processors=shared + [structlog.processors.format_exc_info, last],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    third_party_level = logging.DEBUG if config.verbose >= 3 else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """structlog logger bound to ``name``."""
    return structlog.get_logger(name)
