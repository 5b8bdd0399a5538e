"""Logging utilities for BlueprintFlow."""

import logging
from typing import Literal, Union

from rich.console import Console
from rich.logging import RichHandler

_LOG_NAMESPACE = "BlueprintFlow"

# Held at WARNING unless BlueprintFlow itself logs at DEBUG.
_CHATTY_LOGGERS = ("httpx", "httpcore", "google_genai", "langchain_google_genai")

LogLevel = Union[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], int]


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger nested under the BlueprintFlow namespace.

    Args:
        name: The name of the logger, which will be prefixed with 'BlueprintFlow.'

    Returns:
        logging.Logger: A configured logger instance.
    """
    return logging.getLogger(f"{_LOG_NAMESPACE}.{name}")


def _resolve_level(level: LogLevel) -> int:
    if isinstance(level, int):
        return level
    name = level.upper()
    if name not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"Invalid log level: {level}")
    return getattr(logging, name)


def configure_logging(level: LogLevel = "INFO") -> None:
    """
    Configure logging for BlueprintFlow.

    Installs a single RichHandler on stderr for the BlueprintFlow namespace.
    Calling it again replaces the handler instead of stacking another one.
    Below DEBUG the HTTP and model client loggers are held at WARNING.

    Args:
        level: The log level to use (string or int).
    """
    resolved = _resolve_level(level)
    logger = logging.getLogger(_LOG_NAMESPACE)
    for hdlr in logger.handlers[:]:
        logger.removeHandler(hdlr)

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(resolved)

    chatty_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)
