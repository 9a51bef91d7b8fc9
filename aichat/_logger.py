"""Package logger for aichat.

Every module asks for its logger with get_logger(__name__). All of them hang
off the "aichat" logger, which writes to stderr until the UI redirects it
(see aichat.logging).

Levels come from the environment:
    AICHAT_LOG_LEVEL=INFO                  level for the whole package (default WARNING)
    AICHAT_LOG_LEVEL_PROVIDERS=DEBUG       aichat.providers and everything below it
    AICHAT_LOG_LEVEL_FLOWS_RUNNER=DEBUG    only aichat.flows.runner

The most specific variable wins.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import ClassVar

LOGGER_NAME = "aichat"
ENV_PREFIX = "AICHAT_LOG_LEVEL"

# Logger names whose level has already been resolved
_configured_loggers: set[str] = set()


class ConsoleFormatter(logging.Formatter):
    """One-line records: time, level, origin, message.

    With color enabled the level and message are tinted by severity and the
    "aichat." prefix is dropped from the origin.
    """

    SEVERITY_COLORS: ClassVar[dict[int, str]] = {
        logging.DEBUG: "\033[2;36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def __init__(self, color: bool = False) -> None:
        super().__init__(datefmt="%H:%M:%S")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        when = self.formatTime(record, self.datefmt)
        origin = f"{_short_name(record.name)}:{record.funcName}:{record.lineno}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if not self.color:
            return f"{when} {record.levelname:<8} {origin} - {message}"
        tint = self.SEVERITY_COLORS.get(record.levelno, "")
        return (
            f"{self.DIM}{when}{self.RESET} {tint}{record.levelname:<8}{self.RESET} "
            f"{self.DIM}{origin}{self.RESET} - {tint}{message}{self.RESET}"
        )


def _short_name(name: str) -> str:
    prefix = f"{LOGGER_NAME}."
    return name[len(prefix) :] if name.startswith(prefix) else name


def _level_from_env(variable: str) -> int | None:
    value = os.getenv(variable)
    if not value:
        return None
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else None


def _get_module_log_level(module_path: str) -> int | None:
    """Find the most specific AICHAT_LOG_LEVEL_<MODULE> override.

    Args:
        module_path: Module path below the package, e.g. "flows.runner".
    """
    parts = module_path.upper().replace(".", "_").split("_")
    while parts:
        level = _level_from_env(f"{ENV_PREFIX}_{'_'.join(parts)}")
        if level is not None:
            return level
        parts.pop()
    return None


def _setup_root_logger() -> None:
    """Attach the stderr handler to the package logger, once."""
    if LOGGER_NAME in _configured_loggers:
        return

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(_level_from_env(ENV_PREFIX) or logging.WARNING)
    root.propagate = False
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter(color=sys.stderr.isatty()))
        root.addHandler(handler)

    _configured_loggers.add(LOGGER_NAME)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the logger for a module.

    Args:
        name: "aichat.chat", the relative "chat", or None for the package logger.
    """
    _setup_root_logger()
    if name is None or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)

    full_name = name if name.startswith(f"{LOGGER_NAME}.") else f"{LOGGER_NAME}.{name}"
    module_logger = logging.getLogger(full_name)
    if full_name not in _configured_loggers:
        level = _get_module_log_level(_short_name(full_name))
        if level is not None:
            module_logger.setLevel(level)
        _configured_loggers.add(full_name)
    return module_logger


__all__ = ["LOGGER_NAME", "ConsoleFormatter", "get_logger"]
