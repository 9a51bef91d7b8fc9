"""Log routing while the terminal UI owns the screen.

Writing to stderr under a full-screen UI corrupts the display, so while the
UI runs the aichat logger feeds LogEvents into an asyncio queue instead. The
UI drains the queue and shows the events wherever it likes.

Usage:
    log_queue = asyncio.Queue(maxsize=500)
    configure_tui_logging(log_queue)
    ...
    event = await log_queue.get()
    ...
    reset_logging()
"""

from __future__ import annotations

import logging
from asyncio import Queue, QueueFull
from dataclasses import dataclass

from aichat import _logger
from aichat._logger import LOGGER_NAME
from aichat.events import AppEvent

_initialized = False
_log_queue: Queue | None = None


@dataclass
class LogEvent(AppEvent):
    """A log record, flattened for display.

    Attributes:
        level: Level name, e.g. "WARNING".
        logger_name: Dotted name of the emitting logger.
        message: Message after formatting.
        func_name: Function that logged.
        line_no: Source line that logged.
    """

    level: str = "INFO"
    logger_name: str = ""
    message: str = ""
    func_name: str = ""
    line_no: int = 0


class QueueHandler(logging.Handler):
    """Puts a LogEvent on an asyncio queue for every record.

    Records are dropped when a bounded queue is full; the UI never blocks on
    logging.
    """

    def __init__(self, queue: Queue, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._queue = queue
        self.dropped = 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                event_id=f"log-{record.created:.0f}-{record.lineno}",
                level=record.levelname,
                logger_name=record.name,
                message=self.format(record),
                func_name=record.funcName,
                line_no=record.lineno,
            )
            self._queue.put_nowait(event)
        except QueueFull:
            self.dropped += 1
        except Exception:
            self.handleError(record)


def _install(handler: logging.Handler, level: int) -> None:
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False


def configure_tui_logging(queue: Queue, level: int = logging.INFO) -> None:
    """Send aichat log records to queue instead of stderr.

    A no-op while already configured; call reset_logging() first to switch
    to another queue.

    Args:
        queue: Receives one LogEvent per record.
        level: Lowest level forwarded.
    """
    global _initialized, _log_queue
    if _initialized:
        return

    handler = QueueHandler(queue, level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _install(handler, level)
    _log_queue = queue
    _initialized = True


def configure_logging(verbose: bool = False) -> None:
    """Plain stderr logging for the time before the UI starts.

    Args:
        verbose: DEBUG when True, INFO otherwise.
    """
    global _initialized, _log_queue
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    _install(handler, logging.DEBUG if verbose else logging.INFO)
    _initialized = False
    _log_queue = None


def reset_logging() -> None:
    """Remove UI routing and go back to the environment-driven stderr setup."""
    global _initialized, _log_queue
    logging.getLogger(LOGGER_NAME).handlers.clear()
    _logger._configured_loggers.discard(LOGGER_NAME)
    _logger._setup_root_logger()
    _initialized = False
    _log_queue = None


def get_log_queue() -> Queue | None:
    """Queue currently receiving log events, if UI logging is active."""
    return _log_queue
