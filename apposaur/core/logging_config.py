"""
Optional logging setup for host applications.

The SDK itself only emits records through module loggers under "apposaur".
Applications that do not configure logging themselves can call
setup_logging(), which routes by severity:
- DEBUG, INFO, WARNING → STDOUT
- ERROR, CRITICAL → STDERR

Records pass through a QueueHandler + QueueListener so the event loop never
blocks on stdout/stderr.
"""

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import List, Optional

from apposaur import config

SDK_LOGGER_NAME = "apposaur"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class UpToLevelFilter(logging.Filter):
    """Passes records at or below ceiling; keeps errors off stdout."""

    def __init__(self, ceiling: int):
        super().__init__()
        self.ceiling = ceiling

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.ceiling


_listener: Optional[QueueListener] = None


def _build_stream_handlers(numeric_level: int) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)

    out = logging.StreamHandler(sys.stdout)
    out.setLevel(numeric_level)
    out.addFilter(UpToLevelFilter(logging.WARNING))

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(max(numeric_level, logging.ERROR))

    for handler in (out, err):
        handler.setFormatter(formatter)
    return [out, err]


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach queue-backed stdout/stderr handlers to the SDK logger.

    Calling it again replaces the previous handlers.

    Args:
        level: Log level name; defaults to APPOSAUR_LOG_LEVEL

    Returns:
        The configured "apposaur" logger
    """
    global _listener

    level_name = (level or config.LOG_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    _stop_log_listener()

    sdk_logger = logging.getLogger(SDK_LOGGER_NAME)
    sdk_logger.setLevel(numeric_level)
    sdk_logger.handlers.clear()
    sdk_logger.propagate = False

    records: queue.Queue = queue.Queue()
    sdk_logger.addHandler(QueueHandler(records))

    _listener = QueueListener(records, *_build_stream_handlers(numeric_level), respect_handler_level=True)
    _listener.start()
    atexit.register(_stop_log_listener)
    return sdk_logger


def _stop_log_listener() -> None:
    global _listener
    if _listener is None:
        return
    _listener.stop()
    _listener = None
