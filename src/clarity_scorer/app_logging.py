"""
Application logging utilities for the clarity scorer.

Routes the package's standard library logs to the console, through Rich
when a terminal is attached and a plain stream handler otherwise.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


# Custom theme for log levels
_LOG_THEME = Theme({
    "logging.level.debug": "dim cyan",
    "logging.level.info": "green",
    "logging.level.warning": "yellow",
    "logging.level.error": "bold red",
    "logging.level.critical": "bold white on red",
    "log.time": "dim",
    "log.path": "dim",
})

# Logs go to stderr so JSON output on stdout stays clean
_console = Console(theme=_LOG_THEME, stderr=True)

# Root logger name for the package
ROOT_LOGGER_NAME = 'clarity_scorer'

_loggers: dict[str, logging.Logger] = {}


def setup_logging(
    level: str = 'WARNING',
    log_format: Optional[str] = None,
    rich_console: bool = True,
    show_path: bool = False,
    show_time: bool = True,
) -> None:
    """
    Setup logging for the clarity_scorer package.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for the plain handler. If None, uses default format.
        rich_console: Whether to use Rich console output (default: True)
        show_path: Whether to show file path in Rich logs (default: False)
        show_time: Whether to show timestamp in Rich logs (default: True)
    """
    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    level_value = getattr(logging, level.upper())

    if rich_console:
        handler: logging.Handler = RichHandler(
            console=_console,
            level=level_value,
            show_time=show_time,
            show_path=show_path,
            rich_tracebacks=True,
            markup=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
    handler.setLevel(level_value)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level_value)
    logger.handlers.clear()
    logger.addHandler(handler)
    # Prevent propagation to root logger
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a component, as a child of the 'clarity_scorer' logger.

    Usage:
        from clarity_scorer.app_logging import get_logger

        logger = get_logger("cli")
        logger.info("Loaded %d answers", count)
    """
    full_name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)

    return _loggers[full_name]


# Library default: silent until setup_logging is called
logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
