"""
Centralized logging configuration.

Modules log through ``logging.getLogger(__name__)``; entry points call
``configure_logging`` once to attach a rich console handler.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"
ROOT_LOGGER = "note_forge"


def configure_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Calling it again only updates the level, so handlers are never stacked.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...)
        console: Optional rich console to write to (defaults to stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(numeric_level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
