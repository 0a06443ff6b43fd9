"""Logging setup for the tagsort command line."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from tagsort.config.models import LoggingSettings

_HANDLER_NAME = "tagsort-cli"


def configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> logging.Logger:
    """Attach a Rich handler to the ``tagsort`` logger.

    Repeated calls replace the handler installed by an earlier call. Records
    go to stderr so JSON written to stdout stays parseable.

    Args:
        settings: Configured logging section.
        verbose: Lower the threshold to INFO so transaction steps are narrated.

    Returns:
        logging.Logger: The configured package logger.
    """
    level = logging.getLevelName(settings.level)
    if verbose and level > logging.INFO:
        level = logging.INFO

    logger = logging.getLogger("tagsort")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        show_time=False,
        markup=False,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


__all__ = ["configure_logging"]
