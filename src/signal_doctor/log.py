"""Console logging for applications embedding the analyzers."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "signal_doctor"

console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Route ``signal_doctor`` log records to a rich stderr handler.

    Safe to call repeatedly; only the level changes after the first call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
    return logger
