"""Core logging implementation for mdrender."""

import logging
import sys
from typing import Optional

__all__ = ["get_logger", "level_for_verbosity", "setup_logging"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, stream=sys.stderr) -> None:
    """Configure basic logging for CLI runs.

    Args:
        level: Logging level.
        stream: Output stream.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def level_for_verbosity(verbose: bool = False, quiet: bool = False) -> int:
    """Map CLI verbosity flags to a logging level.

    ``quiet`` wins over ``verbose`` when both are given.
    """
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return logging.INFO


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name or "mdrender")
