"""Logging micro API for mdrender."""

from .lib import get_logger, level_for_verbosity, setup_logging

__all__ = ["get_logger", "level_for_verbosity", "setup_logging"]
