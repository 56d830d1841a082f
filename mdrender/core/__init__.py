"""Core utilities shared across mdrender modules."""

from .log import get_logger, level_for_verbosity, setup_logging

__all__ = ["get_logger", "level_for_verbosity", "setup_logging"]
