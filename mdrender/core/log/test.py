"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, level_for_verbosity, setup_logging


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        assert get_logger().name == "mdrender"

    @pytest.mark.unit
    def test_setup_logging_quiets_httpx(self) -> None:
        """httpx request logs stay below the CLI level."""
        setup_logging(level=logging.DEBUG, stream=StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("verbose", "quiet", "expected"),
        [
            (False, False, logging.INFO),
            (True, False, logging.DEBUG),
            (False, True, logging.WARNING),
            (True, True, logging.WARNING),
        ],
    )
    def test_level_for_verbosity(self, verbose, quiet, expected) -> None:
        """Verbosity flags map to logging levels."""
        assert level_for_verbosity(verbose=verbose, quiet=quiet) == expected
