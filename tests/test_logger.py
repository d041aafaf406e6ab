"""Tests for logger module."""

import logging
import sys
from unittest.mock import patch

from communityops.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    ColorFormatter,
    get_logger,
    handle_exception,
    setup_logger,
    should_use_color,
)


def make_record(level, msg):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
        func="test_func",
    )


class TestShouldUseColor:
    """Tests for should_use_color function."""

    @patch("sys.stderr.isatty")
    def test_should_use_color_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch("sys.stderr.isatty")
    def test_should_use_color_exception(self, mock_isatty):
        """Test color returns False on exception."""
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


class TestColorFormatter:
    def test_error_records_are_red(self):
        formatted = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT).format(make_record(logging.ERROR, "IA case failed"))

        assert formatted.startswith("\033[31m")
        assert formatted.endswith("\033[0m")
        assert "IA case failed" in formatted

    def test_unknown_level_is_left_plain(self):
        record = make_record(logging.INFO, "plain")
        record.levelname = "CUSTOM"

        formatted = ColorFormatter("%(message)s").format(record)

        assert formatted == "plain"


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_setup_logger_configures_once(self):
        logger = setup_logger("communityops_test_logger_1")
        handlers = list(logger.handlers)

        again = setup_logger("communityops_test_logger_1")

        assert again is logger
        assert again.handlers == handlers
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_get_logger_returns_configured_logger(self):
        logger = get_logger("communityops_test_logger_2")

        assert isinstance(logger, logging.Logger)
        assert len(logger.handlers) == 2


class TestHandleException:
    def test_keyboard_interrupt_goes_to_default_hook(self):
        with patch.object(sys, "__excepthook__") as default_hook:
            handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

        default_hook.assert_called_once()

    def test_other_exceptions_are_logged(self):
        error = RuntimeError("boom")
        with patch("logging.error") as log_error:
            handle_exception(RuntimeError, error, None)

        log_error.assert_called_once()
        assert log_error.call_args.kwargs["exc_info"][1] is error
