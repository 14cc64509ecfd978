"""Unit tests for CLI utilities."""

import logging

import pytest

from sslbuild.cli_utils import LOG_FORMAT, ErrorFormatter, configure_logging
from sslbuild.config.options import Verbosity


class TestConfigureLogging:
    """Tests for configure_logging."""

    def teardown_method(self):
        configure_logging()

    def test_default_level(self):
        """Test that normal runs only log warnings."""
        configure_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_verbose_level(self):
        """Test that verbose runs log debug output."""
        configure_logging(Verbosity.VERBOSE)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert root.handlers[0].formatter._fmt == LOG_FORMAT


class TestErrorFormatter:
    """Tests for ErrorFormatter class."""

    def test_print_error(self, capsys):
        """Test error output goes to stderr in red."""
        ErrorFormatter.print_error("Build failed!", "Problem during make")
        err = capsys.readouterr().err
        assert f"{ErrorFormatter.RED}✗ Build failed!{ErrorFormatter.RESET}" in err
        assert "Problem during make" in err

    def test_print_success(self, capsys):
        """Test success output."""
        ErrorFormatter.print_success("Build successful!")
        assert f"{ErrorFormatter.GREEN}✓ Build successful!" in capsys.readouterr().out

    def test_print_log_tail(self, capsys):
        """Test dumping the log tail."""
        ErrorFormatter.print_log_tail("build.log", ["first", "last"])
        out = capsys.readouterr().out
        assert "Dumping last 2 lines from build.log" in out
        assert out.rstrip().endswith("last")

    def test_print_log_tail_empty(self, capsys):
        """Test that no tail prints nothing."""
        ErrorFormatter.print_log_tail("build.log", None)
        assert capsys.readouterr().out == ""

    def test_handle_keyboard_interrupt(self):
        """Test Ctrl-C exit code."""
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_keyboard_interrupt()
        assert exc_info.value.code == 130

    def test_handle_unexpected_error(self, capsys):
        """Test unexpected error exit code and message."""
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_unexpected_error(ValueError("bad"))
        assert exc_info.value.code == 1
        assert "ValueError: bad" in capsys.readouterr().err
