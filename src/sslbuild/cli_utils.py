"""CLI utility functions for sslbuild.

This module provides common utilities used by the command line including:
- Logging setup
- Error handling and formatting
"""

import logging
import sys
from typing import List, Optional

from sslbuild.config.options import Verbosity

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbosity: Verbosity = Verbosity.NORMAL) -> None:
    """Configure root logging for a command line run.

    Args:
        verbosity: DEBUG for verbose runs, WARNING otherwise
    """
    level = logging.DEBUG if verbosity == Verbosity.VERBOSE else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message to stderr.

        Args:
            title: Error title (e.g., "Invalid options", "Build failed")
            message: Error message details
        """
        print(file=sys.stderr)
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        print(file=sys.stderr)
        print(message, file=sys.stderr)
        print(file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        """Print formatted success message.

        Args:
            message: Success message
        """
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        """Print formatted warning message.

        Args:
            message: Warning message
        """
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_log_tail(log_path, tail: Optional[List[str]]) -> None:
        """Print the last lines of a failed step's log.

        Args:
            log_path: Log file the lines were read from
            tail: Log lines, oldest first
        """
        if not tail:
            return
        print(f"Problem during build - Dumping last {len(tail)} lines from {log_path}:")
        for line in tail:
            print(line)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)
