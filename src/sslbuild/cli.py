"""
Command-line interface for sslbuild.

This module provides the `sslbuild` CLI tool for building OpenSSL static
libraries for iOS, tvOS, watchOS and Mac Catalyst.
"""

import sys
from typing import List, Optional

from sslbuild.build import BuildOrchestrator, BuildPhaseError
from sslbuild.cli_utils import ErrorFormatter, configure_logging
from sslbuild.config import (
    ConfigurationError,
    OptionParser,
    OptionResolver,
    RawOptions,
    Verbosity,
    build_argument_parser,
)
from sslbuild.packages import DownloadError


def build_command(raw: RawOptions) -> None:
    """Build OpenSSL for the requested targets.

    Examples:
        sslbuild                                   # Default version and targets
        sslbuild --version=1.1.1q --cleanup        # Specific version, clean output
        sslbuild --branch=1.1.1 --targets="ios-cross-arm64 tvos-cross-arm64"
        sslbuild --verbose-on-error                # Dump log tail on failure
    """
    verbose = raw.verbosity == Verbosity.VERBOSE

    try:
        options = OptionResolver().resolve(raw)

        orchestrator = BuildOrchestrator()
        result = orchestrator.run(options)

        if result.success:
            ErrorFormatter.print_success("Build successful!")
            print()
            for library in result.libraries:
                print(f"Library: {library}")
            print(f"Headers: {result.include_dir}")
            print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)

        if isinstance(result.error, BuildPhaseError):
            ErrorFormatter.print_log_tail(result.error.log_path, result.error.tail)
        ErrorFormatter.print_error("Build failed!", result.message)
        sys.exit(1)

    except ConfigurationError as e:
        ErrorFormatter.print_error("Invalid options", str(e))
        sys.exit(1)
    except DownloadError as e:
        ErrorFormatter.print_error("Download failed", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, verbose)


def main(argv: Optional[List[str]] = None) -> None:
    """sslbuild - OpenSSL builds for Apple platforms.

    Args:
        argv: Command-line tokens without the program name (sys.argv by default)
    """
    tokens = sys.argv[1:] if argv is None else argv

    # Unknown argument warnings are logged while parsing
    configure_logging()

    try:
        raw = OptionParser.parse(tokens)
    except ConfigurationError as e:
        ErrorFormatter.print_error("Invalid options", str(e))
        sys.exit(1)

    configure_logging(raw.verbosity)

    if raw.show_help:
        build_argument_parser().print_help()
        sys.exit(0)

    build_command(raw)


if __name__ == "__main__":
    main()
