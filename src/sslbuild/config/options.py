"""Command-line option parsing and resolution for sslbuild.

Options are ``--flag`` / ``--flag=value`` tokens parsed with argparse.
Parsing is split in two steps so validation can fail before any external
tool or network access:

1. OptionParser.parse() turns tokens into RawOptions and validates them.
2. OptionResolver.resolve() fills in defaults from the host (SDK versions,
   CPU count, Xcode path) and resolves a branch to its latest version.
"""

import argparse
import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from ..packages.downloader import FetchSettings, SourceDownloader
from ..packages.platform_utils import PlatformDetector
from ..packages.sdk_utils import SDKError, SDKVersionResolver
from .targets import (
    DEFAULT_TARGETS,
    SUPPORTED_TARGETS,
    Target,
    make_target,
    parse_target_name,
)

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.1.1q"

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+[a-z]*$")
_BRANCH_RE = re.compile(r"^\d+\.\d+\.\d+$")

_SDK_OPTIONS = {
    "--ios-sdk": "ios",
    "--tvos-sdk": "tvos",
    "--watchos-sdk": "watchos",
    "--macosx-sdk": "macosx",
}


class ConfigurationError(Exception):
    """Raised for invalid or contradictory command-line input."""

    pass


class Verbosity(Enum):
    """How build tool output is shown."""

    NORMAL = "normal"
    VERBOSE = "verbose"
    VERBOSE_ON_ERROR = "verbose-on-error"


@dataclass
class RawOptions:
    """Options as given on the command line, before host resolution."""

    version: Optional[str] = None
    branch: Optional[str] = None
    targets: Optional[str] = None
    reporoot: Optional[str] = None
    sdk_overrides: Dict[str, str] = field(default_factory=dict)
    cleanup: bool = False
    enable_ec_nistp_64_gcc_128: bool = False
    disable_bitcode: bool = False
    deprecated: bool = False
    parallel: bool = True
    verbosity: Verbosity = Verbosity.NORMAL
    show_help: bool = False
    unknown: List[str] = field(default_factory=list)

    @property
    def target_names(self) -> List[str]:
        if self.targets and self.targets.split():
            return self.targets.split()
        return list(DEFAULT_TARGETS)


@dataclass
class BuildOptions:
    """Fully resolved settings for one build run."""

    version: str
    targets: List[Target]
    sdk_versions: Dict[str, str]
    build_threads: int
    reporoot: Path
    developer_dir: Path
    verbosity: Verbosity = Verbosity.NORMAL
    cleanup: bool = False
    enable_ec_nistp_64_gcc_128: bool = False
    disable_bitcode: bool = False
    no_deprecated: bool = True
    config_options: List[str] = field(default_factory=list)
    curl_options: str = ""

    @property
    def archive_name(self) -> str:
        return SourceDownloader.archive_name(self.version)

    @property
    def archive_base_name(self) -> str:
        return f"openssl-{self.version}"

    def summary_lines(self) -> List[str]:
        """Lines of the build options summary shown before building."""
        lines = [
            "Build options",
            f"  OpenSSL version: {self.version}",
            f"  Targets: {' '.join(t.name for t in self.targets)}",
        ]
        for key, label in (
            ("ios", "iOS SDK"),
            ("tvos", "tvOS SDK"),
            ("watchos", "watchOS SDK"),
            ("macosx", "MacOSX SDK"),
        ):
            if key in self.sdk_versions:
                lines.append(f"  {label}: {self.sdk_versions[key]}")
        if self.disable_bitcode:
            lines.append("  Bitcode embedding disabled")
        lines.append(f"  Number of make threads: {self.build_threads}")
        configure_options = list(self.config_options)
        if self.no_deprecated:
            configure_options.append("no-deprecated")
        if configure_options:
            lines.append(f"  Configure options: {' '.join(configure_options)}")
        lines.append(f"  Build location: {self.reporoot}")
        return lines


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports malformed input as ConfigurationError."""

    def error(self, message: str):
        raise ConfigurationError(message)


def build_argument_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the sslbuild command line."""
    parser = _ArgumentParser(
        prog="sslbuild",
        description="Build OpenSSL static libraries and headers for Apple platforms",
        epilog=(
            "Supported targets:\n  "
            + "\n  ".join(SUPPORTED_TARGETS)
            + "\n\nEnvironment:\n"
            + "  CONFIG_OPTIONS  Extra options passed to Configure (e.g. \"no-ssl3 no-dtls\")\n"
            + "  CURL_OPTIONS    Download options: --proxy, --insecure, --max-time,\n"
            + "                  --connect-timeout, --cacert, --user-agent, --location"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--version",
        default=None,
        help=f"OpenSSL version to build (default: {DEFAULT_VERSION})",
    )
    parser.add_argument(
        "--branch",
        default=None,
        help="Build the latest release of a branch (e.g. 1.1.1), not combinable with --version",
    )
    parser.add_argument(
        "--targets",
        default=None,
        help=f"Space-separated list of build targets (default: \"{' '.join(DEFAULT_TARGETS)}\")",
    )
    parser.add_argument(
        "--reporoot",
        default=None,
        help="Directory for downloads and build output (default: current directory)",
    )
    for flag, sdk_key in _SDK_OPTIONS.items():
        parser.add_argument(
            flag,
            dest=f"{sdk_key}_sdk",
            default=None,
            help=f"{sdk_key} SDK version (default: from xcrun)",
        )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Clean up build directories (bin, include/openssl, lib, src) before starting",
    )
    parser.add_argument(
        "--deprecated",
        action="store_true",
        help="Keep deprecated APIs (no-deprecated is passed to Configure otherwise)",
    )
    parser.add_argument(
        "--ec-nistp-64-gcc-128",
        dest="enable_ec_nistp_64_gcc_128",
        action="store_true",
        help="Enable configure option enable-ec_nistp_64_gcc_128 for 64 bit targets",
    )
    parser.add_argument(
        "--disable-bitcode",
        action="store_true",
        help="Disable embedding Bitcode",
    )
    parser.add_argument(
        "--noparallel",
        dest="parallel",
        action="store_false",
        help="Disable running make with parallel jobs (make -j)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbosity",
        action="store_const",
        const=Verbosity.VERBOSE,
        default=Verbosity.NORMAL,
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--verbose-on-error",
        dest="verbosity",
        action="store_const",
        const=Verbosity.VERBOSE_ON_ERROR,
        help="Dump last 500 lines from log file if an error occurs",
    )
    parser.add_argument(
        "-h",
        "--help",
        dest="show_help",
        action="store_true",
        help="Print help (this message)",
    )
    return parser


class OptionParser:
    """Parses command-line tokens into RawOptions."""

    @staticmethod
    def parse(tokens: List[str]) -> RawOptions:
        """Parse and validate command-line tokens.

        Unknown tokens are collected in ``RawOptions.unknown`` and logged as
        warnings; they never abort parsing.

        Args:
            tokens: Command-line tokens (without the program name)

        Returns:
            Validated RawOptions

        Raises:
            ConfigurationError: If version/branch are both given or malformed
        """
        args, unknown = OptionParser._parse_known(list(tokens))

        for token in unknown:
            logger.warning(f"Unknown argument: {token}")

        options = RawOptions(
            version=args.version,
            branch=args.branch,
            targets=args.targets,
            reporoot=args.reporoot,
            sdk_overrides={
                key: getattr(args, f"{key}_sdk")
                for key in _SDK_OPTIONS.values()
                if getattr(args, f"{key}_sdk")
            },
            cleanup=args.cleanup,
            enable_ec_nistp_64_gcc_128=args.enable_ec_nistp_64_gcc_128,
            disable_bitcode=args.disable_bitcode,
            deprecated=args.deprecated,
            parallel=args.parallel,
            verbosity=args.verbosity,
            show_help=args.show_help,
            unknown=unknown,
        )

        if not options.show_help:
            OptionParser.validate(options)
        return options

    @staticmethod
    def _parse_known(tokens: List[str]) -> Tuple[argparse.Namespace, List[str]]:
        """Parse tokens, setting aside the ones argparse cannot accept.

        Tokens such as ``--cleanup=yes`` or a trailing ``--targets`` make
        argparse fail as a whole. They are removed one at a time and
        returned with the unknown tokens.
        """
        parser = build_argument_parser()
        rejected: List[str] = []
        while True:
            try:
                args, unknown = parser.parse_known_args(tokens)
            except ConfigurationError:
                rejected.append(tokens.pop(OptionParser._offending_index(parser, tokens)))
                continue
            return args, rejected + unknown

    @staticmethod
    def _offending_index(parser: argparse.ArgumentParser, tokens: List[str]) -> int:
        """Index of the first token that breaks parsing.

        A prefix ending in a value option fails until its value follows, so a
        token only counts as offending if the next token does not repair it.
        """

        def accepts(prefix: List[str]) -> bool:
            try:
                parser.parse_known_args(prefix)
            except ConfigurationError:
                return False
            return True

        for i in range(len(tokens)):
            if accepts(tokens[: i + 1]):
                continue
            if i + 1 == len(tokens) or not accepts(tokens[: i + 2]):
                return i
        return len(tokens) - 1

    @staticmethod
    def validate(options: RawOptions) -> None:
        """Validate version/branch input and target names.

        Raises:
            ConfigurationError: On contradictory or malformed input
        """
        if options.version and options.branch:
            raise ConfigurationError(
                "Either select a branch (the latest version of it will be built) "
                + "or select a specific version, but not both."
            )

        if options.version and not _VERSION_RE.fullmatch(options.version):
            raise ConfigurationError(
                f"Unknown version number format: {options.version}. Examples: 1.1.0, 1.1.0l"
            )

        if options.branch and not _BRANCH_RE.fullmatch(options.branch):
            raise ConfigurationError(
                f"Unknown branch version number format: {options.branch}. Examples: 1.1.0, 1.2.0"
            )

        for name in options.target_names:
            try:
                parse_target_name(name)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e

        if options.reporoot is not None:
            if not options.reporoot:
                raise ConfigurationError("--reporoot requires a directory")
            if any(c.isspace() for c in options.reporoot):
                raise ConfigurationError(
                    f"Your path contains whitespace, which is not supported by 'make install': {options.reporoot}"
                )


class OptionResolver:
    """Resolves RawOptions into BuildOptions using host collaborators."""

    def __init__(
        self,
        sdk_resolver: Optional[SDKVersionResolver] = None,
        downloader: Optional[SourceDownloader] = None,
    ):
        """Initialize option resolver.

        Args:
            sdk_resolver: SDK version/developer dir resolver (xcrun)
            downloader: Downloader used to resolve a branch to a version
        """
        self.sdk_resolver = sdk_resolver or SDKVersionResolver()
        self.downloader = downloader

    def resolve(
        self,
        raw: RawOptions,
        environ: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> BuildOptions:
        """Resolve defaults and host-dependent values.

        Args:
            raw: Validated command-line options
            environ: Environment (CONFIG_OPTIONS, CURL_OPTIONS); os.environ by default
            cwd: Default build root; current directory by default

        Returns:
            BuildOptions ready for the orchestrator

        Raises:
            ConfigurationError: If the host cannot provide a required value
            DownloadError: If a branch cannot be resolved to a version
        """
        environ = os.environ if environ is None else environ

        reporoot = Path(raw.reporoot) if raw.reporoot else Path(cwd or Path.cwd())
        reporoot = reporoot.resolve()
        if any(c.isspace() for c in str(reporoot)):
            raise ConfigurationError(
                f"Your path contains whitespace, which is not supported by 'make install': {reporoot}"
            )
        reporoot.mkdir(parents=True, exist_ok=True)

        target_names = raw.target_names
        sdk_keys = []
        for name in target_names:
            sdk_key = parse_target_name(name)[0].sdk_key
            if sdk_key not in sdk_keys:
                sdk_keys.append(sdk_key)

        try:
            sdk_versions = self.sdk_resolver.resolve_versions(sdk_keys, raw.sdk_overrides)
            developer_dir = self.sdk_resolver.get_developer_dir()
        except SDKError as e:
            raise ConfigurationError(str(e)) from e

        targets = [make_target(name, sdk_versions) for name in target_names]

        curl_options = environ.get("CURL_OPTIONS", "")
        if raw.branch:
            downloader = self.downloader or SourceDownloader(
                FetchSettings.from_curl_options(curl_options)
            )
            version = downloader.find_latest_version(raw.branch)
        else:
            version = raw.version or DEFAULT_VERSION

        return BuildOptions(
            version=version,
            targets=targets,
            sdk_versions=sdk_versions,
            build_threads=PlatformDetector.detect_build_threads(raw.parallel),
            reporoot=reporoot,
            developer_dir=developer_dir,
            verbosity=raw.verbosity,
            cleanup=raw.cleanup,
            enable_ec_nistp_64_gcc_128=raw.enable_ec_nistp_64_gcc_128,
            disable_bitcode=raw.disable_bitcode,
            no_deprecated=not raw.deprecated,
            config_options=shlex.split(environ.get("CONFIG_OPTIONS", "")),
            curl_options=curl_options,
        )
