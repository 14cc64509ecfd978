"""Configuration modules for sslbuild."""

from .options import (
    DEFAULT_VERSION,
    BuildOptions,
    ConfigurationError,
    OptionParser,
    OptionResolver,
    RawOptions,
    Verbosity,
    build_argument_parser,
)
from .targets import (
    DEFAULT_TARGETS,
    SUPPORTED_TARGETS,
    PlatformFamily,
    SDKPlatform,
    Target,
    make_target,
    parse_target_name,
)

__all__ = [
    "DEFAULT_VERSION",
    "BuildOptions",
    "ConfigurationError",
    "OptionParser",
    "OptionResolver",
    "RawOptions",
    "Verbosity",
    "build_argument_parser",
    "DEFAULT_TARGETS",
    "SUPPORTED_TARGETS",
    "PlatformFamily",
    "SDKPlatform",
    "Target",
    "make_target",
    "parse_target_name",
]
