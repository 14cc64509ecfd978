"""Build target catalog for sslbuild.

A target is one (platform, architecture) pair known to OpenSSL's Configure,
for example ``ios-sim-cross-x86_64`` or ``watchos-cross-arm64_32``. This
module maps target names onto Apple SDK platforms and platform families.

Families:
    ios       iPhoneOS + iPhoneSimulator
    tvos      AppleTVOS + AppleTVSimulator
    watchos   WatchOS + WatchSimulator
    catalyst  MacOSX (Mac Catalyst)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

# Minimum OS versions to build for
IOS_MIN_SDK_VERSION = "15.0"
TVOS_MIN_SDK_VERSION = "15.0"
WATCHOS_MIN_SDK_VERSION = "8.5"
MACOSX_MIN_SDK_VERSION = "12.3"

# Default targets are a fast subset; SUPPORTED_TARGETS is the full set.
DEFAULT_TARGETS = ["ios-sim-cross-x86_64", "ios-cross-arm64"]

SUPPORTED_TARGETS = [
    "ios-sim-cross-x86_64",
    "ios-sim-cross-arm64",
    "ios-cross-arm64",
    "mac-catalyst-x86_64",
    "mac-catalyst-arm64",
    "tvos-sim-cross-x86_64",
    "tvos-sim-cross-arm64",
    "tvos-cross-arm64",
    "watchos-sim-cross-x86_64",
    "watchos-sim-cross-arm64",
    "watchos-cross-armv7k",
    "watchos-cross-arm64_32",
]


class PlatformFamily(Enum):
    """Group of SDK platforms sharing one output directory under lib/."""

    IOS = "ios"
    TVOS = "tvos"
    WATCHOS = "watchos"
    CATALYST = "catalyst"


class SDKPlatform(Enum):
    """Apple SDK platform, named as in ``<Xcode>/Platforms/<name>.platform``."""

    IPHONE_OS = "iPhoneOS"
    IPHONE_SIMULATOR = "iPhoneSimulator"
    APPLETV_OS = "AppleTVOS"
    APPLETV_SIMULATOR = "AppleTVSimulator"
    WATCH_OS = "WatchOS"
    WATCH_SIMULATOR = "WatchSimulator"
    MACOSX = "MacOSX"

    @property
    def family(self) -> PlatformFamily:
        return _PLATFORM_FAMILIES[self]

    @property
    def is_simulator(self) -> bool:
        return self in (
            SDKPlatform.IPHONE_SIMULATOR,
            SDKPlatform.APPLETV_SIMULATOR,
            SDKPlatform.WATCH_SIMULATOR,
        )

    @property
    def sdk_key(self) -> str:
        """Key of the SDK version used for this platform (ios/tvos/watchos/macosx)."""
        return _PLATFORM_SDK_KEYS[self]


_PLATFORM_FAMILIES: Dict[SDKPlatform, PlatformFamily] = {
    SDKPlatform.IPHONE_OS: PlatformFamily.IOS,
    SDKPlatform.IPHONE_SIMULATOR: PlatformFamily.IOS,
    SDKPlatform.APPLETV_OS: PlatformFamily.TVOS,
    SDKPlatform.APPLETV_SIMULATOR: PlatformFamily.TVOS,
    SDKPlatform.WATCH_OS: PlatformFamily.WATCHOS,
    SDKPlatform.WATCH_SIMULATOR: PlatformFamily.WATCHOS,
    SDKPlatform.MACOSX: PlatformFamily.CATALYST,
}

_PLATFORM_SDK_KEYS: Dict[SDKPlatform, str] = {
    SDKPlatform.IPHONE_OS: "ios",
    SDKPlatform.IPHONE_SIMULATOR: "ios",
    SDKPlatform.APPLETV_OS: "tvos",
    SDKPlatform.APPLETV_SIMULATOR: "tvos",
    SDKPlatform.WATCH_OS: "watchos",
    SDKPlatform.WATCH_SIMULATOR: "watchos",
    SDKPlatform.MACOSX: "macosx",
}

_TARGET_PREFIXES: List[Tuple[str, SDKPlatform]] = [
    ("ios-sim-cross-", SDKPlatform.IPHONE_SIMULATOR),
    ("tvos-sim-cross-", SDKPlatform.APPLETV_SIMULATOR),
    ("tvos-cross-", SDKPlatform.APPLETV_OS),
    ("watchos-sim-cross-", SDKPlatform.WATCH_SIMULATOR),
    ("watchos-cross-", SDKPlatform.WATCH_OS),
    ("mac-catalyst-", SDKPlatform.MACOSX),
    ("ios-cross-", SDKPlatform.IPHONE_OS),
]


@dataclass(frozen=True)
class Target:
    """One build loop iteration: a Configure target on a specific SDK."""

    name: str
    platform: SDKPlatform
    arch: str
    sdk_version: str

    @property
    def family(self) -> PlatformFamily:
        return self.platform.family

    @property
    def header_suffix(self) -> str:
        """Suffix used for the per-target opensslconf header (e.g. ios_x86_64)."""
        return f"{self.family.value}_{self.arch}"

    @property
    def is_64bit(self) -> bool:
        return self.arch.endswith("64")

    @property
    def dir_name(self) -> str:
        """Name of the target's directory under bin/ (e.g. iPhoneOS16.2-arm64.sdk)."""
        return f"{self.platform.value}{self.sdk_version}-{self.arch}.sdk"

    def min_version_flag(self) -> Optional[str]:
        """Compiler flag selecting the minimum OS version for this target.

        Returns:
            The flag, or None for Mac Catalyst. The Catalyst Configure targets
            take their deployment versions from IOS_MIN_SDK_VERSION and
            MACOSX_MIN_SDK_VERSION in the environment.
        """
        if self.platform == SDKPlatform.IPHONE_OS:
            return f"-mios-version-min={IOS_MIN_SDK_VERSION}"
        if self.platform == SDKPlatform.IPHONE_SIMULATOR:
            return f"-mios-simulator-version-min={IOS_MIN_SDK_VERSION}"
        if self.platform == SDKPlatform.APPLETV_OS:
            return f"-mtvos-version-min={TVOS_MIN_SDK_VERSION}"
        if self.platform == SDKPlatform.APPLETV_SIMULATOR:
            return f"-mtvos-simulator-version-min={TVOS_MIN_SDK_VERSION}"
        if self.platform == SDKPlatform.WATCH_OS:
            return f"-mwatchos-version-min={WATCHOS_MIN_SDK_VERSION}"
        if self.platform == SDKPlatform.WATCH_SIMULATOR:
            return f"-mwatchos-simulator-version-min={WATCHOS_MIN_SDK_VERSION}"
        return None


def parse_target_name(name: str) -> Tuple[SDKPlatform, str]:
    """Split a target name into its SDK platform and architecture.

    Args:
        name: Configure target name (e.g. "tvos-sim-cross-arm64")

    Returns:
        Tuple of (SDK platform, architecture)

    Raises:
        ValueError: If the target is not a supported Apple target
    """
    if name not in SUPPORTED_TARGETS:
        raise ValueError(
            f"Unknown target: {name}. Supported targets: {' '.join(SUPPORTED_TARGETS)}"
        )

    for prefix, sdk_platform in _TARGET_PREFIXES:
        if name.startswith(prefix):
            # Architecture is everything after the last dash
            return sdk_platform, name.rsplit("-", 1)[1]

    raise ValueError(f"Cannot determine platform for target: {name}")


def make_target(name: str, sdk_versions: Dict[str, str]) -> Target:
    """Create a Target, picking the SDK version for its platform.

    Args:
        name: Configure target name
        sdk_versions: SDK versions keyed by "ios", "tvos", "watchos", "macosx"

    Returns:
        Immutable Target
    """
    sdk_platform, arch = parse_target_name(name)
    return Target(
        name=name,
        platform=sdk_platform,
        arch=arch,
        sdk_version=sdk_versions[sdk_platform.sdk_key],
    )
