"""Unit tests for the build target catalog."""

import pytest

from sslbuild.config.targets import (
    DEFAULT_TARGETS,
    IOS_MIN_SDK_VERSION,
    SUPPORTED_TARGETS,
    WATCHOS_MIN_SDK_VERSION,
    PlatformFamily,
    SDKPlatform,
    make_target,
    parse_target_name,
)

SDK_VERSIONS = {"ios": "16.2", "tvos": "16.1", "watchos": "9.1", "macosx": "13.1"}


class TestParseTargetName:
    """Test cases for parse_target_name."""

    @pytest.mark.parametrize(
        "name,platform,arch",
        [
            ("ios-sim-cross-x86_64", SDKPlatform.IPHONE_SIMULATOR, "x86_64"),
            ("ios-sim-cross-arm64", SDKPlatform.IPHONE_SIMULATOR, "arm64"),
            ("ios-cross-arm64", SDKPlatform.IPHONE_OS, "arm64"),
            ("mac-catalyst-arm64", SDKPlatform.MACOSX, "arm64"),
            ("tvos-sim-cross-x86_64", SDKPlatform.APPLETV_SIMULATOR, "x86_64"),
            ("tvos-cross-arm64", SDKPlatform.APPLETV_OS, "arm64"),
            ("watchos-sim-cross-arm64", SDKPlatform.WATCH_SIMULATOR, "arm64"),
            ("watchos-cross-armv7k", SDKPlatform.WATCH_OS, "armv7k"),
            ("watchos-cross-arm64_32", SDKPlatform.WATCH_OS, "arm64_32"),
        ],
    )
    def test_known_targets(self, name, platform, arch):
        """Test platform and architecture of supported targets."""
        assert parse_target_name(name) == (platform, arch)

    def test_every_supported_target_parses(self):
        """Test that the whole catalog maps onto a platform."""
        for name in SUPPORTED_TARGETS:
            parse_target_name(name)

    def test_defaults_are_supported(self):
        """Test that the default subset is part of the catalog."""
        assert set(DEFAULT_TARGETS) <= set(SUPPORTED_TARGETS)

    def test_unknown_target(self):
        """Test that unsupported targets are rejected."""
        with pytest.raises(ValueError, match="Unknown target: ios64-cross-arm64"):
            parse_target_name("ios64-cross-arm64")


class TestTarget:
    """Test cases for Target."""

    def test_make_target_picks_sdk_version(self):
        """Test that each platform uses its own SDK version."""
        assert make_target("ios-sim-cross-x86_64", SDK_VERSIONS).sdk_version == "16.2"
        assert make_target("tvos-cross-arm64", SDK_VERSIONS).sdk_version == "16.1"
        assert make_target("watchos-cross-armv7k", SDK_VERSIONS).sdk_version == "9.1"
        assert make_target("mac-catalyst-x86_64", SDK_VERSIONS).sdk_version == "13.1"

    def test_dir_name(self):
        """Test the per-target directory name under bin/."""
        target = make_target("ios-cross-arm64", SDK_VERSIONS)
        assert target.dir_name == "iPhoneOS16.2-arm64.sdk"

    def test_family_and_header_suffix(self):
        """Test family classification and header suffix."""
        catalyst = make_target("mac-catalyst-arm64", SDK_VERSIONS)
        assert catalyst.family == PlatformFamily.CATALYST
        assert catalyst.header_suffix == "catalyst_arm64"

        watch = make_target("watchos-cross-arm64_32", SDK_VERSIONS)
        assert watch.family == PlatformFamily.WATCHOS
        assert watch.header_suffix == "watchos_arm64_32"

    def test_is_64bit(self):
        """Test 64 bit detection by architecture suffix."""
        assert make_target("ios-cross-arm64", SDK_VERSIONS).is_64bit
        assert make_target("ios-sim-cross-x86_64", SDK_VERSIONS).is_64bit
        assert not make_target("watchos-cross-armv7k", SDK_VERSIONS).is_64bit
        assert not make_target("watchos-cross-arm64_32", SDK_VERSIONS).is_64bit

    def test_simulator_platforms(self):
        """Test simulator classification of SDK platforms."""
        assert SDKPlatform.IPHONE_SIMULATOR.is_simulator
        assert SDKPlatform.WATCH_SIMULATOR.is_simulator
        assert not SDKPlatform.IPHONE_OS.is_simulator
        assert not SDKPlatform.MACOSX.is_simulator

    def test_min_version_flags(self):
        """Test minimum OS version flags."""
        assert (
            make_target("ios-cross-arm64", SDK_VERSIONS).min_version_flag()
            == f"-mios-version-min={IOS_MIN_SDK_VERSION}"
        )
        assert (
            make_target("ios-sim-cross-arm64", SDK_VERSIONS).min_version_flag()
            == f"-mios-simulator-version-min={IOS_MIN_SDK_VERSION}"
        )
        assert (
            make_target("watchos-sim-cross-x86_64", SDK_VERSIONS).min_version_flag()
            == f"-mwatchos-simulator-version-min={WATCHOS_MIN_SDK_VERSION}"
        )
        assert make_target("mac-catalyst-x86_64", SDK_VERSIONS).min_version_flag() is None
        assert make_target("mac-catalyst-arm64", SDK_VERSIONS).min_version_flag() is None
