"""Xcode SDK Utilities.

This module queries the local Xcode installation for the developer directory
and the versions of the installed platform SDKs.
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, Iterable

logger = logging.getLogger(__name__)


class SDKError(Exception):
    """Raised when the Xcode installation cannot be queried."""

    pass


class SDKVersionResolver:
    """Resolves SDK versions and the developer path via xcrun/xcode-select.

    SDK keys are the ones used on the command line: ios, tvos, watchos, macosx.
    """

    # xcrun SDK names per SDK key (device SDKs carry the version for simulators too)
    XCRUN_SDK_NAMES = {
        "ios": "iphoneos",
        "tvos": "appletvos",
        "watchos": "watchos",
        "macosx": "macosx",
    }

    def __init__(self, timeout: int = 30):
        """Initialize SDK resolver.

        Args:
            timeout: Timeout in seconds for each xcrun/xcode-select call
        """
        self.timeout = timeout

    def _query(self, cmd: list) -> str:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SDKError(f"{cmd[0]} not found. Is Xcode installed?") from e
        except subprocess.TimeoutExpired as e:
            raise SDKError(f"Timeout running {' '.join(cmd)}") from e

        if result.returncode != 0:
            raise SDKError(
                f"{' '.join(cmd)} failed with exit code {result.returncode}\n"
                + f"stderr: {result.stderr.strip()}"
            )

        output = result.stdout.strip()
        if not output:
            raise SDKError(f"{' '.join(cmd)} returned no output")
        return output

    def get_sdk_version(self, sdk_key: str) -> str:
        """Get the installed SDK version for an SDK key.

        Args:
            sdk_key: One of "ios", "tvos", "watchos", "macosx"

        Returns:
            SDK version string (e.g. "16.2")

        Raises:
            SDKError: If the key is unknown or xcrun fails
        """
        if sdk_key not in self.XCRUN_SDK_NAMES:
            raise SDKError(f"Unknown SDK: {sdk_key}")

        version = self._query(
            ["xcrun", "-sdk", self.XCRUN_SDK_NAMES[sdk_key], "--show-sdk-version"]
        )
        logger.debug(f"Resolved {sdk_key} SDK version: {version}")
        return version

    def resolve_versions(
        self, sdk_keys: Iterable[str], overrides: Dict[str, str]
    ) -> Dict[str, str]:
        """Resolve SDK versions, preferring explicit overrides.

        Args:
            sdk_keys: SDK keys that need a version
            overrides: Versions given on the command line

        Returns:
            Dictionary containing the overrides plus every resolved key
        """
        versions = dict(overrides)
        for sdk_key in sdk_keys:
            if sdk_key not in versions:
                versions[sdk_key] = self.get_sdk_version(sdk_key)
        return versions

    def get_developer_dir(self) -> Path:
        """Get the active Xcode developer directory.

        Returns:
            Path reported by ``xcode-select -print-path``

        Raises:
            SDKError: If xcode-select fails, the path does not exist, or the
                path contains whitespace (unsupported by the OpenSSL build)
        """
        developer_dir = Path(self._query(["xcode-select", "-print-path"]))

        if not developer_dir.is_dir():
            raise SDKError(
                f"Xcode path is not set correctly, {developer_dir} does not exist.\n"
                + "Run: sudo xcode-select -switch <Xcode path>\n"
                + "For the default installation: "
                + "sudo xcode-select -switch /Applications/Xcode.app/Contents/Developer"
            )

        if any(c.isspace() for c in str(developer_dir)):
            raise SDKError(
                f"Your Xcode path contains whitespace, which is not supported: {developer_dir}"
            )

        return developer_dir
