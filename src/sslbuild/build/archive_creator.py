"""Archive Creator.

This module merges the per-target static libraries (libssl.a, libcrypto.a)
into universal archives under lib/<family>/ using lipo.

Design:
    - Wraps lipo command execution
    - One output per family and variant (device/simulator)
    - iOS device and simulator are merged into one archive when both exist
    - Families without any built target produce no output
"""

import subprocess
from pathlib import Path
from typing import List

from ..config.targets import PlatformFamily
from .build_loop import BuildLoopResult, BuildResult

LIBRARIES = ("libssl", "libcrypto")

# Output directory and file name stem per family
_FAMILY_LAYOUT = {
    PlatformFamily.IOS: ("ios", "iOS"),
    PlatformFamily.TVOS: ("tvOS", "tvOS"),
    PlatformFamily.WATCHOS: ("watchOS", "watchOS"),
    PlatformFamily.CATALYST: ("catalyst", "Catalyst"),
}


class ArchiveError(Exception):
    """Raised when merging static libraries fails."""

    pass


class ArchiveCreator:
    """Creates universal static libraries from per-target builds.

    This class handles:
    - Running lipo -create for each library and variant
    - Laying out lib/<family>/ outputs
    - Validating that outputs were written
    """

    def __init__(self, lipo: str = "lipo", show_progress: bool = True, timeout: int = 120):
        """Initialize archive creator.

        Args:
            lipo: lipo executable
            show_progress: Whether to print created archives
            timeout: Timeout in seconds for a single lipo run
        """
        self.lipo = lipo
        self.show_progress = show_progress
        self.timeout = timeout

    def create_archive(self, inputs: List[Path], archive_path: Path) -> Path:
        """Merge static libraries into one universal archive.

        Args:
            inputs: Per-architecture static libraries
            archive_path: Path for output .a file

        Returns:
            Path to the generated archive

        Raises:
            ArchiveError: If lipo fails or the output is missing
        """
        if not inputs:
            raise ArchiveError(f"No input libraries provided for {archive_path.name}")

        archive_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = [self.lipo, "-create"] + [str(p) for p in inputs] + ["-output", str(archive_path)]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise ArchiveError(f"lipo timed out creating {archive_path.name}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to run {self.lipo}: {e}") from e

        if result.returncode != 0:
            error_msg = f"Archive creation failed for {archive_path}\n"
            error_msg += f"stderr: {result.stderr}\n"
            error_msg += f"stdout: {result.stdout}"
            raise ArchiveError(error_msg)

        if not archive_path.exists():
            raise ArchiveError(f"Archive was not created: {archive_path}")

        if self.show_progress:
            print(f"  Created {archive_path}")

        return archive_path

    def _merge_libraries(self, results: List[BuildResult], directory: Path, suffix: str) -> List[Path]:
        outputs = []
        for library in LIBRARIES:
            inputs = [getattr(r, library) for r in results]
            outputs.append(self.create_archive(inputs, directory / f"{library}{suffix}.a"))
        return outputs

    def aggregate(self, loop_result: BuildLoopResult, lib_root: Path) -> List[Path]:
        """Create all universal archives for the build.

        Layout:
            lib/ios/libssl.a                  iOS device + simulator
            lib/ios/libssl-iOS.a              iOS device only
            lib/ios/libssl-iOS-Sim.a          iOS simulator only
            lib/tvOS/libssl-tvOS[-Sim].a      per variant
            lib/watchOS/libssl-watchOS[-Sim].a
            lib/catalyst/libssl-Catalyst.a

        libcrypto follows the same pattern.

        Args:
            loop_result: Results of the build loop
            lib_root: The lib/ directory

        Returns:
            List of created archive paths

        Raises:
            ArchiveError: If any lipo invocation fails
        """
        created: List[Path] = []

        for family, (dir_name, stem) in _FAMILY_LAYOUT.items():
            device = loop_result.results_for(family, simulator=False)
            simulator = loop_result.results_for(family, simulator=True)
            if not device and not simulator:
                continue

            directory = lib_root / dir_name
            if self.show_progress:
                print(f"Creating {dir_name} libraries...")

            if family == PlatformFamily.IOS and device and simulator:
                created += self._merge_libraries(device + simulator, directory, "")
                continue

            if device:
                created += self._merge_libraries(device, directory, f"-{stem}")
            if simulator:
                created += self._merge_libraries(simulator, directory, f"-{stem}-Sim")

        return created
