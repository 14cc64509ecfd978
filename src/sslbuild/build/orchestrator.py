"""
Build orchestration for sslbuild.

This module coordinates a complete run, from the source archive to the
installable libraries and headers. It ties together:
- Source acquisition (download or reuse of openssl-<version>.tar.gz)
- The per-target build loop (Configure, make, make install_dev)
- Aggregation of static libraries with lipo
- Unification of the per-target opensslconf.h headers
"""

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.options import BuildOptions
from ..packages.downloader import (
    DownloadError,
    ExtractionError,
    FetchSettings,
    SourceDownloader,
)
from .archive_creator import ArchiveCreator, ArchiveError
from .build_loop import BuildLoopResult, TargetBuilder
from .header_unifier import HeaderUnifier
from .process_runner import BuildPhaseError, ProcessRunner

# Directories under the root removed by --cleanup
CLEANUP_DIRS = ("bin", "include/openssl", "lib", "src")


@dataclass
class RunResult:
    """Result of a complete build run."""

    success: bool
    libraries: List[Path] = field(default_factory=list)
    include_dir: Optional[Path] = None
    build_time: float = 0.0
    message: str = ""
    error: Optional[Exception] = None


class BuildOrchestrator:
    """
    Orchestrates a complete OpenSSL build for Apple platforms.

    Phases:
    1. Optionally clean previous output directories
    2. Create bin/, lib/ and src/ under the root
    3. Ensure the source archive is present
    4. Build every target sequentially
    5. Merge static libraries per platform family
    6. Install headers, with a dispatching opensslconf.h for several targets

    Example usage:
        orchestrator = BuildOrchestrator()
        result = orchestrator.run(options)
        if result.success:
            print(f"Libraries: {result.libraries}")
    """

    def __init__(
        self,
        downloader: Optional[SourceDownloader] = None,
        runner: Optional[ProcessRunner] = None,
        archive_creator: Optional[ArchiveCreator] = None,
        header_unifier: Optional[HeaderUnifier] = None,
        show_progress: bool = True,
    ):
        """
        Initialize build orchestrator.

        Args:
            downloader: Source downloader (created from CURL_OPTIONS if omitted)
            runner: Process runner for the external build steps
            archive_creator: lipo wrapper
            header_unifier: Header installer
            show_progress: Show download progress bar
        """
        self.downloader = downloader
        self.runner = runner
        self.archive_creator = archive_creator or ArchiveCreator()
        self.header_unifier = header_unifier or HeaderUnifier()
        self.show_progress = show_progress

    def _downloader_for(self, options: BuildOptions) -> SourceDownloader:
        if self.downloader is None:
            self.downloader = SourceDownloader(FetchSettings.from_curl_options(options.curl_options))
        return self.downloader

    @staticmethod
    def cleanup(root: Path) -> None:
        """Remove output directories of previous runs."""
        print("Cleaning up")
        for name in CLEANUP_DIRS:
            path = root / name
            if path.exists():
                shutil.rmtree(path)

    def run(self, options: BuildOptions) -> RunResult:
        """
        Execute a complete build run.

        Args:
            options: Resolved build options

        Returns:
            RunResult with status and output paths. ``error`` holds the
            exception that aborted the run, if any.
        """
        start_time = time.time()
        root = options.reporoot

        try:
            if options.cleanup:
                self.cleanup(root)

            for name in ("bin", "lib", "src"):
                (root / name).mkdir(parents=True, exist_ok=True)

            for line in options.summary_lines():
                print(line)
            print()

            downloader = self._downloader_for(options)
            archive_path = downloader.ensure_archive(options.version, root, self.show_progress)

            builder = TargetBuilder(
                options,
                runner=self.runner or ProcessRunner(options.verbosity),
                downloader=downloader,
            )
            loop_result: BuildLoopResult = builder.build_all(archive_path)

            libraries = self.archive_creator.aggregate(loop_result, root / "lib")
            include_dir = self.header_unifier.unify(loop_result, root / "include")

            print("Done.")
            return RunResult(
                success=True,
                libraries=libraries,
                include_dir=include_dir,
                build_time=time.time() - start_time,
                message="Build successful",
            )

        except (DownloadError, ExtractionError, BuildPhaseError, ArchiveError) as e:
            return RunResult(
                success=False,
                build_time=time.time() - start_time,
                message=str(e),
                error=e,
            )
