"""Per-target build loop.

Every target is built from a pristine copy of the source archive:

    Staging -> Configuring -> Compiling -> Finalizing -> Done
                   |              |
                   +--> Failed <--+

Staging extracts the archive into src/<Platform>-<arch>, Configuring and
Compiling run OpenSSL's Configure and make, Finalizing records the produced
libraries and opensslconf.h and removes the staged sources. A failure in
any state after Staging aborts the whole run and leaves the staged sources
in place for inspection.
"""

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..config.options import BuildOptions
from ..config.targets import (
    IOS_MIN_SDK_VERSION,
    MACOSX_MIN_SDK_VERSION,
    TVOS_MIN_SDK_VERSION,
    WATCHOS_MIN_SDK_VERSION,
    PlatformFamily,
    Target,
)
from ..packages.downloader import SourceDownloader
from .process_runner import BuildPhaseError, ProcessRunner

logger = logging.getLogger(__name__)


class BuildState(Enum):
    """State of the target currently being built."""

    STAGING = "Staging"
    CONFIGURING = "Configuring"
    COMPILING = "Compiling"
    FINALIZING = "Finalizing"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(frozen=True)
class BuildResult:
    """Output of one successfully built target."""

    target: Target
    libssl: Path
    libcrypto: Path
    config_header: Path
    log_path: Path


@dataclass(frozen=True)
class ConfigHeader:
    """A per-target opensslconf header copied to bin/."""

    name: str
    suffix: str
    path: Path


@dataclass
class BuildLoopResult:
    """Everything the build loop produced, in build order."""

    results: List[BuildResult] = field(default_factory=list)
    config_headers: List[ConfigHeader] = field(default_factory=list)
    include_dir: Optional[Path] = None

    def add(self, result: BuildResult, include_dir: Path) -> None:
        """Record a finished target.

        The include directory of the first target becomes the canonical one.
        """
        self.results.append(result)
        self.config_headers.append(
            ConfigHeader(
                name=result.config_header.name,
                suffix=result.target.header_suffix,
                path=result.config_header,
            )
        )
        if self.include_dir is None:
            self.include_dir = include_dir

    def results_for(self, family: PlatformFamily, simulator: bool) -> List[BuildResult]:
        """Results of one family, device or simulator variant."""
        return [
            r
            for r in self.results
            if r.target.family == family and r.target.platform.is_simulator == simulator
        ]


class TargetBuilder:
    """Builds OpenSSL for each requested target, one after another."""

    def __init__(
        self,
        options: BuildOptions,
        runner: Optional[ProcessRunner] = None,
        downloader: Optional[SourceDownloader] = None,
    ):
        """Initialize target builder.

        Args:
            options: Resolved build options
            runner: Process runner for Configure/make (created from options if omitted)
            downloader: Used to extract the source archive
        """
        self.options = options
        self.runner = runner or ProcessRunner(options.verbosity)
        self.downloader = downloader or SourceDownloader()
        self.state: Optional[BuildState] = None

    @property
    def bin_dir(self) -> Path:
        return self.options.reporoot / "bin"

    @property
    def src_dir(self) -> Path:
        return self.options.reporoot / "src"

    def target_dir(self, target: Target) -> Path:
        return self.bin_dir / target.dir_name

    def log_path(self, target: Target) -> Path:
        return self.target_dir(target) / f"build-openssl-{self.options.version}.log"

    def source_dir(self, target: Target) -> Path:
        return self.src_dir / f"{target.platform.value}-{target.arch}"

    def _set_state(self, target: Target, state: BuildState) -> None:
        self.state = state
        logger.debug(f"{target.name}: {state.value}")

    def build_all(self, archive_path: Path) -> BuildLoopResult:
        """Build every target in order.

        Args:
            archive_path: Shared source archive

        Returns:
            BuildLoopResult with all results and config headers

        Raises:
            BuildPhaseError: On the first failing target (remaining targets are skipped)
        """
        loop_result = BuildLoopResult()
        for target in self.options.targets:
            result, include_dir = self.build_target(target, archive_path)
            loop_result.add(result, include_dir)
        return loop_result

    def build_target(self, target: Target, archive_path: Path):
        """Run all states for one target.

        Returns:
            Tuple of (BuildResult, include directory of the target)
        """
        target_dir = self.target_dir(target)
        log_path = self.log_path(target)

        print(
            f"Building openssl-{self.options.version} for "
            + f"{target.platform.value} {target.sdk_version} {target.arch}..."
        )
        print(f"  Logfile: {log_path}")

        self._set_state(target, BuildState.STAGING)
        source_tree = self.stage(target, archive_path)
        env = self.build_env(target)

        try:
            self._set_state(target, BuildState.CONFIGURING)
            print("  Configure...")
            self.runner.run(
                "Configure",
                ["./Configure"] + self.configure_args(target),
                cwd=source_tree,
                log_path=log_path,
                env=env,
                append=False,
            )

            self._set_state(target, BuildState.COMPILING)
            print(f"  Make (using {self.options.build_threads} thread(s))...")
            self.runner.run(
                "make",
                ["make", "-j", str(self.options.build_threads)],
                cwd=source_tree,
                log_path=log_path,
                env=env,
            )
            self.runner.run(
                "make install_dev",
                ["make", "install_dev"],
                cwd=source_tree,
                log_path=log_path,
                env=env,
            )
        except BuildPhaseError:
            self._set_state(target, BuildState.FAILED)
            raise

        self._set_state(target, BuildState.FINALIZING)
        result = self.finalize(target, target_dir, log_path)
        self._set_state(target, BuildState.DONE)
        return result, target_dir / "include" / "openssl"

    def stage(self, target: Target, archive_path: Path) -> Path:
        """Prepare the target directory and a pristine source tree.

        Returns:
            Path to the extracted source tree (containing Configure)
        """
        self.target_dir(target).mkdir(parents=True, exist_ok=True)

        source_dir = self.source_dir(target)
        if source_dir.exists():
            shutil.rmtree(source_dir)
        source_dir.mkdir(parents=True)

        self.downloader.extract_archive(archive_path, source_dir)
        source_tree = source_dir / self.options.archive_base_name

        configure = source_tree / "Configure"
        if configure.exists():
            configure.chmod(configure.stat().st_mode | stat.S_IXUSR)

        return source_tree

    def configure_args(self, target: Target) -> List[str]:
        """Assemble the Configure arguments for a target."""
        args = [target.name, f"--prefix={self.target_dir(target)}"]
        min_version_flag = target.min_version_flag()
        if min_version_flag:
            args.append(min_version_flag)
        if not self.options.disable_bitcode:
            args.append("-fembed-bitcode")
        if self.options.no_deprecated:
            args.append("no-deprecated")
        args.extend(self.options.config_options)

        # no-async: getcontext()/setcontext() lead to App Store rejections
        args.extend(["no-async", "no-shared"])

        if self.options.enable_ec_nistp_64_gcc_128 and target.is_64bit:
            args.append("enable-ec_nistp_64_gcc_128")

        args.append("no-tests")
        return args

    def build_env(self, target: Target) -> Dict[str, str]:
        """Environment for Configure/make, including cross-compile references."""
        developer_dir = self.options.developer_dir
        env = dict(os.environ)
        env.update(
            {
                "CROSS_COMPILE": f"{developer_dir}/Toolchains/XcodeDefault.xctoolchain/usr/bin/",
                "CROSS_TOP": f"{developer_dir}/Platforms/{target.platform.value}.platform/Developer",
                "CROSS_SDK": f"{target.platform.value}{target.sdk_version}.sdk",
                "SDKVERSION": target.sdk_version,
                "IOS_MIN_SDK_VERSION": IOS_MIN_SDK_VERSION,
                "TVOS_MIN_SDK_VERSION": TVOS_MIN_SDK_VERSION,
                "WATCHOS_MIN_SDK_VERSION": WATCHOS_MIN_SDK_VERSION,
                "MACOSX_MIN_SDK_VERSION": MACOSX_MIN_SDK_VERSION,
                "CONFIG_DISABLE_BITCODE": "true" if self.options.disable_bitcode else "false",
            }
        )
        return env

    def finalize(self, target: Target, target_dir: Path, log_path: Path) -> BuildResult:
        """Collect the target's outputs and remove the staged sources.

        The sources are kept if the installed configuration header is missing.
        """
        installed_header = target_dir / "include" / "openssl" / "opensslconf.h"
        if not installed_header.exists():
            self._set_state(target, BuildState.FAILED)
            raise BuildPhaseError(
                "make install_dev",
                log_path,
                detail=f"Configuration header was not installed: {installed_header}",
            )

        shutil.rmtree(self.source_dir(target))

        config_header = self.bin_dir / f"opensslconf_{target.header_suffix}.h"
        shutil.copyfile(installed_header, config_header)

        return BuildResult(
            target=target,
            libssl=target_dir / "lib" / "libssl.a",
            libcrypto=target_dir / "lib" / "libcrypto.a",
            config_header=config_header,
            log_path=log_path,
        )
