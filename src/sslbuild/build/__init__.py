"""
Build system components for sslbuild.

This module provides the build system implementation including:
- Running Configure and make per target
- Merging static libraries (lipo)
- Installing headers
- Build orchestration
"""

from .archive_creator import ArchiveCreator, ArchiveError
from .build_loop import (
    BuildLoopResult,
    BuildResult,
    BuildState,
    ConfigHeader,
    TargetBuilder,
)
from .header_unifier import HeaderUnifier
from .orchestrator import BuildOrchestrator, RunResult
from .process_runner import BuildPhaseError, ProcessRunner

__all__ = [
    "ArchiveCreator",
    "ArchiveError",
    "BuildLoopResult",
    "BuildResult",
    "BuildState",
    "ConfigHeader",
    "TargetBuilder",
    "HeaderUnifier",
    "BuildOrchestrator",
    "RunResult",
    "BuildPhaseError",
    "ProcessRunner",
]
