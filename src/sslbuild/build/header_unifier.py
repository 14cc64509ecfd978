"""Header Unifier.

OpenSSL's opensslconf.h differs per target. When more than one target was
built, the public include/openssl/opensslconf.h is replaced by a dispatcher
that includes the matching per-target header based on the Apple
TargetConditionals macros.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from .build_loop import BuildLoopResult, ConfigHeader

logger = logging.getLogger(__name__)

# Preprocessor condition per header suffix (<family>_<arch>)
DEFINE_CONDITIONS = {
    "ios_x86_64": "TARGET_OS_IOS && TARGET_OS_SIMULATOR && TARGET_CPU_X86_64",
    "ios_i386": "TARGET_OS_IOS && TARGET_OS_SIMULATOR && TARGET_CPU_X86",
    "ios_arm64": "TARGET_OS_IOS && (TARGET_OS_EMBEDDED || TARGET_OS_SIMULATOR) && TARGET_CPU_ARM64",
    "ios_arm64e": "TARGET_OS_IOS && TARGET_OS_EMBEDDED && TARGET_CPU_ARM64E",
    "ios_armv7s": "TARGET_OS_IOS && TARGET_OS_EMBEDDED && TARGET_CPU_ARM && defined(__ARM_ARCH_7S__)",
    "ios_armv7": "TARGET_OS_IOS && TARGET_OS_EMBEDDED && TARGET_CPU_ARM && !defined(__ARM_ARCH_7S__)",
    "catalyst_x86_64": "(TARGET_OS_MACCATALYST || (TARGET_OS_IOS && TARGET_OS_SIMULATOR)) && TARGET_CPU_X86_64",
    "catalyst_arm64": "(TARGET_OS_MACCATALYST || (TARGET_OS_IOS && TARGET_OS_SIMULATOR)) && TARGET_CPU_ARM64",
    "tvos_x86_64": "TARGET_OS_TV && TARGET_OS_SIMULATOR && TARGET_CPU_X86_64",
    "tvos_arm64": "TARGET_OS_TV && TARGET_OS_EMBEDDED && TARGET_CPU_ARM64",
    "watchos_i386": "TARGET_OS_WATCH && TARGET_OS_SIMULATOR && TARGET_CPU_X86",
    "watchos_x86_64": "TARGET_OS_WATCH && TARGET_OS_SIMULATOR && TARGET_CPU_X86_64",
    "watchos_armv7k": "TARGET_OS_WATCH && TARGET_CPU_ARM",
    "watchos_arm64": "TARGET_OS_WATCH && TARGET_CPU_ARM64",
    "watchos_arm64_32": "TARGET_OS_WATCH && TARGET_CPU_ARM64",
}

# Never matches, so an unknown header cannot be selected by accident
UNKNOWN_CONDITION = "0"

HEADER_TEMPLATE = """\
/*
 * Building OpenSSL for multiple targets results in a different
 * opensslconf.h per target. This file includes the header matching the
 * target being compiled.
 */

#include <TargetConditionals.h>

"""

NO_MATCH_ERROR = "# error Unable to determine target or target not included in OpenSSL build"


def define_condition(suffix: str) -> str:
    """Preprocessor condition selecting the header with the given suffix."""
    return DEFINE_CONDITIONS.get(suffix, UNKNOWN_CONDITION)


def render_dispatcher(headers: List[ConfigHeader]) -> str:
    """Render the dispatching opensslconf.h for several per-target headers.

    Args:
        headers: Per-target headers in build order

    Returns:
        Complete header text
    """
    lines = []
    for index, header in enumerate(headers):
        directive = "#if" if index == 0 else "#elif"
        condition = define_condition(header.suffix)
        if condition == UNKNOWN_CONDITION:
            logger.warning(f"No target condition known for {header.name}, it will never be selected")
        lines.append(f"{directive} {condition}")
        lines.append(f"# include <openssl/{header.name}>")
    lines.append("#else")
    lines.append(NO_MATCH_ERROR)
    lines.append("#endif")
    return HEADER_TEMPLATE + "\n".join(lines) + "\n"


class HeaderUnifier:
    """Installs the public OpenSSL headers into include/openssl."""

    def __init__(self, show_progress: bool = True):
        self.show_progress = show_progress

    def unify(self, loop_result: BuildLoopResult, include_root: Path) -> Path:
        """Copy the canonical headers and write the dispatcher if needed.

        With a single target the copied opensslconf.h is left untouched.

        Args:
            loop_result: Results of the build loop
            include_root: The include/ directory

        Returns:
            Path to include/openssl

        Raises:
            ValueError: If the build loop produced no include directory
        """
        if loop_result.include_dir is None:
            raise ValueError("No include directory recorded, nothing was built")

        dest = include_root / "openssl"
        shutil.copytree(loop_result.include_dir, dest, dirs_exist_ok=True)

        if self.show_progress:
            print(f"Include directory: {include_root}")

        headers = loop_result.config_headers
        if len(headers) <= 1:
            return dest

        for header in headers:
            shutil.copyfile(header.path, dest / header.name)

        (dest / "opensslconf.h").write_text(render_dispatcher(headers), encoding="utf-8")
        logger.debug(f"Wrote opensslconf.h dispatcher for {len(headers)} targets")
        return dest
