"""Host Platform Utilities.

This module provides host information needed to size the build, currently
the number of make worker threads.
"""

import psutil


class PlatformDetector:
    """Detects host capabilities used for build scheduling."""

    @staticmethod
    def detect_build_threads(parallel: bool = True) -> int:
        """Determine the number of make worker threads.

        Args:
            parallel: If False, the build is forced onto a single thread

        Returns:
            Number of logical CPUs when parallel, else 1
        """
        if not parallel:
            return 1
        return psutil.cpu_count(logical=True) or 1
