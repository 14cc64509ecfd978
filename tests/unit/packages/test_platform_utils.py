"""Unit tests for host platform utilities."""

from unittest.mock import patch

from sslbuild.packages.platform_utils import PlatformDetector


class TestPlatformDetector:
    """Test cases for PlatformDetector."""

    @patch("sslbuild.packages.platform_utils.psutil.cpu_count", return_value=10)
    def test_parallel_uses_logical_cpus(self, mock_cpu_count):
        """Test thread count from logical CPUs."""
        assert PlatformDetector.detect_build_threads() == 10
        mock_cpu_count.assert_called_once_with(logical=True)

    @patch("sslbuild.packages.platform_utils.psutil.cpu_count", return_value=None)
    def test_unknown_cpu_count(self, _mock_cpu_count):
        """Test fallback when the CPU count is unknown."""
        assert PlatformDetector.detect_build_threads() == 1

    @patch("sslbuild.packages.platform_utils.psutil.cpu_count", return_value=10)
    def test_noparallel(self, mock_cpu_count):
        """Test that disabling parallel builds forces one thread."""
        assert PlatformDetector.detect_build_threads(parallel=False) == 1
        mock_cpu_count.assert_not_called()
