"""
Unit tests for BuildOrchestrator.

Tests the complete run orchestration including:
- Output directory setup and cleanup
- Source acquisition
- Build loop, aggregation and header installation ordering
- Failure handling
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from sslbuild.build.archive_creator import ArchiveCreator
from sslbuild.build.header_unifier import HeaderUnifier
from sslbuild.build.orchestrator import BuildOrchestrator
from sslbuild.build.process_runner import BuildPhaseError, ProcessRunner
from sslbuild.config.options import BuildOptions
from sslbuild.config.targets import make_target
from sslbuild.packages.downloader import DownloadError, SourceDownloader

SDK_VERSIONS = {"ios": "16.2"}


# Test fixtures

@pytest.fixture
def options(tmp_path):
    """Create build options for the default iOS targets."""
    return BuildOptions(
        version="1.1.1q",
        targets=[make_target(n, SDK_VERSIONS) for n in ("ios-sim-cross-x86_64", "ios-cross-arm64")],
        sdk_versions=SDK_VERSIONS,
        build_threads=2,
        reporoot=tmp_path,
        developer_dir=Path("/Applications/Xcode.app/Contents/Developer"),
    )


@pytest.fixture
def mock_downloader(tmp_path):
    """Create a mock downloader with a local archive."""
    downloader = Mock(spec=SourceDownloader)
    downloader.ensure_archive = Mock(return_value=tmp_path / "openssl-1.1.1q.tar.gz")
    downloader.extract_archive = Mock()
    return downloader


def fake_install(phase, cmd, cwd, log_path, env=None, append=True):
    if phase == "make install_dev":
        headers = Path(log_path).parent / "include" / "openssl"
        headers.mkdir(parents=True, exist_ok=True)
        (headers / "opensslconf.h").write_text("/* conf */\n")


@pytest.fixture
def mock_runner():
    """Create a mock process runner that installs headers."""
    runner = Mock(spec=ProcessRunner)
    runner.run = Mock(side_effect=fake_install)
    return runner


@pytest.fixture
def mock_archive_creator(tmp_path):
    """Create a mock archive creator."""
    creator = Mock(spec=ArchiveCreator)
    creator.aggregate = Mock(return_value=[tmp_path / "lib" / "ios" / "libssl.a"])
    return creator


@pytest.fixture
def mock_header_unifier(tmp_path):
    """Create a mock header unifier."""
    unifier = Mock(spec=HeaderUnifier)
    unifier.unify = Mock(return_value=tmp_path / "include" / "openssl")
    return unifier


@pytest.fixture
def orchestrator(mock_downloader, mock_runner, mock_archive_creator, mock_header_unifier):
    return BuildOrchestrator(
        downloader=mock_downloader,
        runner=mock_runner,
        archive_creator=mock_archive_creator,
        header_unifier=mock_header_unifier,
        show_progress=False,
    )


class TestBuildOrchestrator:
    """Test cases for BuildOrchestrator."""

    def test_successful_run(self, orchestrator, options, tmp_path, mock_downloader,
                            mock_archive_creator, mock_header_unifier, capsys):
        """Test a complete successful run."""
        result = orchestrator.run(options)

        assert result.success is True
        assert result.error is None
        assert result.libraries == [tmp_path / "lib" / "ios" / "libssl.a"]
        assert result.include_dir == tmp_path / "include" / "openssl"

        for name in ("bin", "lib", "src"):
            assert (tmp_path / name).is_dir()

        mock_downloader.ensure_archive.assert_called_once_with("1.1.1q", tmp_path, False)

        loop_result = mock_archive_creator.aggregate.call_args.args[0]
        assert [h.suffix for h in loop_result.config_headers] == ["ios_x86_64", "ios_arm64"]
        assert mock_archive_creator.aggregate.call_args.args[1] == tmp_path / "lib"
        mock_header_unifier.unify.assert_called_once_with(loop_result, tmp_path / "include")

        out = capsys.readouterr().out
        assert out.startswith("Build options")
        assert out.rstrip().endswith("Done.")

    def test_compile_failure_aborts_before_aggregation(
        self, orchestrator, options, mock_runner, mock_archive_creator, mock_header_unifier, capsys
    ):
        """Test that a failing make stops the run before lipo and headers."""

        def failing_make(phase, cmd, cwd, log_path, env=None, append=True):
            if phase == "make":
                raise BuildPhaseError(phase, log_path, returncode=2)

        mock_runner.run.side_effect = failing_make

        result = orchestrator.run(options)

        assert result.success is False
        assert isinstance(result.error, BuildPhaseError)
        assert "Problem during make" in result.message
        mock_archive_creator.aggregate.assert_not_called()
        mock_header_unifier.unify.assert_not_called()
        assert "Done." not in capsys.readouterr().out

    def test_download_failure_aborts_before_build(self, orchestrator, options, mock_downloader, mock_runner):
        """Test that an unobtainable archive stops the run before building."""
        mock_downloader.ensure_archive.side_effect = DownloadError("An error occurred trying to find OpenSSL")

        result = orchestrator.run(options)

        assert result.success is False
        assert isinstance(result.error, DownloadError)
        mock_runner.run.assert_not_called()

    def test_cleanup(self, orchestrator, options, tmp_path):
        """Test that --cleanup removes previous output only."""
        (tmp_path / "bin" / "old.sdk").mkdir(parents=True)
        (tmp_path / "lib" / "ios").mkdir(parents=True)
        (tmp_path / "include" / "openssl").mkdir(parents=True)
        (tmp_path / "include" / "other").mkdir(parents=True)
        (tmp_path / "src" / "iPhoneOS-arm64").mkdir(parents=True)
        options.cleanup = True

        orchestrator.run(options)

        assert not (tmp_path / "bin" / "old.sdk").exists()
        assert not (tmp_path / "lib" / "ios").exists()
        assert not (tmp_path / "include" / "openssl").exists()
        assert (tmp_path / "include" / "other").exists()

    def test_downloader_from_curl_options(self, options):
        """Test that a default downloader honours CURL_OPTIONS."""
        options.curl_options = "--insecure --max-time 90"
        orchestrator = BuildOrchestrator(show_progress=False)

        downloader = orchestrator._downloader_for(options)

        assert downloader.settings.verify is False
        assert downloader.settings.timeout == 90
        assert orchestrator._downloader_for(options) is downloader

    def test_invalid_curl_options(self, options, mock_runner):
        """Test that a malformed CURL_OPTIONS value fails the run with a clear message."""
        options.curl_options = "--max-time abc"
        orchestrator = BuildOrchestrator(runner=mock_runner, show_progress=False)

        result = orchestrator.run(options)

        assert result.success is False
        assert isinstance(result.error, DownloadError)
        assert "Invalid value for cURL option --max-time" in result.message
        mock_runner.run.assert_not_called()
