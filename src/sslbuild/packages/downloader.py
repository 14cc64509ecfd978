"""OpenSSL source downloader with progress tracking.

This module locates OpenSSL release archives on openssl.org, downloads them
into the working root, resolves a release branch to its latest version, and
extracts archives for the build loop.

Lookup order for an archive:
    1. https://www.openssl.org/source/<archive>          (latest per branch)
    2. https://www.openssl.org/source/old/<x.y.z>/<archive>  (older releases)
"""

import logging
import re
import shlex
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union
from urllib.parse import urlparse

import requests
from tqdm import tqdm

logger = logging.getLogger(__name__)

SOURCE_URL = "https://www.openssl.org/source"
OLD_SOURCE_URL = "https://www.openssl.org/source/old"
LISTING_URL = "https://ftp.openssl.org/source/"

_LISTING_ARCHIVE_RE = re.compile(r">openssl-(\d+\.\d+\.\d+[a-z]*)\.tar\.gz<")
_BRANCH_PREFIX_RE = re.compile(r"^\d+\.\d+\.\d+")

_CURL_VALUE_OPTIONS = (
    "--proxy",
    "-x",
    "--max-time",
    "-m",
    "--connect-timeout",
    "--cacert",
    "--user-agent",
    "-A",
)


class DownloadError(Exception):
    """Raised when a source archive or release listing cannot be obtained."""

    pass


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    pass


@dataclass
class FetchSettings:
    """HTTP settings derived from the CURL_OPTIONS environment variable."""

    proxies: Dict[str, str] = field(default_factory=dict)
    verify: Union[bool, str] = True
    timeout: float = 30
    connect_timeout: Optional[float] = None
    user_agent: Optional[str] = None

    @property
    def request_timeout(self) -> Union[float, Tuple[float, float]]:
        if self.connect_timeout is not None:
            return (self.connect_timeout, self.timeout)
        return self.timeout

    @classmethod
    def from_curl_options(cls, curl_options: str) -> "FetchSettings":
        """Translate the supported subset of cURL flags.

        Supported: --proxy/-x, --insecure/-k, --max-time/-m,
        --connect-timeout, --cacert, --user-agent/-A. --location/-L is
        accepted without effect since redirects are always followed. Other
        flags are logged and ignored.

        Args:
            curl_options: String of cURL options (e.g. "--proxy 10.0.0.1:8080")

        Returns:
            FetchSettings with the translated values

        Raises:
            DownloadError: If a timeout option has a non-numeric value
        """
        settings = cls()
        args = shlex.split(curl_options)

        i = 0
        while i < len(args):
            arg = args[i]
            value: Optional[str] = None
            if arg.startswith("--") and "=" in arg:
                arg, value = arg.split("=", 1)
            elif i + 1 < len(args):
                value = args[i + 1]

            if arg in ("--insecure", "-k", "--location", "-L"):
                if arg in ("--insecure", "-k"):
                    settings.verify = False
                i += 1
                continue

            if arg in _CURL_VALUE_OPTIONS:
                if value is None:
                    logger.warning(f"Missing value for cURL option {arg}, ignoring it")
                    i += 1
                    continue
                if arg in ("--proxy", "-x"):
                    proxy = value if "://" in value else f"http://{value}"
                    settings.proxies = {"http": proxy, "https": proxy}
                elif arg in ("--max-time", "-m"):
                    settings.timeout = _seconds(arg, value)
                elif arg == "--connect-timeout":
                    settings.connect_timeout = _seconds(arg, value)
                elif arg in ("--user-agent", "-A"):
                    settings.user_agent = value
                else:
                    settings.verify = value
                i += 1 if "=" in args[i] else 2
                continue

            logger.warning(f"Unsupported cURL option ignored: {arg}")
            i += 1

        return settings


def _seconds(option: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise DownloadError(
            f"Invalid value for cURL option {option} in CURL_OPTIONS: {value!r} (expected seconds)"
        ) from e


class SourceDownloader:
    """Downloads and extracts OpenSSL source archives."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        session: Optional[requests.Session] = None,
        chunk_size: int = 8192,
    ):
        """Initialize downloader.

        Args:
            settings: HTTP settings (proxy, TLS verification, timeouts)
            session: Optional requests session (a new one is created if omitted)
            chunk_size: Size of chunks for downloading
        """
        self.settings = settings or FetchSettings()
        self.session = session or requests.Session()
        self.session.proxies.update(self.settings.proxies)
        self.session.verify = self.settings.verify
        if self.settings.user_agent:
            self.session.headers["User-Agent"] = self.settings.user_agent
        self.chunk_size = chunk_size

    @staticmethod
    def archive_name(version: str) -> str:
        """Archive file name for a version (e.g. openssl-1.1.1q.tar.gz)."""
        return f"openssl-{version}.tar.gz"

    def probe(self, url: str) -> bool:
        """Check whether a URL exists without downloading it.

        Args:
            url: URL to check

        Returns:
            True if the server answers the HEAD request with a success status
        """
        try:
            response = self.session.head(
                url, timeout=self.settings.request_timeout, allow_redirects=True
            )
        except requests.RequestException as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return False

        logger.debug(f"HEAD {url} -> {response.status_code}")
        return response.ok

    def find_archive_url(self, version: str) -> str:
        """Find the download URL of a version's source archive.

        Args:
            version: OpenSSL version (e.g. "1.1.1q")

        Returns:
            URL where the archive was found

        Raises:
            DownloadError: If neither the current nor the old-releases location has it
        """
        filename = self.archive_name(version)
        url = f"{SOURCE_URL}/{filename}"
        if self.probe(url):
            return url

        match = _BRANCH_PREFIX_RE.match(version)
        if match:
            url = f"{OLD_SOURCE_URL}/{match.group(0)}/{filename}"
            if self.probe(url):
                return url

        raise DownloadError(
            f"An error occurred trying to find OpenSSL {version} on {url}\n"
            + "Please verify that the version you are trying to build exists "
            + "and check your network connection."
        )

    def download(self, url: str, dest_dir: Path, show_progress: bool = True) -> Path:
        """Download a file into a directory under the server-side file name.

        Args:
            url: URL to download from
            dest_dir: Destination directory
            show_progress: Whether to show a progress bar

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If the download fails
        """
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        filename = Path(urlparse(url).path).name
        dest_path = dest_dir / filename

        # Use temporary file during download
        temp_file = dest_path.with_suffix(dest_path.suffix + ".tmp")

        try:
            response = self.session.get(
                url, stream=True, timeout=self.settings.request_timeout
            )
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))

            progress_bar = None
            if show_progress and total_size > 0:
                progress_bar = tqdm(
                    total=total_size,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {filename}",
                )

            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
                        if progress_bar:
                            progress_bar.update(len(chunk))

            if progress_bar:
                progress_bar.close()

            temp_file.replace(dest_path)
            return dest_path

        except requests.RequestException as e:
            if temp_file.exists():
                temp_file.unlink()
            raise DownloadError(f"Failed to download {url}: {e}") from e

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def ensure_archive(self, version: str, root: Path, show_progress: bool = True) -> Path:
        """Make sure the source archive for a version exists in the root.

        An archive that is already present is used as is; no request is made.

        Args:
            version: OpenSSL version
            root: Working root directory
            show_progress: Whether to show a progress bar

        Returns:
            Path to the local archive
        """
        archive_path = Path(root) / self.archive_name(version)
        if archive_path.exists():
            print(f"Using {archive_path.name}")
            return archive_path

        print(f"Downloading {archive_path.name}...")
        url = self.find_archive_url(version)
        return self.download(url, root, show_progress)

    def find_latest_version(self, branch: str) -> str:
        """Resolve a release branch to its latest version.

        The openssl.org source listing only holds the newest release per
        branch, so the last match (sorted) is the latest one.

        Args:
            branch: Branch in x.y.z form (e.g. "1.1.1")

        Returns:
            Latest version of the branch (e.g. "1.1.1q")

        Raises:
            DownloadError: If the listing cannot be fetched or has no match
        """
        print(f"Checking latest version of {branch} branch on openssl.org...")
        try:
            response = self.session.get(LISTING_URL, timeout=self.settings.request_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DownloadError(f"Failed to fetch release listing {LISTING_URL}: {e}") from e

        version = self.select_latest_version(response.text, branch)
        if version is None:
            raise DownloadError(
                "Could not determine latest version, please check "
                + "https://www.openssl.org/source/ and use --version option"
            )
        return version

    @staticmethod
    def select_latest_version(listing: str, branch: str) -> Optional[str]:
        """Pick the latest release of a branch from a directory listing.

        Args:
            listing: HTML directory listing
            branch: Branch in x.y.z form

        Returns:
            Lexicographically last matching version, or None
        """
        branch_re = re.compile(re.escape(branch) + r"[a-z]*")
        versions = [
            v for v in _LISTING_ARCHIVE_RE.findall(listing) if branch_re.fullmatch(v)
        ]
        if not versions:
            return None
        return sorted(versions)[-1]

    def extract_archive(self, archive_path: Path, dest_dir: Path) -> Path:
        """Extract a tar archive.

        Args:
            archive_path: Path to the archive file
            dest_dir: Destination directory for extraction

        Returns:
            Path to the destination directory

        Raises:
            ExtractionError: If extraction fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise ExtractionError(f"Archive not found: {archive_path}")

        dest_dir.mkdir(parents=True, exist_ok=True)

        try:
            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(dest_dir, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

        return dest_dir
