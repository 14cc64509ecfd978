"""Package and host tooling for sslbuild.

This module handles downloading and extracting OpenSSL sources and querying
the host for SDK versions and build parallelism.
"""

from .downloader import (
    DownloadError,
    ExtractionError,
    FetchSettings,
    SourceDownloader,
)
from .platform_utils import PlatformDetector
from .sdk_utils import SDKError, SDKVersionResolver

__all__ = [
    "SourceDownloader",
    "FetchSettings",
    "DownloadError",
    "ExtractionError",
    "PlatformDetector",
    "SDKVersionResolver",
    "SDKError",
]
