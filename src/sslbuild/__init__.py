"""sslbuild - OpenSSL static library builds for Apple platforms."""

__version__ = "0.1.0"
