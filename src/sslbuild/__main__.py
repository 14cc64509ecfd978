"""Allow running sslbuild with ``python -m sslbuild``."""

from sslbuild.cli import main

if __name__ == "__main__":
    main()
