"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/zackees/sslbuild"
KEYWORDS = "openssl ios tvos watchos catalyst xcode static-library cross-compile lipo"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_version() -> str:
    with open(os.path.join(HERE, "src", "sslbuild", "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="sslbuild",
        version=read_version(),
        description="Build OpenSSL static libraries and headers for Apple platforms",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "requests>=2.31",
            "tqdm>=4.66",
            "psutil>=5.9",
        ],
        extras_require={
            "test": [
                "pytest>=7.4",
            ],
        },
        entry_points={
            "console_scripts": [
                "sslbuild=sslbuild.cli:main",
            ],
        },
        include_package_data=True)
