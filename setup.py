# setup.py
from setuptools import setup, find_packages

setup(
    name="scrapedb",
    version="0.1.0",
    description="Fetch-and-cache layer for web crawling: HTTP pages and blobs kept in a local store",
    packages=find_packages(include=["scrapedb", "scrapedb.*"]),
    install_requires=[
        "aiohttp>=3.9",
        "aiohttp-socks>=0.8",
        "click>=8.1",
        "lmdb>=1.4",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "scrapedb=scrapedb.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
