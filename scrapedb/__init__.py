# scrapedb/__init__.py
"""
ScrapeDB package initializer.
Defines package version and exposes the store, the spider and the CLI.
"""
__version__ = "0.1.0"

from scrapedb.config import ScrapeDBConfig, SpiderConfig, StoreConfig, load_config
from scrapedb.exceptions import (
    DecodeError,
    HTTPStatusError,
    InvalidFilename,
    NotFound,
    ScrapeDBError,
    StorageIOError,
    TransportError,
)
from scrapedb.spider import Spider
from scrapedb.store import Page, Store, open_store

__all__ = [
    "__version__",
    "ScrapeDBConfig",
    "SpiderConfig",
    "StoreConfig",
    "load_config",
    "DecodeError",
    "HTTPStatusError",
    "InvalidFilename",
    "NotFound",
    "ScrapeDBError",
    "StorageIOError",
    "TransportError",
    "Spider",
    "Page",
    "Store",
    "open_store",
]
