# scrapedb/exceptions.py
"""
Exception hierarchy shared by the store, the spider and the CLI.

Every error raised by ScrapeDB derives from :class:`ScrapeDBError`, so callers
can catch the whole family at once. Nothing here is retried internally:
staleness windows, not retries, keep the cache fresh.
"""

from __future__ import annotations


class ScrapeDBError(Exception):
    """Base class for all ScrapeDB errors."""


class NotFound(ScrapeDBError, KeyError):
    """
    Raised when a page record or blob does not exist.

    A cache miss is an expected outcome and is never logged as an error.
    """

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message instead
        return Exception.__str__(self)


class DecodeError(ScrapeDBError, ValueError):
    """Raised when a stored record cannot be decompressed or parsed."""


class InvalidFilename(ScrapeDBError, ValueError):
    """Raised when a blob filename is too short to be sharded."""


class TransportError(ScrapeDBError):
    """Raised on network, DNS, TLS or proxy failures."""


class HTTPStatusError(TransportError):
    """Raised when a blob fetch answers with a non-success status."""

    def __init__(self, url: str, status: int, reason: str | None = None) -> None:
        self.url = url
        self.status = status
        self.reason = reason or ""
        super().__init__(f"error getting {url}: {status} {self.reason}".rstrip())


class StorageIOError(ScrapeDBError, OSError):
    """Raised on key-value store or filesystem failures."""


class KeyTooLong(StorageIOError, ValueError):
    """Raised when `kind-path` exceeds the key size the store accepts."""


__all__ = [
    "ScrapeDBError",
    "NotFound",
    "DecodeError",
    "InvalidFilename",
    "TransportError",
    "HTTPStatusError",
    "StorageIOError",
    "KeyTooLong",
]
