# File: scrapedb/utils.py
"""scrapedb.utils: helpers for URLs, timestamps and staleness windows."""

from __future__ import annotations

import posixpath
from datetime import datetime, timedelta, timezone
from typing import Sequence, Union
from urllib.parse import unquote, urlparse

from scrapedb.logger import get_logger

logger = get_logger("utils")

__all__: Sequence[str] = (
    "StaleAfter",
    "utc_now",
    "as_timedelta",
    "is_fresh",
    "blob_filename",
)

StaleAfter = Union[timedelta, int, float]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_timedelta(stale_after: StaleAfter) -> timedelta:
    """Accepts a timedelta or a number of seconds."""
    if isinstance(stale_after, timedelta):
        return stale_after
    if isinstance(stale_after, bool) or not isinstance(stale_after, (int, float)):
        raise TypeError(f"stale_after must be timedelta or seconds, got {type(stale_after).__name__}")
    return timedelta(seconds=stale_after)


def is_fresh(fetched_at: datetime, stale_after: StaleAfter, now: datetime | None = None) -> bool:
    """True while ``fetched_at + stale_after`` is still in the future (UTC on both sides)."""
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    now = now or utc_now()
    return fetched_at.astimezone(timezone.utc) + as_timedelta(stale_after) > now.astimezone(timezone.utc)


def blob_filename(url: str) -> str:
    """Last segment of the URL path, used as the blob's filename."""
    path = unquote(urlparse(url).path)
    name = posixpath.basename(path.rstrip("/")) if path not in ("", "/") else ""
    logger.debug("Blob filename: %s -> %r", url, name)
    return name
