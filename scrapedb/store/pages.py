# scrapedb/store/pages.py
"""
Page store: timestamped, compressed records addressed by ``(kind, path)``.

Records live in the key-value store under ``"<kind>-<path>"``. Keys sort
bytewise, so all paths of one kind are contiguous and :meth:`PageStore.scan`
walks them with a single cursor. The key has no escaping: a kind containing
``-`` may alias another ``(kind, path)`` pair under prefix scanning.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Optional

import lmdb

from scrapedb.exceptions import KeyTooLong, NotFound, StorageIOError
from scrapedb.logger import get_logger
from scrapedb.store.codec import Page, decode, encode
from scrapedb.utils import utc_now

logger = get_logger("pages")

__all__ = ["PageStore", "ScanErrorObserver", "page_key", "scan_prefix"]

SEPARATOR = "-"

#: called with ``(kind, exc)`` when a scan stops on a store error
ScanErrorObserver = Callable[[str, BaseException], None]

EnvFactory = Callable[[], lmdb.Environment]

_END = object()


def page_key(kind: str, path: str) -> bytes:
    """Logical key of a page record."""
    return f"{kind}{SEPARATOR}{path}".encode("utf-8")


def scan_prefix(kind: str) -> bytes:
    return f"{kind}{SEPARATOR}".encode("utf-8")


class PageStore:
    """get/update/scan over the key-value store."""

    def __init__(self, env: EnvFactory, on_error: Optional[ScanErrorObserver] = None) -> None:
        self._env = env
        self._on_error = on_error

    def get(self, kind: str, path: str) -> Page:
        """
        Return the stored page for ``(kind, path)``.

        Raises NotFound on a miss, DecodeError on a corrupt record and
        StorageIOError when the store itself fails. A key longer than the
        store accepts raises KeyTooLong, before any lookup.
        """
        key = self._key(kind, path)
        try:
            with self._env().begin(write=False) as txn:
                raw = txn.get(key)
        except lmdb.Error as exc:
            raise StorageIOError(f"cannot read {key!r}: {exc}") from exc
        if raw is None:
            raise NotFound(f"page not found: {kind}{SEPARATOR}{path}")
        return decode(raw)

    def update(self, kind: str, path: str, data: bytes) -> Page:
        """Stamp the current UTC time and replace the record in one write transaction."""
        key = self._key(kind, path)
        page = Page(fetched_at=utc_now(), data=bytes(data))
        value = encode(page)
        try:
            with self._env().begin(write=True) as txn:
                txn.put(key, value)
        except lmdb.Error as exc:
            raise StorageIOError(f"cannot write {key!r}: {exc}") from exc
        logger.debug("Stored %s (%d bytes, %d compressed)", key, len(page.data), len(value))
        return page

    def _key(self, kind: str, path: str) -> bytes:
        key = page_key(kind, path)
        limit = self._env().max_key_size()
        if len(key) > limit:
            raise KeyTooLong(f"page key is {len(key)} bytes, the store accepts at most {limit}")
        return key

    def count(self, kind: str) -> int:
        """Number of records stored under ``kind``."""
        prefix = scan_prefix(kind)
        total = 0
        try:
            with self._env().begin(write=False) as txn:
                cursor = txn.cursor()
                if not cursor.set_range(prefix):
                    return 0
                for key in cursor.iternext(keys=True, values=False):
                    if not key.startswith(prefix):
                        break
                    total += 1
        except lmdb.Error as exc:
            raise StorageIOError(f"cannot count {kind!r}: {exc}") from exc
        return total

    async def scan(self, kind: str, cancel: Optional[asyncio.Event] = None) -> AsyncIterator[str]:
        """
        Yield, in key order, every path stored under ``kind``.

        A producer task walks a cursor inside one read-only transaction, so the
        scan sees the snapshot taken when it started. Items are handed over one
        at a time through a bounded queue: the producer waits until the
        consumer takes each path. Setting ``cancel`` ends the sequence before
        the next path is emitted; the consumer just sees it run out.

        Store errors end the sequence early. They are logged and passed to the
        ``on_error`` observer instead of being raised here.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        producer = asyncio.create_task(self._produce(kind, cancel, queue))
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    return
                yield item
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

    async def _produce(
        self, kind: str, cancel: Optional[asyncio.Event], queue: asyncio.Queue
    ) -> None:
        prefix = scan_prefix(kind)
        emitted = 0
        try:
            with self._env().begin(write=False) as txn:
                cursor = txn.cursor()
                if cursor.set_range(prefix):
                    for key in cursor.iternext(keys=True, values=False):
                        if not key.startswith(prefix):
                            break
                        if cancel is not None and cancel.is_set():
                            logger.debug("Scan of %r cancelled after %d paths", kind, emitted)
                            break
                        await queue.put(key[len(prefix):].decode("utf-8"))
                        emitted += 1
        except Exception as exc:
            # the queue has no error slot, report and end the sequence
            self._report(kind, exc)
        await queue.put(_END)

    def _report(self, kind: str, exc: Exception) -> None:
        logger.error("error for query '%s': %s", kind, exc)
        if self._on_error is not None:
            try:
                self._on_error(kind, exc)
            except Exception:
                logger.exception("Scan error observer failed for %r", kind)
