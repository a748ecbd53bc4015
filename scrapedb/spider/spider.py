# === FILE: scrapedb/spider/spider.py ===
"""
Spider: serves pages and blobs from the store while they are fresh, and
fetches them over HTTP when they are missing or stale.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Tuple

from aiohttp import ClientResponse, ClientSession

from scrapedb.config import SpiderConfig
from scrapedb.exceptions import HTTPStatusError, NotFound, TransportError
from scrapedb.logger import get_logger
from scrapedb.spider.transport import TRANSPORT_ERRORS, build_session
from scrapedb.store.blobs import check_filename
from scrapedb.store.codec import Page
from scrapedb.store.db import Store
from scrapedb.utils import StaleAfter, as_timedelta, blob_filename, is_fresh

logger = get_logger("spider")

__all__ = ["Spider"]

CHUNK_SIZE = 64 * 1024


class Spider:
    """Cache-first HTTP fetcher on top of a :class:`~scrapedb.store.db.Store`.

    Configuration is a :class:`SpiderConfig`; keyword overrides are merged into
    it and validated once, here. An explicit ``session`` replaces the default
    one and is left open on :meth:`close`, since the caller owns it.

    Errors are raised to the caller as-is and never retried.
    """

    def __init__(
        self,
        store: Optional[Store],
        config: Optional[SpiderConfig] = None,
        *,
        session: Optional[ClientSession] = None,
        **overrides: Any,
    ) -> None:
        base = config or SpiderConfig()
        if overrides:
            base = SpiderConfig(**{**base.model_dump(), **overrides})
        self.config = base
        self.store = store
        self._session = session
        self._owns_session = session is None
        if session is not None and base.proxy is not None:
            logger.warning("Explicit session given, proxy %s is not used", base.proxy)

    # ------------------------------------------------------------------ #
    # Configuration                                                      #
    # ------------------------------------------------------------------ #

    @property
    def user_agent(self) -> str:
        return self.config.user_agent

    @property
    def sleep_interval(self) -> float:
        return self.config.sleep_interval

    def get_sleep_interval(self) -> float:
        """Pause the caller should keep between requests, seconds. Not enforced here."""
        return self.config.sleep_interval

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Spider:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def _get_session(self) -> ClientSession:
        if self._session is None or (self._owns_session and self._session.closed):
            try:
                self._session = build_session(self.config)
            except (ValueError, *TRANSPORT_ERRORS) as exc:
                raise TransportError(f"cannot create HTTP session: {exc}") from exc
        return self._session

    # ------------------------------------------------------------------ #
    # Requests                                                           #
    # ------------------------------------------------------------------ #

    async def request_page(self, kind: str, url: str, stale_after: StaleAfter) -> Tuple[bytes, bool]:
        """
        Return ``(body, was_cached)`` for ``url``.

        A cached record younger than ``stale_after`` is returned without any
        network call. Otherwise the page is fetched, stored and returned.
        """
        page = self._fresh_page(kind, url, stale_after)
        if page is not None:
            return page.data, True

        async with self._get(url) as resp:
            data = await resp.read()
        logger.info("Fetched %s (%s, %d bytes)", url, resp.status, len(data))

        self._require_store().pages.update(kind, url, data)
        return data, False

    async def request_blob(self, kind: str, url: str, stale_after: StaleAfter) -> Tuple[int, bool]:
        """
        Return ``(bytes_written, was_cached)`` for the blob at ``url``.

        A fresh cache hit returns ``(0, True)``: the size is not read back. On a
        miss the body is streamed into the blob store and the page record keeps
        the decimal byte count.
        """
        page = self._fresh_page(kind, url, stale_after)
        if page is not None:
            return 0, True

        filename = blob_filename(url)
        check_filename(filename)
        store = self._require_store()

        async with self._get(url) as resp:
            if resp.status != 200:
                raise HTTPStatusError(url, resp.status, resp.reason)
            written = await store.blobs.write_chunks(filename, self._body_chunks(url, resp))
        logger.info("Fetched blob %s -> %s (%d bytes)", url, filename, written)

        store.pages.update(kind, url, str(written).encode("ascii"))
        return written, False

    # ------------------------------------------------------------------ #
    # Internals                                                          #
    # ------------------------------------------------------------------ #

    def _require_store(self) -> Store:
        if self.store is None:
            raise RuntimeError("Spider has no store")
        return self.store

    def _fresh_page(self, kind: str, url: str, stale_after: StaleAfter) -> Optional[Page]:
        window = as_timedelta(stale_after)
        try:
            page = self._require_store().pages.get(kind, url)
        except NotFound:
            logger.debug("Cache miss %s %s", kind, url)
            return None
        if is_fresh(page.fetched_at, window):
            logger.debug("Cache hit %s %s (fetched %s)", kind, url, page.fetched_at.isoformat())
            return page
        logger.debug("Stale %s %s (fetched %s, window %s)", kind, url, page.fetched_at.isoformat(), window)
        return None

    @asynccontextmanager
    async def _get(self, url: str) -> AsyncIterator[ClientResponse]:
        session = self._get_session()
        try:
            async with session.get(url, headers={"User-Agent": self.config.user_agent}) as resp:
                yield resp
        except TRANSPORT_ERRORS as exc:
            raise TransportError(f"GET {url} failed: {exc!r}") from exc

    @staticmethod
    async def _body_chunks(url: str, resp: ClientResponse) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                yield chunk
        except TRANSPORT_ERRORS as exc:
            raise TransportError(f"error reading {url}: {exc!r}") from exc
