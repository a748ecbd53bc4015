# File: tests/test_pages.py
"""Page store: get/update/scan over the key-value store."""
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from scrapedb.exceptions import DecodeError, KeyTooLong, NotFound, StorageIOError
from scrapedb.store import Store
from scrapedb.store.pages import page_key
from scrapedb.utils import utc_now


async def collect(store: Store, kind: str, cancel: asyncio.Event | None = None) -> list[str]:
    return [path async for path in store.pages.scan(kind, cancel)]


def test_page_key():
    assert page_key("KIND", "PATH") == b"KIND-PATH"
    assert page_key("page", "https://example.com/a") == b"page-https://example.com/a"


def test_missing_page_is_not_found(store):
    with pytest.raises(NotFound):
        store.pages.get("page", "https://test.com/a")


def test_update_then_get(store):
    before = utc_now()
    store.pages.update("page", "https://test.com/a", b"a")
    got = store.pages.get("page", "https://test.com/a")
    assert got.data == b"a"
    assert before - timedelta(seconds=1) <= got.fetched_at <= utc_now()
    assert got.fetched_at.utcoffset() == timedelta(0)


def test_update_replaces(store):
    store.pages.update("other", "https://test.com/c", b"c")
    assert store.pages.get("other", "https://test.com/c").data == b"c"
    store.pages.update("other", "https://test.com/c", b"cccc")
    assert store.pages.get("other", "https://test.com/c").data == b"cccc"
    assert store.pages.count("other") == 1


def test_kinds_do_not_share_records(store):
    store.pages.update("page", "https://test.com/a", b"page")
    store.pages.update("other", "https://test.com/a", b"other")
    assert store.pages.get("page", "https://test.com/a").data == b"page"
    assert store.pages.get("other", "https://test.com/a").data == b"other"


def test_corrupt_record_raises_decode_error(store):
    with store._environment().begin(write=True) as txn:
        txn.put(page_key("page", "https://test.com/bad"), b"garbage")
    with pytest.raises(DecodeError):
        store.pages.get("page", "https://test.com/bad")


def test_oversized_key_is_rejected(store):
    path = "https://test.com/search?q=" + "x" * 600
    with pytest.raises(KeyTooLong, match="at most 511"):
        store.pages.update("page", path, b"body")
    with pytest.raises(StorageIOError):
        store.pages.get("page", path)
    assert store.pages.count("page") == 0


def test_key_at_size_limit_is_stored(store):
    path = "p" * (511 - len("page-"))
    store.pages.update("page", path, b"edge")
    assert store.pages.get("page", path).data == b"edge"


def test_closed_store(store):
    store.close()
    assert store.closed
    with pytest.raises(StorageIOError):
        store.pages.get("page", "https://test.com/a")
    with pytest.raises(StorageIOError):
        store.pages.update("page", "https://test.com/a", b"a")
    # closing twice is harmless
    store.close()


def test_count(store):
    assert store.pages.count("page") == 0
    for i in range(5):
        store.pages.update("page", f"https://test.com/{i}", b"x")
    store.pages.update("pages", "https://test.com/0", b"x")
    assert store.pages.count("page") == 5
    assert store.pages.count("pages") == 1


def test_records_survive_reopen(tmp_path):
    with Store(tmp_path / "blobs", tmp_path / "db", map_size=32 << 20) as s:
        s.pages.update("page", "https://test.com/a", b"a")
    with Store(tmp_path / "blobs", tmp_path / "db", map_size=32 << 20) as s:
        assert s.pages.get("page", "https://test.com/a").data == b"a"


# --------------------------------------------------------------------------- #
#                                    scan                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_scan_empty_namespace(store):
    assert await collect(store, "page") == []


@pytest.mark.asyncio()
async def test_scan_scenario(store):
    store.pages.update("page", "https://test.com/a", b"a")
    assert store.pages.get("page", "https://test.com/a").data == b"a"
    assert await collect(store, "page") == ["https://test.com/a"]


@pytest.mark.asyncio()
async def test_scan_isolates_kinds(store):
    store.pages.update("page", "https://test.com/b", b"b")
    store.pages.update("page", "https://test.com/a", b"a")
    store.pages.update("other", "https://test.com/c", b"c")
    store.pages.update("other", "https://test.com/c", b"cccc")

    assert await collect(store, "page") == ["https://test.com/a", "https://test.com/b"]
    assert await collect(store, "other") == ["https://test.com/c"]
    assert await collect(store, "missing") == []


@pytest.mark.asyncio()
async def test_scan_already_cancelled(store):
    store.pages.update("page", "https://test.com/a", b"a")
    store.pages.update("page", "https://test.com/b", b"b")
    cancel = asyncio.Event()
    cancel.set()
    got = await asyncio.wait_for(collect(store, "page", cancel), timeout=5)
    assert got == []


@pytest.mark.asyncio()
async def test_scan_cancel_midway(store):
    for i in range(10):
        store.pages.update("page", f"https://test.com/{i}", b"x")
    cancel = asyncio.Event()
    got = []
    async for path in store.pages.scan("page", cancel):
        got.append(path)
        if len(got) == 3:
            cancel.set()
    # at most the one path already handed over is delivered after cancelling
    assert 3 <= len(got) <= 4
    assert got[:3] == ["https://test.com/0", "https://test.com/1", "https://test.com/2"]


@pytest.mark.asyncio()
async def test_scan_reads_a_snapshot(store):
    store.pages.update("page", "https://test.com/a", b"a")
    store.pages.update("page", "https://test.com/b", b"b")
    got = []
    async for path in store.pages.scan("page"):
        got.append(path)
        if path == "https://test.com/a":
            store.pages.update("page", "https://test.com/c", b"c")
    assert got == ["https://test.com/a", "https://test.com/b"]
    assert await collect(store, "page") == ["https://test.com/a", "https://test.com/b", "https://test.com/c"]


@pytest.mark.asyncio()
async def test_scan_consumer_stops_early(store):
    for i in range(3):
        store.pages.update("page", f"https://test.com/{i}", b"x")
    scan = store.pages.scan("page")
    assert await scan.__anext__() == "https://test.com/0"
    await asyncio.wait_for(scan.aclose(), timeout=5)
    # the read transaction is released, writes and close still work
    store.pages.update("page", "https://test.com/3", b"x")
    store.close()


@pytest.mark.asyncio()
async def test_scan_errors_go_to_observer(tmp_path):
    errors = []
    s = Store(
        tmp_path / "blobs",
        tmp_path / "db",
        map_size=32 << 20,
        on_scan_error=lambda kind, exc: errors.append((kind, exc)),
    )
    s.pages.update("page", "https://test.com/a", b"a")
    s.close()

    assert await asyncio.wait_for(collect(s, "page"), timeout=5) == []
    assert len(errors) == 1
    assert errors[0][0] == "page"
    assert isinstance(errors[0][1], StorageIOError)
