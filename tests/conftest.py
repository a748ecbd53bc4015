# File: tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

import pytest
import pytest_asyncio
from aiohttp import web

from scrapedb.logger import configure
from scrapedb.store import Store


@dataclass
class EchoServer:
    """Local HTTP server answering every GET with its own request path."""

    url: str
    hits: List[Tuple[str, str]] = field(default_factory=list)

    def count(self, path: str) -> int:
        return sum(1 for p, _ in self.hits if p == path)


@pytest.fixture(autouse=True)
def reset_logger() -> Iterator[None]:
    """CLI tests rebind the project logger to a temporary stream, restore it."""
    yield
    configure(level="WARNING")


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[Store]:
    """
    Fresh store with its key-value directory and blob root under tmp_path.
    """
    s = Store(tmp_path / "blobs", tmp_path / "db", map_size=32 << 20)
    yield s
    s.close()


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def echo_server(unused_tcp_port: int) -> AsyncIterator[EchoServer]:
    """
    ``/status/<code>`` answers with that status, any other path echoes
    ``request.path_qs`` as the body.
    """
    app = web.Application()
    server = EchoServer(url="")

    async def handle(request: web.Request) -> web.Response:
        server.hits.append((request.path, request.headers.get("User-Agent", "")))
        if request.path.startswith("/status/"):
            return web.Response(status=int(request.path.rsplit("/", 1)[1]), text="status")
        return web.Response(text=request.path_qs)

    app.router.add_get("/{tail:.*}", handle)

    async for url in _serve_app(app, unused_tcp_port):
        server.url = url
        yield server
