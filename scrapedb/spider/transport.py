# scrapedb/spider/transport.py
"""
HTTP transport for the Spider: aiohttp sessions, plain or through a SOCKS proxy.
"""
from __future__ import annotations

import asyncio
from typing import Tuple, Type

import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector
from aiohttp_socks import ProxyConnectionError, ProxyConnector, ProxyError, ProxyTimeoutError

from scrapedb.config import SpiderConfig
from scrapedb.logger import get_logger

logger = get_logger("transport")

__all__ = ("TRANSPORT_ERRORS", "build_connector", "build_session")

#: everything the network side may raise for one request
TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ProxyError,
    ProxyConnectionError,
    ProxyTimeoutError,
)


def build_connector(config: SpiderConfig) -> aiohttp.BaseConnector:
    """Plain TCP connector, or a proxy-dialing one when ``config.proxy`` is set."""
    if config.proxy is None:
        return TCPConnector()
    logger.debug(
        "Proxy connector %s (pool=%d, per host=%d, keep-alive=%.0fs)",
        config.proxy,
        config.max_idle_conns,
        config.max_idle_conns_per_host,
        config.idle_conn_timeout,
    )
    return ProxyConnector.from_url(
        config.proxy,
        limit=config.max_idle_conns,
        limit_per_host=config.max_idle_conns_per_host,
        keepalive_timeout=config.idle_conn_timeout,
    )


def build_session(config: SpiderConfig) -> ClientSession:
    """
    Build the session a Spider owns. Must be called with a running event loop.

    The connect timeout bounds the TCP/proxy/TLS handshake, ``timeout`` bounds
    the whole request including the body.
    """
    timeout = ClientTimeout(total=config.timeout, sock_connect=config.handshake_timeout)
    return ClientSession(
        connector=build_connector(config),
        timeout=timeout,
        raise_for_status=False,
    )
