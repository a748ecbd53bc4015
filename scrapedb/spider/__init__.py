"""
Cache-first HTTP fetching on top of the store.
"""
from scrapedb.spider.spider import Spider
from scrapedb.spider.transport import build_connector, build_session

__all__ = ["Spider", "build_connector", "build_session"]
