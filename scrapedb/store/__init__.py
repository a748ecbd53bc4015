"""
Storage layer: page records in the key-value store, blobs on the filesystem.
"""
from scrapedb.store.blobs import BlobStore
from scrapedb.store.codec import Page
from scrapedb.store.db import Store, open_store
from scrapedb.store.pages import PageStore, page_key

__all__ = ["BlobStore", "Page", "PageStore", "Store", "open_store", "page_key"]
