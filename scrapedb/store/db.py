# scrapedb/store/db.py
"""
Store handle: the key-value environment plus the blob root directory.

The handle is opened once by its owner and closed explicitly, either with
:meth:`Store.close` or by leaving a ``with`` block. A closed handle is never
reopened implicitly.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import lmdb

from scrapedb.config import StoreConfig
from scrapedb.exceptions import StorageIOError
from scrapedb.logger import get_logger
from scrapedb.store.blobs import BlobStore
from scrapedb.store.pages import PageStore, ScanErrorObserver

logger = get_logger("store")

__all__ = ["Store", "open_store"]


class Store:
    """Pair of a key-value connection and a blob root, with page and blob views."""

    def __init__(
        self,
        blob_dir: Union[str, Path],
        db_path: Union[str, Path],
        *,
        map_size: int = 1 << 30,
        on_scan_error: Optional[ScanErrorObserver] = None,
    ) -> None:
        self.blob_dir = Path(blob_dir)
        self.db_path = Path(db_path)
        try:
            self.db_path.mkdir(parents=True, exist_ok=True)
            self._env: Optional[lmdb.Environment] = lmdb.open(
                str(self.db_path), map_size=map_size, subdir=True, max_dbs=0
            )
        except (lmdb.Error, OSError) as exc:
            raise StorageIOError(f"cannot open store at {self.db_path}: {exc}") from exc
        logger.debug("Opened store db=%s blobs=%s", self.db_path, self.blob_dir)

        self.pages = PageStore(self._environment, on_error=on_scan_error)
        self.blobs = BlobStore(self.blob_dir)

    @classmethod
    def from_config(
        cls, config: StoreConfig, on_scan_error: Optional[ScanErrorObserver] = None
    ) -> Store:
        return cls(config.blob_dir, config.db_path, map_size=config.map_size, on_scan_error=on_scan_error)

    def _environment(self) -> lmdb.Environment:
        if self._env is None:
            raise StorageIOError("store is closed")
        return self._env

    @property
    def closed(self) -> bool:
        return self._env is None

    def close(self) -> None:
        """Release the key-value connection. The blob tree needs no release."""
        if self._env is None:
            return
        env, self._env = self._env, None
        try:
            env.close()
        except lmdb.Error as exc:
            raise StorageIOError(f"cannot close store: {exc}") from exc
        logger.debug("Closed store %s", self.db_path)

    def __enter__(self) -> Store:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_store(config: StoreConfig, on_scan_error: Optional[ScanErrorObserver] = None) -> Store:
    """Open a Store described by a StoreConfig."""
    return Store.from_config(config, on_scan_error=on_scan_error)
