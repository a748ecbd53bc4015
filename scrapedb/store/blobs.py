# scrapedb/store/blobs.py
"""
Blob store: binary artifacts kept on the filesystem, outside the key-value store.

Blobs are sharded three directories deep by the first three characters of
their filename, e.g. ``report.pdf`` lives at ``<root>/r/e/p/report.pdf``.
Sharding only bounds directory fan-out; filenames must still be unique.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncIterable, BinaryIO, Union

from scrapedb.exceptions import InvalidFilename, NotFound, StorageIOError
from scrapedb.logger import get_logger

logger = get_logger("blobs")

__all__ = ["BlobStore", "MIN_FILENAME_LEN", "check_filename"]

MIN_FILENAME_LEN = 3
DIR_MODE = 0o775
FILE_MODE = 0o644
CHUNK_SIZE = 64 * 1024
FORBIDDEN_CHARS = ("/", "\\", "\0")


def check_filename(filename: str) -> None:
    """A blob name is a single path component of at least three characters."""
    if (k := len(filename)) < MIN_FILENAME_LEN:
        raise InvalidFilename(f"filename is too small: {k} < {MIN_FILENAME_LEN}")
    if filename in (".", "..") or any(c in filename for c in FORBIDDEN_CHARS):
        raise InvalidFilename(f"filename is not a single path component: {filename!r}")


class BlobStore:
    """Read and write blobs by filename under a sharded root."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _shard_path(self, filename: str) -> Path:
        check_filename(filename)
        return self.root.joinpath(*filename[:MIN_FILENAME_LEN], filename)

    def blob_path(self, filename: str) -> Path:
        """Sharded path of ``filename``; missing shard directories are created."""
        path = self._shard_path(filename)
        try:
            path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"cannot create {path.parent}: {exc}") from exc
        return path

    def exists(self, filename: str) -> bool:
        return self._shard_path(filename).is_file()

    def read(self, filename: str) -> bytes:
        path = self._shard_path(filename)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFound(f"blob not found: {filename}") from exc
        except OSError as exc:
            raise StorageIOError(f"cannot read {path}: {exc}") from exc

    def write(self, filename: str, stream: BinaryIO) -> int:
        """Copy ``stream`` verbatim into the blob file, replacing any previous content."""
        path = self.blob_path(filename)
        fp, tmp = self._open_temp(path)
        try:
            with fp:
                shutil.copyfileobj(stream, fp, CHUNK_SIZE)
                written = fp.tell()
            os.replace(tmp, path)
        except OSError as exc:
            _discard(tmp)
            raise StorageIOError(f"cannot write {path}: {exc}") from exc
        except BaseException:
            _discard(tmp)
            raise
        logger.debug("Wrote blob %s (%d bytes)", path, written)
        return written

    async def write_chunks(self, filename: str, chunks: AsyncIterable[bytes]) -> int:
        """
        Same as :meth:`write` for an async source, e.g. an HTTP response body.

        The previous blob stays in place until the source is fully consumed.
        """
        path = self.blob_path(filename)
        fp, tmp = self._open_temp(path)
        written = 0
        try:
            with fp:
                async for chunk in chunks:
                    fp.write(chunk)
                    written += len(chunk)
            os.replace(tmp, path)
        except OSError as exc:
            _discard(tmp)
            raise StorageIOError(f"cannot write {path}: {exc}") from exc
        except BaseException:
            _discard(tmp)
            raise
        logger.debug("Wrote blob %s (%d bytes)", path, written)
        return written

    @staticmethod
    def _open_temp(path: Path) -> tuple[BinaryIO, Path]:
        # same directory as the target so os.replace stays on one filesystem
        try:
            fd, name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            os.chmod(name, FILE_MODE)
            return os.fdopen(fd, "wb"), Path(name)
        except OSError as exc:
            raise StorageIOError(f"cannot create temporary file for {path}: {exc}") from exc


def _discard(tmp: Path) -> None:
    try:
        tmp.unlink()
    except FileNotFoundError:
        pass
