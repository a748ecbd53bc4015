# scrapedb/store/codec.py
"""
Codec for page records: JSON document compressed with gzip.

The stored document is ``{"fetchedAt": <RFC3339 UTC>, "data": <base64>}``.
Compression is transparent to callers and never changes the record contents.
"""
from __future__ import annotations

import base64
import binascii
import gzip
import zlib
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from scrapedb.exceptions import DecodeError

__all__ = ("Page", "encode", "decode")


class Page(BaseModel):
    """Last successfully fetched payload for one ``(kind, path)``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    fetched_at: datetime = Field(..., alias="fetchedAt")
    data: bytes = b""

    @field_validator("fetched_at", mode="after")
    def _as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("data", mode="before")
    def _from_base64(cls, v: Any) -> Any:
        # standard alphabet with padding; null is an empty payload
        if v is None:
            return b""
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as exc:
                raise ValueError(f"data is not base64: {exc}") from exc
        return v

    @field_serializer("data", when_used="json")
    def _to_base64(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")


def encode(page: Page) -> bytes:
    """Serialize and compress a page record."""
    raw = page.model_dump_json(by_alias=True).encode("utf-8")
    return gzip.compress(raw)


def decode(raw: bytes) -> Page:
    """Decompress and parse a page record, raising DecodeError on corruption."""
    try:
        document = gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecodeError(f"cannot decompress page record: {exc}") from exc
    try:
        return Page.model_validate_json(document)
    except ValidationError as exc:
        raise DecodeError(f"malformed page record: {exc}") from exc
