# === FILE: scrapedb/config.py ===
"""
Loading and validation of ScrapeDB configuration.
Pydantic describes the schema; YAML and JSON files are both accepted.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

PROXY_SCHEMES = ("socks5", "socks5h", "socks4", "socks4a", "http")


def _default_conns_per_host() -> int:
    return (os.cpu_count() or 1) + 1


class StoreConfig(BaseModel):
    """Where the key-value store and the blob tree live on disk."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    db_path: Path = Field(..., description="Directory of the key-value store.")
    blob_dir: Path = Field(..., description="Root directory of the sharded blob tree.")
    map_size: int = Field(1 << 30, gt=0, description="Maximum size of the key-value store, bytes.")

    @field_validator("db_path", "blob_dir", mode="after")
    def _expand_user(cls, v: Path) -> Path:
        return v.expanduser()


class SpiderConfig(BaseModel):
    """Settings of one Spider, validated once at construction."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field("ScrapeDB", min_length=1, description="User-Agent header.")
    sleep_interval: float = Field(
        1.0, ge=0, description="Pause between requests, seconds. Enforced by the caller."
    )
    proxy: Optional[str] = Field(None, description="Proxy URL, e.g. socks5://127.0.0.1:9050.")
    timeout: float = Field(30.0, gt=0, description="Total timeout of one request, seconds.")
    max_idle_conns: int = Field(10, ge=1, description="Connection pool size in proxy mode.")
    max_idle_conns_per_host: int = Field(
        default_factory=_default_conns_per_host, ge=1, description="Per-host pool size in proxy mode."
    )
    idle_conn_timeout: float = Field(60.0, gt=0, description="Keep-alive of idle connections, seconds.")
    handshake_timeout: float = Field(10.0, gt=0, description="Connect/TLS handshake timeout, seconds.")

    @field_validator("proxy", mode="before")
    def _check_proxy(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if not isinstance(v, str):
            return v
        if "://" not in v:
            # bare host:port means SOCKS5
            v = f"socks5://{v}"
        parsed = urlparse(v)
        if parsed.scheme.lower() not in PROXY_SCHEMES:
            raise ValueError(f"unsupported proxy scheme: {parsed.scheme}")
        if not parsed.hostname or parsed.port is None:
            raise ValueError(f"proxy must be host:port, got {v!r}")
        return v


class ScrapeDBConfig(BaseModel):
    """Top-level configuration file schema."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    store: StoreConfig
    spider: SpiderConfig = Field(default_factory=SpiderConfig)
    log_level: str = Field("INFO", description="Logging level name.")

    @field_validator("log_level", mode="before")
    def _upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.upper()
            if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                raise ValueError(f"unknown log level: {v}")
        return v


_DEFAULT_CFG = Path("configs/scrapedb.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> ScrapeDBConfig:
    """
    Read YAML or JSON and return a validated ScrapeDBConfig.
    Raises FileNotFoundError when the file is missing.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return ScrapeDBConfig(**data)


__all__ = ["StoreConfig", "SpiderConfig", "ScrapeDBConfig", "load_config", "PROXY_SCHEMES"]
