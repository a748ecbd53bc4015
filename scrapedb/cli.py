# === FILE: scrapedb/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point for ScrapeDB.

Commands:
  probe-proxy PROXY   Fetch one page through a proxy in a scratch store, print "ok"
  fetch URL           Fetch a page or blob through the cache
  scan                List the paths stored under a kind
  config              Show the effective configuration

Common options:
  --config PATH       YAML/JSON configuration (required by fetch and scan)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only when omitted)
  --log-format FORMAT Logging format string

Example:
  scrapedb probe-proxy 127.0.0.1:9050
  scrapedb --config configs/scrapedb.yaml fetch https://example.com/ --stale-after 3600
"""
import asyncio
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError

from scrapedb import __version__
from scrapedb.config import ScrapeDBConfig, SpiderConfig, load_config
from scrapedb.exceptions import ScrapeDBError
from scrapedb.logger import DEFAULT_FORMAT, configure
from scrapedb.spider import Spider
from scrapedb.store import Store

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

PROBE_URL = "https://google.com/"
PROBE_EXPECT = "google"
PROBE_STALE_AFTER = 1.0


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _require_config(ctx: click.Context) -> ScrapeDBConfig:
    cfg = ctx.obj.get('config')
    if cfg is None:
        print_error('No configuration: pass --config PATH')
    return cfg


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='ScrapeDB, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON configuration file.'
)
@click.option(
    '--log-level', 'log_level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level (default: from config, else WARNING)'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stdout when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """ScrapeDB command group."""
    cfg = None
    if config_path is not None:
        try:
            cfg = load_config(config_path)
        except (OSError, ValueError, TypeError) as e:
            print_error(f'Error loading configuration: {e}')
    configure(
        level=log_level or (cfg.log_level if cfg else 'WARNING'),
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


# --------------------------------------------------------------------------- #
# probe-proxy                                                                 #
# --------------------------------------------------------------------------- #

async def probe(proxy: str, url: str) -> bytes:
    """One uncached page fetch through ``proxy`` in a throwaway store."""
    with tempfile.TemporaryDirectory(prefix='probe-proxy-') as tmp:
        root = Path(tmp)
        with Store(root / 'blobs', root / 'db', map_size=16 << 20) as store:
            async with Spider(store, SpiderConfig(proxy=proxy)) as spider:
                data, _ = await spider.request_page('test', url, PROBE_STALE_AFTER)
    return data


@cli.command('probe-proxy', context_settings=CONTEXT_SETTINGS)
@click.argument('proxy')
@click.option('--url', default=PROBE_URL, show_default=True, help='Page to fetch')
@click.option('--expect', default=PROBE_EXPECT, show_default=True, help='Substring the page must contain')
def probe_proxy(proxy, url, expect):
    """Check that PROXY (host:port or socks5://host:port) can fetch a page."""
    try:
        data = asyncio.run(probe(proxy, url))
    except (ScrapeDBError, ValidationError) as e:
        print_error(f'Probe failed: {e}')
    if expect.encode('utf-8') not in data:
        print_error(data.decode('utf-8', errors='replace'))
    click.echo('ok')


# --------------------------------------------------------------------------- #
# fetch                                                                       #
# --------------------------------------------------------------------------- #

async def fetch(
    cfg: ScrapeDBConfig, kind: str, url: str, stale_after: float, blob: bool
) -> Tuple[Optional[bytes], int, bool]:
    with Store.from_config(cfg.store) as store:
        async with Spider(store, cfg.spider) as spider:
            if blob:
                written, cached = await spider.request_blob(kind, url, stale_after)
                return None, written, cached
            data, cached = await spider.request_page(kind, url, stale_after)
            return data, len(data), cached


@cli.command('fetch', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--kind', '-k', default='page', show_default=True, help='Namespace of the cached entry')
@click.option('--stale-after', 'stale_after', type=float, default=3600.0, show_default=True,
              help='Seconds after which a cached entry is refetched')
@click.option('--blob', is_flag=True, help='Store the body in the blob tree')
@click.option(
    '--output', '-o', 'output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Write the page body to a file'
)
@click.pass_context
def fetch_cmd(ctx, url, kind, stale_after, blob, output):
    """Fetch URL, serving it from the cache while fresh."""
    cfg = _require_config(ctx)
    try:
        data, size, cached = asyncio.run(fetch(cfg, kind, url, stale_after, blob))
    except ScrapeDBError as e:
        print_error(f'Fetch failed: {e}')
    if cached and blob:
        click.echo(f'cached {url}')
    else:
        click.echo(f"{'cached' if cached else 'fetched'} {url} ({size} bytes)")
    if output and data is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        click.echo(f'Saved: {output}')


# --------------------------------------------------------------------------- #
# scan                                                                        #
# --------------------------------------------------------------------------- #

async def collect_paths(cfg: ScrapeDBConfig, kind: str, limit: Optional[int]) -> List[str]:
    errors: List[str] = []
    paths: List[str] = []
    cancel = asyncio.Event()
    with Store.from_config(cfg.store, on_scan_error=lambda k, exc: errors.append(str(exc))) as store:
        async for path in store.pages.scan(kind, cancel):
            if limit is None or len(paths) < limit:
                paths.append(path)
            if limit is not None and len(paths) >= limit:
                cancel.set()
    if errors:
        raise ScrapeDBError(f"scan of '{kind}' stopped early: {errors[0]}")
    return paths


@cli.command('scan', context_settings=CONTEXT_SETTINGS)
@click.option('--kind', '-k', default='page', show_default=True, help='Namespace to list')
@click.option('--limit', '-l', type=int, default=None, help='Stop after this many paths')
@click.option('--count', is_flag=True, help='Only print the number of stored entries')
@click.pass_context
def scan_cmd(ctx, kind, limit, count):
    """List the paths stored under a kind."""
    cfg = _require_config(ctx)
    try:
        if count:
            with Store.from_config(cfg.store) as store:
                click.echo(str(store.pages.count(kind)))
            return
        paths = asyncio.run(collect_paths(cfg, kind, limit))
    except ScrapeDBError as e:
        print_error(f'Scan failed: {e}')
    for path in paths:
        click.echo(path)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the current configuration as JSON."""
    cfg = _require_config(ctx)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
