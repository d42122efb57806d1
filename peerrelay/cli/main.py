"""Command line interface for peerrelay.

Commands:
- collect: announce a directory of torrents and store their peers
- serve: run the announce server
- infohash: print a torrent's info hash
- show / list: inspect stored peer records
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from peerrelay.config import init_config
from peerrelay.core.torrent import TorrentParser
from peerrelay.exceptions import ConfigurationError, StoreError, TorrentError
from peerrelay.models import Config, PeerRecord
from peerrelay.relay import TorrentRelay, TorrentSummary
from peerrelay.storage.peer_store import PeerStore, create_peer_store
from peerrelay.tracker import AsyncTrackerClient
from peerrelay.tracker_server_http import run_announce_server

logger = logging.getLogger(__name__)


def _load_config(ctx: click.Context, overrides: dict[str, Any] | None = None) -> Config:
    """Build the configuration from the file, environment and CLI options."""
    merged: dict[str, Any] = {}
    if ctx.obj.get("log_level"):
        merged["observability"] = {"log_level": ctx.obj["log_level"]}
    for section, values in (overrides or {}).items():
        values = {k: v for k, v in values.items() if v is not None}
        if values:
            merged.setdefault(section, {}).update(values)
    try:
        return init_config(ctx.obj.get("config_file"), merged).config
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


async def _open_store(config: Config) -> PeerStore:
    store = create_peer_store(config.store)
    try:
        await store.open()
    except StoreError as e:
        raise click.ClickException(f"Cannot open peer store: {e}") from e
    return store


def _records_table(records: list[PeerRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Info hash", style="cyan")
    table.add_column("Torrent")
    table.add_column("Peers", justify="right")
    table.add_column("Seeders", justify="right")
    table.add_column("Leechers", justify="right")
    table.add_column("Downloaded", justify="right")
    for record in records:
        scrape = record.scrape_data
        table.add_row(
            record.info_hash.hex(),
            record.source_label,
            str(len(record.peers)),
            str(scrape.complete) if scrape else "-",
            str(scrape.incomplete) if scrape else "-",
            str(scrape.downloaded) if scrape else "-",
        )
    return table


def _summary_table(summaries: list[TorrentSummary]) -> Table:
    table = Table(title="Collected peers")
    table.add_column("Torrent")
    table.add_column("Info hash", style="cyan")
    table.add_column("Trackers", justify="right")
    table.add_column("Peers", justify="right")
    table.add_column("Stored")
    for summary in summaries:
        contacted = sum(1 for t in summary.trackers if not t.skipped)
        table.add_row(
            summary.path.name,
            summary.info_hash.hex() if summary.info_hash else "-",
            f"{contacted}/{len(summary.trackers)}",
            str(summary.peer_count),
            "[red]error[/red]" if summary.error else ("yes" if summary.stored else "no"),
        )
    return table


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="Path to a peerrelay.toml configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx: click.Context, config_file: str | None, log_level: str | None) -> None:
    """peerrelay - collect peers from trackers and serve them."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level.upper() if log_level else None


@cli.command("collect")
@click.option("--torrent-dir", type=click.Path(file_okay=False), help="Directory of .torrent files")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Where rewritten torrents go")
@click.option("--announce-url", help="Announce URL written into rewritten torrents")
@click.option("--timeout", type=float, help="Per-request tracker timeout in seconds")
@click.pass_context
def collect(
    ctx: click.Context,
    torrent_dir: str | None,
    output_dir: str | None,
    announce_url: str | None,
    timeout: float | None,
) -> None:
    """Announce every torrent in a directory and store the peers found."""
    config = _load_config(
        ctx,
        {
            "relay": {
                "torrent_dir": torrent_dir,
                "output_dir": output_dir,
                "announce_url": announce_url,
            },
            "network": {"tracker_timeout": timeout},
        },
    )
    console = Console()

    async def _collect() -> list[TorrentSummary]:
        store = await _open_store(config)
        try:
            async with AsyncTrackerClient(store, config.network) as client:
                relay = TorrentRelay(client, config.relay)
                return await relay.process_directory()
        finally:
            await store.close()

    summaries = asyncio.run(_collect())
    if not summaries:
        console.print(f"[yellow]No torrents found in {config.relay.torrent_dir}[/yellow]")
        return
    console.print(_summary_table(summaries))


@cli.command("serve")
@click.option("--host", help="Address to bind")
@click.option("--port", type=int, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the announce server until interrupted."""
    config = _load_config(ctx, {"server": {"host": host, "port": port}})

    async def _serve() -> None:
        store = await _open_store(config)
        try:
            await run_announce_server(store, config.server)
        finally:
            await store.close()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Announce server interrupted")


@cli.command("infohash")
@click.argument("torrent_file", type=click.Path(exists=True, dir_okay=False))
def infohash(torrent_file: str) -> None:
    """Print the info hash of a torrent file."""
    try:
        meta = TorrentParser().parse(torrent_file)
    except TorrentError as e:
        raise click.ClickException(str(e)) from e
    click.echo(meta.info_hash_hex)


@cli.command("show")
@click.argument("info_hash", type=str)
@click.pass_context
def show(ctx: click.Context, info_hash: str) -> None:
    """Show the stored record for an info hash (40 hex characters)."""
    try:
        raw_hash = bytes.fromhex(info_hash)
    except ValueError:
        raw_hash = b""
    if len(raw_hash) != 20:
        raise click.ClickException("Info hash must be 40 hex characters")

    config = _load_config(ctx)
    console = Console()

    async def _show() -> PeerRecord | None:
        store = await _open_store(config)
        try:
            return await store.get(raw_hash)
        finally:
            await store.close()

    record = asyncio.run(_show())
    if record is None:
        console.print(f"[yellow]No peers stored for {info_hash.lower()}[/yellow]")
        return

    console.print(_records_table([record], "Peer record"))
    peers = Table(title="Peers")
    peers.add_column("IP")
    peers.add_column("Port", justify="right")
    for peer in record.peers:
        peers.add_row(peer.ip, str(peer.port))
    console.print(peers)


@cli.command("list")
@click.pass_context
def list_records(ctx: click.Context) -> None:
    """List every stored peer record."""
    config = _load_config(ctx)
    console = Console()

    async def _list() -> list[PeerRecord]:
        store = await _open_store(config)
        try:
            return await store.records()
        finally:
            await store.close()

    records = asyncio.run(_list())
    if not records:
        console.print("[yellow]Peer store is empty[/yellow]")
        return
    console.print(_records_table(records, "Peer records"))


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
