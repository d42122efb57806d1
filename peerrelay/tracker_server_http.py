"""HTTP announce server (BEP 3 style) serving peers from the peer store.

Only ``/announce`` is answered with tracker data; every other path gets an
empty 200 response. Protocol problems (missing or malformed ``info_hash``,
unknown torrents, store read failures) are answered with an empty peer list
rather than an HTTP error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aiohttp import web

from peerrelay.core.bencode import encode
from peerrelay.core.compact import CompactPeerCodec
from peerrelay.exceptions import FormatError, StoreError
from peerrelay.logging_config import log_exception, set_correlation_id
from peerrelay.models import INFO_HASH_LENGTH, ServerConfig
from peerrelay.utils.urlcodec import get_raw_query_param, unquote_bytes

if TYPE_CHECKING:
    from peerrelay.storage.peer_store import PeerStore

ANNOUNCE_INTERVAL = 1800  # 30 minutes
ANNOUNCE_PATH = "/announce"

logger = logging.getLogger(__name__)


def extract_info_hash(raw_query: str) -> bytes | None:
    """Recover the raw 20-byte info hash from an undecoded query string.

    Returns None when the parameter is missing or does not decode to
    exactly 20 bytes.
    """
    encoded = get_raw_query_param(raw_query, "info_hash")
    if encoded is None:
        return None
    info_hash = unquote_bytes(encoded)
    if len(info_hash) != INFO_HASH_LENGTH:
        return None
    return info_hash


def build_announce_response(compact_peers: bytes = b"") -> bytes:
    """Bencode an announce response."""
    return encode({b"interval": ANNOUNCE_INTERVAL, b"peers": compact_peers})


class AnnounceServer:
    """Serves compact peer lists for info hashes held in a peer store."""

    def __init__(self, store: PeerStore, config: ServerConfig | None = None):
        """Initialize the announce server.

        Args:
            store: Open peer store to read records from
            config: Bind address and port (defaults to the global config)

        """
        if config is None:
            from peerrelay.config import get_server_config

            config = get_server_config()
        self.store = store
        self.host = config.host
        self.port = config.port

        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get(ANNOUNCE_PATH, self._handle_announce)
        self.app.router.add_route("*", "/{tail:.*}", self._handle_other)

    async def start(self) -> None:
        """Start listening; ``self.port`` holds the bound port afterwards."""
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        try:
            await self.site.start()
        except OSError:
            logger.exception("Failed to bind announce server to %s:%d", self.host, self.port)
            await self.runner.cleanup()
            self.runner = None
            raise

        addresses = self.runner.addresses
        if addresses:
            self.port = addresses[0][1]
        logger.info("Announce server listening on http://%s:%d%s", self.host, self.port, ANNOUNCE_PATH)

    async def stop(self) -> None:
        """Stop the server."""
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            logger.info("Announce server stopped")

    async def lookup_peers(self, info_hash: bytes | None) -> bytes:
        """Return the compact peer string stored for ``info_hash``."""
        if info_hash is None:
            return b""
        try:
            record = await self.store.get(info_hash)
        except StoreError as e:
            log_exception(logger, e, f"Peer store lookup failed for {info_hash.hex()}")
            return b""

        if record is None:
            logger.info("No peers found for %s", info_hash.hex())
            return b""

        try:
            compact = CompactPeerCodec.encode(record.peers)
        except FormatError as e:
            logger.error("Cannot encode stored peers for %s: %s", info_hash.hex(), e)
            return b""
        logger.info("Found %d peers for %s", len(record.peers), info_hash.hex())
        return compact

    async def _handle_announce(self, request: web.Request) -> web.Response:
        set_correlation_id()
        info_hash = extract_info_hash(request.rel_url.raw_query_string)
        if info_hash is None:
            logger.debug("Announce from %s without a usable info_hash", request.remote)
        else:
            logger.debug("Announce from %s for %s", request.remote, info_hash.hex())

        body = build_announce_response(await self.lookup_peers(info_hash))
        return web.Response(body=body, content_type="text/plain")

    async def _handle_other(self, request: web.Request) -> web.Response:
        logger.debug("Request for unknown path %s", request.path)
        return web.Response(body=b"")


async def run_announce_server(store: PeerStore, config: ServerConfig | None = None) -> None:
    """Serve announces until cancelled."""
    server = AnnounceServer(store, config)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
