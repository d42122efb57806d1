"""Async communication with HTTP(S) BitTorrent trackers.

This module announces torrents to trackers, scrapes swarm statistics and
records the resulting peer lists in a peer store. Tracker failures never
escape :class:`AsyncTrackerClient`: they are logged and reported as "no
peers".
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit, urlunsplit

import aiohttp
from yarl import URL

from peerrelay.core.bencode import decode
from peerrelay.core.compact import CompactPeerCodec
from peerrelay.exceptions import (
    FormatError,
    NetworkError,
    ParseError,
    StoreError,
    TrackerError,
)
from peerrelay.models import (
    PEER_ID_LENGTH,
    AnnounceEvent,
    AnnounceRequest,
    NetworkConfig,
    Peer,
    ScrapeData,
)
from peerrelay.utils.urlcodec import quote_bytes

if TYPE_CHECKING:
    from peerrelay.storage.peer_store import PeerStore

SUPPORTED_SCHEMES = ("http", "https")

logger = logging.getLogger(__name__)


def is_supported_tracker(url: str) -> bool:
    """Return True for tracker URLs this client can talk to (HTTP/HTTPS)."""
    try:
        return urlsplit(url).scheme.lower() in SUPPORTED_SCHEMES
    except ValueError:
        return False


def generate_peer_id(prefix: str = "-PR0100-") -> bytes:
    """Generate a 20-byte peer id: the prefix padded with random bytes."""
    prefix_bytes = prefix.encode("utf-8")[:PEER_ID_LENGTH]
    return prefix_bytes + secrets.token_bytes(PEER_ID_LENGTH - len(prefix_bytes))


def build_announce_url(tracker_url: str, request: AnnounceRequest) -> str:
    """Build the announce URL for ``request``.

    ``info_hash`` and ``peer_id`` are percent-encoded byte by byte.
    """
    params = [
        f"info_hash={quote_bytes(request.info_hash)}",
        f"peer_id={quote_bytes(request.peer_id)}",
        f"port={request.port}",
        f"uploaded={request.uploaded}",
        f"downloaded={request.downloaded}",
        f"left={request.left}",
        f"compact={int(request.compact)}",
    ]
    if request.event != AnnounceEvent.NONE:
        params.append(f"event={request.event.value}")

    separator = "&" if "?" in tracker_url else "?"
    return f"{tracker_url}{separator}{'&'.join(params)}"


def build_scrape_url(tracker_url: str, info_hash: bytes) -> str | None:
    """Derive the scrape URL from an announce URL.

    The last path segment must start with ``announce``; it is replaced by
    ``scrape``. Returns None when the tracker does not follow the convention.
    """
    parts = urlsplit(tracker_url)
    head, sep, last = parts.path.rpartition("/")
    if not sep or not last.startswith("announce"):
        return None

    path = f"{head}/scrape{last[len('announce'):]}"
    query = f"info_hash={quote_bytes(info_hash)}"
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


def parse_peers(peers_data: Any) -> list[Peer]:
    """Parse the ``peers`` value of an announce response.

    Compact byte strings are decoded with :class:`CompactPeerCodec`. The
    dictionary model (a list of ``{ip, port}`` dicts) is accepted as well;
    entries that are not usable IPv4 peers are skipped.

    Raises:
        FormatError: If a compact peer string has an invalid length

    """
    if isinstance(peers_data, bytes):
        return CompactPeerCodec.decode(peers_data)

    peers: list[Peer] = []
    if isinstance(peers_data, list):
        for entry in peers_data:
            if not isinstance(entry, dict):
                continue
            ip = entry.get(b"ip")
            port = entry.get(b"port")
            if not isinstance(ip, bytes) or not isinstance(port, int):
                continue
            try:
                peers.append(Peer(ip=ip.decode("ascii"), port=port))
            except ValueError:
                continue
    return peers


@dataclass
class TrackerResult:
    """Outcome of contacting one tracker for one torrent."""

    url: str
    peers: list[Peer] = field(default_factory=list)
    scrape: ScrapeData | None = None
    stored: bool = False
    skipped: bool = False


class AsyncTrackerClient:
    """Async client for announcing to and scraping BitTorrent trackers."""

    def __init__(
        self,
        store: PeerStore | None = None,
        config: NetworkConfig | None = None,
        peer_id: bytes | None = None,
    ):
        """Initialize the async tracker client.

        Args:
            store: Peer store that receives announce results
            config: Network configuration (defaults to the global config)
            peer_id: 20-byte peer id; generated from the configured prefix if omitted

        """
        if config is None:
            from peerrelay.config import get_network_config

            config = get_network_config()
        self.config = config
        self.store = store
        self.peer_id = peer_id or generate_peer_id(config.peer_id_prefix)
        self.session: aiohttp.ClientSession | None = None
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the HTTP session."""
        if self.session is not None:
            return
        timeout = aiohttp.ClientTimeout(total=self.config.tracker_timeout)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"User-Agent": self.config.user_agent},
        )
        self.logger.debug("Tracker client started")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self.session is not None:
            await self.session.close()
            self.session = None
        self.logger.debug("Tracker client stopped")

    async def __aenter__(self) -> AsyncTrackerClient:
        """Start the client."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Stop the client."""
        await self.stop()

    async def announce(
        self,
        tracker_url: str,
        info_hash: bytes,
        peer_id: bytes | None = None,
        *,
        port: int | None = None,
        uploaded: int = 0,
        downloaded: int = 0,
        left: int = 0,
        event: AnnounceEvent | None = None,
    ) -> list[Peer]:
        """Announce to one tracker and return the peers it lists.

        Returns an empty list on any network, timeout, or decode failure.
        """
        try:
            request = AnnounceRequest(
                info_hash=info_hash,
                peer_id=peer_id or self.peer_id,
                port=self.config.announce_port if port is None else port,
                uploaded=uploaded,
                downloaded=downloaded,
                left=left,
                compact=True,
                event=self.config.announce_event if event is None else event,
            )
        except ValueError:
            self.logger.exception("Invalid announce parameters for %s", tracker_url)
            return []

        if not is_supported_tracker(tracker_url):
            self.logger.info("Skipping unsupported tracker %s", tracker_url)
            return []

        try:
            body = await self._get(build_announce_url(tracker_url, request))
            peers = self._parse_announce_response(body)
        except (NetworkError, ParseError, FormatError) as e:
            self.logger.warning("Announce to %s failed: %s", tracker_url, e)
            return []

        self.logger.info("Tracker %s returned %d peers", tracker_url, len(peers))
        return peers

    async def scrape(self, tracker_url: str, info_hash: bytes) -> ScrapeData | None:
        """Scrape one tracker for the swarm statistics of ``info_hash``.

        Returns None on any error or when the tracker has no entry.
        """
        if not is_supported_tracker(tracker_url):
            return None

        scrape_url = build_scrape_url(tracker_url, info_hash)
        if scrape_url is None:
            self.logger.debug("Tracker %s does not support scrape", tracker_url)
            return None

        try:
            body = await self._get(scrape_url)
            return self._parse_scrape_response(body, info_hash)
        except (NetworkError, ParseError) as e:
            self.logger.warning("Scrape of %s failed: %s", scrape_url, e)
            return None

    async def announce_torrent(
        self,
        info_hash: bytes,
        tracker_urls: list[str],
        source_label: str,
    ) -> list[TrackerResult]:
        """Contact each tracker in order and store what it returns.

        Trackers are processed one at a time. A tracker that returns peers is
        scraped and its result written to the store before the next tracker
        is contacted, so later trackers overwrite earlier ones.
        """
        results: list[TrackerResult] = []
        for url in tracker_urls:
            if not is_supported_tracker(url):
                self.logger.info("Skipping unsupported tracker %s", url)
                results.append(TrackerResult(url=url, skipped=True))
                continue

            self.logger.info("Processing tracker %s", url)
            result = TrackerResult(url=url)
            result.peers = await self.announce(url, info_hash)
            if result.peers:
                result.scrape = await self.scrape(url, info_hash)
                result.stored = await self._store(
                    info_hash, result.peers, source_label, result.scrape
                )
            else:
                self.logger.info("No peers to store for %s from %s", info_hash.hex(), url)
            results.append(result)
        return results

    async def _store(
        self,
        info_hash: bytes,
        peers: list[Peer],
        source_label: str,
        scrape: ScrapeData | None,
    ) -> bool:
        if self.store is None:
            return False
        try:
            await self.store.upsert(info_hash, peers, source_label, scrape)
        except StoreError as e:
            self.logger.error("Failed to store peers for %s: %s", info_hash.hex(), e)
            return False
        self.logger.debug("Stored %d peers for %s", len(peers), info_hash.hex())
        return True

    async def _get(self, url: str) -> bytes:
        """Make an HTTP GET request to a tracker and return the body.

        Raises:
            TrackerError: On transport failure, timeout, a non-200 reply, or
                when the client has not been started

        """
        if self.session is None:
            msg = "Tracker client not started"
            raise TrackerError(msg, {"url": url})

        try:
            # URLs are already percent-encoded; stop yarl from requoting them
            async with self.session.get(URL(url, encoded=True)) as response:
                if response.status != 200:
                    msg = f"HTTP {response.status}: {response.reason}"
                    raise TrackerError(msg, {"url": url})
                return await response.read()
        except asyncio.TimeoutError as e:
            msg = f"Timed out after {self.config.tracker_timeout}s"
            raise TrackerError(msg, {"url": url}) from e
        except (aiohttp.ClientError, OSError, ValueError) as e:
            msg = f"Network error: {e}"
            raise TrackerError(msg, {"url": url}) from e

    def _parse_announce_response(self, body: bytes) -> list[Peer]:
        """Extract the peer list from an announce response body."""
        decoded = decode(body, strict=False)
        if not isinstance(decoded, dict):
            msg = "Tracker response is not a dictionary"
            raise ParseError(msg)

        if b"failure reason" in decoded:
            reason = decoded[b"failure reason"]
            if isinstance(reason, bytes):
                reason = reason.decode("utf-8", errors="replace")
            msg = f"Tracker failure: {reason}"
            raise TrackerError(msg)

        warning = decoded.get(b"warning message")
        if isinstance(warning, bytes):
            self.logger.warning(
                "Tracker warning: %s", warning.decode("utf-8", errors="replace")
            )

        peers_data = decoded.get(b"peers")
        if not peers_data:
            return []
        return parse_peers(peers_data)

    def _parse_scrape_response(
        self, body: bytes, info_hash: bytes
    ) -> ScrapeData | None:
        """Pick the entry for ``info_hash`` out of a scrape response."""
        decoded = decode(body, strict=False)
        if not isinstance(decoded, dict):
            return None
        files = decoded.get(b"files")
        if not isinstance(files, dict):
            return None

        stats = files.get(info_hash)
        if stats is None:
            stats = files.get(info_hash.hex().encode("ascii"))
        if not isinstance(stats, dict):
            return None

        try:
            return ScrapeData(
                complete=stats.get(b"complete", 0),
                incomplete=stats.get(b"incomplete", 0),
                downloaded=stats.get(b"downloaded", 0),
            )
        except ValueError:
            self.logger.debug("Ignoring malformed scrape entry: %r", stats)
            return None
