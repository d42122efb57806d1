"""Batch relay: collect peers for a directory of torrents.

For each ``.torrent`` file the relay announces to the torrent's trackers,
stores the peers they return and writes a copy of the torrent that points
at this relay's own announce server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from peerrelay.core.torrent import TorrentParser, rewrite_announce
from peerrelay.exceptions import TorrentError
from peerrelay.logging_config import log_exception, set_correlation_id
from peerrelay.models import RelayConfig
from peerrelay.tracker import AsyncTrackerClient, TrackerResult

logger = logging.getLogger(__name__)

TORRENT_SUFFIX = ".torrent"


@dataclass
class TorrentSummary:
    """What happened to one torrent file."""

    path: Path
    info_hash: bytes | None = None
    trackers: list[TrackerResult] = field(default_factory=list)
    output_path: Path | None = None
    error: str | None = None

    @property
    def peer_count(self) -> int:
        """Peers returned by the last tracker that produced any."""
        for result in reversed(self.trackers):
            if result.peers:
                return len(result.peers)
        return 0

    @property
    def stored(self) -> bool:
        """Whether any tracker result reached the store."""
        return any(result.stored for result in self.trackers)


class TorrentRelay:
    """Runs torrents through the tracker client and rewrites them."""

    def __init__(self, client: AsyncTrackerClient, config: RelayConfig | None = None):
        """Initialize the relay.

        Args:
            client: Started tracker client with a peer store attached
            config: Directories and announce URL (defaults to the global config)

        """
        if config is None:
            from peerrelay.config import get_relay_config

            config = get_relay_config()
        self.client = client
        self.config = config
        self.parser = TorrentParser()

    def find_torrents(self, directory: str | Path | None = None) -> list[Path]:
        """List ``.torrent`` files in ``directory``, sorted by name."""
        torrent_dir = Path(directory or self.config.torrent_dir)
        if not torrent_dir.is_dir():
            logger.warning("Torrent directory %s does not exist", torrent_dir)
            return []
        return sorted(
            p for p in torrent_dir.iterdir() if p.is_file() and p.suffix == TORRENT_SUFFIX
        )

    async def process_torrent(self, path: str | Path) -> TorrentSummary:
        """Collect peers for one torrent and write its rewritten copy."""
        path = Path(path)
        set_correlation_id()
        summary = TorrentSummary(path=path)
        logger.info("Processing torrent file %s", path)

        try:
            meta = self.parser.parse(path)
        except TorrentError as e:
            logger.error("Skipping %s: %s", path, e)
            summary.error = str(e)
            return summary

        summary.info_hash = meta.info_hash
        logger.info("Info hash of %s is %s", path.name, meta.info_hash_hex)

        summary.trackers = await self.client.announce_torrent(
            meta.info_hash, meta.announce_list, path.name
        )

        output_dir = Path(self.config.output_dir)
        output_path = output_dir / path.name
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(rewrite_announce(meta.raw, self.config.announce_url))
        except OSError as e:
            log_exception(logger, e, f"Failed to write {output_path}")
            summary.error = str(e)
            return summary

        summary.output_path = output_path
        logger.info("Modified torrent file saved: %s", output_path)
        return summary

    async def process_directory(
        self, directory: str | Path | None = None
    ) -> list[TorrentSummary]:
        """Process every torrent in ``directory`` one after another."""
        return [await self.process_torrent(path) for path in self.find_torrents(directory)]
