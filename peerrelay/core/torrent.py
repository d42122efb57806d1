"""Torrent file parsing, info hash computation and announce rewriting.

The info hash must be computed from the info dictionary exactly as decoded,
before anything in the torrent is modified.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from peerrelay.core.bencode import BencodeDecodeError, decode, encode
from peerrelay.exceptions import TorrentError


def compute_info_hash(info: dict[bytes, Any]) -> bytes:
    """Return the 20-byte SHA-1 of the bencoded info dictionary."""
    return hashlib.sha1(encode(info)).digest()  # nosec B324 - SHA-1 required by BitTorrent protocol (BEP 3)


def _as_text(value: Any) -> str | None:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(value, str):
        return value
    return None


def tracker_urls(torrent: dict[bytes, Any]) -> list[str]:
    """Flatten a torrent's trackers into one ordered list.

    ``announce-list`` tiers are flattened in order; without it the single
    ``announce`` URL is used. Entries that are not valid UTF-8 text are
    dropped.
    """
    announce_list = torrent.get(b"announce-list")
    if isinstance(announce_list, list) and announce_list:
        urls: list[str] = []
        for tier in announce_list:
            entries = tier if isinstance(tier, list) else [tier]
            for entry in entries:
                url = _as_text(entry)
                if url:
                    urls.append(url)
        return urls

    announce = _as_text(torrent.get(b"announce"))
    return [announce] if announce else []


def rewrite_announce(torrent: dict[bytes, Any], announce_url: str) -> bytes:
    """Point a torrent at ``announce_url`` and re-encode it.

    ``announce-list`` is removed. The input dict is left untouched.
    """
    rewritten = dict(torrent)
    rewritten.pop(b"announce-list", None)
    rewritten[b"announce"] = announce_url.encode("utf-8")
    return encode(rewritten)


@dataclass
class TorrentMeta:
    """The parts of a torrent the relay works with."""

    name: str
    info_hash: bytes
    announce_list: list[str] = field(default_factory=list)
    raw: dict[bytes, Any] = field(default_factory=dict, repr=False)

    @property
    def info_hash_hex(self) -> str:
        """Lowercase hex form of the info hash."""
        return self.info_hash.hex()


class TorrentParser:
    """Parser for BitTorrent torrent files."""

    def parse(self, torrent_path: str | Path) -> TorrentMeta:
        """Parse a torrent file from a local path.

        Raises:
            TorrentError: If the file cannot be read or is not a torrent

        """
        path = Path(torrent_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            msg = f"Cannot read torrent file {path}: {e}"
            raise TorrentError(msg) from e

        return self.parse_bytes(data, label=path.name)

    def parse_bytes(self, data: bytes, label: str = "") -> TorrentMeta:
        """Parse bencoded torrent metadata."""
        try:
            torrent = decode(data)
        except BencodeDecodeError as e:
            msg = f"Invalid bencoded torrent {label}: {e}"
            raise TorrentError(msg) from e

        self._validate_torrent(torrent)
        info = torrent[b"info"]

        # Hash before anything else looks at or changes the dictionary
        info_hash = compute_info_hash(info)

        return TorrentMeta(
            name=_as_text(info.get(b"name")) or label,
            info_hash=info_hash,
            announce_list=tracker_urls(torrent),
            raw=torrent,
        )

    def _validate_torrent(self, data: Any) -> None:
        """Validate that the data is a torrent dictionary with an info dict."""
        if not isinstance(data, dict):
            msg = "Torrent must be a bencoded dictionary"
            raise TorrentError(msg)
        if b"info" not in data:
            msg = "Missing required key in torrent: info"
            raise TorrentError(msg)
        if not isinstance(data[b"info"], dict):
            msg = "Invalid info dictionary in torrent"
            raise TorrentError(msg)
