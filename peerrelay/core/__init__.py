"""Protocol core: bencode, compact peers and torrent metadata."""

from __future__ import annotations

from peerrelay.core.bencode import decode, encode
from peerrelay.core.compact import CompactPeerCodec
from peerrelay.core.torrent import (
    TorrentMeta,
    TorrentParser,
    compute_info_hash,
    rewrite_announce,
    tracker_urls,
)

__all__ = [
    "CompactPeerCodec",
    "TorrentMeta",
    "TorrentParser",
    "compute_info_hash",
    "decode",
    "encode",
    "rewrite_announce",
    "tracker_urls",
]
