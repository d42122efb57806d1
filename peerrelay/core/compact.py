"""Compact peer list codec (BEP 23).

Each peer is 6 bytes: a 4-byte IPv4 address followed by a 2-byte port, both
in network byte order.
"""

from __future__ import annotations

import socket
import struct
from collections.abc import Iterable

from peerrelay.exceptions import FormatError
from peerrelay.models import Peer

COMPACT_PEER_SIZE = 6

_PEER_STRUCT = struct.Struct("!4sH")


class CompactPeerCodec:
    """Encode and decode the 6-byte-per-peer compact format."""

    @staticmethod
    def encode_peer(peer: Peer) -> bytes:
        """Encode a single peer."""
        try:
            ip_bytes = socket.inet_aton(peer.ip)
            return _PEER_STRUCT.pack(ip_bytes, peer.port)
        except (OSError, struct.error) as e:
            msg = f"Cannot encode peer {peer.ip}:{peer.port}"
            raise FormatError(msg) from e

    @staticmethod
    def decode_peer(data: bytes) -> Peer:
        """Decode exactly one 6-byte peer."""
        if len(data) != COMPACT_PEER_SIZE:
            msg = f"Compact peer must be {COMPACT_PEER_SIZE} bytes, got {len(data)}"
            raise FormatError(msg)
        ip_bytes, port = _PEER_STRUCT.unpack(data)
        return Peer(ip=socket.inet_ntoa(ip_bytes), port=port)

    @classmethod
    def encode(cls, peers: Iterable[Peer]) -> bytes:
        """Encode peers in order; the result is 6 bytes per peer."""
        return b"".join(cls.encode_peer(peer) for peer in peers)

    @classmethod
    def decode(cls, data: bytes) -> list[Peer]:
        """Decode a compact peer string, preserving order.

        Raises:
            FormatError: If the length is not a multiple of 6

        """
        if len(data) % COMPACT_PEER_SIZE != 0:
            msg = f"Invalid compact peer data length: {len(data)} bytes"
            raise FormatError(msg, {"length": len(data)})

        return [
            cls.decode_peer(data[i : i + COMPACT_PEER_SIZE])
            for i in range(0, len(data), COMPACT_PEER_SIZE)
        ]


def encode_peers(peers: Iterable[Peer | tuple[str, int] | dict]) -> bytes:
    """Encode peers given as models, ``(ip, port)`` tuples or dicts."""
    return CompactPeerCodec.encode(to_peer(p) for p in peers)


def decode_peers(data: bytes) -> list[Peer]:
    """Decode a compact peer string."""
    return CompactPeerCodec.decode(data)


def to_peer(value: Peer | tuple[str, int] | dict) -> Peer:
    """Coerce a peer-like value into a :class:`Peer`."""
    if isinstance(value, Peer):
        return value
    try:
        if isinstance(value, dict):
            return Peer(ip=value["ip"], port=value["port"])
        ip, port = value
        return Peer(ip=ip, port=port)
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Invalid peer: {value!r}"
        raise FormatError(msg) from e
