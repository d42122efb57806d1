"""Bencoding module for BitTorrent protocol.

This module provides a convenient interface to the core bencode functionality.
"""

from __future__ import annotations

from peerrelay.core.bencode import (
    BencodeDecodeError,
    BencodeDecoder,
    BencodeEncodeError,
    BencodeEncoder,
    decode,
    encode,
)

__all__ = [
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "decode",
    "encode",
]
