"""Peer record persistence."""

from __future__ import annotations

from peerrelay.storage.peer_store import (
    InMemoryPeerStore,
    PeerStore,
    SQLitePeerStore,
    create_peer_store,
)

__all__ = ["InMemoryPeerStore", "PeerStore", "SQLitePeerStore", "create_peer_store"]
