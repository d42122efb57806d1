"""peerrelay - BitTorrent tracker relay.

Collects peer lists from HTTP(S) trackers into a peer store and serves them
back to BitTorrent clients through its own announce endpoint.
"""

from __future__ import annotations

__version__ = "0.1.0"
