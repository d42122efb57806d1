#!/usr/bin/env python3
"""peerrelay - collect peers from BitTorrent trackers and serve them."""

from __future__ import annotations

from peerrelay.cli.main import main

if __name__ == "__main__":
    main()
