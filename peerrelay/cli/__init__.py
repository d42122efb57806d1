"""Command line interface for peerrelay."""

from __future__ import annotations

from peerrelay.cli.main import cli, main

__all__ = ["cli", "main"]
