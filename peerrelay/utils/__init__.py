"""Shared helpers for peerrelay."""

from __future__ import annotations

from peerrelay.utils.urlcodec import (
    get_raw_query_param,
    quote_bytes,
    unquote_bytes,
)

__all__ = ["get_raw_query_param", "quote_bytes", "unquote_bytes"]
