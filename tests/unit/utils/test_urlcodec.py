"""Tests for the shared raw-byte percent codec."""

from __future__ import annotations

import pytest

from peerrelay.utils.urlcodec import get_raw_query_param, quote_bytes, unquote_bytes

pytestmark = [pytest.mark.unit]


def test_quote_every_byte():
    """Each byte becomes one uppercase %XX escape."""
    assert quote_bytes(b"\x00\x12\xabAz") == "%00%12%AB%41%7A"


def test_quote_length():
    """A 20-byte hash always encodes to 60 characters."""
    assert len(quote_bytes(bytes(range(20)))) == 60


def test_quote_empty():
    """Empty input gives an empty string."""
    assert quote_bytes(b"") == ""


def test_unquote_reverses_quote():
    """Decoding recovers the original bytes for every byte value."""
    data = bytes(range(256))
    assert unquote_bytes(quote_bytes(data)) == data


def test_unquote_accepts_lowercase_and_literals():
    """Lowercase escapes and unescaped characters are both understood."""
    assert unquote_bytes("%ab%CDxyz") == b"\xab\xcdxyz"


def test_unquote_keeps_plus_literal():
    """A plus sign is a literal byte, not a space."""
    assert unquote_bytes("a+b") == b"a+b"


def test_raw_query_param():
    """Values are returned still percent-encoded."""
    raw = "peer_id=%41%42&info_hash=%00%FF&port=6881"
    assert get_raw_query_param(raw, "info_hash") == "%00%FF"
    assert get_raw_query_param(raw, "port") == "6881"


def test_raw_query_param_missing():
    """Missing or value-less parameters give None."""
    assert get_raw_query_param("port=1&info_hash", "info_hash") is None
    assert get_raw_query_param("", "info_hash") is None


def test_raw_query_param_first_wins():
    """The first occurrence of a repeated parameter is used."""
    assert get_raw_query_param("info_hash=%01&info_hash=%02", "info_hash") == "%01"
