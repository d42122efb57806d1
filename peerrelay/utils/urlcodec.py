"""Raw-byte percent encoding for binary query parameters.

``info_hash`` and ``peer_id`` are arbitrary 20-byte values, so trackers and
clients must agree on a byte-for-byte encoding. The tracker client and the
announce server both use these helpers.
"""

from __future__ import annotations

from urllib.parse import unquote_to_bytes


def quote_bytes(data: bytes) -> str:
    """Encode every byte of ``data`` as ``%XX`` (uppercase hex)."""
    return "".join(f"%{b:02X}" for b in data)


def unquote_bytes(text: str) -> bytes:
    """Reverse :func:`quote_bytes`.

    Literal (unescaped) characters are accepted too, since many clients leave
    unreserved bytes such as ``a-z`` unescaped. A ``%`` not followed by two
    hex digits is kept as-is.
    """
    return unquote_to_bytes(text)


def get_raw_query_param(raw_query: str, name: str) -> str | None:
    """Return the still-encoded value of the first ``name`` parameter.

    Standard query parsers decode values to text, which corrupts binary
    parameters, so the raw query string is split by hand.
    """
    for part in raw_query.split("&"):
        key, sep, value = part.partition("=")
        if key == name and sep:
            return value
    return None
