"""Bencode codec for the BitTorrent protocol.

Values map onto Python types as follows:

- integer    <-> ``int``
- byte string <-> ``bytes`` (``str`` is accepted on encode as UTF-8)
- list       <-> ``list`` (``tuple`` is accepted on encode)
- dictionary <-> ``dict`` with ``bytes`` keys

Dictionary keys are always written in sorted raw-byte order so the same
logical value encodes to the same bytes regardless of insertion order.
"""

from __future__ import annotations

import re
from typing import Any, Union

from peerrelay.exceptions import ParseError, ValidationError

BencodeValue = Union[int, bytes, list, dict]

_INT_RE = re.compile(rb"-?(?:0|[1-9][0-9]*)")
_LENGTH_RE = re.compile(rb"0|[1-9][0-9]*")


class BencodeDecodeError(ParseError):
    """Raised when bencoded input is malformed."""


class BencodeEncodeError(ValidationError):
    """Raised when a value has no bencode representation."""


class BencodeDecoder:
    """Decodes one complete bencoded value from a byte buffer."""

    def __init__(self, data: bytes, strict: bool = True):
        """Initialize the decoder over ``data``.

        With ``strict`` off, bytes after the first complete value are ignored.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            msg = "The data to decode must be bytes"
            raise TypeError(msg)
        self.data = bytes(data)
        self.strict = strict
        self.pos = 0

    def decode(self) -> BencodeValue:
        """Decode the first value in the buffer.

        Raises:
            BencodeDecodeError: If the data is malformed, or has trailing bytes
                in strict mode

        """
        self.pos = 0
        try:
            value = self._decode_value()
        except RecursionError as e:
            msg = "Bencoded data nested too deeply"
            raise BencodeDecodeError(msg) from e
        if self.strict and self.pos != len(self.data):
            msg = f"Trailing data after bencoded value at offset {self.pos}"
            raise BencodeDecodeError(msg)
        return value

    def _peek(self) -> int:
        if self.pos >= len(self.data):
            msg = "Unexpected end of data"
            raise BencodeDecodeError(msg)
        return self.data[self.pos]

    def _decode_value(self) -> BencodeValue:
        token = self._peek()
        if token == ord("i"):
            return self._decode_int()
        if token == ord("l"):
            return self._decode_list()
        if token == ord("d"):
            return self._decode_dict()
        if ord("0") <= token <= ord("9"):
            return self._decode_string()
        msg = f"Invalid bencode token {bytes([token])!r} at offset {self.pos}"
        raise BencodeDecodeError(msg)

    def _decode_int(self) -> int:
        start = self.pos + 1
        end = self.data.find(b"e", start)
        if end == -1:
            msg = f"Unterminated integer at offset {self.pos}"
            raise BencodeDecodeError(msg)

        digits = self.data[start:end]
        if not _INT_RE.fullmatch(digits) or digits == b"-0":
            msg = f"Invalid integer {digits!r} at offset {self.pos}"
            raise BencodeDecodeError(msg)

        self.pos = end + 1
        return int(digits)

    def _decode_string(self) -> bytes:
        colon = self.data.find(b":", self.pos)
        if colon == -1:
            msg = f"Missing ':' in string length at offset {self.pos}"
            raise BencodeDecodeError(msg)

        length_digits = self.data[self.pos : colon]
        if not _LENGTH_RE.fullmatch(length_digits):
            msg = f"Invalid string length {length_digits!r} at offset {self.pos}"
            raise BencodeDecodeError(msg)

        length = int(length_digits)
        start = colon + 1
        end = start + length
        if end > len(self.data):
            msg = (
                f"String length {length} at offset {self.pos} exceeds "
                f"remaining {len(self.data) - start} bytes"
            )
            raise BencodeDecodeError(msg)

        self.pos = end
        return self.data[start:end]

    def _decode_list(self) -> list[BencodeValue]:
        self.pos += 1
        items: list[BencodeValue] = []
        while self._peek() != ord("e"):
            items.append(self._decode_value())
        self.pos += 1
        return items

    def _decode_dict(self) -> dict[bytes, BencodeValue]:
        self.pos += 1
        result: dict[bytes, BencodeValue] = {}
        while self._peek() != ord("e"):
            if not ord("0") <= self._peek() <= ord("9"):
                msg = f"Dictionary key must be a byte string at offset {self.pos}"
                raise BencodeDecodeError(msg)
            key = self._decode_string()
            result[key] = self._decode_value()
        self.pos += 1
        return result


class BencodeEncoder:
    """Encodes Python values into bencoded bytes."""

    def encode(self, value: Any) -> bytes:
        """Encode ``value``.

        Raises:
            BencodeEncodeError: If ``value`` contains an unsupported type

        """
        out = bytearray()
        self._encode_value(value, out)
        return bytes(out)

    def _encode_value(self, value: Any, out: bytearray) -> None:
        # bool is an int subclass and encodes as 0/1
        if isinstance(value, int):
            out += b"i%de" % value
        elif isinstance(value, (bytes, bytearray, memoryview)):
            raw = bytes(value)
            out += b"%d:" % len(raw)
            out += raw
        elif isinstance(value, str):
            self._encode_value(value.encode("utf-8"), out)
        elif isinstance(value, (list, tuple)):
            out += b"l"
            for item in value:
                self._encode_value(item, out)
            out += b"e"
        elif isinstance(value, dict):
            self._encode_dict(value, out)
        else:
            msg = f"Cannot bencode value of type {type(value).__name__}"
            raise BencodeEncodeError(msg)

    def _encode_dict(self, value: dict, out: bytearray) -> None:
        items: list[tuple[bytes, Any]] = []
        for key, item in value.items():
            if isinstance(key, str):
                key = key.encode("utf-8")
            elif isinstance(key, (bytearray, memoryview)):
                key = bytes(key)
            elif not isinstance(key, bytes):
                msg = f"Dictionary keys must be byte strings, not {type(key).__name__}"
                raise BencodeEncodeError(msg)
            items.append((key, item))

        items.sort(key=lambda pair: pair[0])
        out += b"d"
        for key, item in items:
            self._encode_value(key, out)
            self._encode_value(item, out)
        out += b"e"


def decode(data: bytes, strict: bool = True) -> BencodeValue:
    """Decode a complete bencoded value.

    Tracker replies are decoded with ``strict=False``: some trackers append a
    newline or other bytes after the response dictionary.
    """
    return BencodeDecoder(data, strict=strict).decode()


def encode(value: Any) -> bytes:
    """Encode a value using canonical (sorted-key) bencoding."""
    return BencodeEncoder().encode(value)
