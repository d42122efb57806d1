"""Exception hierarchy for peerrelay.

Every error raised by the relay derives from PeerRelayError so callers can
separate relay failures from programming errors.
"""

from __future__ import annotations

from typing import Any


class PeerRelayError(Exception):
    """Base exception for all peerrelay errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize peerrelay error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class NetworkError(PeerRelayError):
    """Network-related errors (refused connection, DNS failure, timeout)."""


class TrackerError(NetworkError):
    """Tracker communication errors."""


class ValidationError(PeerRelayError):
    """Data validation errors."""


class ParseError(ValidationError):
    """Malformed bencoded input."""


class FormatError(ValidationError):
    """Compact peer data that cannot be encoded or decoded."""


class TorrentError(ValidationError):
    """Torrent file validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class StoreError(PeerRelayError):
    """Peer store persistence errors."""
