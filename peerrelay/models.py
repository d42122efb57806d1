"""Pydantic models for peerrelay.

Provides validated data models for the tracker protocol records and for the
layered configuration.
"""

from __future__ import annotations

import ipaddress
from enum import Enum

from pydantic import BaseModel, Field, field_validator

INFO_HASH_LENGTH = 20
PEER_ID_LENGTH = 20


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AnnounceEvent(str, Enum):
    """Announce event sent to a tracker.

    ``NONE`` is a regular announce and is omitted from the query string.
    """

    STARTED = "started"
    STOPPED = "stopped"
    COMPLETED = "completed"
    NONE = "none"


class StoreBackend(str, Enum):
    """Peer store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class Peer(BaseModel):
    """An IPv4 address and port taking part in a swarm."""

    ip: str = Field(..., description="Dotted-quad IPv4 address")
    port: int = Field(..., ge=0, le=65535, description="Peer port number")

    @field_validator("ip")
    @classmethod
    def validate_ip(cls, v: str) -> str:
        """Only IPv4 addresses fit the compact peer format."""
        try:
            return str(ipaddress.IPv4Address(v))
        except ValueError as e:
            msg = f"Not an IPv4 address: {v!r}"
            raise ValueError(msg) from e

    def __str__(self) -> str:
        """String representation of the peer."""
        return f"{self.ip}:{self.port}"

    def __hash__(self) -> int:
        """Hash peer for use in sets."""
        return hash((self.ip, self.port))


class ScrapeData(BaseModel):
    """Aggregate swarm statistics returned by a tracker scrape."""

    complete: int = Field(default=0, ge=0, description="Seeders")
    incomplete: int = Field(default=0, ge=0, description="Leechers")
    downloaded: int = Field(default=0, ge=0, description="Completed downloads")


class PeerRecord(BaseModel):
    """Everything stored for one info hash.

    Each tracker interaction replaces the whole record.
    """

    info_hash: bytes = Field(..., description="20-byte SHA-1 of the info dict")
    peers: list[Peer] = Field(default_factory=list, description="Peers in order")
    source_label: str = Field(default="", description="Originating torrent file")
    scrape_data: ScrapeData | None = Field(None, description="Scrape statistics")

    @field_validator("info_hash")
    @classmethod
    def validate_info_hash(cls, v: bytes) -> bytes:
        """Validate info hash length."""
        if len(v) != INFO_HASH_LENGTH:
            msg = f"Info hash must be {INFO_HASH_LENGTH} bytes, got {len(v)}"
            raise ValueError(msg)
        return v


class AnnounceRequest(BaseModel):
    """Parameters of one announce request."""

    info_hash: bytes = Field(..., description="20-byte info hash")
    peer_id: bytes = Field(..., description="20-byte peer id")
    port: int = Field(default=6881, ge=0, le=65535, description="Listening port")
    uploaded: int = Field(default=0, ge=0, description="Bytes uploaded")
    downloaded: int = Field(default=0, ge=0, description="Bytes downloaded")
    left: int = Field(default=0, ge=0, description="Bytes left to download")
    compact: bool = Field(default=True, description="Request compact peer list")
    event: AnnounceEvent = Field(
        default=AnnounceEvent.STARTED,
        description="Announce event",
    )

    @field_validator("info_hash")
    @classmethod
    def validate_info_hash(cls, v: bytes) -> bytes:
        """Validate info hash length."""
        if len(v) != INFO_HASH_LENGTH:
            msg = f"Info hash must be {INFO_HASH_LENGTH} bytes, got {len(v)}"
            raise ValueError(msg)
        return v

    @field_validator("peer_id")
    @classmethod
    def validate_peer_id(cls, v: bytes) -> bytes:
        """Validate peer id length."""
        if len(v) != PEER_ID_LENGTH:
            msg = f"Peer id must be {PEER_ID_LENGTH} bytes, got {len(v)}"
            raise ValueError(msg)
        return v


class NetworkConfig(BaseModel):
    """Outbound tracker configuration."""

    tracker_timeout: float = Field(
        default=10.0,
        ge=0.1,
        le=300.0,
        description="Per-request tracker timeout in seconds",
    )
    announce_port: int = Field(
        default=6881,
        ge=1,
        le=65535,
        description="Port reported to trackers",
    )
    announce_event: AnnounceEvent = Field(
        default=AnnounceEvent.STARTED,
        description="Event sent with each announce",
    )
    peer_id_prefix: str = Field(
        default="-PR0100-",
        min_length=1,
        max_length=20,
        description="Peer id prefix (padded with random bytes to 20)",
    )
    user_agent: str = Field(
        default="peerrelay/0.1.0",
        description="User-Agent header for tracker requests",
    )


class ServerConfig(BaseModel):
    """Announce server configuration."""

    host: str = Field(default="localhost", description="Bind address")
    port: int = Field(default=8000, ge=0, le=65535, description="Listen port")


class StoreConfig(BaseModel):
    """Peer store configuration."""

    backend: StoreBackend = Field(
        default=StoreBackend.SQLITE,
        description="Peer store backend",
    )
    path: str = Field(default="peerrelay.db", description="SQLite database path")


class RelayConfig(BaseModel):
    """Batch relay configuration."""

    torrent_dir: str = Field(default="torrents", description="Input torrent dir")
    output_dir: str = Field(default="modified", description="Rewritten torrent dir")
    announce_url: str = Field(
        default="http://localhost:8000/announce",
        description="Announce URL written into rewritten torrents",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Use structured (JSON) logging",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    network: NetworkConfig = Field(
        default_factory=NetworkConfig,
        description="Network configuration",
    )
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Announce server configuration",
    )
    store: StoreConfig = Field(
        default_factory=StoreConfig,
        description="Peer store configuration",
    )
    relay: RelayConfig = Field(
        default_factory=RelayConfig,
        description="Batch relay configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
