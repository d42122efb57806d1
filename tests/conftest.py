"""Pytest configuration and shared fixtures for peerrelay tests."""

from __future__ import annotations

import logging
import os

import pytest

from peerrelay.config import reset_config
from peerrelay.core.bencode import encode
from peerrelay.models import NetworkConfig, RelayConfig, ServerConfig
from peerrelay.storage.peer_store import InMemoryPeerStore


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("tracker", "marks tests as tracker tests"),
        ("server", "marks tests as announce server tests"),
        ("storage", "marks tests as peer store tests"),
        ("cli", "marks tests as CLI tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Keep tests away from real config files and PEERRELAY_* variables."""
    for name in list(os.environ):
        if name.startswith("PEERRELAY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture
def info_hash() -> bytes:
    """A 20-byte info hash containing bytes that need escaping."""
    return bytes(range(0xF0, 0x100)) + b"abcd"


@pytest.fixture
def peer_id() -> bytes:
    """A fixed 20-byte peer id."""
    return b"-PR0100-123456789012"


@pytest.fixture
def network_config() -> NetworkConfig:
    """Network config with a short tracker timeout."""
    return NetworkConfig(tracker_timeout=2.0)


@pytest.fixture
def server_config() -> ServerConfig:
    """Announce server bound to an ephemeral localhost port."""
    return ServerConfig(host="127.0.0.1", port=0)


@pytest.fixture
def relay_config(tmp_path) -> RelayConfig:
    """Relay config rooted in the test's temporary directory."""
    return RelayConfig(
        torrent_dir=str(tmp_path / "torrents"),
        output_dir=str(tmp_path / "modified"),
        announce_url="http://localhost:8000/announce",
    )


@pytest.fixture
def memory_store() -> InMemoryPeerStore:
    """Empty in-memory peer store."""
    return InMemoryPeerStore()


def make_torrent(
    name: bytes = b"test",
    announce: bytes | None = b"http://tracker.example.com/announce",
    announce_list: list[list[bytes]] | None = None,
) -> dict:
    """Build a minimal single-file torrent dictionary."""
    torrent: dict = {
        b"info": {
            b"name": name,
            b"length": 1024,
            b"piece length": 16384,
            b"pieces": b"\x00" * 20,
        },
    }
    if announce is not None:
        torrent[b"announce"] = announce
    if announce_list is not None:
        torrent[b"announce-list"] = announce_list
    return torrent


@pytest.fixture
def torrent_factory():
    """Factory for torrent dicts."""
    return make_torrent


@pytest.fixture
def write_torrent(tmp_path):
    """Write a bencoded torrent into ``tmp_path/torrents`` and return its path."""

    def _write(file_name: str, torrent: dict):
        torrent_dir = tmp_path / "torrents"
        torrent_dir.mkdir(exist_ok=True)
        path = torrent_dir / file_name
        path.write_bytes(encode(torrent))
        return path

    return _write
