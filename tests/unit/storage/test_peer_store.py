"""Tests for the peer store backends."""

from __future__ import annotations

import pytest
import pytest_asyncio

from peerrelay.exceptions import StoreError
from peerrelay.models import Peer, ScrapeData, StoreBackend, StoreConfig
from peerrelay.storage.peer_store import (
    InMemoryPeerStore,
    SQLitePeerStore,
    create_peer_store,
)

pytestmark = [pytest.mark.unit, pytest.mark.storage]

PEERS = [Peer(ip="10.0.0.1", port=51413), Peer(ip="10.0.0.2", port=6881)]


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Each test runs against both backends."""
    if request.param == "memory":
        peer_store = InMemoryPeerStore()
    else:
        peer_store = SQLitePeerStore(tmp_path / "peers.db")
    await peer_store.open()
    yield peer_store
    await peer_store.close()


@pytest.mark.asyncio
async def test_get_missing(store, info_hash):
    """Unknown info hashes return None."""
    assert await store.get(info_hash) is None


@pytest.mark.asyncio
async def test_upsert_and_get(store, info_hash):
    """A stored record comes back intact."""
    scrape = ScrapeData(complete=5, incomplete=3, downloaded=100)
    await store.upsert(info_hash, PEERS, "ubuntu.torrent", scrape)

    record = await store.get(info_hash)

    assert record is not None
    assert record.info_hash == info_hash
    assert record.peers == PEERS
    assert record.source_label == "ubuntu.torrent"
    assert record.scrape_data == scrape


@pytest.mark.asyncio
async def test_upsert_overwrites_whole_record(store, info_hash):
    """A second upsert replaces peers and scrape data entirely."""
    await store.upsert(info_hash, PEERS, "a.torrent", ScrapeData(complete=1))
    await store.upsert(info_hash, [Peer(ip="1.1.1.1", port=1)], "b.torrent")

    record = await store.get(info_hash)

    assert record.peers == [Peer(ip="1.1.1.1", port=1)]
    assert record.source_label == "b.torrent"
    assert record.scrape_data is None


@pytest.mark.asyncio
async def test_empty_peer_list(store, info_hash):
    """Records may hold no peers, but never a null list."""
    await store.upsert(info_hash, [], "empty.torrent")
    record = await store.get(info_hash)
    assert record.peers == []


@pytest.mark.asyncio
async def test_records(store, info_hash):
    """records() lists everything stored."""
    other = b"\x01" * 20
    await store.upsert(info_hash, PEERS, "a.torrent")
    await store.upsert(other, [], "b.torrent")

    records = await store.records()

    assert {r.info_hash for r in records} == {info_hash, other}


@pytest.mark.asyncio
async def test_rejects_short_info_hash(store):
    """Keys must be 20 bytes."""
    with pytest.raises(StoreError):
        await store.upsert(b"short", PEERS, "x.torrent")


@pytest.mark.asyncio
async def test_sqlite_persists_across_connections(tmp_path, info_hash):
    """Data written by one connection is visible after reopening."""
    path = tmp_path / "peers.db"
    async with SQLitePeerStore(path) as first:
        await first.upsert(info_hash, PEERS, "a.torrent")

    async with SQLitePeerStore(path) as second:
        record = await second.get(info_hash)

    assert record is not None
    assert record.peers == PEERS


@pytest.mark.asyncio
async def test_sqlite_requires_open(tmp_path, info_hash):
    """Using a closed store raises StoreError."""
    store = SQLitePeerStore(tmp_path / "peers.db")
    with pytest.raises(StoreError):
        await store.get(info_hash)


@pytest.mark.asyncio
async def test_sqlite_open_failure(tmp_path):
    """A path that cannot hold a database fails at open()."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = SQLitePeerStore(blocker / "peers.db")
    with pytest.raises(StoreError):
        await store.open()


def test_create_peer_store(tmp_path):
    """The configured backend is selected."""
    assert isinstance(
        create_peer_store(StoreConfig(backend=StoreBackend.MEMORY)), InMemoryPeerStore
    )
    sqlite_store = create_peer_store(StoreConfig(path=str(tmp_path / "x.db")))
    assert isinstance(sqlite_store, SQLitePeerStore)
