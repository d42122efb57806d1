"""Persistence of peer records keyed by info hash.

A store is opened once at start-up and shared by the tracker client and the
announce server. Every ``upsert`` replaces the whole record for its info
hash.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from peerrelay.exceptions import StoreError
from peerrelay.models import (
    INFO_HASH_LENGTH,
    Peer,
    PeerRecord,
    ScrapeData,
    StoreBackend,
    StoreConfig,
)

logger = logging.getLogger(__name__)


def _check_info_hash(info_hash: bytes) -> None:
    if len(info_hash) != INFO_HASH_LENGTH:
        msg = f"Info hash must be {INFO_HASH_LENGTH} bytes, got {len(info_hash)}"
        raise StoreError(msg)


class PeerStore(ABC):
    """Keyed persistence for peer records."""

    async def open(self) -> None:
        """Acquire the underlying resources."""

    async def close(self) -> None:
        """Release the underlying resources."""

    async def __aenter__(self) -> PeerStore:
        """Open the store."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the store."""
        await self.close()

    @abstractmethod
    async def upsert(
        self,
        info_hash: bytes,
        peers: list[Peer],
        source_label: str,
        scrape_data: ScrapeData | None = None,
    ) -> None:
        """Create or replace the record for ``info_hash``.

        Raises:
            StoreError: If the record cannot be written

        """

    @abstractmethod
    async def get(self, info_hash: bytes) -> PeerRecord | None:
        """Return the record for ``info_hash`` or None.

        Raises:
            StoreError: If the store cannot be read

        """

    @abstractmethod
    async def records(self) -> list[PeerRecord]:
        """Return every stored record."""


class InMemoryPeerStore(PeerStore):
    """Peer store held in a dict, for tests and throwaway runs."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._records: dict[bytes, PeerRecord] = {}

    async def upsert(
        self,
        info_hash: bytes,
        peers: list[Peer],
        source_label: str,
        scrape_data: ScrapeData | None = None,
    ) -> None:
        """Create or replace the record for ``info_hash``."""
        _check_info_hash(info_hash)
        self._records[info_hash] = PeerRecord(
            info_hash=info_hash,
            peers=list(peers),
            source_label=source_label,
            scrape_data=scrape_data,
        )

    async def get(self, info_hash: bytes) -> PeerRecord | None:
        """Return the record for ``info_hash`` or None."""
        return self._records.get(info_hash)

    async def records(self) -> list[PeerRecord]:
        """Return every stored record."""
        return list(self._records.values())


class SQLitePeerStore(PeerStore):
    """Peer store backed by a single long-lived SQLite connection.

    Each operation runs in its own transaction. Operations are serialized
    with a lock and executed in a worker thread so the event loop never
    blocks on disk I/O.
    """

    def __init__(self, path: str | Path):
        """Initialize the store for the database at ``path``."""
        self.path = Path(path)
        self._db: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        """Open the database and create the schema.

        Raises:
            StoreError: If the database cannot be opened

        """
        if self._db is not None:
            return
        try:
            self._db = await asyncio.to_thread(self._connect)
        except (OSError, sqlite3.Error) as e:
            msg = f"Cannot open peer store at {self.path}: {e}"
            raise StoreError(msg) from e
        logger.info("Opened peer store %s", self.path)

    def _connect(self) -> sqlite3.Connection:
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        db = sqlite3.connect(str(self.path), check_same_thread=False)
        with db:
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS peers (
                    info_hash BLOB PRIMARY KEY,
                    peers TEXT NOT NULL,
                    source_label TEXT NOT NULL,
                    scrape_data TEXT
                )
                """
            )
        return db

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is None:
            return
        async with self._lock:
            db, self._db = self._db, None
            await asyncio.to_thread(db.close)
        logger.info("Closed peer store %s", self.path)

    def _conn(self) -> sqlite3.Connection:
        if self._db is None:
            msg = "Peer store is not open"
            raise StoreError(msg)
        return self._db

    async def upsert(
        self,
        info_hash: bytes,
        peers: list[Peer],
        source_label: str,
        scrape_data: ScrapeData | None = None,
    ) -> None:
        """Create or replace the record for ``info_hash``."""
        _check_info_hash(info_hash)
        db = self._conn()
        peers_json = json.dumps([peer.model_dump() for peer in peers])
        scrape_json = scrape_data.model_dump_json() if scrape_data else None

        def _write() -> None:
            with db:
                db.execute(
                    "INSERT OR REPLACE INTO peers "
                    "(info_hash, peers, source_label, scrape_data) VALUES (?, ?, ?, ?)",
                    (info_hash, peers_json, source_label, scrape_json),
                )

        async with self._lock:
            try:
                await asyncio.to_thread(_write)
            except sqlite3.Error as e:
                msg = f"Failed to store peers for {info_hash.hex()}: {e}"
                raise StoreError(msg) from e

    async def get(self, info_hash: bytes) -> PeerRecord | None:
        """Return the record for ``info_hash`` or None."""
        db = self._conn()

        def _read() -> tuple | None:
            return db.execute(
                "SELECT info_hash, peers, source_label, scrape_data "
                "FROM peers WHERE info_hash = ?",
                (info_hash,),
            ).fetchone()

        async with self._lock:
            try:
                row = await asyncio.to_thread(_read)
            except sqlite3.Error as e:
                msg = f"Failed to read peers for {info_hash.hex()}: {e}"
                raise StoreError(msg) from e

        return self._row_to_record(row) if row else None

    async def records(self) -> list[PeerRecord]:
        """Return every stored record."""
        db = self._conn()

        def _read_all() -> list[tuple]:
            return db.execute(
                "SELECT info_hash, peers, source_label, scrape_data "
                "FROM peers ORDER BY source_label"
            ).fetchall()

        async with self._lock:
            try:
                rows = await asyncio.to_thread(_read_all)
            except sqlite3.Error as e:
                msg = f"Failed to list peer records: {e}"
                raise StoreError(msg) from e

        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: tuple) -> PeerRecord:
        info_hash, peers_json, source_label, scrape_json = row
        try:
            return PeerRecord(
                info_hash=bytes(info_hash),
                peers=[Peer(**p) for p in json.loads(peers_json)],
                source_label=source_label,
                scrape_data=ScrapeData.model_validate_json(scrape_json)
                if scrape_json
                else None,
            )
        except ValueError as e:
            msg = f"Corrupt peer record for {bytes(info_hash).hex()}: {e}"
            raise StoreError(msg) from e


def create_peer_store(config: StoreConfig) -> PeerStore:
    """Build the peer store selected by ``config``."""
    if config.backend == StoreBackend.MEMORY:
        return InMemoryPeerStore()
    return SQLitePeerStore(config.path)
