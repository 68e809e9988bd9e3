"""Database snapshot store — aiosqlite-backed history of region snapshots.

Each save appends one row; :meth:`SqliteSnapshotStore.load` returns the
row with the highest revision for a region.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

import aiosqlite

from hexterra.models.hex import HexTile
from hexterra.persistence.snapshot_store import SavedSnapshot, decode_snapshot, encode_snapshot
from hexterra.util.errors import PersistenceError

log = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS region_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    region TEXT NOT NULL,
    revision INTEGER NOT NULL,
    revised_at REAL NOT NULL,
    payload TEXT NOT NULL,
    saved_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_region_snapshots_region
    ON region_snapshots (region, revision);
"""


class SqliteSnapshotStore:
    """Async SQLite snapshot store.

    Args:
        db_path: Path to the SQLite database file (``":memory:"`` for tests).
    """

    def __init__(self, db_path: str = "hexterra.db") -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the connection and create tables if needed."""
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()
        log.info("Snapshot database connected: %s", self._db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def save(self, region: str, tiles: list[HexTile], revision: int,
                   revised_at: float) -> None:
        if self._conn is None:
            raise PersistenceError("Snapshot database is not connected", region)
        payload = json.dumps(encode_snapshot(region, tiles, revision, revised_at))
        try:
            await self._conn.execute(
                "INSERT INTO region_snapshots (region, revision, revised_at, payload) "
                "VALUES (?, ?, ?, ?)",
                (region, revision, revised_at, payload),
            )
            await self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot store snapshot of {region}: {exc}", region) from exc
        log.info("Region %s snapshot stored (%d tiles, rev %d)", region, len(tiles), revision)

    async def load(self, region: str) -> Optional[SavedSnapshot]:
        """Latest snapshot of ``region``, or None."""
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT payload FROM region_snapshots WHERE region = ? "
            "ORDER BY revision DESC, id DESC LIMIT 1",
            (region,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return decode_snapshot(json.loads(row[0]), region)

    async def revisions(self, region: str) -> list[int]:
        """All stored revisions of ``region``, oldest first."""
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT revision FROM region_snapshots WHERE region = ? ORDER BY id",
            (region,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [r[0] for r in rows]
