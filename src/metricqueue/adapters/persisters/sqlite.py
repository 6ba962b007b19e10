"""SQLite spool persister.

Spools each submitted payload as a JSON row so that a separate process (or
an async task) can forward it to the collector later.
"""

import json
import logging
import sqlite3
import time
from collections.abc import AsyncIterable, AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager, closing, contextmanager
from dataclasses import dataclass
from typing import Any

import aiosqlite

from metricqueue.core.exceptions import InvalidParameters

logger = logging.getLogger(__name__)

_SPOOL_SCHEMA = """
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS payloads (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    spooled_at REAL NOT NULL,
    per_request INTEGER NOT NULL,
    body TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_payloads_spooled_at ON payloads(spooled_at);
"""

_INSERT_PAYLOAD = """
INSERT INTO payloads (spooled_at, per_request, body) VALUES (?, ?, ?)
"""

_SELECT_PAYLOADS_SINCE = """
SELECT id, spooled_at, per_request, body FROM payloads
WHERE spooled_at > ?
ORDER BY id ASC
"""

_COUNT_PAYLOADS = "SELECT COUNT(*) FROM payloads"

_DELETE_PAYLOADS_UP_TO = "DELETE FROM payloads WHERE id <= ?"

_CLEAR_PAYLOADS = "DELETE FROM payloads"


@dataclass(frozen=True)
class SpooledPayload:
    """A payload stored in the spool.

    Attributes:
        id: Row id, increasing in spool order.
        spooled_at: Unix timestamp the payload was persisted at.
        per_request: Batch size hint the queue submitted with.
        payload: The queued() snapshot, or {} if the stored body is corrupt.
    """

    id: int
    spooled_at: float
    per_request: int
    payload: dict[str, Any]


def _decode_body(row_id: int, body: str) -> dict[str, Any]:
    try:
        decoded = json.loads(body)
    except json.JSONDecodeError:
        logger.warning("Spooled payload %d is not valid JSON, skipping body", row_id)
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _from_row(row: Any) -> SpooledPayload:
    return SpooledPayload(
        id=row[0],
        spooled_at=row[1],
        per_request=row[2],
        payload=_decode_body(row[0], row[3]),
    )


class SQLitePersister:
    """Persister that appends payloads to a SQLite spool table.

    persist() is synchronous and uses sqlite3, since it runs inside
    MetricQueue.submit(). Draining (read, count, acknowledge, clear) uses
    aiosqlite so a forwarding task does not block its event loop; *_sync
    variants exist for non-async callers. Every operation opens its own
    connection, so the spool must be a file shared by both sides.

    Args:
        db_path: Path of the spool database file.

    Raises:
        InvalidParameters: If db_path is empty or ":memory:".
    """

    def __init__(self, db_path: str) -> None:
        if not db_path or db_path == ":memory:":
            raise InvalidParameters("the spool needs a database file path")
        self._db_path = db_path
        self._schema_ready = False

    @contextmanager
    def _sync_db(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            if not self._schema_ready:
                conn.executescript(_SPOOL_SCHEMA)
                self._schema_ready = True
            yield conn

    @asynccontextmanager
    async def _async_db(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._db_path) as db:
            if not self._schema_ready:
                await db.executescript(_SPOOL_SCHEMA)
                self._schema_ready = True
            yield db

    def persist(
        self, client: Any, payload: Mapping[str, Any], *, per_request: int
    ) -> bool:
        """Spool a payload. Returns False if the database cannot be written."""
        try:
            body = json.dumps(payload)
            with self._sync_db() as conn:
                conn.execute(_INSERT_PAYLOAD, (time.time(), per_request, body))
                conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.warning("Could not spool payload to %s: %s", self._db_path, exc)
            return False
        return True

    async def read(self, since: float = 0) -> AsyncIterable[SpooledPayload]:
        """Read spooled payloads with spooled_at > since, oldest first."""
        async with self._async_db() as db:
            async with db.execute(_SELECT_PAYLOADS_SINCE, (since,)) as cursor:
                async for row in cursor:
                    yield _from_row(row)

    async def count(self) -> int:
        """Return the number of spooled payloads."""
        async with self._async_db() as db:
            async with db.execute(_COUNT_PAYLOADS) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def acknowledge(self, up_to_id: int) -> int:
        """Delete payloads up to and including the given id.

        Returns:
            Number of payloads deleted.
        """
        async with self._async_db() as db:
            cursor = await db.execute(_DELETE_PAYLOADS_UP_TO, (up_to_id,))
            await db.commit()
            return cursor.rowcount

    async def clear(self) -> None:
        """Delete all spooled payloads."""
        async with self._async_db() as db:
            await db.execute(_CLEAR_PAYLOADS)
            await db.commit()

    # --- Sync methods ---

    def read_sync(self, since: float = 0) -> list[SpooledPayload]:
        """Synchronous read for non-async contexts."""
        with self._sync_db() as conn:
            cursor = conn.execute(_SELECT_PAYLOADS_SINCE, (since,))
            return [_from_row(row) for row in cursor]

    def count_sync(self) -> int:
        """Synchronous count for non-async contexts."""
        with self._sync_db() as conn:
            row = conn.execute(_COUNT_PAYLOADS).fetchone()
            return row[0] if row else 0

    def clear_sync(self) -> None:
        """Synchronous clear for non-async contexts."""
        with self._sync_db() as conn:
            conn.execute(_CLEAR_PAYLOADS)
            conn.commit()
