"""
Database connection, schema and repositories.
"""

import json
import aiosqlite
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence
from datetime import date

from image_ingest.config import logger

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS media (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        uuid TEXT NOT NULL UNIQUE,
        owner_id INTEGER NOT NULL,
        collection TEXT NOT NULL DEFAULT 'default',
        name TEXT DEFAULT '',
        file_name TEXT NOT NULL,
        mime_type TEXT DEFAULT '',
        size INTEGER DEFAULT 0,
        path TEXT NOT NULL,
        custom_properties TEXT DEFAULT '{}',
        order_column INTEGER DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS usage_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        file_type TEXT NOT NULL,
        operation TEXT NOT NULL,
        file_size INTEGER DEFAULT 0,
        status TEXT DEFAULT 'success',
        error_message TEXT DEFAULT '',
        processing_time_ms INTEGER DEFAULT 0,
        timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX IF NOT EXISTS idx_media_owner ON media(owner_id, collection)",
    "CREATE INDEX IF NOT EXISTS idx_logs_user ON usage_logs(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_logs_time ON usage_logs(timestamp)",
]


class Database:
    """Single aiosqlite connection shared by the repositories."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        async with self.transaction() as conn:
            for stmt in SCHEMA:
                await conn.execute(stmt)
        logger.info(f"Media database ready at {self.db_path}")

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"Media database {self.db_path} is not connected")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Commit everything done inside the block, or roll it all back."""
        conn = self.conn
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()

    async def rows(self, query: str, params: tuple = ()) -> list[dict]:
        async with self.conn.execute(query, params) as cursor:
            return [dict(r) for r in await cursor.fetchall()]

    async def row(self, query: str, params: tuple = ()) -> Optional[dict]:
        found = await self.rows(query, params)
        return found[0] if found else None

    async def write(self, query: str, params: tuple = ()) -> int:
        async with self.transaction() as conn:
            cursor = await conn.execute(query, params)
            return cursor.rowcount

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info(f"Media database {self.db_path} closed")


def _decode_record(row: Optional[dict]) -> Optional[dict]:
    if row is None:
        return None
    row["custom_properties"] = json.loads(row.get("custom_properties") or "{}")
    return row


class MediaRepo:
    def __init__(self, db: Database):
        self.db = db

    async def add(self, uuid: str, owner_id: int, collection: str, name: str,
                  file_name: str, mime_type: str, size: int, path: str,
                  custom_properties: Optional[dict] = None) -> dict:
        r = await self.db.row(
            "SELECT COALESCE(MAX(order_column), 0) as m FROM media WHERE owner_id=? AND collection=?",
            (owner_id, collection),
        )
        await self.db.write(
            """INSERT INTO media
            (uuid, owner_id, collection, name, file_name, mime_type, size, path, custom_properties, order_column)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (uuid, owner_id, collection, name, file_name, mime_type, size, path,
             json.dumps(custom_properties or {}), (r["m"] if r else 0) + 1),
        )
        logger.info(f"Media added: {uuid} ({collection}, owner {owner_id})")
        return await self.get(uuid)

    async def get(self, uuid: str) -> Optional[dict]:
        return _decode_record(await self.db.row("SELECT * FROM media WHERE uuid=?", (uuid,)))

    async def for_owner(self, owner_id: int, collection: str = "default") -> list[dict]:
        rows = await self.db.rows(
            "SELECT * FROM media WHERE owner_id=? AND collection=? ORDER BY order_column, id",
            (owner_id, collection),
        )
        return [_decode_record(r) for r in rows]

    async def delete(self, uuid: str) -> bool:
        return await self.db.write("DELETE FROM media WHERE uuid=?", (uuid,)) > 0

    async def set_order(self, uuids: Sequence[str]) -> None:
        async with self.db.transaction() as conn:
            await conn.executemany(
                "UPDATE media SET order_column=? WHERE uuid=?",
                [(position, uuid) for position, uuid in enumerate(uuids, start=1)],
            )


class UsageRepo:
    def __init__(self, db: Database):
        self.db = db

    async def log(self, user_id: int, file_type: str, operation: str,
                  file_size: int = 0, status: str = "success",
                  error_message: str = "", processing_time_ms: int = 0) -> None:
        await self.db.write(
            """INSERT INTO usage_logs
            (user_id, file_type, operation, file_size, status, error_message, processing_time_ms)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user_id, file_type, operation, file_size, status, error_message, processing_time_ms),
        )

    async def today_processed(self, user_id: int) -> int:
        r = await self.db.row(
            "SELECT COUNT(*) AS c FROM usage_logs WHERE user_id=? AND DATE(timestamp)=?",
            (user_id, date.today().isoformat()),
        )
        return r["c"] if r else 0

    async def outcomes(self, user_id: Optional[int] = None, operation: Optional[str] = None) -> dict:
        """Count uploads as ``success`` or ``failure``, optionally for one user or operation.

        Any status other than ``success`` counts as a failure. ``bytes_in`` sums
        the sizes of the successful uploads.
        """
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id=?")
            params.append(user_id)
        if operation is not None:
            clauses.append("operation=?")
            params.append(operation)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        r = await self.db.row(
            f"""SELECT
                COALESCE(SUM(status = 'success'), 0) AS success,
                COALESCE(SUM(status != 'success'), 0) AS failure,
                COALESCE(SUM(CASE WHEN status = 'success' THEN file_size END), 0) AS bytes_in
            FROM usage_logs {where}""",
            tuple(params),
        )
        return {"success": r["success"], "failure": r["failure"], "bytes_in": r["bytes_in"]}
