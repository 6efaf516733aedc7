"""
Cairn Store - SQLite document store via aiosqlite.

Items of every list live in one table as JSON documents. Equality filters
use ``json_extract``; list membership uses ``json_each``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import aiosqlite

from ..faults import StoreUnavailableFault
from .base import check_field_name

logger = logging.getLogger("cairn.store.sqlite")

__all__ = ["SQLiteItemStore", "parse_sqlite_url"]

_TABLE = "cairn_items"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {_TABLE} (
    list_key   TEXT NOT NULL,
    id         TEXT NOT NULL,
    data       TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (list_key, id)
)
"""


def parse_sqlite_url(url: str) -> str:
    """
    Extract database path from a sqlite URL.

    ``sqlite:///cairn.db`` -> ``cairn.db``; ``sqlite:///:memory:`` and
    ``sqlite://`` -> ``:memory:``.
    """
    if not url.startswith("sqlite:"):
        raise ValueError(f"Not a sqlite URL: {url}")
    path = url[len("sqlite:"):]
    if path.startswith("///"):
        path = path[3:]
    elif path.startswith("//"):
        path = path[2:]
    return path or ":memory:"


class SQLiteItemStore:
    """
    SQLite item store.

    Example:
        >>> store = SQLiteItemStore("sqlite:///:memory:")
        >>> await store.connect()
        >>> item = await store.insert("Post", {"name": "Hello"})
        >>> await store.get("Post", item["id"])
        {'id': '...', 'name': 'Hello'}
    """

    def __init__(self, url: str = "sqlite:///:memory:"):
        self.url = url
        self.path = parse_sqlite_url(url)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        if self._connection is not None:
            return
        async with self._lock:
            if self._connection is not None:
                return
            self._connection = await aiosqlite.connect(self.path)
            self._connection.row_factory = aiosqlite.Row
            if self.path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute(_SCHEMA)
            await self._connection.commit()
            logger.info("SQLite item store connected: %s", self.path)

    async def disconnect(self) -> None:
        async with self._lock:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
                logger.info("SQLite item store disconnected")

    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StoreUnavailableFault("not connected")
        return self._connection

    @staticmethod
    def _decode(row: Any) -> Dict[str, Any]:
        item = json.loads(row["data"])
        item["id"] = row["id"]
        return item

    # ── CRUD ──────────────────────────────────────────────────────────

    async def insert(self, list_key: str, item: Dict[str, Any]) -> Dict[str, Any]:
        conn = self._conn()
        item = dict(item)
        item_id = item.pop("id", None) or uuid.uuid4().hex
        await conn.execute(
            f"INSERT INTO {_TABLE} (list_key, id, data) VALUES (?, ?, ?)",
            [list_key, item_id, json.dumps(item)],
        )
        await conn.commit()
        return {"id": item_id, **item}

    async def get(self, list_key: str, item_id: str) -> Optional[Dict[str, Any]]:
        conn = self._conn()
        cursor = await conn.execute(
            f"SELECT id, data FROM {_TABLE} WHERE list_key = ? AND id = ?",
            [list_key, item_id],
        )
        row = await cursor.fetchone()
        return self._decode(row) if row is not None else None

    async def find(
        self,
        list_key: str,
        where: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        conn = self._conn()
        clauses = ["list_key = ?"]
        params: List[Any] = [list_key]

        for name, value in (where or {}).items():
            if name == "id":
                clauses.append("id = ?")
                params.append(value)
            elif value is None:
                clauses.append(f"json_extract(data, '$.{check_field_name(name)}') IS NULL")
            else:
                clauses.append(f"json_extract(data, '$.{check_field_name(name)}') = ?")
                params.append(value)

        for name, value in (contains or {}).items():
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each(data, '$.{check_field_name(name)}') "
                f"WHERE json_each.value = ?)"
            )
            params.append(value)

        cursor = await conn.execute(
            f"SELECT id, data FROM {_TABLE} WHERE {' AND '.join(clauses)} "
            "ORDER BY rowid",
            params,
        )
        rows = await cursor.fetchall()
        return [self._decode(row) for row in rows]

    async def update(self, list_key: str, item_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        conn = self._conn()
        current = await self.get(list_key, item_id)
        if current is None:
            return None
        current.update({k: v for k, v in changes.items() if k != "id"})
        data = {k: v for k, v in current.items() if k != "id"}
        await conn.execute(
            f"UPDATE {_TABLE} SET data = ? WHERE list_key = ? AND id = ?",
            [json.dumps(data), list_key, item_id],
        )
        await conn.commit()
        return current

    async def delete(self, list_key: str, item_id: str) -> bool:
        conn = self._conn()
        cursor = await conn.execute(
            f"DELETE FROM {_TABLE} WHERE list_key = ? AND id = ?",
            [list_key, item_id],
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def count(self, list_key: str) -> int:
        conn = self._conn()
        cursor = await conn.execute(
            f"SELECT COUNT(*) FROM {_TABLE} WHERE list_key = ?",
            [list_key],
        )
        row = await cursor.fetchone()
        return int(row[0])

    async def drop_all(self) -> None:
        """Remove every item of every list."""
        conn = self._conn()
        await conn.execute(f"DROP TABLE IF EXISTS {_TABLE}")
        await conn.execute(_SCHEMA)
        await conn.commit()
        logger.warning("Item store dropped")
