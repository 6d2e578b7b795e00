from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, List, Optional, Set

from .errors import StorageRejected, StorageUnavailable
from .models import Document, RecordId
from .repositories import Backend, check_table, new_key
from .settings import EmbeddedStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    id: str = "id"
    content: str = "content"
    created_at: str = "created_at"


_COLS = _Cols()


class SQLiteBackend(Backend):
    """
    Embedded document store on SQLite.

    One database file per namespace/database pair, one SQLite table per entity
    table, document content stored as JSON. sqlite3 blocks, so every operation
    runs in a worker thread with its own connection.
    """

    kind = "embedded"

    def __init__(self, config: EmbeddedStorage) -> None:
        self._db_path = os.path.join(config.path, config.namespace, f"{config.database}.sqlite3")
        self._known_tables: Set[str] = set()
        self._tables_lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"cannot open embedded database: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            raise StorageUnavailable(f"embedded database error: {e}") from e
        except sqlite3.Error as e:
            raise StorageRejected(f"embedded database rejected the operation: {e}") from e
        finally:
            conn.close()

    def _ensure_table(self, conn: sqlite3.Connection, table: str) -> str:
        check_table(table)
        with self._tables_lock:
            if table not in self._known_tables:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS "{table}" (
                        {_COLS.id} TEXT PRIMARY KEY,
                        {_COLS.content} TEXT NOT NULL,
                        {_COLS.created_at} TEXT NOT NULL
                    )
                    """
                )
                self._known_tables.add(table)
        return table

    @staticmethod
    def _row_to_document(table: str, row: sqlite3.Row) -> Document:
        doc = json.loads(row[_COLS.content])
        doc["id"] = RecordId(table, str(row[_COLS.id]))
        return doc

    def _connect_sync(self) -> None:
        try:
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"cannot create embedded database directory: {e}") from e
        with self._conn() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

    def _create_sync(self, table: str, content: Document) -> Document:
        payload = json.dumps(content)
        with self._conn() as conn:
            self._ensure_table(conn, table)
            while True:
                key = new_key()
                try:
                    conn.execute(
                        f'INSERT INTO "{table}" ({_COLS.id}, {_COLS.content}, {_COLS.created_at}) VALUES (?, ?, ?)',
                        (key, payload, datetime.now().isoformat()),
                    )
                    break
                except sqlite3.IntegrityError:
                    # key collision, draw again
                    continue
            row = conn.execute(f'SELECT * FROM "{table}" WHERE {_COLS.id} = ?', (key,)).fetchone()
            assert row is not None
            return self._row_to_document(table, row)

    def _list_sync(self, table: str) -> List[Document]:
        with self._conn() as conn:
            self._ensure_table(conn, table)
            rows = conn.execute(f'SELECT * FROM "{table}" ORDER BY rowid').fetchall()
            return [self._row_to_document(table, r) for r in rows]

    def _get_sync(self, table: str, key: str) -> Optional[Document]:
        with self._conn() as conn:
            self._ensure_table(conn, table)
            row = conn.execute(f'SELECT * FROM "{table}" WHERE {_COLS.id} = ?', (key,)).fetchone()
            return self._row_to_document(table, row) if row else None

    def _update_sync(self, table: str, key: str, content: Document) -> Optional[Document]:
        with self._conn() as conn:
            self._ensure_table(conn, table)
            cur = conn.execute(
                f'UPDATE "{table}" SET {_COLS.content} = ? WHERE {_COLS.id} = ?',
                (json.dumps(content), key),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute(f'SELECT * FROM "{table}" WHERE {_COLS.id} = ?', (key,)).fetchone()
            assert row is not None
            return self._row_to_document(table, row)

    def _delete_sync(self, table: str, key: str) -> bool:
        with self._conn() as conn:
            self._ensure_table(conn, table)
            cur = conn.execute(f'DELETE FROM "{table}" WHERE {_COLS.id} = ?', (key,))
            return cur.rowcount > 0

    async def connect(self) -> None:
        await asyncio.to_thread(self._connect_sync)
        logger.info("Embedded database ready at %s", self._db_path)

    async def create(self, table: str, content: Document) -> Document:
        return await asyncio.to_thread(self._create_sync, table, content)

    async def list(self, table: str) -> List[Document]:
        return await asyncio.to_thread(self._list_sync, table)

    async def get(self, table: str, key: str) -> Optional[Document]:
        return await asyncio.to_thread(self._get_sync, table, key)

    async def update(self, table: str, key: str, content: Document) -> Optional[Document]:
        return await asyncio.to_thread(self._update_sync, table, key, content)

    async def delete(self, table: str, key: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, table, key)
