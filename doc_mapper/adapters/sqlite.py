"""SQLite adapter (sqlite3 stdlib)."""

from __future__ import annotations

import sqlite3
from typing import Any

from doc_mapper.adapters.protocol import ListPool
from doc_mapper.core.connection import ConnectionConfig


class SqliteAdapter(ListPool):
    """SQLite adapter.

    ``:memory:`` databases are private to each connection, so the pool is
    capped at one connection for them.
    """

    @property
    def paramstyle(self) -> str:
        return "named"

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        conn = sqlite3.connect(config.database, timeout=config.timeout)
        conn.row_factory = sqlite3.Row
        if config.database != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def create_pool(self, config: ConnectionConfig) -> list[Any]:
        if config.database == ":memory:":
            return [self.connect(config)]
        return super().create_pool(config)

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        return connection.execute(sql, params or {})

    def insert(
        self, connection: sqlite3.Connection, sql: str, params: dict[str, Any], primary: str | None
    ) -> Any:
        cursor = connection.execute(sql, params)
        return cursor.lastrowid if primary else None
