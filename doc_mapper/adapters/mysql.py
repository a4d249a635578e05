"""MySQL adapter using mysql-connector-python."""

from __future__ import annotations

from typing import Any

from doc_mapper.adapters.protocol import ListPool
from doc_mapper.core.connection import ConnectionConfig


class MysqlAdapter(ListPool):
    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def connect(self, config: ConnectionConfig) -> Any:
        import mysql.connector

        return mysql.connector.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            connection_timeout=int(config.timeout),
        )

    def execute(self, connection: Any, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Execute SQL; the returned cursor yields dict rows."""
        cursor = connection.cursor(dictionary=True)
        cursor.execute(sql, params or {})
        return cursor

    def insert(self, connection: Any, sql: str, params: dict[str, Any], primary: str | None) -> Any:
        cursor = self.execute(connection, sql, params)
        return cursor.lastrowid if primary else None
