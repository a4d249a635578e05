"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

from typing import Any

from doc_mapper.adapters.protocol import ListPool
from doc_mapper.core.connection import ConnectionConfig


def _conninfo(config: ConnectionConfig) -> str:
    """libpq connection string from config fields."""
    fields = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "dbname": config.database,
        "connect_timeout": int(config.timeout),
    }
    return " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


class PostgresqlAdapter(ListPool):
    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def connect(self, config: ConnectionConfig) -> Any:
        import psycopg
        import psycopg.rows

        return psycopg.connect(_conninfo(config), row_factory=psycopg.rows.dict_row)

    def execute(self, connection: Any, sql: str, params: dict[str, Any] | None = None) -> Any:
        return connection.execute(sql, params)

    def insert(self, connection: Any, sql: str, params: dict[str, Any], primary: str | None) -> Any:
        if primary is None:
            connection.execute(sql, params)
            return None
        row = connection.execute(f"{sql} RETURNING {primary}", params).fetchone()
        return row[primary] if row else None
