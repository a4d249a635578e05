"""SQL adapter protocol.

Every adapter module MUST implement this protocol so the SQL driver can
treat sqlite, PostgreSQL and MySQL alike. Statements arrive with
placeholders already converted to the adapter's ``paramstyle``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from doc_mapper.core.connection import ConnectionConfig


@runtime_checkable
class SqlAdapter(Protocol):
    """Synchronous SQL adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    def create_pool(self, config: ConnectionConfig) -> Any:
        ...

    def acquire_connection(self, pool: Any) -> Any:
        ...

    def release_connection(self, connection: Any, pool: Any) -> None:
        ...

    def close_pool(self, pool: Any) -> None:
        ...

    def execute(self, connection: Any, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Execute SQL and return a cursor whose rows are mappings."""
        ...

    def insert(
        self, connection: Any, sql: str, params: dict[str, Any], primary: str | None
    ) -> Any:
        """Execute an INSERT and return the generated value of ``primary``, if any."""
        ...


class ListPool:
    """Pool kept as a plain list of open connections."""

    def connect(self, config: ConnectionConfig) -> Any:
        raise NotImplementedError

    def create_pool(self, config: ConnectionConfig) -> list[Any]:
        return [self.connect(config) for _ in range(config.pool_size)]

    def acquire_connection(self, pool: list[Any]) -> Any:
        if not pool:
            raise RuntimeError("No connections available in pool")
        return pool.pop()

    def release_connection(self, connection: Any, pool: list[Any]) -> None:
        pool.append(connection)

    def close_pool(self, pool: list[Any]) -> None:
        for conn in pool:
            conn.close()
        pool.clear()
