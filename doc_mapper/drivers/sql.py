"""Relational driver: one table per entity class, one row per entity.

Only scalar properties are mapped to columns; embedded entities and lists
are not stored. Updates write the dirty scalar columns only. With
``naming="camel"`` camelCase property names map to snake_case columns.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from doc_mapper.core.connection import SqlConnectionManager
from doc_mapper.core.enums import PropertyKind
from doc_mapper.core.exceptions import (
    DriverError,
    IdentityError,
    InvalidArgumentError,
    MissingPrimaryKeyError,
)
from doc_mapper.core.params import identifier, normalize_params, to_column, to_property
from doc_mapper.drivers.base import AbstractDriver
from doc_mapper.drivers.protocol import DriverCapabilities
from doc_mapper.entity.base import Entity
from doc_mapper.mapping.patch import PatchBuilder

if TYPE_CHECKING:
    from doc_mapper.core.connection import ConnectionConfig

logger = structlog.get_logger(__name__)

# OFFSET without LIMIT is not portable
_NO_LIMIT = 2**63 - 1


def _rows_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Cursor results as dicts, whether the adapter yields tuples or mappings."""
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    rows = cursor.fetchall()
    if rows and isinstance(rows[0], dict):
        return [dict(row) for row in rows]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class SqlDriver(AbstractDriver):
    """Stores entities of one class in one table.

    Args:
        manager: Connection manager for the SQL backend.
        table: Table name.
        naming: ``"snake"`` uses property names as column names,
            ``"camel"`` converts camelCase properties to snake_case columns.
    """

    name = "sql"
    capabilities = DriverCapabilities(increment=True, count=True)

    def __init__(
        self,
        manager: SqlConnectionManager,
        table: str,
        naming: str = "snake",
        patch_builder: PatchBuilder | None = None,
    ) -> None:
        if naming not in ("snake", "camel"):
            raise InvalidArgumentError(f"naming must be 'snake' or 'camel', got {naming!r}")
        self.table = identifier(table)
        self.naming = naming
        super().__init__(connection=manager, patch_builder=patch_builder)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> SqlDriver:
        if not config.collection:
            raise DriverError(config.driver, "connect", "a table name is required")
        return cls(
            SqlConnectionManager(config),
            config.collection,
            naming=config.extra.get("naming", "snake"),
        )

    @property
    def manager(self) -> SqlConnectionManager:
        return self.connection

    # --- writes ---

    def persist(self, entity: Entity) -> None:
        if not entity.primary_key:
            raise IdentityError(entity, "the SQL driver needs declared primary properties")
        if self.is_persisted(entity):
            self._update(entity)
        else:
            self._insert(entity)
        self.patches.identity(entity)

    def _insert(self, entity: Entity) -> None:
        data = self._scalar_row(entity)
        generated = None
        if len(entity.primary_key) == 1 and data.get(self._column(entity.primary_key[0])) is None:
            generated = self._column(entity.primary_key[0])
            data.pop(generated, None)
        elif any(value in (None, "") for value in entity.primary().values()):
            raise MissingPrimaryKeyError(entity, "insert")

        columns = ", ".join(data)
        values = ", ".join(f":{column}" for column in data)
        sql = f"INSERT INTO {self.table} ({columns}) VALUES ({values})"

        with self.manager.get_connection() as conn, self._transaction(conn, "insert"):
            sql = normalize_params(sql, self.manager.adapter.paramstyle)
            value = self.manager.adapter.insert(conn, sql, data, generated)

        if generated is not None:
            entity.set(entity.primary_key[0], value)
        logger.debug("row_inserted", table=self.table)

    def _update(self, entity: Entity) -> None:
        patch = self.patches.build_update(entity)
        changes: dict[str, Any] = {}
        for path, value in patch.assignments.items():
            if "." not in path and entity.type_of(path).kind is PropertyKind.SCALAR:
                changes[self._column(path)] = value
        for path in patch.removals:
            if "." not in path and entity.type_of(path).kind is PropertyKind.SCALAR:
                changes[self._column(path)] = None
        if not changes:
            return

        where, params = self._where(self._primary_criteria(entity, "update"))
        assignments = ", ".join(f"{column} = :{column}" for column in changes)
        sql = f"UPDATE {self.table} SET {assignments}{where}"
        self._write("update", sql, {**changes, **params})

    def delete(self, entity: Entity) -> None:
        where, params = self._where(self._primary_criteria(entity, "delete"))
        self._write("delete", f"DELETE FROM {self.table}{where}", params)

    def increment(self, entity: Entity, path: str, amount: int | float) -> None:
        if "." in path:
            # nested values are not stored in columns
            self.persist(entity)
            return
        column = self._column(path)
        where, params = self._where(self._primary_criteria(entity, "increment"))
        sql = f"UPDATE {self.table} SET {column} = {column} + :inc_amount{where}"
        self._write("increment", sql, {**params, "inc_amount": amount})

    # --- reads ---

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        rows = self._select(criteria, limit=1, skip=None)
        return rows[0] if rows else None

    def find(self, criteria: Any = None) -> list[dict[str, Any]]:
        return self._select(criteria, self.get_limit(), self.get_skip())

    def count(self, criteria: Any = None) -> int:
        where, params = self._where(criteria)
        rows = self._read("count", f"SELECT COUNT(*) AS total FROM {self.table}{where}", params)
        return int(rows[0]["total"]) if rows else 0

    def hydrate(self, entity: Entity, values: dict[str, Any]) -> None:
        identity = self.scalar_identity(entity)
        if identity is not None:
            entity.set_extended_property(self.patches.identity_field, identity)

    def identity_criteria(self, entity: Entity) -> dict[str, Any]:
        return self._primary_criteria(entity, "find")

    # --- SQL building ---

    def _select(self, criteria: Any, limit: int | None, skip: int | None) -> list[dict[str, Any]]:
        properties = self.get_properties()
        columns = ", ".join(self._column(name) for name in properties) if properties else "*"
        where, params = self._where(criteria)
        sql = f"SELECT {columns} FROM {self.table}{where}"

        sort = self.get_sort()
        if sort:
            order = []
            for name, direction in sort.items():
                if direction not in (1, -1):
                    raise InvalidArgumentError(f"sort direction for '{name}' must be 1 or -1")
                order.append(f"{self._column(name)} {'ASC' if direction == 1 else 'DESC'}")
            sql += " ORDER BY " + ", ".join(order)
        if limit is not None or skip:
            sql += " LIMIT :sel_limit OFFSET :sel_offset"
            params["sel_limit"] = limit if limit is not None else _NO_LIMIT
            params["sel_offset"] = skip or 0

        return [
            {self._property(column): value for column, value in row.items()}
            for row in self._read("find", sql, params)
        ]

    def _where(self, criteria: Any) -> tuple[str, dict[str, Any]]:
        if criteria is None:
            return "", {}
        if not isinstance(criteria, Mapping):
            raise InvalidArgumentError("SQL criteria must map property names to values")
        clauses: list[str] = []
        params: dict[str, Any] = {}
        for name, value in criteria.items():
            column = self._column(name)
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = :w_{column}")
                params[f"w_{column}"] = value
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _primary_criteria(self, entity: Entity, operation: str) -> dict[str, Any]:
        primary = entity.primary()
        if not primary or any(value in (None, "") for value in primary.values()):
            raise MissingPrimaryKeyError(entity, operation)
        return primary

    def _scalar_row(self, entity: Entity) -> dict[str, Any]:
        exported = entity.export(raw=True)
        return {
            self._column(name): exported[name]
            for name, ptype in entity.property_types().items()
            if ptype.kind is PropertyKind.SCALAR
        }

    def _column(self, name: str) -> str:
        return identifier(to_column(name) if self.naming == "camel" else name)

    def _property(self, column: str) -> str:
        return to_property(column) if self.naming == "camel" else column

    # --- execution ---

    @contextmanager
    def _transaction(self, conn: Any, operation: str) -> Iterator[None]:
        """Commit on success, roll back on any failure."""
        try:
            with self._wrap(operation):
                yield
        except BaseException:
            conn.rollback()
            raise
        conn.commit()

    def _write(self, operation: str, sql: str, params: dict[str, Any]) -> None:
        with self.manager.get_connection() as conn, self._transaction(conn, operation):
            self.manager.adapter.execute(
                conn, normalize_params(sql, self.manager.adapter.paramstyle), params
            )
        logger.debug("row_written", table=self.table, operation=operation)

    def _read(self, operation: str, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        with self.manager.get_connection() as conn, self._wrap(operation):
            cursor = self.manager.adapter.execute(
                conn, normalize_params(sql, self.manager.adapter.paramstyle), params
            )
            return _rows_to_dicts(cursor)

