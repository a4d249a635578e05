"""Connection configuration and driver construction.

ConnectionConfig is a Pydantic model describing one backing store.
create_driver() loads the matching driver module lazily so optional
client libraries are only imported when used. SqlConnectionManager owns
the adapter pool behind the SQL driver.
"""

from __future__ import annotations

import importlib
from contextlib import contextmanager
from typing import Any

import structlog
from pydantic import BaseModel, Field

from doc_mapper.core.enums import StoreBackend
from doc_mapper.core.exceptions import DriverError

logger = structlog.get_logger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for a backing store.

    ``database`` is the database name, the sqlite file path or the file
    driver's directory. ``collection`` names the MongoDB collection or the
    SQL table.
    """

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str = ""
    collection: str | None = None
    pool_size: int = 5
    timeout: float = 5.0
    extra: dict[str, Any] = Field(default_factory=dict)


# backend -> (module_path, class_name)
_DRIVER_MAP: dict[StoreBackend, tuple[str, str]] = {
    StoreBackend.MEMORY: ("doc_mapper.drivers.memory", "MemoryDriver"),
    StoreBackend.FILE: ("doc_mapper.drivers.file", "FileDriver"),
    StoreBackend.MONGODB: ("doc_mapper.drivers.mongodb", "MongoDriver"),
    StoreBackend.MEMCACHED: ("doc_mapper.drivers.memcached", "MemcachedDriver"),
    StoreBackend.SQLITE: ("doc_mapper.drivers.sql", "SqlDriver"),
    StoreBackend.POSTGRESQL: ("doc_mapper.drivers.sql", "SqlDriver"),
    StoreBackend.MYSQL: ("doc_mapper.drivers.sql", "SqlDriver"),
}

# SQL backend -> (module_path, adapter_class)
_ADAPTER_MAP: dict[StoreBackend, tuple[str, str]] = {
    StoreBackend.SQLITE: ("doc_mapper.adapters.sqlite", "SqliteAdapter"),
    StoreBackend.POSTGRESQL: ("doc_mapper.adapters.postgresql", "PostgresqlAdapter"),
    StoreBackend.MYSQL: ("doc_mapper.adapters.mysql", "MysqlAdapter"),
}


def _load(mapping: dict[StoreBackend, tuple[str, str]], name: str, what: str) -> Any:
    try:
        key = StoreBackend(name.lower())
    except ValueError:
        key = None
    if key not in mapping:
        raise DriverError(name, "load", f"unsupported {what}")

    module_path, cls_name = mapping[key]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as e:
        raise DriverError(name, "load", f"failed to load {what}: {e}") from e


def create_driver(config: ConnectionConfig) -> Any:
    """Build the driver named by ``config.driver``."""
    driver_cls = _load(_DRIVER_MAP, config.driver, "driver")
    driver = driver_cls.from_config(config)
    logger.info("driver_created", driver=config.driver, database=config.database)
    return driver


class SqlConnectionManager:
    """Pool-backed connections for one SQL backend."""

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._adapter = _load(_ADAPTER_MAP, config.driver, "SQL adapter")()
        self._pool: Any = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    def initialize_pool(self) -> Any:
        if self._pool is None:
            try:
                self._pool = self._adapter.create_pool(self.config)
            except Exception as e:
                raise DriverError(self.config.driver, "connect", str(e)) from e
        return self._pool

    @contextmanager
    def get_connection(self):  # type: ignore[no-untyped-def]
        """Borrow a pooled connection for the duration of the block."""
        if self._pool is None:
            self.initialize_pool()
        connection = self._adapter.acquire_connection(self._pool)
        try:
            yield connection
        finally:
            self._adapter.release_connection(connection, self._pool)

    def close_pool(self) -> None:
        if self._pool is not None:
            self._adapter.close_pool(self._pool)
            self._pool = None
