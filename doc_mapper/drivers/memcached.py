"""Memcached driver (pymemcache).

Entities are stored as JSON strings keyed by their scalar identity. There
is no way to list keys, so find() takes the keys to fetch.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from doc_mapper.core.exceptions import InvalidArgumentError
from doc_mapper.drivers.base import AbstractDriver
from doc_mapper.entity.base import Entity

if TYPE_CHECKING:
    from doc_mapper.core.connection import ConnectionConfig

logger = structlog.get_logger(__name__)

DEFAULT_EXPIRATION = 0


class MemcachedDriver(AbstractDriver):
    """Stores entities in memcached.

    Args:
        client: A ``pymemcache`` client (``Client`` or ``HashClient``).
        key_prefix: Prepended to every identity to form the cache key.

    The ``expiration`` option (seconds, 0 for never) applies to writes.
    """

    name = "memcached"

    def __init__(self, client: Any, key_prefix: str = "", **kwargs: Any) -> None:
        self.key_prefix = key_prefix
        super().__init__(connection=client, **kwargs)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> MemcachedDriver:
        from pymemcache.client.base import Client

        client = Client(
            (config.host or "localhost", config.port or 11211),
            connect_timeout=config.timeout,
            timeout=config.timeout,
        )
        return cls(client, key_prefix=config.extra.get("key_prefix", ""))

    @property
    def client(self) -> Any:
        return self.connection

    # --- writes ---

    def persist(self, entity: Entity) -> None:
        identity = self.patches.identity(entity)
        data = entity.export(raw=True)
        data[self.patches.identity_field] = identity
        options = self.get_options({"expiration": DEFAULT_EXPIRATION, "noreply": False})
        with self._wrap("persist"):
            self.client.set(
                self._key(identity),
                json.dumps(data),
                expire=options["expiration"],
                noreply=options["noreply"],
            )
        logger.debug("cache_written", key=self._key(identity), expire=options["expiration"])

    def delete(self, entity: Entity) -> None:
        identity = self.require_identity(entity, "delete")
        with self._wrap("delete"):
            self.client.delete(self._key(identity), noreply=False)

    # --- reads ---

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        key = self._identity_from(criteria)
        with self._wrap("find_one"):
            raw = self.client.get(self._key(key))
        return self._decode(raw) if raw is not None else None

    def find(self, criteria: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        if criteria is None or isinstance(criteria, (str, bytes, Mapping)):
            raise InvalidArgumentError("memcached find() takes an iterable of identities")
        keys = [self._key(identity) for identity in criteria]
        with self._wrap("find"):
            found = self.client.get_many(keys)
        rows = [self._decode(found[key]) for key in keys if key in found]
        skip = self.get_skip() or 0
        limit = self.get_limit()
        return rows[skip : skip + limit if limit is not None else None]

    def identity_criteria(self, entity: Entity) -> Any:
        return self.require_identity(entity, "find")

    # --- helpers ---

    def _identity_from(self, criteria: Any) -> Any:
        if isinstance(criteria, Mapping):
            if set(criteria) != {self.patches.identity_field}:
                raise InvalidArgumentError(
                    f"memcached lookups only accept {{'{self.patches.identity_field}': ...}}"
                )
            return criteria[self.patches.identity_field]
        if criteria is None:
            raise InvalidArgumentError("memcached find_one() needs an identity")
        return criteria

    def _key(self, identity: Any) -> str:
        return f"{self.key_prefix}{identity}"

    @staticmethod
    def _decode(raw: Any) -> dict[str, Any]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
