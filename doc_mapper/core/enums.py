"""Enumerations shared across the mapper."""

from __future__ import annotations

from enum import Enum


class PropertyKind(Enum):
    """Declared shape of an entity property."""

    SCALAR = "scalar"
    EMBEDDED = "embedded"
    LIST = "list"
    LIST_OF_EMBEDDED = "list_of_embedded"

    @property
    def is_list(self) -> bool:
        return self in (PropertyKind.LIST, PropertyKind.LIST_OF_EMBEDDED)


class ChangeKind(Enum):
    """Summary of a dirty subtree, folded bottom-up by the patch builder."""

    NO_CHANGE = "no_change"
    SCALAR_CHANGE = "scalar_change"
    ALL_REMOVALS = "all_removals"


class StoreBackend(Enum):
    """Supported backing stores."""

    MEMORY = "memory"
    FILE = "file"
    MONGODB = "mongodb"
    MEMCACHED = "memcached"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
