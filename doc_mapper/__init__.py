"""doc_mapper - data mapper with dirty-diff persistence for document stores."""

from __future__ import annotations

from doc_mapper.core.connection import ConnectionConfig, SqlConnectionManager, create_driver
from doc_mapper.core.enums import ChangeKind, PropertyKind, StoreBackend
from doc_mapper.core.events import Event, EventManager
from doc_mapper.core.exceptions import (
    DocMapperError,
    DriverError,
    IdentityError,
    InconsistentDirtyStateError,
    InvalidArgumentError,
    InvalidPathError,
    MissingPrimaryKeyError,
    MutationError,
    NotPersistedError,
    PathError,
    TypeMismatchError,
)
from doc_mapper.core.log import configure_logging
from doc_mapper.core.query import Query, QueryOptions
from doc_mapper.drivers.base import AbstractDriver, DocumentDriver
from doc_mapper.drivers.memory import MemoryDriver
from doc_mapper.drivers.protocol import Driver, DriverCapabilities
from doc_mapper.entity import Entity, PropertyType
from doc_mapper.mapping import (
    Cursor,
    DirtyPatch,
    Mapper,
    PathResolver,
    PatchBuilder,
    ResolvedReference,
)
from doc_mapper.repository import Repository

__all__ = [
    # Entity
    "Entity",
    "PropertyType",
    # Mapping
    "Mapper",
    "Cursor",
    "PathResolver",
    "ResolvedReference",
    "PatchBuilder",
    "DirtyPatch",
    "Repository",
    # Query
    "Query",
    "QueryOptions",
    # Drivers
    "Driver",
    "DriverCapabilities",
    "AbstractDriver",
    "DocumentDriver",
    "MemoryDriver",
    # Connection
    "ConnectionConfig",
    "SqlConnectionManager",
    "create_driver",
    # Events and logging
    "Event",
    "EventManager",
    "configure_logging",
    # Enums
    "PropertyKind",
    "ChangeKind",
    "StoreBackend",
    # Exceptions
    "DocMapperError",
    "PathError",
    "InvalidPathError",
    "MutationError",
    "TypeMismatchError",
    "NotPersistedError",
    "InvalidArgumentError",
    "IdentityError",
    "MissingPrimaryKeyError",
    "InconsistentDirtyStateError",
    "DriverError",
]
