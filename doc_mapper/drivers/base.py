"""Shared driver behaviour.

AbstractDriver is also a Query, so a Mapper can hand pending limit/skip/
sort/options to it with prepare() before each call.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from doc_mapper.core.exceptions import (
    DocMapperError,
    DriverError,
    IdentityError,
    MissingPrimaryKeyError,
)
from doc_mapper.core.query import Query
from doc_mapper.drivers.protocol import DriverCapabilities
from doc_mapper.entity.base import Entity
from doc_mapper.mapping.patch import PatchBuilder

logger = structlog.get_logger(__name__)


class AbstractDriver(Query):
    """Base class for drivers without atomic point operations."""

    name = "abstract"
    capabilities = DriverCapabilities()

    def __init__(self, connection: Any = None, patch_builder: PatchBuilder | None = None) -> None:
        super().__init__()
        self.connection = connection
        self.patches = patch_builder or PatchBuilder()
        self.init()

    def init(self) -> None:
        """Post-construction hook for subclasses."""

    # --- protocol defaults ---

    def is_persisted(self, entity: Entity) -> bool:
        return entity.is_persisted()

    def hydrate(self, entity: Entity, values: dict[str, Any]) -> None:
        return None

    def increment(self, entity: Entity, path: str, amount: int | float) -> None:
        self.persist(entity)

    def push(self, entity: Entity, path: str, value: Any, if_not_exists: bool = False) -> None:
        self.persist(entity)

    def pull(self, entity: Entity, path: str, value: Any) -> None:
        self.persist(entity)

    def persist(self, entity: Entity) -> None:
        raise NotImplementedError

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        raise NotImplementedError

    def find(self, criteria: Any = None) -> Any:
        raise NotImplementedError

    def delete(self, entity: Entity) -> None:
        raise NotImplementedError

    def count(self, criteria: Any = None) -> int:
        raise NotImplementedError(f"{self.name} driver does not support count")

    # --- helpers ---

    def scalar_identity(self, entity: Entity) -> Any:
        """Primary value (composites joined with ``-``) or the stored identity, else None."""
        primary = entity.primary()
        if primary and all(value not in (None, "") for value in primary.values()):
            for name, value in primary.items():
                if isinstance(value, (dict, list, Entity)):
                    raise IdentityError(
                        entity, f"primary property '{name}' holds a non-scalar value"
                    )
            values = list(primary.values())
            return values[0] if len(values) == 1 else "-".join(str(v) for v in values)
        return entity.get_extended_property(self.patches.identity_field) or None

    def require_identity(self, entity: Entity, operation: str) -> Any:
        identity = entity.get_extended_property(self.patches.identity_field)
        if identity in (None, ""):
            identity = self.scalar_identity(entity)
        if identity in (None, ""):
            raise MissingPrimaryKeyError(entity, operation)
        return identity

    def identity_criteria(self, entity: Entity) -> Any:
        return {self.patches.identity_field: self.require_identity(entity, "find")}

    @contextmanager
    def _wrap(self, operation: str) -> Iterator[None]:
        """Re-raise store client failures as DriverError."""
        try:
            yield
        except DocMapperError:
            raise
        except Exception as e:
            logger.warning("driver_failure", driver=self.name, operation=operation, error=str(e))
            raise DriverError(self.name, operation, str(e)) from e


class DocumentDriver(AbstractDriver):
    """Base for stores holding one document per aggregate root keyed by identity."""

    name = "document"

    def hydrate(self, entity: Entity, values: dict[str, Any]) -> None:
        self.patches.restore_identity(entity, values)
