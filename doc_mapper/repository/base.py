"""Repository base class.

Thin wrapper over a Mapper for DDD-oriented usage. Subclasses add named
finders on top of the generic ones.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from doc_mapper.core.exceptions import InvalidArgumentError
from doc_mapper.drivers.protocol import Driver
from doc_mapper.entity.base import Entity
from doc_mapper.mapping.cursor import Cursor
from doc_mapper.mapping.mapper import Mapper

E = TypeVar("E", bound=Entity)


class Repository(Generic[E]):
    """Base repository for one entity class.

    Accepts either a ready Mapper or a driver plus ``entity_class`` (given
    as argument or class attribute) to build one.
    """

    entity_class: type[E] | None = None

    def __init__(
        self,
        driver: Driver | None = None,
        mapper: Mapper[E] | None = None,
        entity_class: type[E] | None = None,
    ) -> None:
        if mapper is not None:
            self.mapper = mapper
        else:
            entity_class = entity_class or self.entity_class
            if driver is None or entity_class is None:
                raise TypeError("Repository needs a mapper, or a driver and an entity class")
            self.mapper = Mapper(driver, entity_class)

    def get(self, identity: Any) -> E | None:
        """Entity stored under ``identity``, or None.

        ``identity`` is the primary value (a tuple for composite primaries),
        the stored identity of an entity without primaries, or ready-made
        criteria. Primary values are turned into criteria by the driver, so
        the same call works for document and SQL stores.
        """
        if isinstance(identity, Mapping):
            return self.mapper.find_one(identity)
        entity_class = self.mapper.entity_class
        if not entity_class.primary_key:
            return self.mapper.find_one(identity)

        values = identity if isinstance(identity, tuple) else (identity,)
        if len(values) != len(entity_class.primary_key):
            raise InvalidArgumentError(
                f"{entity_class.__name__} identity needs {len(entity_class.primary_key)} "
                f"values, got {len(values)}"
            )
        key = entity_class(**dict(zip(entity_class.primary_key, values, strict=True)))
        return self.mapper.find_one(self.mapper.driver.identity_criteria(key))

    def find(self, criteria: Any = None) -> Cursor[E]:
        return self.mapper.find(criteria)

    def save(self, entity: E) -> E:
        return self.mapper.persist(entity)

    def remove(self, entity: E) -> E:
        return self.mapper.delete(entity)
