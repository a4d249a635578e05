"""Mapper: orchestrates entities, the path resolver and a driver.

Writes follow the same shape::

    pre-hook -> driver call -> clean -> post-hook

Pending query options (limit/skip/sort/...) are collected on the Mapper
itself and handed to the driver with prepare() right before the call.

Point mutations (increment/push/pull) are optimistic. increment() applies
the change in memory before calling the driver; push() and pull() call the
driver first. Nothing is rolled back when the driver fails: the in-memory
value stays as it is and the leaf stays dirty. refresh() re-reads the
stored record when the caller needs to resync.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

import structlog

from doc_mapper.core.enums import PropertyKind
from doc_mapper.core.events import EventManager
from doc_mapper.core.exceptions import (
    DriverError,
    InvalidArgumentError,
    MissingPrimaryKeyError,
    NotPersistedError,
)
from doc_mapper.core.query import Query
from doc_mapper.drivers.protocol import Driver
from doc_mapper.entity.base import Entity
from doc_mapper.mapping.cursor import Cursor
from doc_mapper.mapping.resolver import PathResolver, ResolvedReference

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Entity)


class Mapper(Query, Generic[E]):
    """Loads and stores entities of one class through a driver.

    Args:
        driver: Backing store driver.
        entity_class: Entity subclass rows are hydrated into.
        events: Event manager to fire lifecycle events on. A private one is
            created when omitted.
    """

    def __init__(
        self,
        driver: Driver,
        entity_class: type[E],
        events: EventManager | None = None,
    ) -> None:
        super().__init__()
        self._driver = driver
        self.entity_class = entity_class
        self.events = events or EventManager()

    @property
    def driver(self) -> Driver:
        return self._driver

    def set_driver(self, driver: Driver) -> Mapper[E]:
        self._driver = driver
        return self

    def attach(self, event: str, callback: Any, priority: int = 0) -> Any:
        """Listen to an event fired by this mapper."""
        return self.events.attach(event, callback, priority)

    # --- reads ---

    def find(self, criteria: Any = None) -> Cursor[E]:
        """Return a cursor over every stored record matching ``criteria``."""
        rows = self.prepare(self._driver).find(criteria)
        logger.debug("find", entity=self.entity_class.__name__, driver=self._driver.name)
        return Cursor(self, rows)

    def find_one(self, criteria: Any = None) -> E | None:
        """Return the first matching entity, or None when nothing matches."""
        row = self.prepare(self._driver).find_one(criteria)
        if row is None:
            return None
        return self.hydrate(row)

    def count(self, criteria: Any = None) -> int:
        if not self._driver.capabilities.count:
            raise DriverError(self._driver.name, "count", "counting is not supported")
        return self.prepare(self._driver).count(criteria)

    def hydrate(self, data: Mapping[str, Any], entity: E | None = None) -> E:
        """Fill ``entity`` (or a new one) from a raw stored row.

        Keys that are not declared properties are kept as extended
        properties. The result is marked persisted and clean.
        """
        if entity is None:
            entity = self.entity_class()
        else:
            entity.reset()

        entity.from_dict(data)
        for name, value in data.items():
            if not entity.has_property(name):
                entity.set_extended_property(name, value)

        self._driver.hydrate(entity, dict(data))
        entity.persisted().clean()
        self._trigger("hydrate.post", entity, data=data)
        return entity

    def refresh(self, entity: E) -> E:
        """Discard in-memory state and re-read the stored record."""
        if not self._driver.is_persisted(entity):
            raise NotPersistedError("refresh", entity)
        criteria = self._driver.identity_criteria(entity)
        row = self.prepare(self._driver).find_one(criteria)
        if row is None:
            raise DriverError(self._driver.name, "refresh", f"no stored record for {criteria!r}")
        logger.debug("refresh", entity=type(entity).__name__, criteria=criteria)
        return self.hydrate(row, entity)

    def resolve(self, entity: Entity, path: str) -> ResolvedReference:
        return PathResolver.resolve(entity, path)

    # --- writes ---

    def persist(self, entity: E, skip_if_clean: bool = True) -> E:
        """Insert or update ``entity`` depending on whether it was stored before."""
        mode = "update" if self._driver.is_persisted(entity) else "insert"
        self._trigger(f"{mode}.pre", entity)

        if skip_if_clean and mode == "update" and not entity.dirty():
            logger.debug("persist_skipped", entity=type(entity).__name__)
            return entity

        self.prepare(self._driver).persist(entity)
        entity.persisted().clean()
        logger.debug("persisted", entity=type(entity).__name__, mode=mode)
        self._trigger(f"{mode}.post", entity)
        return entity

    def delete(self, entity: E) -> E:
        primary = entity.primary()
        if primary and all(value in (None, "") for value in primary.values()):
            raise MissingPrimaryKeyError(entity, "delete")

        self._trigger("delete.pre", entity)
        self.prepare(self._driver).delete(entity)
        entity.persisted(False).clean()
        logger.debug("deleted", entity=type(entity).__name__)
        self._trigger("delete.post", entity)
        return entity

    # --- point mutations ---

    def increment(self, entity: E, path: str, amount: int | float) -> E:
        """Add ``amount`` to the numeric leaf at ``path``, in memory and in the store."""
        if not self._driver.is_persisted(entity):
            raise NotPersistedError("increment", entity)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidArgumentError(f"increment amount must be a number, got {amount!r}")
        ref = self.resolve(entity, path).assert_numeric()

        self._trigger("update.pre", entity, path=path, amount=amount)
        ref.entity.set(ref.property, (ref.value or 0) + amount)

        driver = self.prepare(self._driver)
        if driver.capabilities.increment:
            driver.increment(entity, path, amount)
            ref.entity.clean(ref.property)
        else:
            driver.persist(entity)
            entity.clean()

        logger.debug("incremented", entity=type(entity).__name__, path=path, amount=amount)
        self._trigger("update.post", entity, path=path, amount=amount)
        return entity

    def push(self, entity: E, path: str, *values: Any, if_not_exists: bool = False) -> E:
        """Append a single value to the list at ``path``.

        With ``if_not_exists`` the value is only appended when the list does
        not already hold an equal element. Entities pushed onto a list of
        embedded entities travel to the driver as plain dicts.
        """
        if not self._driver.is_persisted(entity):
            raise NotPersistedError("push", entity)
        if len(values) != 1:
            raise InvalidArgumentError(f"push takes exactly one value, got {len(values)}")
        ref = self.resolve(entity, path).assert_list()
        value, stored = self._list_element(ref, values[0])

        def apply() -> None:
            items = list(ref.value or [])
            if not if_not_exists or self._position(ref, items, stored) is None:
                items.append(value)
            ref.entity.set(ref.property, items)

        def atomic(driver: Driver) -> None:
            driver.push(entity, path, stored, if_not_exists)

        self._mutate(entity, ref, "push", apply, atomic, path=path, value=stored)
        return entity

    def pull(self, entity: E, path: str, value: Any) -> E:
        """Remove the first element equal to ``value`` from the list at ``path``.

        Embedded entities are compared by their exported values, so a freshly
        built entity matches a stored one holding the same data.
        """
        if not self._driver.is_persisted(entity):
            raise NotPersistedError("pull", entity)
        ref = self.resolve(entity, path).assert_list()
        _, stored = self._list_element(ref, value)

        def apply() -> None:
            items = list(ref.value or [])
            position = self._position(ref, items, stored)
            if position is not None:
                del items[position]
            ref.entity.set(ref.property, items)

        def atomic(driver: Driver) -> None:
            driver.pull(entity, path, stored)

        self._mutate(entity, ref, "pull", apply, atomic, path=path, value=stored)
        return entity

    # --- helpers ---

    @staticmethod
    def _list_element(ref: ResolvedReference, value: Any) -> tuple[Any, Any]:
        """The in-memory element for ``value`` and the form sent to the driver."""
        if ref.kind is PropertyKind.LIST_OF_EMBEDDED:
            item = ref.type.entity_class.model_validate(value)
            return item, item.export(raw=True)
        return value, value

    @staticmethod
    def _position(ref: ResolvedReference, items: list[Any], stored: Any) -> int | None:
        for position, item in enumerate(items):
            if ref.kind is PropertyKind.LIST_OF_EMBEDDED:
                item = item.export(raw=True)
            if item == stored:
                return position
        return None

    def _mutate(
        self,
        entity: E,
        ref: ResolvedReference,
        capability: str,
        apply: Callable[[], None],
        atomic: Callable[[Driver], None],
        **params: Any,
    ) -> None:
        self._trigger("update.pre", entity, **params)
        driver = self.prepare(self._driver)
        if getattr(driver.capabilities, capability):
            atomic(driver)
            apply()
            ref.entity.clean(ref.property)
        else:
            # no atomic operation: the local change travels in a full persist
            apply()
            driver.persist(entity)
            entity.clean()
        logger.debug("list_mutated", entity=type(entity).__name__, operation=capability, **params)
        self._trigger("update.post", entity, **params)

    def _trigger(self, event: str, entity: Entity, **params: Any) -> None:
        self.events.trigger(event, entity, mapper=self, **params)
        entity.trigger(event, mapper=self, **params)
