"""Entity base class with dirty tracking.

Entities are pydantic models whose assignments are validated and recorded.
Nested entities and lists of entities are declared with ordinary
annotations::

    class Address(Entity):
        city: str | None = None

    class User(Entity):
        primary_key: ClassVar[tuple[str, ...]] = ("slug",)

        slug: str | None = None
        visits: int = 0
        tags: list[str] = []
        address: Address | None = None
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, PrivateAttr

from doc_mapper.core.enums import PropertyKind
from doc_mapper.core.events import EventManager, Listener
from doc_mapper.core.exceptions import InvalidPathError
from doc_mapper.entity.types import PropertyType, describe_annotation

_TYPE_CACHE: dict[type, dict[str, PropertyType]] = {}


class Entity(BaseModel):
    """A named collection of typed, dirty-tracked properties."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    primary_key: ClassVar[tuple[str, ...]] = ()

    _dirty: list[str] = PrivateAttr(default_factory=list)
    _persisted: bool = PrivateAttr(default=False)
    _extended: dict[str, Any] = PrivateAttr(default_factory=dict)
    _events: EventManager | None = PrivateAttr(default=None)

    def model_post_init(self, context: Any, /) -> None:
        # Values passed to the constructor count as mutations.
        self._dirty = [name for name in type(self).model_fields if name in self.model_fields_set]

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in type(self).model_fields and name not in self._dirty:
            self._dirty.append(name)

    # --- schema ---

    @classmethod
    def property_types(cls) -> dict[str, PropertyType]:
        cached = _TYPE_CACHE.get(cls)
        if cached is None:
            cached = {
                name: describe_annotation(name, field.annotation, Entity)
                for name, field in cls.model_fields.items()
            }
            _TYPE_CACHE[cls] = cached
        return cached

    def properties(self) -> list[str]:
        return list(type(self).model_fields)

    def type_of(self, name: str) -> PropertyType:
        try:
            return self.property_types()[name]
        except KeyError:
            raise InvalidPathError(name, "property does not exist", self) from None

    def has_property(self, name: str) -> bool:
        return name in type(self).model_fields

    # --- values ---

    def get(self, name: str) -> Any:
        self.type_of(name)
        return getattr(self, name)

    def set(self, name: str, value: Any) -> Entity:
        self.type_of(name)
        setattr(self, name, value)
        return self

    def primary(self) -> dict[str, Any]:
        """Primary property names mapped to their values, empty if none declared."""
        return {name: getattr(self, name) for name in self.primary_key}

    def export(self, names: Iterable[str] | None = None, raw: bool = False) -> dict[str, Any]:
        """Serialize all or the named properties to a plain dict.

        ``raw`` returns JSON-compatible values suitable for wire encoding.
        Names that are not declared properties are left out.
        """
        include = set(names) if names is not None else None
        return self.model_dump(mode="json" if raw else "python", include=include)

    def from_dict(self, data: Mapping[str, Any]) -> Entity:
        """Assign every declared property present in ``data``; others are ignored."""
        for name, value in data.items():
            if name in type(self).model_fields:
                setattr(self, name, value)
        return self

    def reset(self) -> Entity:
        """Return to the freshly constructed, unpersisted state."""
        for name, field in type(self).model_fields.items():
            default = None if field.is_required() else field.get_default(call_default_factory=True)
            self.__dict__[name] = default
        object.__setattr__(self, "__pydantic_fields_set__", set())
        self._dirty = []
        self._extended = {}
        self._persisted = False
        return self

    # --- dirty state ---

    def dirty(self) -> list[str]:
        """Properties mutated since the last clean(), including dirty children."""
        result = list(self._dirty)
        for name, ptype in self.property_types().items():
            if name in result:
                continue
            value = getattr(self, name)
            match ptype.kind:
                case PropertyKind.EMBEDDED:
                    if value is not None and value.dirty():
                        result.append(name)
                case PropertyKind.LIST_OF_EMBEDDED:
                    if any(item.dirty() for item in value or []):
                        result.append(name)
                case PropertyKind.SCALAR | PropertyKind.LIST:
                    pass
        return result

    def clean(self, name: str | None = None) -> Entity:
        """Forget recorded mutations of one or all properties, cascading into children."""
        names = [name] if name is not None else self.properties()
        for prop in names:
            ptype = self.type_of(prop)
            if prop in self._dirty:
                self._dirty.remove(prop)
            value = getattr(self, prop)
            match ptype.kind:
                case PropertyKind.EMBEDDED:
                    if value is not None:
                        value.clean()
                case PropertyKind.LIST_OF_EMBEDDED:
                    for item in value or []:
                        item.clean()
                case PropertyKind.SCALAR | PropertyKind.LIST:
                    pass
        return self

    def persisted(self, flag: bool = True) -> Entity:
        self._persisted = flag
        return self

    def is_persisted(self) -> bool:
        return self._persisted

    # --- store metadata ---

    def set_extended_property(self, name: str, value: Any) -> Entity:
        self._extended[name] = value
        return self

    def get_extended_property(self, name: str, default: Any = None) -> Any:
        return self._extended.get(name, default)

    def extended_properties(self) -> dict[str, Any]:
        return dict(self._extended)

    # --- events ---

    @property
    def events(self) -> EventManager:
        if self._events is None:
            self._events = EventManager()
        return self._events

    def attach(self, event: str, callback: Listener, priority: int = 0) -> Listener:
        return self.events.attach(event, callback, priority)

    def trigger(self, event: str, **params: Any) -> list[Any]:
        if self._events is None:
            return []
        return self._events.trigger(event, self, **params)
