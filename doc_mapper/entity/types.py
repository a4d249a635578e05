"""Property type records.

Every declared entity property is described by a PropertyType whose kind
is one of the closed PropertyKind variants. The resolver and the patch
builder dispatch on the kind, never on the runtime type of a value.
"""

from __future__ import annotations

import types
import typing
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from doc_mapper.core.enums import PropertyKind

_LIST_ORIGINS = (list, tuple, set, frozenset, Sequence)
_NUMERIC = (int, float, Decimal)


@dataclass(frozen=True)
class PropertyType:
    """Declared type of one entity property."""

    name: str
    kind: PropertyKind
    annotation: Any = None
    entity_class: type | None = None
    numeric: bool = False

    @property
    def unset_value(self) -> Any:
        """Exported value that means "remove this property from the store"."""
        if self.kind.is_list:
            return []
        return None

    def is_unset(self, exported: Any) -> bool:
        return exported == self.unset_value

    def describe(self) -> str:
        if self.kind is PropertyKind.SCALAR and self.numeric:
            return "numeric"
        return self.kind.value


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_entity_class(candidate: Any, entity_base: type) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, entity_base)


def describe_annotation(name: str, annotation: Any, entity_base: type) -> PropertyType:
    """Derive the PropertyType of a field from its annotation."""
    annotation = _strip_optional(annotation)

    if _is_entity_class(annotation, entity_base):
        return PropertyType(name, PropertyKind.EMBEDDED, annotation, entity_class=annotation)

    origin = typing.get_origin(annotation)
    if annotation in _LIST_ORIGINS or origin in _LIST_ORIGINS:
        args = typing.get_args(annotation)
        item = _strip_optional(args[0]) if args else Any
        if _is_entity_class(item, entity_base):
            return PropertyType(
                name, PropertyKind.LIST_OF_EMBEDDED, annotation, entity_class=item
            )
        return PropertyType(name, PropertyKind.LIST, annotation)

    numeric = (
        isinstance(annotation, type)
        and issubclass(annotation, _NUMERIC)
        and not issubclass(annotation, bool)
    )
    return PropertyType(name, PropertyKind.SCALAR, annotation, numeric=numeric)
