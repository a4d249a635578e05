"""Dot-path resolution over entity graphs.

A path such as ``address.city`` or ``items.2.qty`` names a leaf property
inside a tree of nested entities and lists of entities. Resolution walks
the live graph and returns the entity that directly contains the leaf, so
mutating through the reference mutates the root.

Rules per intermediate step:
    EMBEDDED            descend into the child entity
    LIST_OF_EMBEDDED    the next step must be an integer index
    LIST / SCALAR       cannot be descended into

A trailing integer after a list property addresses one element: the
reference names the list property and ``value`` yields that element.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from doc_mapper.core.enums import PropertyKind
from doc_mapper.core.exceptions import InvalidPathError, TypeMismatchError
from doc_mapper.entity.base import Entity
from doc_mapper.entity.types import PropertyType

Step = str | int


@dataclass(frozen=True)
class Path:
    """Ordered steps parsed from a dot-delimited query."""

    query: str
    steps: tuple[Step, ...]

    @classmethod
    def parse(cls, query: str) -> Path:
        if not isinstance(query, str) or not query:
            raise InvalidPathError(str(query), "resolve failed with invalid or non-existent query")
        steps: list[Step] = []
        for part in query.split("."):
            if not part:
                raise InvalidPathError(query, "empty step")
            steps.append(int(part) if part.isdigit() else part)
        return cls(query=query, steps=tuple(steps))

    def __str__(self) -> str:
        return self.query


@dataclass(frozen=True)
class ResolvedStep:
    """One descent taken while walking a path."""

    entity: Entity
    property: str
    type: PropertyType
    index: int | None = None


@dataclass(frozen=True)
class ResolvedReference:
    """Location of a leaf: its containing entity, property name and type."""

    query: str
    entity: Entity
    property: str
    type: PropertyType
    index: int | None = None
    steps: tuple[ResolvedStep, ...] = field(default=())

    @property
    def value(self) -> Any:
        value = self.entity.get(self.property)
        if self.index is not None:
            return value[self.index]
        return value

    @property
    def kind(self) -> PropertyKind:
        return self.type.kind

    def assert_kind(self, *kinds: PropertyKind) -> ResolvedReference:
        if self.type.kind not in kinds or self.index is not None:
            actual = "list element" if self.index is not None else self.type.describe()
            expected = " or ".join(kind.value for kind in kinds)
            raise TypeMismatchError(self.query, expected, actual)
        return self

    def assert_numeric(self) -> ResolvedReference:
        numeric = self.type.kind is PropertyKind.SCALAR and self.type.numeric
        if not numeric or self.index is not None:
            actual = "list element" if self.index is not None else self.type.describe()
            raise TypeMismatchError(self.query, "numeric", actual)
        return self

    def assert_list(self) -> ResolvedReference:
        return self.assert_kind(PropertyKind.LIST, PropertyKind.LIST_OF_EMBEDDED)


class PathResolver:
    """Resolves a dot-path against a root entity without mutating it."""

    def __init__(self, query: str) -> None:
        self.path = Path.parse(query)
        self._steps: list[ResolvedStep] = []

    @classmethod
    def resolve(cls, root: Entity, query: str) -> ResolvedReference:
        return cls(query).scan(root)

    @property
    def steps(self) -> list[ResolvedStep]:
        return list(self._steps)

    def clear_steps(self) -> PathResolver:
        self._steps = []
        return self

    def scan(self, root: Entity, query: str | None = None) -> ResolvedReference:
        """Walk ``root`` along this resolver's path, or ``query`` if given."""
        path = Path.parse(query) if query is not None else self.path
        steps = path.steps
        last = len(steps) - 1
        self._steps = []

        node = root
        i = 0
        while i < last:
            name = self._property_name(path, steps[i], node)
            ptype = self._type_of(path, node, name)
            value = node.get(name)

            match ptype.kind:
                case PropertyKind.EMBEDDED:
                    if value is None:
                        raise InvalidPathError(path.query, f"'{name}' is not set", node)
                    self._steps.append(ResolvedStep(node, name, ptype))
                    node = value
                    i += 1
                case PropertyKind.LIST_OF_EMBEDDED | PropertyKind.LIST:
                    index = self._index(path, steps[i + 1], node, name, value)
                    self._steps.append(ResolvedStep(node, name, ptype, index))
                    if i + 1 == last:
                        return ResolvedReference(
                            path.query, node, name, ptype, index, tuple(self._steps)
                        )
                    if ptype.kind is PropertyKind.LIST:
                        raise InvalidPathError(
                            path.query, f"cannot descend into list of scalars '{name}'", node
                        )
                    node = value[index]
                    i += 2
                case PropertyKind.SCALAR:
                    raise InvalidPathError(
                        path.query, f"cannot descend into scalar property '{name}'", node
                    )

        name = self._property_name(path, steps[last], node)
        ptype = self._type_of(path, node, name)
        return ResolvedReference(path.query, node, name, ptype, None, tuple(self._steps))

    @staticmethod
    def _property_name(path: Path, step: Step, node: Entity) -> str:
        if isinstance(step, int):
            raise InvalidPathError(
                path.query, f"index {step} given where a property is expected", node
            )
        return step

    @staticmethod
    def _type_of(path: Path, node: Entity, name: str) -> PropertyType:
        try:
            return node.type_of(name)
        except InvalidPathError:
            raise InvalidPathError(path.query, f"property '{name}' does not exist", node) from None

    @staticmethod
    def _index(path: Path, step: Step, node: Entity, name: str, value: Any) -> int:
        if not isinstance(step, int):
            raise InvalidPathError(
                path.query, f"'{name}' expects an integer index, got '{step}'", node
            )
        if value is None or step >= len(value):
            raise InvalidPathError(path.query, f"Index {step} not set", node)
        return step
