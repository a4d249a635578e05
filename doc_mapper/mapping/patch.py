"""Insert documents and minimal update patches.

PatchBuilder turns an entity into either a full insert document or a
DirtyPatch holding only what changed since the last clean(): dot-path
assignments plus dot-paths to remove. Drivers translate the patch into
their own wire format.

Embedded entities are folded bottom-up. Each node reports a ChangeKind:

    NO_CHANGE       nothing dirty below this node
    SCALAR_CHANGE   at least one real assignment below this node
    ALL_REMOVALS    only removals below this node

A child reporting ALL_REMOVALS is collapsed into a single removal of the
child's own path instead of one removal per field.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from doc_mapper.core.enums import ChangeKind, PropertyKind
from doc_mapper.core.exceptions import IdentityError, InconsistentDirtyStateError
from doc_mapper.entity.base import Entity

_SCALAR_IDENTITY = (str, int, float)


def generate_id() -> str:
    """Default store identity generator."""
    return uuid.uuid4().hex


@dataclass
class DirtyPatch:
    """Field-level assignments and removals keyed by fully qualified dot-path.

    A path never appears in both. An empty patch is falsy and means the
    write should be skipped entirely.
    """

    assignments: dict[str, Any] = field(default_factory=dict)
    removals: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.assignments or self.removals)

    @property
    def is_empty(self) -> bool:
        return not self

    def assign(self, path: str, value: Any) -> DirtyPatch:
        if path in self.removals:
            self.removals.remove(path)
        self.assignments[path] = value
        return self

    def remove(self, path: str) -> DirtyPatch:
        self.assignments.pop(path, None)
        if path not in self.removals:
            self.removals.append(path)
        return self

    def merge(self, prefix: str, other: DirtyPatch) -> DirtyPatch:
        """Fold ``other`` in, qualifying its paths with ``prefix``."""
        for path, value in other.assignments.items():
            self.assign(f"{prefix}.{path}", value)
        for path in other.removals:
            self.remove(f"{prefix}.{path}")
        return self

    def paths(self) -> list[str]:
        return [*self.assignments, *self.removals]

    def to_mongo(self) -> dict[str, dict[str, Any]]:
        """Render as a MongoDB update document, leaving out empty clauses."""
        update: dict[str, dict[str, Any]] = {}
        if self.assignments:
            update["$set"] = dict(self.assignments)
        if self.removals:
            update["$unset"] = {path: "" for path in self.removals}
        return update


class PatchBuilder:
    """Builds store-agnostic insert documents and update patches.

    Args:
        identity_field: Name of the store's identity field in documents.
        id_factory: Generates an identity for entities without primary
            properties. ``None`` forbids generation.
        fill_empty_primary: Generate an identity (and assign it to the
            primary property) when a single declared primary is empty,
            instead of raising IdentityError.
    """

    def __init__(
        self,
        identity_field: str = "_id",
        id_factory: Callable[[], Any] | None = generate_id,
        fill_empty_primary: bool = False,
    ) -> None:
        self.identity_field = identity_field
        self.id_factory = id_factory
        self.fill_empty_primary = fill_empty_primary

    # --- identity ---

    def identity(self, entity: Entity) -> Any:
        """Return the root entity's scalar identity, recording it as an extended property."""
        existing = entity.get_extended_property(self.identity_field)
        if existing not in (None, ""):
            return existing

        primary = entity.primary()
        if not primary:
            value = self._generate(entity, "no primary properties are declared")
        elif any(value in (None, "") for value in primary.values()):
            if not self.fill_empty_primary or len(primary) > 1:
                raise IdentityError(entity, f"primary properties {list(primary)} carry no value")
            value = self._generate(entity, "the primary property is empty")
            entity.set(next(iter(primary)), value)
        else:
            values = [self._scalar(entity, name, value) for name, value in primary.items()]
            value = values[0] if len(values) == 1 else "-".join(str(v) for v in values)

        entity.set_extended_property(self.identity_field, value)
        return value

    def restore_identity(self, entity: Entity, values: dict[str, Any]) -> Entity:
        """Copy a stored identity back onto a hydrated entity."""
        identity = values.get(self.identity_field)
        if identity in (None, ""):
            if entity.primary() and all(v not in (None, "") for v in entity.primary().values()):
                self.identity(entity)
            return entity

        entity.set_extended_property(self.identity_field, identity)
        if len(entity.primary_key) == 1:
            if not isinstance(identity, _SCALAR_IDENTITY):
                identity = str(identity)
            entity.set(entity.primary_key[0], identity)
        return entity

    def _generate(self, entity: Entity, reason: str) -> Any:
        if self.id_factory is None:
            raise IdentityError(entity, f"{reason} and identity generation is disabled")
        return self.id_factory()

    @staticmethod
    def _scalar(entity: Entity, name: str, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (*_SCALAR_IDENTITY, uuid.UUID)):
            raise IdentityError(entity, f"primary property '{name}' holds a non-scalar value")
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    # --- insert ---

    def build_insert(self, entity: Entity, embedded: bool = False) -> dict[str, Any]:
        """Serialize every declared property into a store-ready document.

        For a root entity with a single primary property, that property is
        stored under the identity field instead of its own name.
        """
        document: dict[str, Any] = {}
        primary_property = None
        if not embedded:
            document[self.identity_field] = self.identity(entity)
            if len(entity.primary_key) == 1:
                primary_property = entity.primary_key[0]

        data = entity.export(raw=True)
        for name, ptype in entity.property_types().items():
            if name == primary_property:
                continue
            match ptype.kind:
                case PropertyKind.EMBEDDED:
                    child = entity.get(name)
                    if child is None:
                        continue
                    sub = self.build_insert(child, embedded=True)
                    if sub:
                        document[name] = sub
                case PropertyKind.LIST | PropertyKind.LIST_OF_EMBEDDED:
                    if data[name]:
                        document[name] = data[name]
                case PropertyKind.SCALAR:
                    document[name] = data[name]
        return document

    # --- update ---

    def build_update(self, entity: Entity, embedded: bool = False) -> DirtyPatch:
        """Minimal patch for the entity's dirty properties; empty when clean."""
        patch, _ = self._fold(entity, embedded)
        return patch

    def change_kind(self, entity: Entity) -> ChangeKind:
        """Summarize the entity's dirty subtree as seen by the collapsing rule."""
        _, kind = self._fold(entity, embedded=True)
        return kind

    def _fold(self, entity: Entity, embedded: bool) -> tuple[DirtyPatch, ChangeKind]:
        patch = DirtyPatch()
        dirty = entity.dirty()
        if not dirty:
            return patch, ChangeKind.NO_CHANGE

        exported = entity.export(dirty, raw=True)
        missing = [name for name in dirty if name not in exported]
        if missing:
            raise InconsistentDirtyStateError(entity, missing)

        kinds: set[ChangeKind] = set()
        for name in dirty:
            # the identity is immutable once assigned
            if not embedded and name in entity.primary_key:
                continue

            ptype = entity.type_of(name)
            match ptype.kind:
                case PropertyKind.EMBEDDED:
                    child = entity.get(name)
                    if child is None:
                        patch.remove(name)
                        kinds.add(ChangeKind.ALL_REMOVALS)
                        continue
                    sub, sub_kind = self._fold(child, embedded=True)
                    if sub_kind is ChangeKind.ALL_REMOVALS:
                        patch.remove(name)
                    elif sub_kind is ChangeKind.SCALAR_CHANGE:
                        patch.merge(name, sub)
                    kinds.add(sub_kind)
                case PropertyKind.SCALAR | PropertyKind.LIST | PropertyKind.LIST_OF_EMBEDDED:
                    value = exported[name]
                    if ptype.is_unset(value):
                        patch.remove(name)
                        kinds.add(ChangeKind.ALL_REMOVALS)
                    else:
                        patch.assign(name, value)
                        kinds.add(ChangeKind.SCALAR_CHANGE)

        if ChangeKind.SCALAR_CHANGE in kinds:
            return patch, ChangeKind.SCALAR_CHANGE
        if ChangeKind.ALL_REMOVALS in kinds:
            return patch, ChangeKind.ALL_REMOVALS
        return patch, ChangeKind.NO_CHANGE
