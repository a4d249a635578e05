"""Driver protocol.

A driver executes the physical operations of one backing store. Every
driver module MUST implement this protocol; optional atomic operations
are advertised through DriverCapabilities and the Mapper falls back to a
full persist() when a capability is absent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from doc_mapper.entity.base import Entity


@dataclass(frozen=True)
class DriverCapabilities:
    """Atomic operations a driver performs directly against its store."""

    increment: bool = False
    push: bool = False
    pull: bool = False
    count: bool = False


@runtime_checkable
class Driver(Protocol):
    """Backing store driver protocol."""

    name: str
    capabilities: DriverCapabilities

    def persist(self, entity: Entity) -> None:
        """Insert or update based on ``entity.is_persisted()``."""
        ...

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        """Return one raw row, or None when nothing matches."""
        ...

    def find(self, criteria: Any = None) -> Iterable[dict[str, Any]]:
        """Return raw rows; a Sequence when random access is possible."""
        ...

    def delete(self, entity: Entity) -> None:
        ...

    def is_persisted(self, entity: Entity) -> bool:
        ...

    def increment(self, entity: Entity, path: str, amount: int | float) -> None:
        ...

    def push(self, entity: Entity, path: str, value: Any, if_not_exists: bool = False) -> None:
        ...

    def pull(self, entity: Entity, path: str, value: Any) -> None:
        ...

    def hydrate(self, entity: Entity, values: dict[str, Any]) -> None:
        """Post-hydration hook for derived identity fields."""
        ...

    def count(self, criteria: Any = None) -> int:
        """Number of stored records matching ``criteria``; needs ``capabilities.count``."""
        ...

    def identity_criteria(self, entity: Entity) -> Any:
        """Criteria that find_one() accepts to re-read ``entity``."""
        ...
