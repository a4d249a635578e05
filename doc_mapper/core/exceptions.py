"""doc_mapper exception hierarchy.

Validation errors raised by the resolver, patch builder and mapper abort
an operation before any I/O is attempted. Store client exceptions are
wrapped in DriverError and chained, never swallowed.
"""

from __future__ import annotations

from typing import Any


class DocMapperError(Exception):
    """Base exception for all doc_mapper errors."""


# --- Paths ---


class PathError(DocMapperError):
    """Base for dot-path errors."""


class InvalidPathError(PathError):
    """Raised when a dot-path is malformed or does not exist on an entity."""

    def __init__(self, query: str, detail: str, entity: Any = None) -> None:
        self.query = query
        self.detail = detail
        self.entity = entity
        target = f" on {type(entity).__name__}" if entity is not None else ""
        super().__init__(f"Path '{query}' failed{target}: {detail}")


# --- Point mutations ---


class MutationError(DocMapperError):
    """Base for increment/push/pull errors."""


class TypeMismatchError(MutationError):
    """Raised when a point mutation targets a property of the wrong kind."""

    def __init__(self, query: str, expected: str, actual: str) -> None:
        self.query = query
        self.expected = expected
        self.actual = actual
        super().__init__(f"Property at '{query}' is {actual}, expected {expected}")


class NotPersistedError(MutationError):
    """Raised when a point mutation is attempted on a never-persisted entity."""

    def __init__(self, operation: str, entity: Any) -> None:
        self.operation = operation
        self.entity = entity
        super().__init__(
            f"Cannot {operation} {type(entity).__name__}: entity has not been persisted"
        )


class InvalidArgumentError(MutationError):
    """Raised when a point mutation receives an unusable argument."""


# --- Identity ---


class IdentityError(DocMapperError):
    """Raised when an entity's identity is absent or not scalar."""

    def __init__(self, entity: Any, detail: str) -> None:
        self.entity = entity
        super().__init__(f"{type(entity).__name__}: {detail}")


class MissingPrimaryKeyError(IdentityError):
    """Raised when primary properties are declared but none carry a value."""

    def __init__(self, entity: Any, operation: str) -> None:
        self.operation = operation
        super().__init__(
            entity, f"cannot {operation}, primary properties {list(entity.primary_key)} are empty"
        )


# --- Dirty state ---


class InconsistentDirtyStateError(DocMapperError):
    """Raised when dirty() names a property export() cannot produce."""

    def __init__(self, entity: Any, missing: list[str]) -> None:
        self.entity = entity
        self.missing = missing
        super().__init__(
            f"{type(entity).__name__} is dirty on {missing} but export() returned no value"
        )


# --- Drivers ---


class DriverError(DocMapperError):
    """Raised when a backing store operation fails.

    The store client's exception is always available as ``__cause__``.
    """

    def __init__(self, driver: str, operation: str, detail: str) -> None:
        self.driver = driver
        self.operation = operation
        super().__init__(f"{driver} {operation} failed: {detail}")
