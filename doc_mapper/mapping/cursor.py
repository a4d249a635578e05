"""Lazy cursor over raw rows returned by a driver.

Rows are hydrated one at a time on current(). By default the cursor keeps
handing the same entity instance back to Mapper.hydrate, so every
iteration step mutates one object in place. Use to_list() to get distinct
instances.

A Sequence source is random access: the cursor keeps its own position,
may read in reverse and can always rewind. Any other iterable is treated
as a forward-only stream.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from doc_mapper.core.exceptions import InvalidArgumentError
from doc_mapper.entity.base import Entity

if TYPE_CHECKING:
    from doc_mapper.mapping.mapper import Mapper

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Entity)

_EXHAUSTED = object()


class Cursor(Generic[E]):
    """Iterates hydrated entities of a find() result.

    Args:
        mapper: Mapper used to hydrate each row.
        rows: Raw rows from the driver.
        reverse: Read a random access source back to front.
        reuse: Hydrate every row into the same entity instance.
    """

    def __init__(
        self,
        mapper: Mapper[E],
        rows: Iterable[dict[str, Any]],
        reverse: bool = False,
        reuse: bool = True,
    ) -> None:
        self.mapper = mapper
        self.reuse = reuse
        self._rows = rows
        self._random_access = isinstance(rows, Sequence)
        if reverse and not self._random_access:
            raise InvalidArgumentError("reverse reads need a random access row source")
        self._reverse = reverse
        self._position = 0
        self._entity: E | None = None
        self._stream: Iterator[dict[str, Any]] | None = None
        self._row: Any = None

    def __iter__(self) -> Iterator[E]:
        if self._random_access:
            self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    # --- position ---

    def key(self) -> int:
        return self._position

    def valid(self) -> bool:
        if self._random_access:
            return 0 <= self._position < len(self._rows)
        return self._peek() is not _EXHAUSTED

    def next(self) -> None:
        self._position += 1
        if not self._random_access:
            self._peek()
            self._row = None

    def rewind(self) -> None:
        """Restart from the first row.

        Forward-only sources can only restart when they expose their own
        ``rewind()`` (as database cursors do) or have not been read yet.
        """
        self._entity = None
        if self._random_access:
            self._position = 0
            return
        if self._stream is None:
            return
        restart = getattr(self._rows, "rewind", None)
        if restart is None:
            raise InvalidArgumentError("cursor source is forward-only and cannot be rewound")
        restart()
        self._position = 0
        self._stream = None
        self._row = None

    # --- rows ---

    def current(self) -> E | None:
        """Hydrate the row at the current position."""
        row = self._raw()
        if row is _EXHAUSTED:
            return None
        entity = self.mapper.hydrate(row, self._entity if self.reuse else None)
        if self.reuse:
            self._entity = entity
        self.mapper.events.trigger("hydrate", entity, index=self._position)
        return entity

    def count(self) -> int:
        """Number of rows.

        Random access sources answer directly. A forward-only stream has
        to be read to the end, which consumes it.
        """
        if self._random_access:
            return len(self._rows)
        total = self._position
        while self._peek() is not _EXHAUSTED:
            total += 1
            self._row = None
        self._position = total
        return total

    def to_list(self) -> list[E]:
        """Hydrate every row into its own entity instance."""
        if self._random_access:
            self.rewind()
        result: list[E] = []
        while self.valid():
            result.append(self.mapper.hydrate(self._raw()))
            self.next()
        logger.debug("cursor_materialized", count=len(result))
        return result

    def export(self) -> list[dict[str, Any]]:
        return [entity.export() for entity in self.to_list()]

    # --- internals ---

    def _raw(self) -> Any:
        if self._random_access:
            if not self.valid():
                return _EXHAUSTED
            index = len(self._rows) - 1 - self._position if self._reverse else self._position
            return self._rows[index]
        return self._peek()

    def _peek(self) -> Any:
        if self._row is None:
            self._advance()
        return self._row

    def _advance(self) -> None:
        if self._stream is None:
            self._stream = iter(self._rows)
        self._row = next(self._stream, _EXHAUSTED)
