"""Pending query options shared by mappers and drivers.

A Mapper collects limit/skip/sort/timeout/properties/options for the next
call and hands them to its driver with prepare(), which drains them into a
QueryOptions snapshot and resets the mapper for the following call.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from doc_mapper.core.exceptions import InvalidArgumentError

SortSpec = dict[str, int]


class QueryOptions(BaseModel):
    """Plain snapshot of a Query's pending state."""

    properties: list[str] = Field(default_factory=list)
    sort: SortSpec | None = None
    limit: int | None = None
    skip: int | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    timeout: int | None = None


def _normalize_sort(criteria: Mapping[str, int] | Iterable[tuple[str, int]]) -> SortSpec:
    if isinstance(criteria, Mapping):
        return {str(name): int(direction) for name, direction in criteria.items()}
    try:
        return {str(name): int(direction) for name, direction in criteria}
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(
            f"sort criteria must map property names to 1 or -1: {criteria!r}"
        ) from e


class Query:
    """Fluent holder for the options of the next find/persist call."""

    def __init__(self) -> None:
        self._limit: int | None = None
        self._default_limit: int | None = None
        self._skip: int | None = None
        self._sort: SortSpec | None = None
        self._timeout: int | None = None
        self._options: dict[str, Any] = {}
        self._properties: list[str] = []

    # --- limit / skip ---

    def limit(self, num: int | None) -> Query:
        """Limit the number of entities the next find hydrates."""
        self._limit = num
        return self

    def default_limit(self, num: int) -> Query:
        """Limit used when no explicit limit is pending. Survives clear()."""
        self._default_limit = num
        return self

    def get_limit(self) -> int | None:
        return self._limit if self._limit is not None else self._default_limit

    def skip(self, num: int | None) -> Query:
        self._skip = num
        return self

    def get_skip(self) -> int | None:
        return self._skip

    # --- sort ---

    def sort(self, criteria: Mapping[str, int] | Iterable[tuple[str, int]]) -> Query:
        """Sort the next find by ``{property: 1 | -1}``."""
        self._sort = _normalize_sort(criteria)
        return self

    def default_sort(self, criteria: Mapping[str, int] | Iterable[tuple[str, int]]) -> Query:
        """Apply ``criteria`` only if no sort is pending."""
        if not self._sort:
            self.sort(criteria)
        return self

    def get_sort(self) -> SortSpec | None:
        return self._sort

    # --- timeout ---

    def timeout(self, seconds: int | float | None) -> Query:
        self._timeout = int(seconds) if seconds is not None else None
        return self

    def get_timeout(self) -> int | None:
        return self._timeout

    # --- options ---

    def set_option(self, name: str, value: Any) -> Query:
        """Set a driver level option for the next call."""
        self._options[name] = value
        return self

    def set_options(self, options: Mapping[str, Any]) -> Query:
        if not isinstance(options, Mapping):
            raise InvalidArgumentError("options must be a mapping of option names to values")
        for name, value in options.items():
            self.set_option(name, value)
        return self

    def get_options(self, defaults: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Return pending options.

        With ``defaults``, only the default keys are returned, each overridden
        by a pending option of the same name. Without, every pending option.
        """
        if defaults is None:
            return dict(self._options)
        result: dict[str, Any] = {}
        for name, value in defaults.items():
            result[name] = self._options.get(name, value)
        return result

    # --- properties ---

    def properties(self, properties: str | Iterable[str] = ()) -> Query:
        """Select which properties the next find should fill in."""
        if isinstance(properties, str):
            self._properties = [properties]
            return self
        try:
            self._properties = [str(name) for name in properties]
        except TypeError as e:
            raise InvalidArgumentError(
                "properties should be a property name or an iterable of names"
            ) from e
        return self

    def get_properties(self) -> list[str]:
        return list(self._properties)

    # --- state transfer ---

    def clear(self) -> Query:
        """Reset pending options. Defaults set with default_limit() are kept."""
        self._sort = self._limit = self._skip = self._timeout = None
        self._options = {}
        self._properties = []
        return self

    def export(self) -> QueryOptions:
        return QueryOptions(
            properties=self.get_properties(),
            sort=self.get_sort(),
            limit=self.get_limit(),
            skip=self.get_skip(),
            options=self.get_options(),
            timeout=self.get_timeout(),
        )

    def from_options(self, options: QueryOptions | Mapping[str, Any]) -> Query:
        """Import options in the shape produced by export()."""
        if not isinstance(options, QueryOptions):
            options = QueryOptions.model_validate(dict(options))

        if options.properties:
            self.properties(options.properties)
        if options.options:
            self.set_options(options.options)
        if options.limit is not None:
            self.limit(options.limit)
        if options.skip is not None:
            self.skip(options.skip)
        if options.sort is not None:
            self.sort(options.sort)
        if options.timeout is not None:
            self.timeout(options.timeout)
        return self

    def prepare(self, target: Query, clear: bool = True) -> Query:
        """Hand pending options to ``target`` and return it.

        ``target`` is reset first so options from an earlier call never leak
        into this one; ours are reset afterwards unless ``clear`` is False.
        """
        snapshot = self.export()
        target.clear().from_options(snapshot)
        if clear:
            self.clear()
        return target
