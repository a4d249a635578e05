"""SQL parameter and identifier helpers for the SQL driver.

Statements are built with ``:name`` placeholders and converted to the
adapter's parameter style right before execution.
"""

from __future__ import annotations

import re
from functools import lru_cache

from doc_mapper.core.exceptions import InvalidArgumentError

# :name but not ::typecast and not mid-word
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)")

_STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'")

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

_SNAKE_BOUNDARY = re.compile(r"_([a-z0-9])")


def normalize_params(sql: str, paramstyle: str) -> str:
    """Convert ``:name`` parameters to ``paramstyle`` ('named' or 'pyformat')."""
    if paramstyle == "named":
        return sql
    return _to_pyformat(sql)


@lru_cache(maxsize=256)
def _to_pyformat(sql: str) -> str:
    parts: list[str] = []
    last_end = 0
    for match in _STRING_LITERAL_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:start]))
        parts.append(match.group())
        last_end = end
    if last_end < len(sql):
        parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:]))
    return "".join(parts)


def identifier(name: str) -> str:
    """Return ``name`` if it is safe to splice into SQL as a table or column."""
    if not _IDENTIFIER_PATTERN.match(name):
        raise InvalidArgumentError(f"'{name}' is not a valid SQL identifier")
    return name


def to_column(name: str) -> str:
    """camelCase property name to snake_case column name."""
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def to_property(column: str) -> str:
    """snake_case column name to camelCase property name."""
    return _SNAKE_BOUNDARY.sub(lambda m: m.group(1).upper(), column)
