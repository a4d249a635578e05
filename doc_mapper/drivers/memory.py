"""In-process document store driver.

Documents live in a dict keyed by identity and are changed with the same
update operators the MongoDB driver sends ($set, $unset, $inc, $push,
$addToSet, $pull), so it doubles as a test double for document stores.
Dotted keys may step through lists with integer segments (``items.1.qty``).
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from doc_mapper.core.exceptions import DriverError, InvalidArgumentError
from doc_mapper.drivers.base import DocumentDriver
from doc_mapper.drivers.protocol import DriverCapabilities
from doc_mapper.entity.base import Entity

if TYPE_CHECKING:
    from doc_mapper.core.connection import ConnectionConfig

logger = structlog.get_logger(__name__)

_MISSING = object()


# --- dotted key helpers ---


def _step(node: Any, part: str) -> Any:
    if isinstance(node, dict):
        return node.get(part, _MISSING)
    if isinstance(node, list) and part.isdigit() and int(part) < len(node):
        return node[int(part)]
    return _MISSING


def deep_get(doc: dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    cur: Any = doc
    for part in dotted_key.split("."):
        cur = _step(cur, part)
        if cur is _MISSING:
            return default
    return cur


def deep_set(doc: dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cur: Any = doc
    for part in parts[:-1]:
        nxt = _step(cur, part)
        if nxt is _MISSING or not isinstance(nxt, (dict, list)):
            if not isinstance(cur, dict):
                raise KeyError(f"cannot create '{part}' inside a list in '{dotted_key}'")
            nxt = cur[part] = {}
        cur = nxt
    last = parts[-1]
    if isinstance(cur, list):
        if not last.isdigit() or int(last) >= len(cur):
            raise KeyError(f"index '{last}' out of range in '{dotted_key}'")
        cur[int(last)] = value
    else:
        cur[last] = value


def deep_unset(doc: dict[str, Any], dotted_key: str) -> None:
    parts = dotted_key.split(".")
    cur: Any = doc
    for part in parts[:-1]:
        cur = _step(cur, part)
        if cur is _MISSING:
            return
    if isinstance(cur, dict):
        cur.pop(parts[-1], None)
    elif isinstance(cur, list) and parts[-1].isdigit() and int(parts[-1]) < len(cur):
        # MongoDB leaves a null hole rather than shifting the array
        cur[int(parts[-1])] = None


def apply_update(doc: dict[str, Any], update: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Return a copy of ``doc`` with MongoDB style update operators applied."""
    new_doc = copy.deepcopy(doc)
    for op, changes in update.items():
        for key, value in changes.items():
            match op:
                case "$set":
                    deep_set(new_doc, key, copy.deepcopy(value))
                case "$unset":
                    deep_unset(new_doc, key)
                case "$inc":
                    cur = deep_get(new_doc, key, 0)
                    if isinstance(cur, bool) or not isinstance(cur, (int, float)):
                        raise TypeError(f"$inc requires a numeric field: {key}")
                    deep_set(new_doc, key, cur + value)
                case "$push" | "$addToSet" | "$pull":
                    arr = deep_get(new_doc, key, None)
                    if arr is None:
                        arr = []
                    if not isinstance(arr, list):
                        raise TypeError(f"{op} requires an array field: {key}")
                    if op == "$pull":
                        arr = [item for item in arr if item != value]
                    elif op == "$push" or value not in arr:
                        arr = [*arr, copy.deepcopy(value)]
                    deep_set(new_doc, key, arr)
                case _:
                    raise ValueError(f"unsupported update operator {op}")
    return new_doc


def match_criteria(doc: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """Equality match on every (possibly dotted) key of ``criteria``."""
    for key, expected in criteria.items():
        actual = deep_get(dict(doc), key, _MISSING)
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual is _MISSING:
            if expected is not None:
                return False
        elif actual != expected:
            return False
    return True


class MemoryDriver(DocumentDriver):
    """Keeps documents of one collection in a plain dict.

    Args:
        documents: Backing dict of identity to document. Pass the same
            dict to several drivers to share a collection.
    """

    name = "memory"
    capabilities = DriverCapabilities(increment=True, push=True, pull=True, count=True)

    def __init__(self, documents: dict[Any, dict[str, Any]] | None = None, **kwargs: Any) -> None:
        super().__init__(connection=documents if documents is not None else {}, **kwargs)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> MemoryDriver:
        return cls()

    @property
    def documents(self) -> dict[Any, dict[str, Any]]:
        return self.connection

    # --- writes ---

    def persist(self, entity: Entity) -> None:
        if not self.is_persisted(entity):
            document = self.patches.build_insert(entity)
            identity = document[self.patches.identity_field]
            if identity in self.documents:
                raise DriverError(self.name, "insert", f"duplicate identity {identity!r}")
            self.documents[identity] = copy.deepcopy(document)
            logger.debug("document_inserted", identity=identity)
            return

        patch = self.patches.build_update(entity)
        if not patch:
            return
        self._update(entity, "update", patch.to_mongo())

    def delete(self, entity: Entity) -> None:
        identity = self.require_identity(entity, "delete")
        self.documents.pop(identity, None)

    def increment(self, entity: Entity, path: str, amount: int | float) -> None:
        self._update(entity, "increment", {"$inc": {path: amount}})

    def push(self, entity: Entity, path: str, value: Any, if_not_exists: bool = False) -> None:
        op = "$addToSet" if if_not_exists else "$push"
        self._update(entity, "push", {op: {path: value}})

    def pull(self, entity: Entity, path: str, value: Any) -> None:
        self._update(entity, "pull", {"$pull": {path: value}})

    def _update(self, entity: Entity, operation: str, update: dict[str, dict[str, Any]]) -> None:
        identity = self.require_identity(entity, operation)
        document = self.documents.get(identity)
        if document is None:
            raise DriverError(self.name, operation, f"no document with identity {identity!r}")
        with self._wrap(operation):
            self.documents[identity] = apply_update(document, update)
        logger.debug("document_updated", identity=identity, operation=operation, update=update)

    # --- reads ---

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        rows = self._select(criteria, limit=1)
        return rows[0] if rows else None

    def find(self, criteria: Any = None) -> list[dict[str, Any]]:
        return self._select(criteria, self.get_limit())

    def count(self, criteria: Any = None) -> int:
        return len(self._matching(criteria))

    def _matching(self, criteria: Any) -> list[dict[str, Any]]:
        if criteria is None:
            return list(self.documents.values())
        if not isinstance(criteria, Mapping):
            # bare identity
            document = self.documents.get(criteria)
            return [document] if document is not None else []
        return [doc for doc in self.documents.values() if match_criteria(doc, criteria)]

    def _select(self, criteria: Any, limit: int | None) -> list[dict[str, Any]]:
        rows = self._matching(criteria)
        for name, direction in reversed(list((self.get_sort() or {}).items())):
            if direction not in (1, -1):
                raise InvalidArgumentError(f"sort direction for '{name}' must be 1 or -1")
            rows.sort(key=lambda doc: _sort_key(deep_get(doc, name)), reverse=direction == -1)

        skip = self.get_skip() or 0
        rows = rows[skip : skip + limit if limit is not None else None]
        return [self._project(doc) for doc in rows]

    def _project(self, document: dict[str, Any]) -> dict[str, Any]:
        properties = self.get_properties()
        if not properties:
            return copy.deepcopy(document)
        keep = {self.patches.identity_field, *properties}
        return {key: copy.deepcopy(value) for key, value in document.items() if key in keep}


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first, as in MongoDB
    return (0, 0) if value is None else (1, value)
