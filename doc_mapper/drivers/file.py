"""JSON file driver: one file per entity inside a directory."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from doc_mapper.core.exceptions import DriverError, IdentityError
from doc_mapper.drivers.base import AbstractDriver
from doc_mapper.drivers.memory import match_criteria
from doc_mapper.entity.base import Entity

if TYPE_CHECKING:
    from doc_mapper.core.connection import ConnectionConfig

logger = structlog.get_logger(__name__)

_SAFE_NAME = re.compile(r"^[\w.-]+$")


class FileDriver(AbstractDriver):
    """Writes each entity to ``<directory>/<identity>.json``.

    Every write rewrites the whole file; there are no atomic point
    operations, so the Mapper falls back to persist() for them.
    """

    name = "file"

    def __init__(self, directory: str | Path, **kwargs: Any) -> None:
        super().__init__(connection=Path(directory), **kwargs)

    def init(self) -> None:
        if not self.connection.is_dir():
            raise DriverError(self.name, "connect", f"'{self.connection}' is not a directory")

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> FileDriver:
        return cls(config.database)

    @property
    def directory(self) -> Path:
        return self.connection

    # --- writes ---

    def persist(self, entity: Entity) -> None:
        identity = self.patches.identity(entity)
        data = entity.export(raw=True)
        data[self.patches.identity_field] = identity
        path = self._path(entity, identity)
        with self._wrap("persist"):
            path.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")
        logger.debug("file_written", path=str(path))

    def delete(self, entity: Entity) -> None:
        identity = self.require_identity(entity, "delete")
        with self._wrap("delete"):
            self._path(entity, identity).unlink(missing_ok=True)

    # --- reads ---

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        if criteria is not None and not isinstance(criteria, Mapping):
            path = self.directory / f"{criteria}.json"
            return self._read(path) if path.is_file() else None
        rows = self._scan(criteria)
        return rows[0] if rows else None

    def find(self, criteria: Any = None) -> list[dict[str, Any]]:
        rows = self._scan(criteria)
        skip = self.get_skip() or 0
        limit = self.get_limit()
        return rows[skip : skip + limit if limit is not None else None]

    def identity_criteria(self, entity: Entity) -> Any:
        return self.require_identity(entity, "find")

    # --- helpers ---

    def _scan(self, criteria: Mapping[str, Any] | None) -> list[dict[str, Any]]:
        rows = []
        with self._wrap("find"):
            for path in sorted(self.directory.glob("*.json")):
                row = self._read(path)
                if criteria is None or match_criteria(row, criteria):
                    rows.append(row)
        return rows

    def _read(self, path: Path) -> dict[str, Any]:
        with self._wrap("read"):
            return json.loads(path.read_text(encoding="utf-8"))

    def _path(self, entity: Entity, identity: Any) -> Path:
        name = str(identity)
        if not _SAFE_NAME.match(name):
            raise IdentityError(entity, f"identity {name!r} cannot be used as a file name")
        return self.directory / f"{name}.json"
