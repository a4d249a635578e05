"""MongoDB driver (pymongo).

One document per aggregate root. Inserts send the full document, updates
send ``$set``/``$unset`` built from the entity's dirty state, and point
mutations map onto ``$inc``, ``$push``/``$addToSet`` and ``$pull``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from doc_mapper.core.exceptions import DriverError
from doc_mapper.drivers.base import DocumentDriver
from doc_mapper.drivers.protocol import DriverCapabilities
from doc_mapper.entity.base import Entity
from doc_mapper.mapping.patch import PatchBuilder

if TYPE_CHECKING:
    from doc_mapper.core.connection import ConnectionConfig

logger = structlog.get_logger(__name__)


def object_id() -> Any:
    """Identity generator producing native ObjectIds."""
    from bson import ObjectId

    return ObjectId()


class MongoDriver(DocumentDriver):
    """Stores entities in one pymongo collection.

    Args:
        collection: A ``pymongo.collection.Collection`` (or compatible object).
    """

    name = "mongodb"
    capabilities = DriverCapabilities(increment=True, push=True, pull=True, count=True)

    def __init__(self, collection: Any, patch_builder: PatchBuilder | None = None) -> None:
        patch_builder = patch_builder or PatchBuilder(id_factory=object_id)
        super().__init__(connection=collection, patch_builder=patch_builder)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> MongoDriver:
        import pymongo

        client: Any = pymongo.MongoClient(
            host=config.host or "localhost",
            port=config.port or 27017,
            username=config.user,
            password=config.password,
            serverSelectionTimeoutMS=int(config.timeout * 1000),
            **config.extra,
        )
        if not config.collection:
            raise DriverError(cls.name, "connect", "a collection name is required")
        return cls(client[config.database][config.collection])

    @property
    def collection(self) -> Any:
        return self.connection

    # --- writes ---

    def persist(self, entity: Entity) -> None:
        if not self.is_persisted(entity):
            document = self.patches.build_insert(entity)
            with self._wrap("insert"):
                self.collection.insert_one(
                    document, **self.get_options({"bypass_document_validation": False})
                )
            logger.debug("document_inserted", collection=self._collection_name())
            return

        patch = self.patches.build_update(entity)
        if not patch:
            return
        self._update(entity, "update", patch.to_mongo())

    def delete(self, entity: Entity) -> None:
        criteria = self.identity_criteria(entity)
        with self._wrap("delete"):
            self.collection.delete_one(criteria)

    def increment(self, entity: Entity, path: str, amount: int | float) -> None:
        self._update(entity, "increment", {"$inc": {path: amount}})

    def push(self, entity: Entity, path: str, value: Any, if_not_exists: bool = False) -> None:
        op = "$addToSet" if if_not_exists else "$push"
        self._update(entity, "push", {op: {path: value}})

    def pull(self, entity: Entity, path: str, value: Any) -> None:
        self._update(entity, "pull", {"$pull": {path: value}})

    def _update(self, entity: Entity, operation: str, update: dict[str, Any]) -> None:
        criteria = self.identity_criteria(entity)
        options = self.get_options({"upsert": False})
        with self._wrap(operation):
            self.collection.update_one(criteria, update, **options)
        logger.debug("document_updated", operation=operation, criteria=criteria, update=update)

    # --- reads ---

    def find_one(self, criteria: Any = None) -> dict[str, Any] | None:
        with self._wrap("find_one"):
            return self.collection.find_one(
                self._criteria(criteria), self._projection(), **self._read_options()
            )

    def find(self, criteria: Any = None) -> Any:
        kwargs = self._read_options()
        if self.get_sort():
            kwargs["sort"] = list(self.get_sort().items())
        if self.get_skip():
            kwargs["skip"] = self.get_skip()
        if self.get_limit():
            kwargs["limit"] = self.get_limit()
        with self._wrap("find"):
            return self.collection.find(self._criteria(criteria), self._projection(), **kwargs)

    def count(self, criteria: Any = None) -> int:
        kwargs: dict[str, Any] = {}
        if self.get_timeout():
            kwargs["maxTimeMS"] = self.get_timeout() * 1000
        with self._wrap("count"):
            return self.collection.count_documents(self._criteria(criteria), **kwargs)

    # --- helpers ---

    def _criteria(self, criteria: Any) -> dict[str, Any]:
        if criteria is None:
            return {}
        if isinstance(criteria, dict):
            return criteria
        return {self.patches.identity_field: criteria}

    def _projection(self) -> list[str] | None:
        return self.get_properties() or None

    def _read_options(self) -> dict[str, Any]:
        if self.get_timeout():
            return {"max_time_ms": self.get_timeout() * 1000}
        return {}

    def _collection_name(self) -> str:
        return getattr(self.collection, "name", "?")
