"""Unit tests for the in-process document driver."""

from __future__ import annotations

import pytest

from doc_mapper.core.exceptions import DriverError, MissingPrimaryKeyError
from doc_mapper.drivers.memory import (
    MemoryDriver,
    apply_update,
    deep_get,
    deep_set,
    deep_unset,
    match_criteria,
)
from tests.entities import Profile


class TestDottedKeys:
    def test_deep_get_through_lists(self) -> None:
        doc = {"lines": [{"qty": 1}, {"qty": 2}]}
        assert deep_get(doc, "lines.1.qty") == 2
        assert deep_get(doc, "lines.5.qty", "missing") == "missing"

    def test_deep_set_creates_parents(self) -> None:
        doc: dict = {}
        deep_set(doc, "address.city", "Paris")
        assert doc == {"address": {"city": "Paris"}}

    def test_deep_set_list_index_out_of_range(self) -> None:
        with pytest.raises(KeyError):
            deep_set({"tags": []}, "tags.3", "x")

    def test_deep_unset(self) -> None:
        doc = {"address": {"city": "Paris", "street": "x"}}
        deep_unset(doc, "address.city")
        deep_unset(doc, "missing.key")
        assert doc == {"address": {"street": "x"}}


class TestApplyUpdate:
    def test_set_and_unset(self) -> None:
        doc = {"a": 1, "b": {"c": 2, "d": 3}}
        result = apply_update(doc, {"$set": {"b.c": 5}, "$unset": {"b.d": ""}})
        assert result == {"a": 1, "b": {"c": 5}}
        assert doc == {"a": 1, "b": {"c": 2, "d": 3}}

    def test_inc_missing_starts_at_zero(self) -> None:
        assert apply_update({}, {"$inc": {"n": 2}}) == {"n": 2}

    def test_inc_rejects_non_numeric(self) -> None:
        with pytest.raises(TypeError):
            apply_update({"n": "x"}, {"$inc": {"n": 1}})

    def test_push_add_to_set_pull(self) -> None:
        doc = {"tags": ["a", "b", "a"]}
        assert apply_update(doc, {"$push": {"tags": "a"}})["tags"] == ["a", "b", "a", "a"]
        assert apply_update(doc, {"$addToSet": {"tags": "a"}})["tags"] == ["a", "b", "a"]
        assert apply_update(doc, {"$pull": {"tags": "a"}})["tags"] == ["b"]

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValueError):
            apply_update({}, {"$rename": {"a": "b"}})


class TestMatchCriteria:
    def test_equality_and_dotted_keys(self) -> None:
        doc = {"name": "Ada", "address": {"city": "London"}}
        assert match_criteria(doc, {"name": "Ada", "address.city": "London"})
        assert not match_criteria(doc, {"address.city": "Paris"})

    def test_list_membership(self) -> None:
        assert match_criteria({"tags": ["a", "b"]}, {"tags": "b"})

    def test_missing_matches_none(self) -> None:
        assert match_criteria({}, {"name": None})
        assert not match_criteria({}, {"name": "Ada"})


class TestMemoryDriver:
    def test_duplicate_insert(self, memory_driver: MemoryDriver) -> None:
        memory_driver.persist(Profile(slug="a"))
        with pytest.raises(DriverError, match="duplicate identity"):
            memory_driver.persist(Profile(slug="a"))

    def test_update_of_missing_document(self, memory_driver: MemoryDriver) -> None:
        entity = Profile(slug="ghost").persisted().clean()
        entity.name = "Boo"
        with pytest.raises(DriverError, match="no document"):
            memory_driver.persist(entity)

    def test_delete_without_identity(self, memory_driver: MemoryDriver) -> None:
        with pytest.raises(MissingPrimaryKeyError):
            memory_driver.delete(Profile())

    def test_failed_update_wrapped(self, memory_driver: MemoryDriver) -> None:
        entity = Profile(slug="a", name="Ada")
        memory_driver.persist(entity)
        entity.persisted()
        with pytest.raises(DriverError) as info:
            memory_driver.increment(entity, "name", 1)
        assert isinstance(info.value.__cause__, TypeError)

    def test_find_skip_limit_sort_properties(self, memory_driver: MemoryDriver) -> None:
        for slug, visits in (("a", 1), ("b", 3), ("c", 2), ("d", None)):
            memory_driver.persist(Profile(slug=slug, visits=visits or 0, name=slug.upper()))
        memory_driver.sort({"visits": 1}).skip(1).limit(2).properties(["name"])
        rows = memory_driver.find()
        assert rows == [{"_id": "a", "name": "A"}, {"_id": "c", "name": "C"}]

    def test_shared_documents(self) -> None:
        documents: dict = {}
        MemoryDriver(documents).persist(Profile(slug="a"))
        assert MemoryDriver(documents).count() == 1

    def test_find_one_by_identity(self, memory_driver: MemoryDriver) -> None:
        memory_driver.persist(Profile(slug="a"))
        assert memory_driver.find_one("a")["_id"] == "a"
        assert memory_driver.find_one("z") is None
