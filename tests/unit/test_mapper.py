"""Unit tests for Mapper orchestration."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from doc_mapper.core.events import Event
from doc_mapper.core.exceptions import (
    DriverError,
    InvalidArgumentError,
    InvalidPathError,
    MissingPrimaryKeyError,
    NotPersistedError,
    TypeMismatchError,
)
from doc_mapper.drivers.memory import MemoryDriver
from doc_mapper.drivers.protocol import DriverCapabilities
from doc_mapper.mapping.cursor import Cursor
from doc_mapper.mapping.mapper import Mapper
from doc_mapper.mapping.patch import PatchBuilder
from tests.entities import Line, Note, Profile


def mock_driver(**capabilities: bool) -> MagicMock:
    driver = MagicMock()
    driver.name = "mock"
    driver.capabilities = DriverCapabilities(**capabilities)
    driver.is_persisted.side_effect = lambda entity: entity.is_persisted()
    return driver


def loaded(**values: object) -> Profile:
    """Profile in the state a find() would return it."""
    return Profile(slug="ada", **values).persisted().clean()


def record(mapper: Mapper[Profile]) -> list[str]:
    names: list[str] = []
    for event in (
        "insert.pre",
        "insert.post",
        "update.pre",
        "update.post",
        "delete.pre",
        "delete.post",
        "hydrate.post",
    ):
        mapper.attach(event, lambda e, name=event: names.append(name))
    return names


# --- persist / delete ---


class TestPersist:
    def test_insert(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, profile: Profile
    ) -> None:
        events = record(mapper)
        mapper.persist(profile)
        assert "ada" in memory_driver.documents
        assert profile.is_persisted()
        assert profile.dirty() == []
        assert profile.get_extended_property("_id") == "ada"
        assert events == ["insert.pre", "insert.post"]

    def test_update_sends_only_changes(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        events = record(mapper)
        stored.address.city = "Paris"
        mapper.persist(stored)
        assert memory_driver.documents["ada"]["address"]["city"] == "Paris"
        assert memory_driver.documents["ada"]["address"]["street"] == "1 Analytical Way"
        assert stored.dirty() == []
        assert events == ["update.pre", "update.post"]

    def test_clean_persisted_entity_is_skipped(self) -> None:
        driver = mock_driver()
        mapper = Mapper(driver, Profile)
        mapper.persist(loaded())
        driver.persist.assert_not_called()

    def test_skip_if_clean_disabled(self) -> None:
        driver = mock_driver()
        entity = loaded()
        Mapper(driver, Profile).persist(entity, skip_if_clean=False)
        driver.persist.assert_called_once_with(entity)

    def test_clean_new_entity_is_inserted(self) -> None:
        driver = mock_driver()
        entity = Profile(slug="x").clean()
        Mapper(driver, Profile).persist(entity)
        driver.persist.assert_called_once_with(entity)
        assert entity.is_persisted()

    def test_driver_failure_keeps_dirty_state(self) -> None:
        driver = mock_driver()
        driver.persist.side_effect = DriverError("mock", "insert", "down")
        entity = Profile(slug="x")
        with pytest.raises(DriverError):
            Mapper(driver, Profile).persist(entity)
        assert not entity.is_persisted()
        assert entity.dirty() == ["slug"]

    def test_pending_options_reach_driver_and_reset(self, memory_driver: MemoryDriver) -> None:
        mapper = Mapper(memory_driver, Profile)
        mapper.set_option("upsert", True)
        mapper.persist(Profile(slug="x"))
        assert memory_driver.get_options() == {"upsert": True}
        assert mapper.get_options() == {}

    def test_events_fire_on_entity_too(self, mapper: Mapper[Profile], profile: Profile) -> None:
        seen: list[Event] = []
        profile.attach("insert.post", seen.append)
        mapper.persist(profile)
        assert seen[0].target is profile
        assert seen[0].params["mapper"] is mapper


class TestDelete:
    def test_delete(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        events = record(mapper)
        mapper.delete(stored)
        assert memory_driver.documents == {}
        assert not stored.is_persisted()
        assert events == ["delete.pre", "delete.post"]

    def test_missing_primary_key(self) -> None:
        driver = mock_driver()
        with pytest.raises(MissingPrimaryKeyError):
            Mapper(driver, Profile).delete(Profile(name="nobody"))
        driver.delete.assert_not_called()

    def test_entity_without_primary_uses_stored_identity(self, memory_driver: MemoryDriver) -> None:
        mapper = Mapper(memory_driver, Note)
        note = mapper.persist(Note(title="hello"))
        assert len(memory_driver.documents) == 1
        mapper.delete(note)
        assert memory_driver.documents == {}


# --- reads ---


class TestFind:
    def test_round_trip(self, mapper: Mapper[Profile], profile: Profile) -> None:
        expected = profile.export()
        mapper.persist(profile)
        found = mapper.find_one("ada")
        assert found is not None
        assert found is not profile
        assert found.export() == expected

    def test_round_trip_from_insert_document(
        self, mapper: Mapper[Profile], profile: Profile
    ) -> None:
        document = PatchBuilder().build_insert(profile)
        assert mapper.hydrate(document).export() == profile.export()

    def test_find_one_not_found(self, mapper: Mapper[Profile]) -> None:
        assert mapper.find_one({"name": "nobody"}) is None

    def test_find_returns_cursor(self, mapper: Mapper[Profile]) -> None:
        for slug, visits in (("a", 3), ("b", 1), ("c", 2)):
            mapper.persist(Profile(slug=slug, visits=visits))
        cursor = mapper.sort({"visits": -1}).limit(2).find()
        assert isinstance(cursor, Cursor)
        assert [p.slug for p in cursor.to_list()] == ["a", "c"]
        # options were consumed by that call
        assert mapper.get_sort() is None
        assert mapper.find().count() == 3

    def test_hydrate(self, mapper: Mapper[Profile]) -> None:
        events = record(mapper)
        entity = mapper.hydrate({"_id": "ada", "name": "Ada", "rev": 7})
        assert entity.slug == "ada"
        assert entity.get_extended_property("rev") == 7
        assert entity.get_extended_property("_id") == "ada"
        assert entity.is_persisted()
        assert entity.dirty() == []
        assert events == ["hydrate.post"]

    def test_hydrate_into_existing_entity_resets_it(self, mapper: Mapper[Profile]) -> None:
        entity = mapper.hydrate({"_id": "a", "name": "A", "visits": 4})
        again = mapper.hydrate({"_id": "b", "name": "B"}, entity)
        assert again is entity
        assert entity.slug == "b"
        assert entity.visits == 0

    def test_count(self, mapper: Mapper[Profile], stored: Profile) -> None:
        assert mapper.count() == 1
        assert mapper.count({"name": "nobody"}) == 0

    def test_count_unsupported(self) -> None:
        with pytest.raises(DriverError, match="not supported"):
            Mapper(mock_driver(), Profile).count()

    def test_refresh_discards_local_changes(self, mapper: Mapper[Profile], stored: Profile) -> None:
        stored.name = "Changed"
        assert mapper.refresh(stored) is stored
        assert stored.name == "Ada"
        assert stored.dirty() == []

    def test_refresh_requires_persisted(self, mapper: Mapper[Profile]) -> None:
        with pytest.raises(NotPersistedError):
            mapper.refresh(Profile(slug="x"))

    def test_refresh_missing_record(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        memory_driver.documents.clear()
        with pytest.raises(DriverError, match="no stored record"):
            mapper.refresh(stored)

    def test_resolve(self, mapper: Mapper[Profile], profile: Profile) -> None:
        assert mapper.resolve(profile, "address.city").value == "London"

    def test_set_driver(self, mapper: Mapper[Profile]) -> None:
        other = MemoryDriver()
        assert mapper.set_driver(other).driver is other


# --- point mutations ---


class TestIncrement:
    def test_requires_persisted(self, mapper: Mapper[Profile]) -> None:
        with pytest.raises(NotPersistedError):
            mapper.increment(Profile(slug="x"), "visits", 1)

    def test_requires_numeric(self, mapper: Mapper[Profile], stored: Profile) -> None:
        with pytest.raises(TypeMismatchError):
            mapper.increment(stored, "name", 1)

    def test_rejects_non_numeric_amount(self, mapper: Mapper[Profile], stored: Profile) -> None:
        with pytest.raises(InvalidArgumentError):
            mapper.increment(stored, "visits", "1")  # type: ignore[arg-type]

    def test_invalid_path_mutates_nothing(self, mapper: Mapper[Profile], stored: Profile) -> None:
        with pytest.raises(InvalidPathError):
            mapper.increment(stored, "lines.9.qty", 1)
        assert [line.qty for line in stored.lines] == [1, 2]

    def test_opposite_amounts_cancel(self, mapper: Mapper[Profile], stored: Profile) -> None:
        mapper.increment(stored, "visits", 5)
        mapper.increment(stored, "visits", -5)
        assert stored.visits == 3

    def test_sequential_increments(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        events = record(mapper)
        mapper.increment(stored, "visits", 1)
        mapper.increment(stored, "visits", 1)
        assert stored.visits == 5
        assert memory_driver.documents["ada"]["visits"] == 5
        assert stored.dirty() == []
        assert events == ["update.pre", "update.post"] * 2

    def test_nested_leaf(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.increment(stored, "lines.1.qty", 3)
        assert stored.lines[1].qty == 5
        assert memory_driver.documents["ada"]["lines"][1]["qty"] == 5
        assert stored.dirty() == []

    def test_fallback_to_persist(self) -> None:
        driver = mock_driver()
        entity = loaded(visits=1)
        Mapper(driver, Profile).increment(entity, "visits", 2)
        driver.increment.assert_not_called()
        driver.persist.assert_called_once_with(entity)
        assert entity.visits == 3

    def test_driver_failure_leaves_local_value_dirty(self) -> None:
        driver = mock_driver(increment=True)
        driver.increment.side_effect = DriverError("mock", "increment", "down")
        entity = loaded(visits=1)
        with pytest.raises(DriverError):
            Mapper(driver, Profile).increment(entity, "visits", 2)
        assert entity.visits == 3
        assert entity.dirty() == ["visits"]


class TestPushPull:
    def test_pull_then_push(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.pull(stored, "numbers", 2)
        assert stored.numbers == [1, 3]
        mapper.push(stored, "numbers", 4)
        assert stored.numbers == [1, 3, 4]
        assert memory_driver.documents["ada"]["numbers"] == [1, 3, 4]
        assert stored.dirty() == []

    def test_push_then_pull_restores(self, mapper: Mapper[Profile], stored: Profile) -> None:
        mapper.push(stored, "tags", "x")
        mapper.pull(stored, "tags", "x")
        assert stored.tags == ["math"]

    def test_push_if_not_exists(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.push(stored, "tags", "math", if_not_exists=True)
        assert stored.tags == ["math"]
        assert memory_driver.documents["ada"]["tags"] == ["math"]

    def test_push_takes_one_value(self, mapper: Mapper[Profile], stored: Profile) -> None:
        with pytest.raises(InvalidArgumentError):
            mapper.push(stored, "tags", "a", "b")
        with pytest.raises(InvalidArgumentError):
            mapper.push(stored, "tags")

    def test_push_requires_list(self, mapper: Mapper[Profile], stored: Profile) -> None:
        with pytest.raises(TypeMismatchError):
            mapper.push(stored, "name", "x")

    def test_push_requires_persisted(self, mapper: Mapper[Profile], profile: Profile) -> None:
        with pytest.raises(NotPersistedError):
            mapper.push(profile, "tags", "x")

    def test_pull_missing_value_is_noop(self, mapper: Mapper[Profile], stored: Profile) -> None:
        mapper.pull(stored, "numbers", 9)
        assert stored.numbers == [1, 2, 3]

    def test_driver_failure_happens_before_local_change(self) -> None:
        driver = mock_driver(push=True)
        driver.push.side_effect = DriverError("mock", "push", "down")
        entity = loaded(tags=["a"])
        with pytest.raises(DriverError):
            Mapper(driver, Profile).push(entity, "tags", "b")
        assert entity.tags == ["a"]

    def test_fallback_persists_local_change(self) -> None:
        driver = mock_driver()
        sent: list[list[str]] = []
        driver.persist.side_effect = lambda entity: sent.append(list(entity.tags))
        entity = loaded(tags=["a"])
        Mapper(driver, Profile).push(entity, "tags", "b")
        driver.push.assert_not_called()
        assert sent == [["a", "b"]]
        assert entity.dirty() == []


class TestEmbeddedLists:
    def test_push_stores_plain_dict(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.push(stored, "lines", Line(sku="c", qty=3))
        assert [line.sku for line in stored.lines] == ["a", "b", "c"]
        assert memory_driver.documents["ada"]["lines"] == [
            {"sku": "a", "qty": 1},
            {"sku": "b", "qty": 2},
            {"sku": "c", "qty": 3},
        ]
        assert stored.dirty() == []

    def test_push_accepts_dict(self, mapper: Mapper[Profile], stored: Profile) -> None:
        mapper.push(stored, "lines", {"sku": "c", "qty": 3})
        assert isinstance(stored.lines[-1], Line)
        assert stored.lines[-1].qty == 3

    def test_pull_matches_by_value(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.pull(stored, "lines", Line(sku="a", qty=1))
        assert [line.sku for line in stored.lines] == ["b"]
        assert memory_driver.documents["ada"]["lines"] == [{"sku": "b", "qty": 2}]

    def test_push_if_not_exists_skips_equal_entity(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        mapper.push(stored, "lines", Line(sku="a", qty=1), if_not_exists=True)
        assert len(stored.lines) == 2
        assert len(memory_driver.documents["ada"]["lines"]) == 2

    def test_found_entity_round_trip(
        self, mapper: Mapper[Profile], memory_driver: MemoryDriver, stored: Profile
    ) -> None:
        found = mapper.find_one("ada")
        mapper.push(found, "lines", Line(sku="c", qty=3))
        mapper.pull(found, "lines", Line(sku="b", qty=2))
        assert [line.sku for line in found.lines] == ["a", "c"]
        assert [line["sku"] for line in memory_driver.documents["ada"]["lines"]] == ["a", "c"]

    def test_fallback_persists_entities(self) -> None:
        driver = mock_driver()
        entity = loaded(lines=[Line(sku="a", qty=1)])
        Mapper(driver, Profile).pull(entity, "lines", {"sku": "a", "qty": 1})
        driver.pull.assert_not_called()
        driver.persist.assert_called_once_with(entity)
        assert entity.lines == []
