"""Unit tests for the Entity base class."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from doc_mapper.core.enums import PropertyKind
from doc_mapper.core.events import Event
from doc_mapper.core.exceptions import InvalidPathError
from tests.entities import Address, Line, Pair, Profile


class TestPropertyTypes:
    def test_kinds(self) -> None:
        types = Profile.property_types()
        assert types["name"].kind is PropertyKind.SCALAR
        assert types["address"].kind is PropertyKind.EMBEDDED
        assert types["address"].entity_class is Address
        assert types["tags"].kind is PropertyKind.LIST
        assert types["lines"].kind is PropertyKind.LIST_OF_EMBEDDED
        assert types["lines"].entity_class is Line

    def test_numeric_detection(self) -> None:
        types = Profile.property_types()
        assert types["visits"].numeric
        assert types["score"].numeric
        assert not types["name"].numeric

    def test_unset_sentinels(self) -> None:
        types = Profile.property_types()
        assert types["name"].unset_value is None
        assert types["tags"].unset_value == []

    def test_unknown_property(self) -> None:
        with pytest.raises(InvalidPathError):
            Profile().type_of("nickname")


class TestDirtyTracking:
    def test_constructor_values_are_dirty(self) -> None:
        assert Profile(slug="a", visits=2).dirty() == ["slug", "visits"]

    def test_assignment_marks_dirty(self) -> None:
        profile = Profile().clean()
        profile.name = "Ada"
        assert profile.dirty() == ["name"]

    def test_set_validates(self) -> None:
        profile = Profile()
        with pytest.raises(ValidationError):
            profile.set("visits", "many")

    def test_dirty_child_marks_parent(self, profile: Profile) -> None:
        profile.clean()
        profile.address.city = "Paris"
        assert profile.dirty() == ["address"]
        profile.clean()
        profile.lines[1].qty = 7
        assert profile.dirty() == ["lines"]

    def test_clean_one_property_cascades(self, profile: Profile) -> None:
        profile.clean("address")
        assert "address" not in profile.dirty()
        assert profile.address.dirty() == []
        assert "name" in profile.dirty()

    def test_reset(self, profile: Profile) -> None:
        profile.persisted().set_extended_property("_id", "x")
        profile.reset()
        assert profile.name is None
        assert profile.tags == []
        assert profile.dirty() == []
        assert not profile.is_persisted()
        assert profile.extended_properties() == {}


class TestValues:
    def test_primary(self) -> None:
        assert Pair(left="a", right=1).primary() == {"left": "a", "right": 1}
        assert Address().primary() == {}

    def test_export_subset(self, profile: Profile) -> None:
        assert profile.export(["name", "visits"]) == {"name": "Ada", "visits": 3}

    def test_export_raw_nested(self, profile: Profile) -> None:
        exported = profile.export(raw=True)
        assert exported["address"]["city"] == "London"
        assert exported["lines"][1] == {"sku": "b", "qty": 2}

    def test_from_dict_ignores_unknown(self) -> None:
        profile = Profile().from_dict({"name": "Ada", "unknown": 1, "address": {"city": "Rome"}})
        assert profile.name == "Ada"
        assert isinstance(profile.address, Address)
        assert profile.address.city == "Rome"

    def test_extended_properties(self) -> None:
        profile = Profile().set_extended_property("_id", "abc")
        assert profile.get_extended_property("_id") == "abc"
        assert profile.get_extended_property("missing", "default") == "default"
        assert "_id" not in profile.export()


class TestEntityEvents:
    def test_trigger_without_listeners(self) -> None:
        assert Profile().trigger("update.pre") == []

    def test_attach_and_trigger(self) -> None:
        profile = Profile()
        seen: list[Event] = []
        profile.attach("update.pre", seen.append)
        profile.trigger("update.pre", path="visits")
        assert seen[0].target is profile
        assert seen[0].params == {"path": "visits"}
