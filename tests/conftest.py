"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from doc_mapper.core.connection import ConnectionConfig
from doc_mapper.drivers.memory import MemoryDriver
from doc_mapper.mapping.mapper import Mapper
from tests.entities import Address, Line, Profile


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:", collection="accounts")


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Empty directory for the file driver."""
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def memory_driver() -> MemoryDriver:
    return MemoryDriver()


@pytest.fixture
def mapper(memory_driver: MemoryDriver) -> Mapper[Profile]:
    return Mapper(memory_driver, Profile)


@pytest.fixture
def profile() -> Profile:
    """A fully populated, never persisted profile."""
    return Profile(
        slug="ada",
        name="Ada",
        visits=3,
        tags=["math"],
        numbers=[1, 2, 3],
        address=Address(street="1 Analytical Way", city="London"),
        lines=[Line(sku="a", qty=1), Line(sku="b", qty=2)],
    )


@pytest.fixture
def stored(mapper: Mapper[Profile], profile: Profile) -> Profile:
    """The profile fixture after a successful insert."""
    return mapper.persist(profile)
