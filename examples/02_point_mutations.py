"""
Example 02: Point Mutations and Events

This example demonstrates increment/push/pull against a driver with atomic
operations (MemoryDriver) and one without them (FileDriver), plus lifecycle
event listeners.
"""

import tempfile
from typing import ClassVar

from doc_mapper import Entity, Mapper, MemoryDriver, configure_logging
from doc_mapper.drivers.file import FileDriver


class Counter(Entity):
    primary_key: ClassVar[tuple[str, ...]] = ("name",)

    name: str | None = None
    hits: int = 0
    tags: list[str] = []


def run(mapper):
    mapper.attach("update.post", lambda event: print(f"  update.post: {event.params}"))

    counter = mapper.persist(Counter(name="home"))
    mapper.increment(counter, "hits", 1)
    mapper.increment(counter, "hits", 10)
    mapper.push(counter, "tags", "landing")
    mapper.push(counter, "tags", "landing", if_not_exists=True)
    mapper.pull(counter, "tags", "landing")

    stored = mapper.find_one("home")
    print(f"  in memory: hits={counter.hits} tags={counter.tags}")
    print(f"  stored:    hits={stored.hits} tags={stored.tags}\n")


def main():
    configure_logging(level="DEBUG", fmt="console")

    print("=== Atomic driver (MemoryDriver) ===\n")
    run(Mapper(MemoryDriver(), Counter))

    print("=== Fallback to persist (FileDriver) ===\n")
    with tempfile.TemporaryDirectory() as directory:
        run(Mapper(FileDriver(directory), Counter))


if __name__ == "__main__":
    main()
