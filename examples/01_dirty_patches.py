"""
Example 01: Dirty Patches

This example shows how doc_mapper turns in-memory changes into minimal
store updates, using the in-process MemoryDriver.
"""

from typing import ClassVar

from doc_mapper import Entity, Mapper, MemoryDriver, PatchBuilder


class Address(Entity):
    street: str | None = None
    city: str | None = None


class Customer(Entity):
    primary_key: ClassVar[tuple[str, ...]] = ("email",)

    email: str | None = None
    name: str | None = None
    address: Address | None = None


def main():
    driver = MemoryDriver()
    customers = Mapper(driver, Customer)
    patches = PatchBuilder()

    print("=== Dirty Patches ===\n")

    # Insert: the full document is stored, the primary becomes _id
    customer = Customer(
        email="ada@example.com",
        name="Ada",
        address=Address(street="1 Analytical Way", city="London"),
    )
    customers.persist(customer)
    print(f"Stored document: {driver.documents['ada@example.com']}\n")

    # A nested change produces a dotted $set
    customer.address.city = "Paris"
    print(f"Patch after city change: {patches.build_update(customer).to_mongo()}")
    customers.persist(customer)

    # Clearing every dirty leaf of a child removes the child
    customer.address.street = None
    customer.address.city = None
    print(f"Patch after clearing address: {patches.build_update(customer).to_mongo()}")
    customers.persist(customer)
    print(f"Stored document: {driver.documents['ada@example.com']}\n")

    # Reading back goes through a cursor
    for found in customers.find({"name": "Ada"}):
        print(f"Found: {found.email} persisted={found.is_persisted()} dirty={found.dirty()}")


if __name__ == "__main__":
    main()
