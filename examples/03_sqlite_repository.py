"""
Example 03: SQLite Repository

This example demonstrates the SQL driver behind a Repository subclass,
with camelCase properties stored in snake_case columns.
"""

import tempfile
from pathlib import Path
from typing import ClassVar

from doc_mapper import ConnectionConfig, Entity, Repository, create_driver


class Account(Entity):
    primary_key: ClassVar[tuple[str, ...]] = ("id",)

    id: int | None = None
    displayName: str | None = None
    balance: int = 0


class AccountRepository(Repository[Account]):
    entity_class = Account

    def richest(self, n):
        return self.mapper.sort({"balance": -1}).limit(n).find().to_list()


def main():
    db_path = Path(tempfile.mkdtemp()) / "accounts.db"
    config = ConnectionConfig(
        driver="sqlite",
        database=str(db_path),
        collection="accounts",
        pool_size=2,
        extra={"naming": "camel"},
    )
    driver = create_driver(config)
    with driver.manager.get_connection() as conn:
        conn.execute(
            "CREATE TABLE accounts ("
            "id INTEGER PRIMARY KEY, display_name TEXT, balance INTEGER NOT NULL DEFAULT 0)"
        )

    repo = AccountRepository(driver=driver)

    print("=== SQLite Repository ===\n")

    for name, balance in (("Alice", 120), ("Bob", 40), ("Charlie", 75)):
        account = repo.save(Account(displayName=name, balance=balance))
        print(f"Inserted {account.displayName} with generated id {account.id}")

    bob = repo.get(2)
    repo.mapper.increment(bob, "balance", 100)
    print(f"\nBob after increment: {bob.balance}")

    print("\nTop two accounts:")
    for account in repo.richest(2):
        print(f"  {account.displayName}: {account.balance}")

    print(f"\nAccounts named Alice: {repo.mapper.count({'displayName': 'Alice'})}")

    driver.manager.close_pool()


if __name__ == "__main__":
    main()
