"""
Create the uniqueness constraints the upserts rely on.

MERGE on a key only stays idempotent under concurrent writes when the key is
backed by a constraint, so run this once against a fresh database:

    python scripts/setup_constraints.py
"""

import asyncio

from jobgraph.db import close_driver, neo4j_session


CONSTRAINTS = (
    ("User", "id"),
    ("Job", "id"),
    ("Skill", "name"),
    ("Location", "city"),
)


async def create_constraints() -> None:
    async with neo4j_session() as session:
        for label, key in CONSTRAINTS:
            print(f"[CONSTRAINTS] {label}.{key} ...")
            await session.run(
                f"CREATE CONSTRAINT IF NOT EXISTS FOR (n:{label}) REQUIRE n.{key} IS UNIQUE"
            )
            print(f"[CONSTRAINTS] ✓ {label}.{key} is unique")


async def main() -> None:
    try:
        await create_constraints()
    finally:
        await close_driver()


if __name__ == "__main__":
    asyncio.run(main())
