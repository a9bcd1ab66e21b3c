"""
Migration 001: Enforce one catalog ingredient per name within a household.

Recipe imports create catalog ingredients concurrently; the unique index on
(household_id, lower(name)) lets the losing insert fail cleanly so the import
can re-read the winner instead of creating a duplicate.

Existing case-insensitive duplicates must be merged before this runs.
"""

import asyncio
from sqlalchemy import text
from mealplanner.db.database import engine


async def run_migration():
    """Create the unique (household_id, lower(name)) index on ingredients."""

    async with engine.begin() as conn:
        # Refuse to build the index over duplicate names
        result = await conn.execute(text("""
            SELECT household_id, lower(name) AS lname, COUNT(*) AS n
            FROM ingredients
            GROUP BY household_id, lower(name)
            HAVING COUNT(*) > 1
        """))
        duplicates = result.fetchall()
        if duplicates:
            print(f"❌ {len(duplicates)} duplicate ingredient name(s) found, merge them first:")
            for row in duplicates[:20]:
                print(f"   - household {row.household_id}: \"{row.lname}\" x{row.n}")
            return

        result = await conn.execute(text("""
            SELECT indexname
            FROM pg_indexes
            WHERE tablename = 'ingredients' AND indexname = 'uq_ingredients_household_lower_name'
        """))

        if not result.fetchone():
            await conn.execute(text("""
                CREATE UNIQUE INDEX uq_ingredients_household_lower_name
                ON ingredients (household_id, lower(name))
            """))
            print("✓ Created uq_ingredients_household_lower_name index")
        else:
            print("✓ uq_ingredients_household_lower_name index already exists")


if __name__ == "__main__":
    asyncio.run(run_migration())
