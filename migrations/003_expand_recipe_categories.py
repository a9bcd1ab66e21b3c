"""
Migration 003: Widen the recipe category check to every imported category.

Imports normalize categories to entree, side, dessert, appetizer, breakfast,
soup, salad or beverage; the original check only allowed the first three.
"""

import asyncio
from sqlalchemy import text
from mealplanner.db.database import engine
from mealplanner.models.extracted import VALID_CATEGORIES


CONSTRAINT_NAME = "recipes_category_check"


async def run_migration():
    """Replace the recipes.category check constraint."""

    allowed = ", ".join(f"'{category}'" for category in sorted(VALID_CATEGORIES))

    async with engine.begin() as conn:
        result = await conn.execute(text("""
            SELECT pg_get_constraintdef(oid) AS definition
            FROM pg_constraint
            WHERE conrelid = 'recipes'::regclass AND conname = :name
        """), {"name": CONSTRAINT_NAME})
        row = result.fetchone()

        if row and all(f"'{category}'" in row.definition for category in VALID_CATEGORIES):
            print(f"✓ {CONSTRAINT_NAME} already allows all categories")
            return

        if row:
            await conn.execute(text(f"ALTER TABLE recipes DROP CONSTRAINT {CONSTRAINT_NAME}"))
            print(f"✓ Dropped old {CONSTRAINT_NAME}")

        await conn.execute(text(f"""
            ALTER TABLE recipes
            ADD CONSTRAINT {CONSTRAINT_NAME}
            CHECK (category IS NULL OR category IN ({allowed}))
        """))
        print(f"✓ Added {CONSTRAINT_NAME} ({allowed})")


if __name__ == "__main__":
    asyncio.run(run_migration())
