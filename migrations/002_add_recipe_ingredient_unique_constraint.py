"""
Migration 002: Allow at most one link per (recipe, catalog ingredient).

Duplicate links left by older imports are collapsed first, keeping the row
with the lowest sort_order.
"""

import asyncio
from sqlalchemy import text
from mealplanner.db.database import engine


async def run_migration():
    """Deduplicate recipe_ingredients and add the unique constraint."""

    async with engine.begin() as conn:
        result = await conn.execute(text("""
            SELECT constraint_name
            FROM information_schema.table_constraints
            WHERE table_name = 'recipe_ingredients'
              AND constraint_name = 'uq_recipe_ingredients_recipe_ingredient'
        """))

        if result.fetchone():
            print("✓ uq_recipe_ingredients_recipe_ingredient constraint already exists")
            return

        result = await conn.execute(text("""
            DELETE FROM recipe_ingredients ri
            USING recipe_ingredients keep
            WHERE ri.recipe_id = keep.recipe_id
              AND ri.ingredient_id = keep.ingredient_id
              AND (ri.sort_order, ri.id) > (keep.sort_order, keep.id)
        """))
        print(f"✓ Removed {result.rowcount} duplicate recipe ingredient link(s)")

        await conn.execute(text("""
            ALTER TABLE recipe_ingredients
            ADD CONSTRAINT uq_recipe_ingredients_recipe_ingredient
            UNIQUE (recipe_id, ingredient_id)
        """))
        print("✓ Added uq_recipe_ingredients_recipe_ingredient constraint")


if __name__ == "__main__":
    asyncio.run(run_migration())
