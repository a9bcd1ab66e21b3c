"""
Household-scoped data access for recipe imports.

Every query is filtered by the household id the store was created with.
The store never commits on its own: the importer commits once at the end of
a run so recipe creation and link replacement succeed or fail together.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mealplanner.errors import PersistenceConflict, PersistenceError
from mealplanner.models.extracted import CatalogIngredient, LinkedIngredient, StagedLink
from mealplanner.models.recipe import Recipe, Ingredient, RecipeIngredient


class HouseholdStore:
    """Read/write access to one household's recipes, catalog and links."""

    def __init__(self, session: AsyncSession, household_id: UUID):
        self.session = session
        self.household_id = household_id

    async def get_recipe(self, recipe_id: UUID, for_update: bool = False) -> Optional[Recipe]:
        """
        Fetch a recipe owned by this household.

        for_update takes a row lock so concurrent imports of the same recipe
        queue up behind each other (no-op on backends without row locks).
        """
        query = select(Recipe).where(
            Recipe.id == recipe_id,
            Recipe.household_id == self.household_id,
        )
        if for_update:
            query = query.with_for_update()
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load recipe: {e}")
        return result.scalar_one_or_none()

    async def find_recipe_by_name(self, name: str) -> Optional[Recipe]:
        """Case-insensitive lookup of a recipe by name."""
        try:
            result = await self.session.execute(
                select(Recipe).where(
                    Recipe.household_id == self.household_id,
                    func.lower(Recipe.name) == name.strip().lower(),
                ).limit(1)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up recipe: {e}")
        return result.scalars().first()

    async def create_recipe(
        self,
        name: str,
        description: Optional[str],
        source_url: Optional[str],
        category: Optional[str],
        cuisine: Optional[str],
        status: str = "wishlist",
        created_by: Optional[UUID] = None,
    ) -> Recipe:
        """Insert a recipe and flush so its id is available."""
        recipe = Recipe(
            household_id=self.household_id,
            name=name,
            description=description or None,
            source_url=source_url,
            category=category,
            cuisine=cuisine,
            status=status,
            created_by=created_by,
        )
        self.session.add(recipe)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create recipe: {e}")
        return recipe

    async def update_recipe_metadata(
        self,
        recipe: Recipe,
        description: Optional[str],
        category: Optional[str],
        cuisine: Optional[str],
    ) -> Recipe:
        """Refresh description/category/cuisine from a new extraction."""
        recipe.description = description or None
        recipe.category = category or None
        recipe.cuisine = cuisine or None
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update recipe: {e}")
        return recipe

    async def list_ingredients(self) -> list[CatalogIngredient]:
        """Snapshot of the household's ingredient catalog."""
        try:
            result = await self.session.execute(
                select(Ingredient.id, Ingredient.name)
                .where(Ingredient.household_id == self.household_id)
                .order_by(Ingredient.name)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load ingredient catalog: {e}")
        return [CatalogIngredient(id=row.id, name=row.name) for row in result.all()]

    async def find_ingredient_by_name(self, name: str) -> Optional[CatalogIngredient]:
        """Case-insensitive lookup of a catalog ingredient."""
        try:
            result = await self.session.execute(
                select(Ingredient.id, Ingredient.name).where(
                    Ingredient.household_id == self.household_id,
                    func.lower(Ingredient.name) == name.strip().lower(),
                ).limit(1)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up ingredient: {e}")
        row = result.first()
        return CatalogIngredient(id=row.id, name=row.name) if row else None

    async def create_ingredient(self, name: str) -> CatalogIngredient:
        """
        Insert a catalog ingredient inside a SAVEPOINT.

        A uniqueness violation rolls back only the savepoint and raises
        PersistenceConflict, leaving the surrounding transaction usable.
        """
        ingredient = Ingredient(household_id=self.household_id, name=name)
        try:
            async with self.session.begin_nested():
                self.session.add(ingredient)
                await self.session.flush()
        except IntegrityError as e:
            raise PersistenceConflict(f"Ingredient \"{name}\" already exists: {e.orig}")
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create ingredient: {e}")
        return CatalogIngredient(id=ingredient.id, name=ingredient.name)

    async def replace_recipe_links(self, recipe_id: UUID, links: list[StagedLink]) -> None:
        """Delete every link of the recipe, then insert the staged set."""
        try:
            await self.session.execute(
                delete(RecipeIngredient).where(RecipeIngredient.recipe_id == recipe_id)
            )
            self.session.add_all([
                RecipeIngredient(
                    recipe_id=link.recipe_id,
                    ingredient_id=link.ingredient_id,
                    quantity=link.quantity,
                    unit=link.unit,
                    notes=link.notes,
                    sort_order=link.sort_order,
                )
                for link in links
            ])
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save ingredients: {e}")

    async def list_recipe_links(self, recipe_id: UUID) -> list[LinkedIngredient]:
        """Saved links of a recipe joined with catalog names, in sort order."""
        try:
            result = await self.session.execute(
                select(RecipeIngredient, Ingredient.name)
                .join(Ingredient, RecipeIngredient.ingredient_id == Ingredient.id)
                .where(RecipeIngredient.recipe_id == recipe_id)
                .order_by(RecipeIngredient.sort_order)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load recipe ingredients: {e}")
        return [
            LinkedIngredient(
                id=link.id,
                ingredient_id=link.ingredient_id,
                name=name,
                quantity=link.quantity,
                unit=link.unit,
                notes=link.notes,
                sort_order=link.sort_order,
            )
            for link, name in result.all()
        ]

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to commit import: {e}")

    async def rollback(self) -> None:
        await self.session.rollback()
