"""Recipe import endpoints - create recipes from URLs and re-import their ingredients."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from mealplanner.auth import HouseholdContext, get_current_household
from mealplanner.db import get_db
from mealplanner.errors import RecipeImportError
from mealplanner.models.schemas import (
    CreateFromUrlRequest,
    ImportIngredientsResponse,
    LinkedIngredientResponse,
    RecipeSummary,
)
from mealplanner.services.importer import ImportResult, RecipeImportPipeline, recipe_import_pipeline
from mealplanner.services.store import HouseholdStore


router = APIRouter(prefix="/api/recipes", tags=["recipes"])


def get_import_pipeline() -> RecipeImportPipeline:
    """FastAPI dependency returning the shared import pipeline."""
    return recipe_import_pipeline


async def get_household_store(
    household: HouseholdContext = Depends(get_current_household),
    db: AsyncSession = Depends(get_db),
) -> HouseholdStore:
    """FastAPI dependency scoping data access to the caller's household."""
    return HouseholdStore(db, household.household_id)


def _to_response(result: ImportResult) -> ImportIngredientsResponse:
    recipe = result.recipe
    return ImportIngredientsResponse(
        success=True,
        recipe_id=recipe.id,
        recipe=RecipeSummary(
            id=recipe.id,
            name=recipe.name,
            description=recipe.description,
            category=recipe.category,
            cuisine=recipe.cuisine,
            source_url=recipe.source_url,
        ),
        extraction_method=result.extraction_method,
        ingredients_created=result.ingredients_created,
        ingredients_skipped=result.ingredients_skipped,
        new_catalog_ingredients=result.new_catalog_ingredients,
        ingredients=[
            LinkedIngredientResponse(
                id=link.id,
                ingredient_id=link.ingredient_id,
                name=link.name,
                quantity=link.quantity,
                unit=link.unit,
                notes=link.notes,
                sort_order=link.sort_order,
            )
            for link in result.ingredients
        ],
    )


def _raise_http(error: RecipeImportError):
    print(f"❌ Recipe import failed ({type(error).__name__}): {error.message}")
    raise HTTPException(status_code=error.kind.status_code, detail=error.message)


@router.post(
    "/create-from-url",
    response_model=ImportIngredientsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_recipe_from_url(
    request: CreateFromUrlRequest,
    household: HouseholdContext = Depends(get_current_household),
    store: HouseholdStore = Depends(get_household_store),
    pipeline: RecipeImportPipeline = Depends(get_import_pipeline),
):
    """
    Create a wishlist recipe from a recipe web page and import its ingredients.

    Uses the page's schema.org Recipe data when present, otherwise AI
    extraction. Returns 409 if the household already has a recipe with the
    extracted name.
    """
    print(f"🌐 Create from URL: {request.url}")
    try:
        result = await pipeline.create_from_url(store, request.url, created_by=household.user_id)
    except RecipeImportError as e:
        _raise_http(e)

    return _to_response(result)


@router.post("/{recipe_id}/import-ingredients", response_model=ImportIngredientsResponse)
async def import_recipe_ingredients(
    recipe_id: UUID,
    store: HouseholdStore = Depends(get_household_store),
    pipeline: RecipeImportPipeline = Depends(get_import_pipeline),
):
    """
    Re-import an existing recipe's ingredients from its source URL.

    Replaces every ingredient link of the recipe and refreshes its
    description, category and cuisine.
    """
    print(f"🔄 Import ingredients for recipe {recipe_id}")
    try:
        result = await pipeline.import_for_recipe(store, recipe_id)
    except RecipeImportError as e:
        _raise_http(e)

    return _to_response(result)
