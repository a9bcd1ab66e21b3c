"""
Recipe import pipeline.

Sequence per run:
1. validate the URL and fetch the page
2. structured (JSON-LD) extraction, or cleaned text + AI extraction
3. create the recipe (or refresh an existing one's metadata)
4. deduplicate -> fuzzy match -> reconcile against the household catalog
5. replace the recipe's ingredient links and commit

All writes of a run share one transaction. Writes for the same recipe are
serialized: in-process by a per-recipe lock, across processes by a row lock
on the recipe.
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Hashable, Optional
from uuid import UUID

import sentry_sdk

from mealplanner.errors import (
    DuplicateRecipeError,
    ExtractionError,
    FetchError,
    NotFoundError,
    RecipeImportError,
    ValidationError,
)
from mealplanner.models.extracted import ExtractedRecipe, LinkedIngredient
from mealplanner.services.dedupe import deduplicate_ingredients
from mealplanner.services.html_cleaner import clean_html_text
from mealplanner.services.llm_client import LLMService, llm_service
from mealplanner.services.matcher import IngredientMatcher
from mealplanner.services.reconciler import reconcile_ingredients
from mealplanner.services.store import HouseholdStore
from mealplanner.services.url_guard import fetch_page, get_domain, validate_external_url
from mealplanner.services.website import website_service


EXTRACTION_STRUCTURED = "structured"
EXTRACTION_AI = "ai"


@dataclass
class ImportedRecipe:
    """Recipe metadata as saved by an import."""
    id: UUID
    name: str
    description: Optional[str]
    category: Optional[str]
    cuisine: Optional[str]
    source_url: Optional[str]


@dataclass
class ImportResult:
    """Outcome of one import run."""
    recipe: ImportedRecipe
    extraction_method: str
    ingredients_created: int
    ingredients_skipped: int
    new_catalog_ingredients: int
    ingredients: list[LinkedIngredient] = field(default_factory=list)

    @property
    def recipe_id(self) -> UUID:
        return self.recipe.id


def _log_import_failure(url: str, error: RecipeImportError, stage: str):
    """Log import failure to Sentry with rich context."""
    domain = get_domain(url)
    error_type = type(error).__name__

    sentry_sdk.capture_message(
        f"Recipe import failed: {error_type}",
        level="warning",
        extras={
            "url": url,
            "domain": domain,
            "error_type": error_type,
            "error_detail": error.message,
            "stage": stage,
        },
        tags={
            "feature": "recipe_import",
            "error_type": error_type,
            "domain": domain,
        }
    )
    print(f"📡 Logged to Sentry: {error_type} for {domain}")


class RecipeImportPipeline:
    """Imports recipes and their ingredients from web pages."""

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        fetcher: Optional[Callable[[str], Awaitable[str]]] = None,
    ):
        self.llm = llm or llm_service
        self.fetcher = fetcher or fetch_page
        self.matcher = IngredientMatcher(self.llm)
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def extract(self, url: str) -> tuple[ExtractedRecipe, str]:
        """
        Fetch a page and extract its recipe.

        Returns (recipe, extraction_method). Structured data wins when it has
        at least one ingredient; otherwise the cleaned page text goes to the AI.
        """
        html = await self.fetcher(url)

        recipe = website_service.extract_structured_recipe(html)
        if recipe is not None and recipe.ingredients:
            return recipe, EXTRACTION_STRUCTURED
        if recipe is not None:
            print("⚠️ JSON-LD recipe has no ingredients, falling back to AI")

        print("📄 Cleaning page text for AI...")
        content = clean_html_text(html)
        if not content:
            raise ExtractionError("We couldn't find recipe content on this page")

        recipe = await self.llm.extract_recipe(content, url)
        return recipe, EXTRACTION_AI

    async def create_from_url(
        self,
        store: HouseholdStore,
        url: Optional[str],
        created_by: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Create a new recipe from a URL and import its ingredients.

        Raises DuplicateRecipeError if the household already has a recipe
        with the extracted name; nothing is written in that case.
        """
        url = validate_external_url(url)

        try:
            extracted, method = await self.extract(url)
        except (FetchError, ExtractionError) as e:
            _log_import_failure(url, e, stage="extract")
            raise

        print(f"🍽️ Extracted \"{extracted.name}\" via {method}")

        key = ("recipe-name", store.household_id, extracted.name.strip().lower())
        async with self._lock_for(key):
            try:
                existing = await store.find_recipe_by_name(extracted.name)
                if existing is not None:
                    raise DuplicateRecipeError(f'A recipe named "{extracted.name}" already exists')

                recipe = await store.create_recipe(
                    name=extracted.name,
                    description=extracted.description,
                    source_url=url,
                    category=extracted.category,
                    cuisine=extracted.cuisine,
                    status="wishlist",
                    created_by=created_by,
                )
                print(f"📝 Created recipe {recipe.id}")

                result = await self._import_ingredients(store, recipe, extracted, method)
                result.ingredients = await store.list_recipe_links(recipe.id)
                await store.commit()
            except Exception:
                await store.rollback()
                raise

        return result

    async def import_for_recipe(self, store: HouseholdStore, recipe_id: UUID) -> ImportResult:
        """
        Re-import the ingredients of an existing recipe from its source URL.

        Refreshes description/category/cuisine and replaces the whole link set.
        """
        recipe = await store.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError("Recipe not found")
        if not recipe.source_url:
            raise ValidationError("Recipe has no source URL")

        url = validate_external_url(recipe.source_url)
        # No transaction stays open across the fetch and AI calls
        await store.rollback()

        try:
            extracted, method = await self.extract(url)
        except (FetchError, ExtractionError) as e:
            _log_import_failure(url, e, stage="extract")
            raise

        async with self._lock_for(("recipe", recipe_id)):
            try:
                recipe = await store.get_recipe(recipe_id, for_update=True)
                if recipe is None:
                    raise NotFoundError("Recipe not found")

                await store.update_recipe_metadata(
                    recipe,
                    description=extracted.description,
                    category=extracted.category,
                    cuisine=extracted.cuisine,
                )

                result = await self._import_ingredients(store, recipe, extracted, method)
                result.ingredients = await store.list_recipe_links(recipe_id)
                await store.commit()
            except Exception:
                await store.rollback()
                raise

        return result

    async def _import_ingredients(self, store: HouseholdStore, recipe, extracted: ExtractedRecipe, method: str) -> ImportResult:
        """Deduplicate, match, reconcile and replace the recipe's links."""
        catalog = await store.list_ingredients()
        print(f"📚 Household catalog has {len(catalog)} ingredient(s)")

        ingredients = deduplicate_ingredients(extracted.ingredients)
        fuzzy_matches = await self.matcher.match(catalog, [ingredient.name for ingredient in ingredients])

        reconciliation = await reconcile_ingredients(
            store,
            recipe_id=recipe.id,
            ingredients=ingredients,
            fuzzy_matches=fuzzy_matches,
            catalog=catalog,
        )

        await store.replace_recipe_links(recipe.id, reconciliation.links)
        print(f"✅ Saved {len(reconciliation.links)} ingredient link(s) for recipe {recipe.id}")

        return ImportResult(
            recipe=ImportedRecipe(
                id=recipe.id,
                name=recipe.name,
                description=recipe.description,
                category=recipe.category,
                cuisine=recipe.cuisine,
                source_url=recipe.source_url,
            ),
            extraction_method=method,
            ingredients_created=len(reconciliation.links),
            ingredients_skipped=reconciliation.skipped_count,
            new_catalog_ingredients=len(reconciliation.created),
        )


# Singleton instance
recipe_import_pipeline = RecipeImportPipeline()
