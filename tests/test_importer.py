"""End-to-end tests for the recipe import pipeline (SQLite store, fake text completion)."""

import asyncio
import json
import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealplanner.errors import (
    CompletionServiceError,
    DuplicateRecipeError,
    ExtractionError,
    FetchError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from mealplanner.models import User
from mealplanner.services.importer import RecipeImportPipeline
from mealplanner.services.store import HouseholdStore

from conftest import FakeCompletionClient, jsonld_page

RECIPE_URL = "https://recipes.example.com/pancakes"


class PageServer:
    """Stands in for the page fetcher; pages can be swapped between runs."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.requested = []

    async def __call__(self, url):
        self.requested.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            raise FetchError("Failed to fetch recipe page: 404", status_code=404)
        return page


class GatedPageServer(PageServer):
    """Serves queued pages in call order, holding every fetch until open() is called."""

    def __init__(self, pages_in_order):
        super().__init__()
        self.queue = list(pages_in_order)
        self.gate = asyncio.Event()

    async def __call__(self, url):
        self.requested.append(url)
        page = self.queue.pop(0)
        await self.gate.wait()
        return page

    async def wait_for_requests(self, count):
        for _ in range(500):
            if len(self.requested) >= count:
                return
            await asyncio.sleep(0.01)
        raise AssertionError(f"expected {count} fetches, saw {len(self.requested)}")

    def open(self):
        self.gate.set()


def _recipe_page(name, ingredients, **fields):
    return jsonld_page({"@type": "Recipe", "name": name, "recipeIngredient": ingredients, **fields})


@pytest.fixture
def llm():
    return FakeCompletionClient()


@pytest.fixture
def pages():
    return PageServer()


@pytest.fixture
def pipeline(llm, pages):
    return RecipeImportPipeline(llm=llm, fetcher=pages)


@pytest.fixture
async def second_store(db_engine, household):
    """A store on its own session, like a second concurrent request."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield HouseholdStore(session, household.id)


class TestCreateFromUrlStructured:
    """Pages with JSON-LD recipe data."""

    async def test_structured_path_makes_no_completion_calls(self, pipeline, pages, llm, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.extraction_method == "structured"
        assert llm.prompts == []
        assert result.ingredients_created == 2
        assert result.ingredients_skipped == 0
        assert result.new_catalog_ingredients == 2
        assert [(i.name, i.quantity, i.unit) for i in result.ingredients] == [
            ("flour", 2.0, "cups"),
            ("salt", 1.0, "tsp"),
        ]

    async def test_recipe_is_saved_as_wishlist(self, pipeline, pages, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page

        result = await pipeline.create_from_url(store, RECIPE_URL)

        recipe = await store.get_recipe(result.recipe_id)
        assert recipe.name == "Simple Pancakes"
        assert recipe.status == "wishlist"
        assert recipe.category == "breakfast"
        assert recipe.cuisine == "American"
        assert recipe.source_url == RECIPE_URL
        assert result.recipe.name == "Simple Pancakes"

    async def test_created_by_is_recorded(self, pipeline, pages, store, pancake_page, db_session, household):
        user = User(email="cook@example.com", household_id=household.id)
        db_session.add(user)
        await db_session.commit()
        pages.pages[RECIPE_URL] = pancake_page

        result = await pipeline.create_from_url(store, RECIPE_URL, created_by=user.id)

        assert (await store.get_recipe(result.recipe_id)).created_by == user.id

    async def test_existing_catalog_entries_are_reused(self, pipeline, pages, llm, store, pancake_page):
        flour = await store.create_ingredient("Flour")
        await store.commit()
        pages.pages[RECIPE_URL] = pancake_page
        llm.responses = ['["Flour", null]']

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.new_catalog_ingredients == 1
        assert result.ingredients[0].ingredient_id == flour.id
        assert result.ingredients[0].name == "Flour"
        assert len(await store.list_ingredients()) == 2

    async def test_fuzzy_collision_links_once(self, pipeline, pages, llm, store):
        tomato = await store.create_ingredient("Tomato")
        await store.commit()
        pages.pages[RECIPE_URL] = _recipe_page("Salsa", ["2 tomatoes, diced", "1 tomato, sliced", "1 onion"])
        llm.responses = ['["Tomato", "Tomato", null]']

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.ingredients_created == 2
        assert result.ingredients_skipped == 1
        assert [(i.ingredient_id, i.notes) for i in result.ingredients][0] == (tomato.id, "diced")
        assert [i.name for i in result.ingredients] == ["Tomato", "onion"]

    async def test_repeated_lines_are_merged(self, pipeline, pages, store):
        pages.pages[RECIPE_URL] = _recipe_page("Cake", ["1 cup sugar", "2 cups flour", "2 tbsp sugar, for dusting"])

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert [i.name for i in result.ingredients] == ["sugar", "flour"]
        assert result.ingredients[0].notes == "also: 2 tbsp (for dusting)"
        assert result.ingredients[0].quantity == 1.0


class TestCreateFromUrlAi:
    """Pages without structured data fall back to AI extraction."""

    async def test_ai_path_normalizes_category(self, pipeline, pages, llm, store, plain_page):
        pages.pages[RECIPE_URL] = plain_page
        llm.responses = [json.dumps({
            "name": "Grandma's Trail Mix",
            "description": "A crunchy snack.",
            "category": "Snack",
            "cuisine": "American",
            "ingredients": [
                {"name": "peanuts", "quantity": 2, "unit": "cups", "notes": None},
                {"name": "raisins", "quantity": "1", "unit": "cup", "notes": None},
            ],
        })]

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.extraction_method == "ai"
        assert result.recipe.category == "entree"
        assert [i.name for i in result.ingredients] == ["peanuts", "raisins"]
        prompt = llm.prompts[0]
        assert "2 cups peanuts" in prompt
        assert "Great recipe!" not in prompt
        assert "color: red" not in prompt

    async def test_structured_block_without_ingredients_uses_ai(self, pipeline, pages, llm, store):
        pages.pages[RECIPE_URL] = _recipe_page("Mystery Dish", [])
        llm.responses = ['{"name": "Mystery Dish", "ingredients": [{"name": "rice"}]}']

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.extraction_method == "ai"
        assert [i.name for i in result.ingredients] == ["rice"]

    async def test_unparseable_ai_response_fails_without_writes(self, pipeline, pages, llm, store, plain_page):
        pages.pages[RECIPE_URL] = plain_page
        llm.responses = ["I could not find a recipe."]

        with pytest.raises(ExtractionError):
            await pipeline.create_from_url(store, RECIPE_URL)

        assert await store.find_recipe_by_name("Untitled Recipe") is None
        assert await store.list_ingredients() == []

    async def test_completion_service_failure_is_extraction_error(self, pipeline, pages, llm, store, plain_page):
        pages.pages[RECIPE_URL] = plain_page
        llm.responses = [CompletionServiceError("HTTP 500: boom")]

        with pytest.raises(ExtractionError):
            await pipeline.create_from_url(store, RECIPE_URL)

    async def test_matcher_failure_is_not_fatal(self, pipeline, pages, llm, store, plain_page):
        salt = await store.create_ingredient("Salt")
        await store.commit()
        pages.pages[RECIPE_URL] = plain_page
        llm.responses = [
            '{"name": "Salted Nuts", "ingredients": [{"name": "salt"}, {"name": "peanuts"}]}',
            CompletionServiceError("HTTP 503: unavailable"),
        ]

        result = await pipeline.create_from_url(store, RECIPE_URL)

        assert result.ingredients[0].ingredient_id == salt.id
        assert result.new_catalog_ingredients == 1


class TestCreateFromUrlFailures:
    """Validation, fetch, duplicate and persistence failures."""

    async def test_missing_url(self, pipeline, pages, store):
        with pytest.raises(ValidationError, match="URL is required"):
            await pipeline.create_from_url(store, None)
        assert pages.requested == []

    async def test_private_url_is_never_fetched(self, pipeline, pages, store):
        with pytest.raises(ValidationError):
            await pipeline.create_from_url(store, "http://127.0.0.1:8080/admin")
        assert pages.requested == []

    async def test_fetch_error_propagates(self, pipeline, store):
        with pytest.raises(FetchError) as exc_info:
            await pipeline.create_from_url(store, RECIPE_URL)
        assert exc_info.value.status_code == 404

    async def test_duplicate_name_is_conflict(self, pipeline, pages, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page
        first = await pipeline.create_from_url(store, RECIPE_URL)

        pages.pages["https://other.example.com/pancakes"] = _recipe_page("simple pancakes", ["3 eggs"])
        with pytest.raises(DuplicateRecipeError):
            await pipeline.create_from_url(store, "https://other.example.com/pancakes")

        assert (await store.find_recipe_by_name("Simple Pancakes")).id == first.recipe_id
        assert [entry.name for entry in await store.list_ingredients()] == ["flour", "salt"]

    async def test_link_failure_rolls_back_recipe(self, pipeline, pages, store, db_session, household, pancake_page):
        class FailingStore(HouseholdStore):
            async def replace_recipe_links(self, recipe_id, links):
                raise PersistenceError("Failed to save ingredients: disk full")

        failing = FailingStore(db_session, household.id)
        pages.pages[RECIPE_URL] = pancake_page

        with pytest.raises(PersistenceError):
            await pipeline.create_from_url(failing, RECIPE_URL)

        assert await store.find_recipe_by_name("Simple Pancakes") is None
        assert await store.list_ingredients() == []


class TestImportForRecipe:
    """Re-importing ingredients of an existing recipe."""

    async def test_reimport_replaces_all_links(self, pipeline, pages, llm, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page
        created = await pipeline.create_from_url(store, RECIPE_URL)

        pages.pages[RECIPE_URL] = _recipe_page(
            "Simple Pancakes", ["3 eggs", "1 cup milk"],
            description="Now with eggs.", recipeCategory="Dessert", recipeCuisine="French",
        )
        llm.responses = ["[null, null]"]

        result = await pipeline.import_for_recipe(store, created.recipe_id)

        assert result.recipe_id == created.recipe_id
        assert [i.name for i in result.ingredients] == ["eggs", "milk"]
        assert [i.name for i in await store.list_recipe_links(created.recipe_id)] == ["eggs", "milk"]
        assert result.ingredients_created == 2
        assert result.new_catalog_ingredients == 2

    async def test_reimport_refreshes_metadata(self, pipeline, pages, llm, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page
        created = await pipeline.create_from_url(store, RECIPE_URL)
        pages.pages[RECIPE_URL] = _recipe_page(
            "Renamed Upstream", ["2 cups flour"],
            description="Now with eggs.", recipeCategory="Dessert", recipeCuisine="French",
        )
        llm.responses = ['["flour"]']

        result = await pipeline.import_for_recipe(store, created.recipe_id)

        recipe = await store.get_recipe(created.recipe_id)
        assert recipe.name == "Simple Pancakes"
        assert recipe.description == "Now with eggs."
        assert recipe.category == "dessert"
        assert recipe.cuisine == "French"
        assert result.new_catalog_ingredients == 0

    async def test_reimport_same_page_is_stable(self, pipeline, pages, llm, store, pancake_page):
        pages.pages[RECIPE_URL] = pancake_page
        created = await pipeline.create_from_url(store, RECIPE_URL)
        llm.responses = ['["flour", "salt"]']

        result = await pipeline.import_for_recipe(store, created.recipe_id)

        assert [i.ingredient_id for i in result.ingredients] == [i.ingredient_id for i in created.ingredients]
        assert len(await store.list_ingredients()) == 2

    async def test_unknown_recipe(self, pipeline, store):
        with pytest.raises(NotFoundError):
            await pipeline.import_for_recipe(store, uuid.uuid4())

    async def test_recipe_without_source_url(self, pipeline, pages, store):
        recipe = await store.create_recipe(
            name="Family Lasagna", description=None, source_url=None, category="entree", cuisine="Italian",
        )
        await store.commit()

        with pytest.raises(ValidationError, match="no source URL"):
            await pipeline.import_for_recipe(store, recipe.id)
        assert pages.requested == []

    async def test_failed_reimport_keeps_previous_links(self, pipeline, pages, llm, store, pancake_page, plain_page):
        pages.pages[RECIPE_URL] = pancake_page
        created = await pipeline.create_from_url(store, RECIPE_URL)
        pages.pages[RECIPE_URL] = plain_page
        llm.responses = ["not json"]

        with pytest.raises(ExtractionError):
            await pipeline.import_for_recipe(store, created.recipe_id)

        assert [i.name for i in await store.list_recipe_links(created.recipe_id)] == ["flour", "salt"]


class TestRecipeLocks:
    """Per-recipe serialization."""

    def test_same_key_shares_a_lock(self, pipeline):
        lock = pipeline._lock_for(("recipe", "abc"))
        assert pipeline._lock_for(("recipe", "abc")) is lock
        assert pipeline._lock_for(("recipe", "xyz")) is not lock

    async def test_concurrent_reimports_do_not_mix_link_sets(self, llm, store, second_store):
        recipe = await store.create_recipe(
            name="Weeknight Soup", description=None, source_url=RECIPE_URL, category="entree", cuisine="Other",
        )
        await store.commit()
        recipe_id = recipe.id

        first_set = ["3 eggs", "1 cup milk"]
        second_set = ["2 cups flour", "1 tsp salt", "1 cup sugar"]
        server = GatedPageServer([
            _recipe_page("Weeknight Soup", first_set),
            _recipe_page("Weeknight Soup", second_set),
        ])
        pipeline = RecipeImportPipeline(llm=llm, fetcher=server)
        llm.responses = ["[]", "[]"]

        tasks = [
            asyncio.create_task(pipeline.import_for_recipe(store, recipe_id)),
            asyncio.create_task(pipeline.import_for_recipe(second_store, recipe_id)),
        ]
        await server.wait_for_requests(2)
        server.open()
        results = await asyncio.gather(*tasks)

        final_names = [link.name for link in await store.list_recipe_links(recipe_id)]
        assert sorted(final_names) in (sorted(["eggs", "milk"]), sorted(["flour", "salt", "sugar"]))
        assert any([i.name for i in result.ingredients] == final_names for result in results)

    async def test_concurrent_creates_with_same_name_conflict(self, llm, store, second_store):
        server = GatedPageServer([
            _recipe_page("Simple Pancakes", ["2 cups flour", "1 tsp salt"]),
            _recipe_page("Simple Pancakes", ["3 eggs"]),
        ])
        pipeline = RecipeImportPipeline(llm=llm, fetcher=server)

        tasks = [
            asyncio.create_task(pipeline.create_from_url(store, RECIPE_URL)),
            asyncio.create_task(pipeline.create_from_url(second_store, "https://other.example.com/pancakes")),
        ]
        await server.wait_for_requests(2)
        server.open()
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        conflicts = [o for o in outcomes if isinstance(o, DuplicateRecipeError)]
        created = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(conflicts) == 1
        assert len(created) == 1
        saved = await store.find_recipe_by_name("Simple Pancakes")
        assert saved.id == created[0].recipe_id
