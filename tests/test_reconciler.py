"""Tests for catalog reconciliation."""

import uuid

from mealplanner.models.extracted import CatalogIngredient, ExtractedIngredient
from mealplanner.services.reconciler import build_exact_index, reconcile_ingredients

from conftest import FakeStore

RECIPE_ID = uuid.uuid4()


def _ingredient(name, sort_order=0, **kwargs):
    return ExtractedIngredient(name=name, sort_order=sort_order, **kwargs)


class TestBuildExactIndex:
    """Tests for build_exact_index function."""

    def test_keys_are_trimmed_and_lowercased(self):
        salt = CatalogIngredient(id=uuid.uuid4(), name=" Sea Salt ")
        assert build_exact_index([salt]) == {"sea salt": salt.id}

    def test_first_entry_wins(self):
        first = CatalogIngredient(id=uuid.uuid4(), name="Flour")
        second = CatalogIngredient(id=uuid.uuid4(), name="flour")
        assert build_exact_index([first, second]) == {"flour": first.id}


class TestReconcileIngredients:
    """Tests for reconcile_ingredients function."""

    async def test_exact_match_reuses_catalog_entry(self):
        flour = CatalogIngredient(id=uuid.uuid4(), name="Flour")
        store = FakeStore(catalog=[flour])

        result = await reconcile_ingredients(
            store, RECIPE_ID, [_ingredient("flour", quantity=2.0, unit="cups")], {}, [flour],
        )

        assert [link.ingredient_id for link in result.links] == [flour.id]
        assert result.links[0].quantity == 2.0
        assert result.links[0].unit == "cups"
        assert result.links[0].recipe_id == RECIPE_ID
        assert result.created == []
        assert store.created == []

    async def test_fuzzy_match_takes_precedence(self):
        tomato = CatalogIngredient(id=uuid.uuid4(), name="Tomato")
        tomatoes = CatalogIngredient(id=uuid.uuid4(), name="tomatoes")
        store = FakeStore(catalog=[tomato, tomatoes])

        result = await reconcile_ingredients(
            store, RECIPE_ID, [_ingredient("Tomatoes")], {"tomatoes": tomato.id}, [tomato, tomatoes],
        )

        assert [link.ingredient_id for link in result.links] == [tomato.id]

    async def test_unknown_name_creates_catalog_entry(self, fake_store):
        result = await reconcile_ingredients(
            fake_store, RECIPE_ID, [_ingredient(" Saffron ", notes="a pinch")], {}, [],
        )

        assert [entry.name for entry in result.created] == ["Saffron"]
        assert [entry.name for entry in fake_store.created] == ["Saffron"]
        assert result.links[0].ingredient_id == fake_store.created[0].id
        assert result.links[0].notes == "a pinch"

    async def test_two_names_resolving_to_one_id_make_one_link(self):
        tomato = CatalogIngredient(id=uuid.uuid4(), name="Tomato")
        store = FakeStore(catalog=[tomato])

        result = await reconcile_ingredients(
            store,
            RECIPE_ID,
            [_ingredient("tomatoes", sort_order=0), _ingredient("roma tomatoes", sort_order=1)],
            {"tomatoes": tomato.id, "roma tomatoes": tomato.id},
            [tomato],
        )

        assert [link.ingredient_id for link in result.links] == [tomato.id]
        assert result.links[0].sort_order == 0
        assert result.skipped == ["roma tomatoes"]
        assert result.skipped_count == 1

    async def test_fuzzy_and_exact_collision_skips_second(self):
        tomato = CatalogIngredient(id=uuid.uuid4(), name="Tomato")
        store = FakeStore(catalog=[tomato])

        result = await reconcile_ingredients(
            store,
            RECIPE_ID,
            [_ingredient("tomatoes"), _ingredient("tomato", sort_order=1)],
            {"tomatoes": tomato.id},
            [tomato],
        )

        assert len(result.links) == 1
        assert result.skipped_count == 1

    async def test_links_keep_sort_order(self, fake_store):
        result = await reconcile_ingredients(
            fake_store,
            RECIPE_ID,
            [_ingredient("flour", sort_order=0), _ingredient("sugar", sort_order=2), _ingredient("eggs", sort_order=5)],
            {},
            [],
        )

        assert [link.sort_order for link in result.links] == [0, 2, 5]

    async def test_conflict_recovers_by_reading_back(self):
        store = FakeStore(conflict_names=["Basil"])

        result = await reconcile_ingredients(store, RECIPE_ID, [_ingredient("Basil")], {}, [])

        winner = store.catalog[0]
        assert [link.ingredient_id for link in result.links] == [winner.id]
        assert result.created == []
        assert result.skipped_count == 0

    async def test_conflict_without_readable_row_is_skipped(self):
        store = FakeStore(conflict_names=["Basil"], vanish_on_conflict=True)

        result = await reconcile_ingredients(
            store, RECIPE_ID, [_ingredient("Basil"), _ingredient("Thyme", sort_order=1)], {}, [],
        )

        assert result.skipped == ["Basil"]
        assert [entry.name for entry in result.created] == ["Thyme"]
        assert len(result.links) == 1
