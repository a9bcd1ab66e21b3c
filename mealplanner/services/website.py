"""
Structured recipe data extraction.

Reads the JSON-LD blocks (Schema.org Recipe) embedded in a recipe page.
This is the preferred extraction path: it is exact and costs no AI call.
When no Recipe block is present the importer falls back to AI extraction.
"""

import html as html_lib
import json
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup

from mealplanner.models.extracted import (
    DEFAULT_CUISINE,
    DEFAULT_RECIPE_NAME,
    ExtractedIngredient,
    ExtractedRecipe,
    normalize_category,
)
from mealplanner.services.ingredient_parser import parse_ingredient_string


class WebsiteService:
    """Service for extracting structured recipe data from page markup."""

    GRAPH_KEYS = ("@graph", "itemListElement")

    @classmethod
    def extract_structured_recipe(cls, html: str) -> Optional[ExtractedRecipe]:
        """
        Extract a recipe from the page's JSON-LD blocks.

        Returns None when no Recipe-typed block exists.
        """
        jsonld = cls._extract_jsonld_recipe(html)
        if jsonld is None:
            print("⚠️ No JSON-LD recipe found")
            return None

        recipe = cls._convert_jsonld_to_recipe(jsonld)
        print(f"✅ Found JSON-LD recipe schema: {recipe.name} ({len(recipe.ingredients)} ingredients)")
        return recipe

    @classmethod
    def _extract_jsonld_recipe(cls, html: str) -> Optional[dict]:
        """Return the first Recipe-typed JSON-LD object in the page."""
        soup = BeautifulSoup(html or "", "lxml")
        scripts = soup.find_all("script", type="application/ld+json")

        for script in scripts:
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue

            for item in cls._iter_candidates(data):
                if cls._is_recipe_schema(item):
                    return item

        return None

    @classmethod
    def _iter_candidates(cls, data: Any) -> Iterator[Any]:
        """Yield every object in a JSON-LD block, flattening arrays and @graph lists."""
        if isinstance(data, list):
            for item in data:
                yield from cls._iter_candidates(item)
        elif isinstance(data, dict):
            yield data
            for key in cls.GRAPH_KEYS:
                nested = data.get(key)
                if isinstance(nested, list):
                    for item in nested:
                        yield from cls._iter_candidates(item)
            # ItemList entries wrap the recipe as {"@type": "ListItem", "item": {...}}
            item = data.get("item")
            if isinstance(item, dict):
                yield from cls._iter_candidates(item)

    @staticmethod
    def _is_recipe_schema(item: Any) -> bool:
        """Check if an item is a Recipe schema."""
        if not isinstance(item, dict):
            return False
        item_type = item.get("@type", "")
        # Handle both string and list types
        if isinstance(item_type, list):
            return "Recipe" in item_type
        return item_type == "Recipe"

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        """Return a trimmed, entity-decoded string, or None for non-strings/blanks."""
        if not isinstance(value, str):
            return None
        value = html_lib.unescape(value).strip()
        return value or None

    @classmethod
    def _first_text(cls, value: Any) -> Optional[str]:
        """Accept a string or the first string of an array."""
        if isinstance(value, list):
            value = value[0] if value else None
        return cls._text(value)

    @classmethod
    def _convert_jsonld_to_recipe(cls, jsonld: dict) -> ExtractedRecipe:
        """Convert a JSON-LD Recipe object to an ExtractedRecipe."""
        raw_ingredients = jsonld.get("recipeIngredient")
        if isinstance(raw_ingredients, str):
            raw_ingredients = [raw_ingredients]
        if not isinstance(raw_ingredients, list):
            raw_ingredients = []

        ingredients = []
        for index, line in enumerate(raw_ingredients):
            text = cls._text(line)
            if not text:
                continue
            parsed = parse_ingredient_string(text)
            ingredients.append(ExtractedIngredient(
                name=parsed.name,
                quantity=parsed.quantity,
                unit=parsed.unit,
                notes=parsed.notes,
                sort_order=index,
            ))

        return ExtractedRecipe(
            name=cls._text(jsonld.get("name")) or DEFAULT_RECIPE_NAME,
            description=cls._text(jsonld.get("description")) or "",
            category=normalize_category(cls._first_text(jsonld.get("recipeCategory"))),
            cuisine=cls._first_text(jsonld.get("recipeCuisine")) or DEFAULT_CUISINE,
            ingredients=tuple(ingredients),
        )


# Singleton instance
website_service = WebsiteService()
