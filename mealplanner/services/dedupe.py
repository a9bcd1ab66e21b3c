"""Collapse repeated ingredient lines into one entry per name."""

from dataclasses import replace
from typing import Iterable, Optional

from mealplanner.models.extracted import ExtractedIngredient
from mealplanner.services.ingredient_parser import format_quantity

NOTE_SEPARATOR = "; "


def describe_repeat(ingredient: ExtractedIngredient) -> Optional[str]:
    """
    Summarize a repeated line for the kept entry's notes.

    "also: 1 cup (chopped)", "also: 2", "also: for garnish", or None when the
    repeat carries nothing worth keeping.
    """
    amount = " ".join(part for part in (format_quantity(ingredient.quantity), ingredient.unit or "") if part)
    if amount and ingredient.notes:
        return f"also: {amount} ({ingredient.notes})"
    if amount:
        return f"also: {amount}"
    if ingredient.notes:
        return f"also: {ingredient.notes}"
    return None


def deduplicate_ingredients(ingredients: Iterable[ExtractedIngredient]) -> list[ExtractedIngredient]:
    """
    Keep the first occurrence of each trimmed, lowercased name.

    Later occurrences are folded into the first one's notes. The kept entry's
    quantity, unit and sort order never change.
    """
    kept: dict[str, ExtractedIngredient] = {}
    merged = 0

    for ingredient in ingredients:
        key = ingredient.key
        if not key:
            continue

        existing = kept.get(key)
        if existing is None:
            kept[key] = ingredient
            continue

        merged += 1
        summary = describe_repeat(ingredient)
        if summary is None:
            continue
        notes = NOTE_SEPARATOR.join(part for part in (existing.notes, summary) if part)
        kept[key] = replace(existing, notes=notes)

    if merged:
        print(f"🔁 Merged {merged} repeated ingredient line(s)")
    return list(kept.values())
