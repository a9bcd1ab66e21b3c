"""
Resolve deduplicated ingredients to catalog ids and stage recipe links.

Resolution order per ingredient: fuzzy match, then exact (case-insensitive)
name, then create a new catalog entry. Two ingredients that land on the same
catalog id produce one link; the later one is counted as skipped.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence
from uuid import UUID

from mealplanner.errors import PersistenceConflict
from mealplanner.models.extracted import CatalogIngredient, ExtractedIngredient, StagedLink


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""
    links: list[StagedLink] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    created: list[CatalogIngredient] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def build_exact_index(catalog: Sequence[CatalogIngredient]) -> dict[str, UUID]:
    """Map lowercased trimmed catalog names to ids (first entry wins)."""
    index = {}
    for entry in catalog:
        index.setdefault(entry.name.strip().lower(), entry.id)
    return index


async def _create_or_recover(store, name: str) -> tuple[Optional[UUID], bool]:
    """
    Create a catalog ingredient, or pick up the one a concurrent import just created.

    Returns (id, created); id is None only if the conflicting row vanished.
    """
    try:
        created = await store.create_ingredient(name)
        return created.id, True
    except PersistenceConflict:
        print(f"⚠️ Ingredient \"{name}\" was created concurrently, re-reading catalog")
        existing = await store.find_ingredient_by_name(name)
        return (existing.id if existing else None), False


async def reconcile_ingredients(
    store,
    recipe_id: UUID,
    ingredients: Sequence[ExtractedIngredient],
    fuzzy_matches: Mapping[str, UUID],
    catalog: Sequence[CatalogIngredient],
) -> ReconciliationResult:
    """
    Stage one link per distinct catalog ingredient.

    `store` needs create_ingredient(name) raising PersistenceConflict on a
    uniqueness violation, and find_ingredient_by_name(name).
    """
    exact_matches = build_exact_index(catalog)
    result = ReconciliationResult()
    consumed: set[UUID] = set()

    for ingredient in ingredients:
        key = ingredient.key
        candidate_id = fuzzy_matches.get(key) or exact_matches.get(key)

        if candidate_id is None:
            name = ingredient.name.strip()
            candidate_id, created = await _create_or_recover(store, name)
            if candidate_id is None:
                print(f"⚠️ Could not create or find ingredient \"{name}\", skipping")
                result.skipped.append(ingredient.name)
                continue
            if created:
                result.created.append(CatalogIngredient(id=candidate_id, name=name))

        if candidate_id in consumed:
            print(f"⚠️ \"{ingredient.name}\" resolves to an ingredient already linked, skipping")
            result.skipped.append(ingredient.name)
            continue

        consumed.add(candidate_id)
        result.links.append(StagedLink(
            recipe_id=recipe_id,
            ingredient_id=candidate_id,
            quantity=ingredient.quantity,
            unit=ingredient.unit,
            notes=ingredient.notes,
            sort_order=ingredient.sort_order,
        ))

    print(
        f"🧾 Reconciled {len(result.links)} ingredient(s): "
        f"{len(result.created)} new, {result.skipped_count} skipped"
    )
    return result
