"""
In-memory types passed between the import pipeline stages.

None of these are persisted directly; the store converts them to and from
ORM rows.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID


VALID_CATEGORIES = (
    "entree",
    "side",
    "dessert",
    "appetizer",
    "breakfast",
    "soup",
    "salad",
    "beverage",
)
DEFAULT_CATEGORY = "entree"
DEFAULT_CUISINE = "Other"
DEFAULT_RECIPE_NAME = "Untitled Recipe"


def normalize_category(category: Any) -> str:
    """Map any value onto the fixed category set, defaulting to "entree"."""
    if not isinstance(category, str):
        return DEFAULT_CATEGORY
    value = category.strip().lower()
    return value if value in VALID_CATEGORIES else DEFAULT_CATEGORY


@dataclass(frozen=True)
class ExtractedIngredient:
    """One ingredient line as extracted from a page."""
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    sort_order: int = 0

    @property
    def key(self) -> str:
        """Deduplication/matching key: trimmed, lowercased name."""
        return self.name.strip().lower()


@dataclass(frozen=True)
class ExtractedRecipe:
    """Recipe metadata plus ingredient list produced once per import run."""
    name: str = DEFAULT_RECIPE_NAME
    description: str = ""
    category: str = DEFAULT_CATEGORY
    cuisine: str = DEFAULT_CUISINE
    ingredients: tuple[ExtractedIngredient, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CatalogIngredient:
    """Snapshot of a household catalog row."""
    id: UUID
    name: str


@dataclass(frozen=True)
class StagedLink:
    """A recipe-ingredient link waiting to be written."""
    recipe_id: UUID
    ingredient_id: UUID
    quantity: Optional[float]
    unit: Optional[str]
    notes: Optional[str]
    sort_order: int


@dataclass(frozen=True)
class LinkedIngredient:
    """A saved recipe-ingredient link joined with its catalog name."""
    id: UUID
    ingredient_id: UUID
    name: str
    quantity: Optional[float]
    unit: Optional[str]
    notes: Optional[str]
    sort_order: int
