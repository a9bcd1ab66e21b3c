"""Pydantic schemas for API request/response validation."""

from pydantic import BaseModel, ConfigDict
from typing import Optional
from uuid import UUID


# ============================================================
# Recipe Import
# ============================================================

class CreateFromUrlRequest(BaseModel):
    """Request to create a recipe from a web page."""
    # Validated by the import pipeline so a missing URL is a 400, not a 422
    url: Optional[str] = None


class RecipeSummary(BaseModel):
    """Recipe fields written by an import."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    cuisine: Optional[str] = None
    source_url: Optional[str] = None


class LinkedIngredientResponse(BaseModel):
    """A saved recipe ingredient joined with its catalog name."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ingredient_id: UUID
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    sort_order: int


class ImportIngredientsResponse(BaseModel):
    """Result of creating a recipe from a URL or re-importing its ingredients."""
    success: bool = True
    recipe_id: UUID
    recipe: RecipeSummary
    extraction_method: str  # structured|ai
    ingredients_created: int
    ingredients_skipped: int
    new_catalog_ingredients: int
    ingredients: list[LinkedIngredientResponse] = []


# ============================================================
# Utility Schemas
# ============================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    environment: str
    database: str = "connected"


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
