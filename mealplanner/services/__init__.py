"""Services module for recipe import."""

from .llm_client import llm_service, LLMService
from .website import website_service, WebsiteService
from .matcher import IngredientMatcher
from .store import HouseholdStore
from .importer import recipe_import_pipeline, RecipeImportPipeline, ImportResult

__all__ = [
    "llm_service",
    "LLMService",
    "website_service",
    "WebsiteService",
    "IngredientMatcher",
    "HouseholdStore",
    "recipe_import_pipeline",
    "RecipeImportPipeline",
    "ImportResult",
]
