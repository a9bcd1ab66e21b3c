from .household import Household, User
from .recipe import Recipe, Ingredient, RecipeIngredient

__all__ = [
    "Household",
    "User",
    "Recipe",
    "Ingredient",
    "RecipeIngredient",
]
