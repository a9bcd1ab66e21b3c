"""SQLAlchemy models for recipes, the ingredient catalog and recipe-ingredient links."""

from sqlalchemy import (
    Column, String, Text, Integer, Numeric, DateTime, ForeignKey, Index, UniqueConstraint, Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from mealplanner.db.database import Base


class Recipe(Base):
    """
    Recipe model - a household's recipe record.

    Imports fill in description/category/cuisine and replace the linked
    ingredient set; the name is fixed at creation.
    """
    __tablename__ = "recipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, ForeignKey("households.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    source_url = Column(Text, nullable=True)
    category = Column(String(32), nullable=True)  # entree|side|dessert|appetizer|breakfast|soup|salad|beverage
    cuisine = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="active")  # active|wishlist|made
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    ingredient_links = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Recipe {self.id}: {self.name}>"


class Ingredient(Base):
    """
    Catalog ingredient - a household-scoped canonical ingredient.

    Unique per (household, lower(name)); created lazily the first time an
    import sees a name that matches nothing in the catalog.
    """
    __tablename__ = "ingredients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, ForeignKey("households.id"), nullable=False)
    name = Column(Text, nullable=False)
    department = Column(Text, nullable=True)  # Store section (e.g., Produce, Pantry)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Ingredient {self.id}: {self.name}>"


Index(
    "uq_ingredients_household_lower_name",
    Ingredient.household_id,
    func.lower(Ingredient.name),
    unique=True,
)


class RecipeIngredient(Base):
    """
    RecipeIngredient model - links a recipe to a catalog ingredient.

    At most one row per (recipe_id, ingredient_id).
    """
    __tablename__ = "recipe_ingredients"
    __table_args__ = (
        UniqueConstraint("recipe_id", "ingredient_id", name="uq_recipe_ingredients_recipe_ingredient"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    ingredient_id = Column(Uuid, ForeignKey("ingredients.id"), nullable=False)
    quantity = Column(Numeric(asdecimal=False), nullable=True)
    unit = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)  # e.g., "diced", "room temperature"
    sort_order = Column(Integer, nullable=False, default=0)

    recipe = relationship("Recipe", back_populates="ingredient_links")
    ingredient = relationship("Ingredient")

    def __repr__(self):
        return f"<RecipeIngredient recipe={self.recipe_id} ingredient={self.ingredient_id}>"
