"""SQLAlchemy models for households and their members."""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid

from mealplanner.db.database import Base


class Household(Base):
    """
    Household model - the ownership boundary for recipes and the ingredient catalog.

    Every recipe, catalog ingredient and link is scoped to exactly one household.
    """
    __tablename__ = "households"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    timezone = Column(Text, nullable=True, default="America/New_York")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Household {self.id}: {self.name}>"


class User(Base):
    """User model - resolves an authenticated email to its household."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(Text, nullable=True)
    household_id = Column(Uuid, ForeignKey("households.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User {self.email}>"
