"""Rating store implementations."""

from repositories.ratings.memory import InMemoryRatingStore
from repositories.ratings.sql import SqlRatingStore, ensure_rating_schema

__all__ = ["InMemoryRatingStore", "SqlRatingStore", "ensure_rating_schema"]
