"""ORM models."""

from models.base import Base
from models.ratings import ClubPlayerStat, PlayerRating

__all__ = ["Base", "ClubPlayerStat", "PlayerRating"]
