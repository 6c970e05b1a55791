"""Rating ORM models."""

from models.ratings.club_player_stat import ClubPlayerStat
from models.ratings.player_rating import PlayerRating

__all__ = ["ClubPlayerStat", "PlayerRating"]
