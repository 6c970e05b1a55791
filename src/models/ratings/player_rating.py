"""player_ratings table model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.ratings.mixins import JSONType, PlayerRatingColumnsMixin, TimestampMixin


class PlayerRating(PlayerRatingColumnsMixin, TimestampMixin, Base):
    """Current unified rating for one player (one row per player)."""

    __tablename__ = "player_ratings"
    __table_args__ = (
        CheckConstraint("rating >= 800.0 AND rating <= 3000.0", name="ck_player_ratings_rating_range"),
        CheckConstraint("matches_played = wins + losses", name="ck_player_ratings_match_count"),
        CheckConstraint(
            "matches_played = global_matches + club_matches",
            name="ck_player_ratings_context_count",
        ),
        Index("idx_player_ratings_rating", "rating"),
        Index("idx_player_ratings_last_match", "last_match_at"),
    )

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    migration_version: Mapped[str | None] = mapped_column(String(16), nullable=True)
    legacy_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
