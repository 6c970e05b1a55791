"""club_player_stats table model."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.ratings.mixins import RatingStatsMixin, TimestampMixin


class ClubPlayerStat(RatingStatsMixin, TimestampMixin, Base):
    """Independent club rating for one (player, club) pair."""

    __tablename__ = "club_player_stats"
    __table_args__ = (
        CheckConstraint(
            "club_rating >= 800.0 AND club_rating <= 3000.0",
            name="ck_club_player_stats_rating_range",
        ),
        CheckConstraint("matches_played = wins + losses", name="ck_club_player_stats_match_count"),
        Index("idx_club_player_stats_club_rating", "club_id", "club_rating"),
    )

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    club_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    club_rating: Mapped[float] = mapped_column(Float, nullable=False)
    club_ranking: Mapped[int | None] = mapped_column(Integer, nullable=True)
