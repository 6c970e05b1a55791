"""SQLAlchemy mixins for columns shared by rating tables."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class TimestampMixin:
    """created_at / updated_at bookkeeping columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class RatingStatsMixin:
    """Win/loss counters and activity timestamp common to global and club ratings."""

    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_match_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)


class PlayerRatingColumnsMixin(RatingStatsMixin):
    """Global rating columns for one player."""

    rating: Mapped[float] = mapped_column(Float, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    global_matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    club_matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_types_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
