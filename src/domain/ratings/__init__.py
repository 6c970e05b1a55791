"""Unified rating engine: shared types, math, K-factor policy and engine."""

from domain.ratings.common import (
    DEFAULT_RATING,
    MAX_RATING,
    MIN_RATING,
    ClubStatDelta,
    ClubStatRecord,
    Gender,
    LeaderboardEntry,
    MatchApplication,
    MatchContext,
    MatchImportance,
    MatchOutcome,
    MatchResult,
    MatchType,
    MatchTypeRating,
    RatingChange,
    RatingRecord,
    Tier,
)
from domain.ratings.engine import RatingParameters, RatingUpdateEngine
from domain.ratings.errors import InvalidMatchOutcomeError, LegacyPayloadError, RatingEngineError
from domain.ratings.k_factor import KFactorParameters, KFactorPolicy
from domain.ratings.protocol import LeaderboardSource, RatingStore

__all__ = [
    "DEFAULT_RATING",
    "MAX_RATING",
    "MIN_RATING",
    "ClubStatDelta",
    "ClubStatRecord",
    "Gender",
    "InvalidMatchOutcomeError",
    "KFactorParameters",
    "KFactorPolicy",
    "LeaderboardEntry",
    "LeaderboardSource",
    "LegacyPayloadError",
    "MatchApplication",
    "MatchContext",
    "MatchImportance",
    "MatchOutcome",
    "MatchResult",
    "MatchType",
    "MatchTypeRating",
    "RatingChange",
    "RatingEngineError",
    "RatingParameters",
    "RatingRecord",
    "RatingStore",
    "RatingUpdateEngine",
    "Tier",
]
