"""Shared types for the unified rating engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

DEFAULT_RATING = 1200.0
MIN_RATING = 800.0
MAX_RATING = 3000.0


def naive_utc(value: datetime) -> datetime:
    """Timestamps are stored and compared as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class MatchContext(str, Enum):
    """Where a match was played."""

    GLOBAL = "global"
    CLUB = "club"


class MatchResult(str, Enum):
    """Two-player outcome; draws are not supported."""

    A_WINS = "A_wins"
    B_WINS = "B_wins"


class MatchType(str, Enum):
    SINGLES = "singles"
    DOUBLES = "doubles"
    MIXED = "mixed"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Tier(str, Enum):
    """Skill tier labels, lowest first."""

    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"
    MASTER = "Master"
    GRANDMASTER = "Grandmaster"


@dataclass(frozen=True)
class MatchImportance:
    """Orthogonal K-factor modifiers for one match."""

    is_tournament: bool = False
    is_final: bool = False
    is_casual: bool = False


@dataclass(frozen=True)
class MatchOutcome:
    """Canonical two-player result payload consumed by the update engine."""

    match_id: str
    context_type: MatchContext
    player_a: str
    player_b: str
    result: MatchResult
    club_id: str | None = None
    played_at: datetime | None = None
    match_type: MatchType | None = None
    importance: MatchImportance = MatchImportance()

    @property
    def is_club(self) -> bool:
        return self.context_type == MatchContext.CLUB


@dataclass(frozen=True)
class MatchTypeRating:
    rating: float = DEFAULT_RATING
    matches_played: int = 0


@dataclass(frozen=True)
class RatingRecord:
    """Single source of truth for one player's skill."""

    player_id: str
    rating: float = DEFAULT_RATING
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    global_matches: int = 0
    club_matches: int = 0
    last_match_at: datetime | None = None
    gender: Gender | None = None
    match_types: Mapping[MatchType, MatchTypeRating] = field(default_factory=dict)
    migration_version: str | None = None

    @property
    def win_rate(self) -> float:
        if self.matches_played <= 0:
            return 0.0
        return self.wins / self.matches_played

    @property
    def tier(self) -> Tier:
        from domain.ratings.rating_math import tier_from_rating

        return tier_from_rating(self.rating)

    def match_type_rating(self, match_type: MatchType) -> MatchTypeRating:
        return self.match_types.get(match_type, MatchTypeRating())


@dataclass(frozen=True)
class ClubStatRecord:
    """Per-(player, club) statistics with an independent club rating."""

    player_id: str
    club_id: str
    club_rating: float = DEFAULT_RATING
    club_matches_played: int = 0
    club_wins: int = 0
    club_losses: int = 0
    club_ranking: int | None = None
    last_match_at: datetime | None = None

    @property
    def club_win_rate(self) -> float:
        if self.club_matches_played <= 0:
            return 0.0
        return self.club_wins / self.club_matches_played


@dataclass(frozen=True)
class RatingChange:
    """How one player's rating moved in one match."""

    player_id: str
    won: bool
    actual_score: float
    expected_score: float
    k_factor: float
    pre_rating: float
    rating_delta: float
    post_rating: float


@dataclass(frozen=True)
class ClubStatDelta:
    """Club-scoped update produced alongside a club match."""

    club_id: str
    record_a: ClubStatRecord
    record_b: ClubStatRecord
    change_a: RatingChange
    change_b: RatingChange


@dataclass(frozen=True)
class MatchApplication:
    """Everything one ``apply_match`` call produces."""

    outcome: MatchOutcome
    record_a: RatingRecord
    record_b: RatingRecord
    change_a: RatingChange
    change_b: RatingChange
    club_delta: ClubStatDelta | None = None


@dataclass(frozen=True)
class LeaderboardEntry:
    player_id: str
    rank: int
    score: float
    is_tied: bool


__all__ = [
    "DEFAULT_RATING",
    "MAX_RATING",
    "MIN_RATING",
    "ClubStatDelta",
    "ClubStatRecord",
    "Gender",
    "LeaderboardEntry",
    "MatchApplication",
    "MatchContext",
    "MatchImportance",
    "MatchOutcome",
    "MatchResult",
    "MatchType",
    "MatchTypeRating",
    "RatingChange",
    "RatingRecord",
    "Tier",
    "naive_utc",
]
