"""Leaderboard filtering and sports-style ranking."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum

from domain.ratings.common import (
    DEFAULT_RATING,
    ClubStatRecord,
    Gender,
    LeaderboardEntry,
    MatchType,
    RatingRecord,
    naive_utc,
)
from domain.ratings.rating_math import sanitize_rating


class Unranked(Enum):
    """Marker for a player that is absent from a leaderboard."""

    UNRANKED = "unranked"

    def __repr__(self) -> str:
        return "UNRANKED"


UNRANKED = Unranked.UNRANKED


class RankingKey(str, Enum):
    GLOBAL = "global"
    MATCH_TYPE = "match_type"
    OVERALL = "overall"
    CLUB = "club"


class LeaderboardWindow(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ALL_TIME = "all_time"


@dataclass(frozen=True)
class LeaderboardFilter:
    """Eligibility constraints applied before ranking."""

    window: LeaderboardWindow = LeaderboardWindow.ALL_TIME
    match_type: MatchType | None = None
    gender: Gender | None = None
    club_id: str | None = None


def rank(
    entries: Iterable[tuple[str, float]],
    *,
    descending: bool = True,
) -> list[LeaderboardEntry]:
    """Rank ``(player_id, score)`` pairs; equal scores share a rank.

    Rank is ``1 + count(strictly better scores)``, so ``[50, 50, 40]`` ranks
    ``[1, 1, 3]``. Player id ascending orders true ties deterministically.
    """
    pairs = [(player_id, float(score)) for player_id, score in entries]
    if descending:
        ordered = sorted(pairs, key=lambda item: (-item[1], item[0]))
    else:
        ordered = sorted(pairs, key=lambda item: (item[1], item[0]))

    score_counts = Counter(score for _, score in ordered)
    ranked: list[LeaderboardEntry] = []
    current_rank = 0
    previous_score: float | None = None
    for index, (player_id, score) in enumerate(ordered):
        if previous_score is None or score != previous_score:
            current_rank = index + 1
            previous_score = score
        ranked.append(
            LeaderboardEntry(
                player_id=player_id,
                rank=current_rank,
                score=score,
                is_tied=score_counts[score] > 1,
            )
        )
    return ranked


def position_of(entries: Sequence[LeaderboardEntry], player_id: str) -> int | Unranked:
    """Return the player's rank, or ``UNRANKED`` when they are not on the board."""
    for entry in entries:
        if entry.player_id == player_id:
            return entry.rank
    return UNRANKED


def window_start(window: LeaderboardWindow, as_of: datetime) -> datetime | None:
    as_of = naive_utc(as_of)
    if window == LeaderboardWindow.MONTHLY:
        return as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if window == LeaderboardWindow.QUARTERLY:
        quarter_month = ((as_of.month - 1) // 3) * 3 + 1
        return as_of.replace(month=quarter_month, day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def is_active_in_window(last_match_at: datetime | None, cutoff: datetime | None) -> bool:
    """A player who never played stays eligible at their current rating."""
    if cutoff is None or last_match_at is None:
        return True
    return naive_utc(last_match_at) >= cutoff


def score_for(
    record: RatingRecord,
    key: RankingKey,
    *,
    match_type: MatchType | None = None,
    default_rating: float = DEFAULT_RATING,
) -> float:
    """Ranking score of one record; corrupt or missing ratings score as ``default_rating``."""
    if key == RankingKey.GLOBAL:
        return sanitize_rating(record.rating, default=default_rating)
    if key == RankingKey.MATCH_TYPE:
        if match_type is None:
            raise ValueError("match_type is required for RankingKey.MATCH_TYPE")
        return _match_type_score(record, match_type, default_rating)
    if key == RankingKey.OVERALL:
        ratings = [_match_type_score(record, item, default_rating) for item in MatchType]
        return sum(ratings) / len(ratings)
    raise ValueError(f"{key.value} scores are read from club records; use build_club_leaderboard")


def _match_type_score(record: RatingRecord, match_type: MatchType, default_rating: float) -> float:
    entry = record.match_types.get(match_type)
    if entry is None:
        return default_rating
    return sanitize_rating(entry.rating, default=default_rating)


def filter_records(
    records: Iterable[RatingRecord],
    leaderboard_filter: LeaderboardFilter,
    *,
    as_of: datetime | None = None,
) -> list[RatingRecord]:
    as_of = as_of or datetime.now(UTC).replace(tzinfo=None)
    cutoff = window_start(leaderboard_filter.window, as_of)
    return [
        record
        for record in records
        if is_active_in_window(record.last_match_at, cutoff)
        and (leaderboard_filter.gender is None or record.gender == leaderboard_filter.gender)
    ]


def build_leaderboard(
    records: Iterable[RatingRecord],
    leaderboard_filter: LeaderboardFilter | None = None,
    *,
    key: RankingKey = RankingKey.GLOBAL,
    as_of: datetime | None = None,
    default_rating: float = DEFAULT_RATING,
) -> list[LeaderboardEntry]:
    """Filter rating records, score them by ``key`` and rank the remainder."""
    leaderboard_filter = leaderboard_filter or LeaderboardFilter()
    if key == RankingKey.MATCH_TYPE and leaderboard_filter.match_type is None:
        raise ValueError("LeaderboardFilter.match_type is required for RankingKey.MATCH_TYPE")

    eligible = filter_records(records, leaderboard_filter, as_of=as_of)
    return rank(
        (
            record.player_id,
            score_for(
                record,
                key,
                match_type=leaderboard_filter.match_type,
                default_rating=default_rating,
            ),
        )
        for record in eligible
    )


def build_club_leaderboard(
    club_records: Iterable[ClubStatRecord],
    *,
    club_id: str,
    window: LeaderboardWindow = LeaderboardWindow.ALL_TIME,
    as_of: datetime | None = None,
    gender: Gender | None = None,
    genders: Mapping[str, Gender | None] | None = None,
    default_rating: float = DEFAULT_RATING,
) -> list[LeaderboardEntry]:
    """Rank one club's members by club rating.

    Club records carry no gender, so a ``gender`` filter needs the
    ``player_id -> gender`` lookup in ``genders``; players missing from it
    are excluded.
    """
    if gender is not None and genders is None:
        raise ValueError("genders lookup is required to filter a club leaderboard by gender")
    as_of = as_of or datetime.now(UTC).replace(tzinfo=None)
    cutoff = window_start(window, as_of)
    return rank(
        (record.player_id, sanitize_rating(record.club_rating, default=default_rating))
        for record in club_records
        if record.club_id == club_id
        and is_active_in_window(record.last_match_at, cutoff)
        and (gender is None or (genders or {}).get(record.player_id) == gender)
    )


def gender_lookup(records: Iterable[RatingRecord]) -> dict[str, Gender | None]:
    return {record.player_id: record.gender for record in records}


def with_club_rankings(
    club_records: Sequence[ClubStatRecord],
    *,
    club_id: str,
    default_rating: float = DEFAULT_RATING,
) -> list[ClubStatRecord]:
    """Copy of the club's records with ``club_ranking`` refreshed from an all-time board."""
    entries = build_club_leaderboard(club_records, club_id=club_id, default_rating=default_rating)
    ranks = {entry.player_id: entry.rank for entry in entries}
    return [
        replace(record, club_ranking=ranks[record.player_id])
        for record in club_records
        if record.club_id == club_id
    ]


__all__ = [
    "UNRANKED",
    "LeaderboardFilter",
    "LeaderboardWindow",
    "RankingKey",
    "Unranked",
    "build_club_leaderboard",
    "build_leaderboard",
    "filter_records",
    "gender_lookup",
    "is_active_in_window",
    "position_of",
    "rank",
    "score_for",
    "window_start",
    "with_club_rankings",
]
