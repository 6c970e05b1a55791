"""Unit tests for leaderboard filtering and ranking."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from domain.ratings.common import ClubStatRecord, Gender, MatchType, MatchTypeRating, RatingRecord
from domain.ratings.leaderboard import (
    UNRANKED,
    LeaderboardFilter,
    LeaderboardWindow,
    RankingKey,
    build_club_leaderboard,
    build_leaderboard,
    gender_lookup,
    position_of,
    rank,
    score_for,
    window_start,
    with_club_rankings,
)

AS_OF = datetime(2026, 5, 20, 12, 0, 0)


def test_equal_scores_share_a_rank() -> None:
    entries = rank([("a", 50.0), ("b", 50.0), ("c", 40.0)])
    assert [entry.rank for entry in entries] == [1, 1, 3]


def test_sports_style_ranking_with_two_tie_groups() -> None:
    entries = rank([("p1", 1500.0), ("p2", 1500.0), ("p3", 1400.0), ("p4", 1300.0), ("p5", 1300.0)])

    assert [entry.rank for entry in entries] == [1, 1, 3, 4, 4]
    assert [entry.is_tied for entry in entries] == [True, True, False, True, True]


def test_rank_is_one_plus_count_of_strictly_better_scores() -> None:
    scores = [("a", 1210.0), ("b", 1500.0), ("c", 1210.0), ("d", 990.0), ("e", 1500.0), ("f", 1100.0)]
    entries = rank(scores)
    for entry in entries:
        better = sum(1 for _, score in scores if score > entry.score)
        assert entry.rank == better + 1


def test_ties_are_ordered_by_player_id() -> None:
    entries = rank([("zed", 1300.0), ("amy", 1300.0), ("max", 1300.0)])
    assert [entry.player_id for entry in entries] == ["amy", "max", "zed"]


def test_ascending_rank() -> None:
    entries = rank([("a", 3.0), ("b", 1.0), ("c", 1.0)], descending=False)
    assert [(entry.player_id, entry.rank) for entry in entries] == [("b", 1), ("c", 1), ("a", 3)]


def test_empty_leaderboard() -> None:
    assert rank([]) == []
    assert position_of([], "anyone") is UNRANKED


def test_position_of_absent_player_is_unranked_sentinel() -> None:
    entries = rank([("a", 1300.0)])
    assert position_of(entries, "a") == 1
    assert position_of(entries, "b") is UNRANKED
    assert position_of(entries, "b") != 0


def test_window_starts() -> None:
    assert window_start(LeaderboardWindow.MONTHLY, AS_OF) == datetime(2026, 5, 1)
    assert window_start(LeaderboardWindow.QUARTERLY, AS_OF) == datetime(2026, 4, 1)
    assert window_start(LeaderboardWindow.QUARTERLY, datetime(2026, 12, 31, 23, 59)) == datetime(2026, 10, 1)
    assert window_start(LeaderboardWindow.ALL_TIME, AS_OF) is None


def test_monthly_window_excludes_stale_players_but_keeps_never_played() -> None:
    records = [
        RatingRecord(player_id="active", rating=1300.0, last_match_at=datetime(2026, 5, 3)),
        RatingRecord(player_id="stale", rating=1800.0, last_match_at=datetime(2026, 4, 28)),
        RatingRecord(player_id="fresh", rating=1200.0, last_match_at=None),
    ]

    entries = build_leaderboard(records, LeaderboardFilter(window=LeaderboardWindow.MONTHLY), as_of=AS_OF)

    assert [entry.player_id for entry in entries] == ["active", "fresh"]
    assert position_of(entries, "stale") is UNRANKED


def test_gender_filter_is_applied_before_ranking() -> None:
    records = [
        RatingRecord(player_id="m1", rating=1900.0, gender=Gender.MALE),
        RatingRecord(player_id="f1", rating=1600.0, gender=Gender.FEMALE),
        RatingRecord(player_id="f2", rating=1400.0, gender=Gender.FEMALE),
        RatingRecord(player_id="u1", rating=2000.0),
    ]

    entries = build_leaderboard(records, LeaderboardFilter(gender=Gender.FEMALE), as_of=AS_OF)

    assert [(entry.player_id, entry.rank) for entry in entries] == [("f1", 1), ("f2", 2)]


def test_match_type_leaderboard_uses_per_type_rating() -> None:
    records = [
        RatingRecord(
            player_id="a",
            rating=1800.0,
            match_types={MatchType.DOUBLES: MatchTypeRating(rating=1250.0, matches_played=3)},
        ),
        RatingRecord(
            player_id="b",
            rating=1300.0,
            match_types={MatchType.DOUBLES: MatchTypeRating(rating=1450.0, matches_played=8)},
        ),
    ]

    entries = build_leaderboard(
        records,
        LeaderboardFilter(match_type=MatchType.DOUBLES),
        key=RankingKey.MATCH_TYPE,
        as_of=AS_OF,
    )

    assert [(entry.player_id, entry.score) for entry in entries] == [("b", 1450.0), ("a", 1250.0)]


def test_match_type_key_requires_match_type() -> None:
    with pytest.raises(ValueError, match="match_type is required"):
        build_leaderboard([], LeaderboardFilter(), key=RankingKey.MATCH_TYPE)


def test_overall_score_is_mean_of_match_types() -> None:
    record = RatingRecord(
        player_id="a",
        match_types={
            MatchType.SINGLES: MatchTypeRating(rating=1500.0),
            MatchType.DOUBLES: MatchTypeRating(rating=1300.0),
        },
    )
    assert score_for(record, RankingKey.OVERALL) == pytest.approx((1500.0 + 1300.0 + 1200.0) / 3)


def test_corrupt_rating_scores_as_default() -> None:
    record = RatingRecord(player_id="a", rating=float("nan"))
    assert score_for(record, RankingKey.GLOBAL) == pytest.approx(1200.0)


def test_club_leaderboard_ranks_only_that_club() -> None:
    club_records = [
        ClubStatRecord(player_id="a", club_id="c1", club_rating=1250.0),
        ClubStatRecord(player_id="b", club_id="c1", club_rating=1310.0),
        ClubStatRecord(player_id="c", club_id="c2", club_rating=1900.0),
        ClubStatRecord(player_id="d", club_id="c1", club_rating=1250.0),
    ]

    entries = build_club_leaderboard(club_records, club_id="c1", as_of=AS_OF)

    assert [(entry.player_id, entry.rank) for entry in entries] == [("b", 1), ("a", 2), ("d", 2)]

    ranked = {record.player_id: record.club_ranking for record in with_club_rankings(club_records, club_id="c1")}
    assert ranked == {"a": 2, "b": 1, "d": 2}


def test_club_leaderboard_filters_by_gender_lookup() -> None:
    club_records = [
        ClubStatRecord(player_id="a", club_id="c1", club_rating=1400.0),
        ClubStatRecord(player_id="b", club_id="c1", club_rating=1300.0),
        ClubStatRecord(player_id="c", club_id="c1", club_rating=1300.0),
        ClubStatRecord(player_id="d", club_id="c1", club_rating=1500.0),
    ]
    genders = gender_lookup(
        [
            RatingRecord(player_id="a", gender=Gender.FEMALE),
            RatingRecord(player_id="b", gender=Gender.FEMALE),
            RatingRecord(player_id="c", gender=Gender.FEMALE),
            RatingRecord(player_id="d", gender=Gender.MALE),
        ]
    )

    entries = build_club_leaderboard(club_records, club_id="c1", gender=Gender.FEMALE, genders=genders, as_of=AS_OF)

    assert [(entry.player_id, entry.rank) for entry in entries] == [("a", 1), ("b", 2), ("c", 2)]
    with pytest.raises(ValueError, match="genders lookup"):
        build_club_leaderboard(club_records, club_id="c1", gender=Gender.FEMALE)


def test_aware_timestamps_compare_against_window_cutoff() -> None:
    records = [
        RatingRecord(player_id="april-utc", last_match_at=datetime(2026, 5, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))),
        RatingRecord(player_id="may", last_match_at=datetime(2026, 5, 2, 9, 0, tzinfo=UTC)),
    ]

    monthly = build_leaderboard(records, LeaderboardFilter(window=LeaderboardWindow.MONTHLY), as_of=AS_OF.replace(tzinfo=UTC))
    quarterly = build_leaderboard(records, LeaderboardFilter(window=LeaderboardWindow.QUARTERLY), as_of=AS_OF)

    assert [entry.player_id for entry in monthly] == ["may"]
    assert {entry.player_id for entry in quarterly} == {"april-utc", "may"}


def test_configured_default_rating_scores_missing_and_corrupt_ratings() -> None:
    corrupt = RatingRecord(player_id="a", rating=float("nan"))
    assert score_for(corrupt, RankingKey.GLOBAL, default_rating=1250.0) == pytest.approx(1250.0)
    assert score_for(corrupt, RankingKey.MATCH_TYPE, match_type=MatchType.MIXED, default_rating=1250.0) == pytest.approx(1250.0)

    club_records = [ClubStatRecord(player_id="a", club_id="c1", club_rating=float("inf"))]
    entries = build_club_leaderboard(club_records, club_id="c1", default_rating=1250.0)
    assert entries[0].score == pytest.approx(1250.0)
