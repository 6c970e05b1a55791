"""Unit tests for the K-factor policy."""

from __future__ import annotations

import pytest

from domain.ratings.common import MatchImportance
from domain.ratings.k_factor import KFactorParameters, KFactorPolicy, coerce_match_count


@pytest.mark.parametrize(
    ("matches_played", "expected_k"),
    [(0, 32.0), (9, 32.0), (10, 24.0), (29, 24.0), (30, 16.0), (99, 16.0), (100, 8.0), (5000, 8.0)],
)
def test_experience_tiers(matches_played: int, expected_k: float) -> None:
    assert KFactorPolicy().k_factor(matches_played, False) == pytest.approx(expected_k)


def test_high_rating_uses_veteran_k_regardless_of_experience() -> None:
    assert KFactorPolicy().k_factor(3, False, rating=2000.0) == pytest.approx(8.0)
    assert KFactorPolicy().k_factor(3, False, rating=1999.0) == pytest.approx(32.0)


def test_club_context_halves_k() -> None:
    policy = KFactorPolicy()
    assert policy.k_factor(0, True) == pytest.approx(16.0)
    assert policy.k_factor(150, True) == pytest.approx(4.0)


def test_club_k_is_never_larger_than_global_k() -> None:
    policy = KFactorPolicy()
    for matches in range(0, 200, 7):
        assert policy.k_factor(matches, True) <= policy.k_factor(matches, False)


@pytest.mark.parametrize("garbage", [-3, None, "abc", float("nan"), True])
def test_garbage_match_counts_are_treated_as_zero(garbage: object) -> None:
    assert coerce_match_count(garbage) == 0
    assert KFactorPolicy().k_factor(garbage, False) == pytest.approx(32.0)


def test_importance_multipliers_combine_and_cap() -> None:
    policy = KFactorPolicy()
    tournament_final = MatchImportance(is_tournament=True, is_final=True)

    assert policy.importance_multiplier(tournament_final) == pytest.approx(1.95)
    assert policy.k_factor(50, False, importance=MatchImportance(is_tournament=True)) == pytest.approx(24.0)
    assert policy.k_factor(0, False, importance=tournament_final) == pytest.approx(40.0)
    assert policy.k_factor(0, False, importance=MatchImportance(is_casual=True)) == pytest.approx(25.6)


def test_club_rating_k_curve() -> None:
    policy = KFactorPolicy()
    assert policy.club_k_factor(0) == pytest.approx(32.0)
    assert policy.club_k_factor(9) == pytest.approx(32.0)
    assert policy.club_k_factor(10) == pytest.approx(16.0)


def test_custom_parameters_are_respected() -> None:
    policy = KFactorPolicy(KFactorParameters(experience_tiers=((5, 20.0),), veteran_k=10.0))
    assert policy.k_factor(4, False) == pytest.approx(20.0)
    assert policy.k_factor(5, False) == pytest.approx(10.0)
