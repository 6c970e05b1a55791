"""Experience- and context-dependent K-factor policy."""

from __future__ import annotations

from dataclasses import dataclass
from math import isfinite

from domain.ratings.common import MatchImportance


@dataclass(frozen=True)
class KFactorParameters:
    """Tunable constants for the K-factor policy.

    ``experience_tiers`` and ``club_tiers`` are ``(match_limit, k)`` pairs in
    ascending ``match_limit`` order: a player with fewer than ``match_limit``
    matches gets ``k``. Players past the last limit get ``veteran_k``
    (``club_veteran_k`` for club ratings).
    """

    experience_tiers: tuple[tuple[int, float], ...] = ((10, 32.0), (30, 24.0), (100, 16.0))
    veteran_k: float = 8.0
    veteran_rating: float = 2000.0
    club_multiplier: float = 0.5
    max_k: float = 40.0
    club_tiers: tuple[tuple[int, float], ...] = ((10, 32.0),)
    club_veteran_k: float = 16.0
    tournament_multiplier: float = 1.5
    final_multiplier: float = 1.3
    casual_multiplier: float = 0.8


def coerce_match_count(value: object) -> int:
    """Treat negative or garbage counts as zero."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if not isfinite(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, str):
        try:
            return coerce_match_count(float(value.strip()))
        except ValueError:
            return 0
    return 0


class KFactorPolicy:
    """Stateless K-factor lookup for global and club ratings."""

    def __init__(self, params: KFactorParameters | None = None) -> None:
        self.params = params or KFactorParameters()

    def base_k_factor(self, matches_played: object, *, rating: float | None = None) -> float:
        if rating is not None and isfinite(rating) and rating >= self.params.veteran_rating:
            return self.params.veteran_k
        return self._tiered(
            coerce_match_count(matches_played),
            self.params.experience_tiers,
            self.params.veteran_k,
        )

    def importance_multiplier(self, importance: MatchImportance | None) -> float:
        if importance is None:
            return 1.0

        multiplier = 1.0
        if importance.is_tournament:
            multiplier *= self.params.tournament_multiplier
        if importance.is_final:
            multiplier *= self.params.final_multiplier
        if importance.is_casual:
            multiplier *= self.params.casual_multiplier
        return round(multiplier, 2)

    def k_factor(
        self,
        matches_played: object,
        is_club_context: bool,
        *,
        rating: float | None = None,
        importance: MatchImportance | None = None,
    ) -> float:
        """K for a global-rating update."""
        k = self.base_k_factor(matches_played, rating=rating)
        if is_club_context:
            k *= self.params.club_multiplier
        return self._capped(k * self.importance_multiplier(importance))

    def club_k_factor(
        self,
        club_matches_played: object,
        *,
        importance: MatchImportance | None = None,
    ) -> float:
        """K for a club-rating update; independent of the global curve."""
        k = self._tiered(
            coerce_match_count(club_matches_played),
            self.params.club_tiers,
            self.params.club_veteran_k,
        )
        return self._capped(k * self.importance_multiplier(importance))

    def _capped(self, k: float) -> float:
        return min(k, self.params.max_k)

    @staticmethod
    def _tiered(matches: int, tiers: tuple[tuple[int, float], ...], fallback: float) -> float:
        for match_limit, k in tiers:
            if matches < match_limit:
                return k
        return fallback


__all__ = ["KFactorParameters", "KFactorPolicy", "coerce_match_count"]
