"""Pure Elo formulas, rating sanitation and tier mapping."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from math import floor, isfinite

from domain.ratings.common import DEFAULT_RATING, MAX_RATING, MIN_RATING, RatingRecord, Tier

logger = logging.getLogger(__name__)

DEFAULT_SCALE_FACTOR = 400.0

# Evaluated top-down; the first lower bound the rating reaches wins.
TIER_THRESHOLDS: tuple[tuple[float, Tier], ...] = (
    (2000.0, Tier.GRANDMASTER),
    (1800.0, Tier.MASTER),
    (1600.0, Tier.DIAMOND),
    (1400.0, Tier.PLATINUM),
    (1200.0, Tier.GOLD),
    (1000.0, Tier.SILVER),
    (float("-inf"), Tier.BRONZE),
)

# (lower bound, level, initial rating) for the 1-10 display level.
LPR_LEVELS: tuple[tuple[float, int, float], ...] = (
    (2400.0, 10, 2400.0),
    (2100.0, 9, 2250.0),
    (1800.0, 8, 1950.0),
    (1600.0, 7, 1700.0),
    (1450.0, 6, 1525.0),
    (1300.0, 5, 1375.0),
    (1200.0, 4, 1250.0),
    (1100.0, 3, 1150.0),
    (1000.0, 2, 1050.0),
    (float("-inf"), 1, 950.0),
)


def is_valid_rating(
    value: object,
    *,
    floor_rating: float = MIN_RATING,
    ceiling_rating: float = MAX_RATING,
) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isfinite(value) and floor_rating <= value <= ceiling_rating


def sanitize_rating(
    value: object,
    *,
    default: float = DEFAULT_RATING,
    floor_rating: float = MIN_RATING,
    ceiling_rating: float = MAX_RATING,
) -> float:
    """Return ``value`` as a float, or ``default`` when it is corrupt or out of range."""
    if is_valid_rating(value, floor_rating=floor_rating, ceiling_rating=ceiling_rating):
        return float(value)  # type: ignore[arg-type]
    logger.warning("sanitized corrupt rating value=%r to default=%s", value, default)
    return default


def expected_score(
    rating_a: float,
    rating_b: float,
    scale_factor: float = DEFAULT_SCALE_FACTOR,
) -> float:
    """Compute the Elo expected score of A against B.

    The favored side is computed directly and the underdog as its complement,
    so ``expected_score(a, b) + expected_score(b, a) == 1.0`` holds exactly.
    """
    rating_a = sanitize_rating(rating_a)
    rating_b = sanitize_rating(rating_b)
    if rating_a >= rating_b:
        return 1.0 / (1.0 + 10.0 ** ((rating_b - rating_a) / scale_factor))
    return 1.0 - (1.0 / (1.0 + 10.0 ** ((rating_a - rating_b) / scale_factor)))


def round_half_away(value: float) -> float:
    magnitude = floor(abs(value) + 0.5)
    return float(magnitude) if value >= 0.0 else -float(magnitude)


def rating_delta(k_factor: float, actual_score: float, expected: float) -> float:
    """Integer-valued rating change for one side of a match."""
    return round_half_away(k_factor * (actual_score - expected))


def clamp_rating(
    value: float,
    *,
    floor_rating: float = MIN_RATING,
    ceiling_rating: float = MAX_RATING,
) -> float:
    return max(floor_rating, min(value, ceiling_rating))


def apply_delta(
    old_rating: float,
    delta: float,
    *,
    floor_rating: float = MIN_RATING,
    ceiling_rating: float = MAX_RATING,
) -> float:
    """Add ``delta`` to a sanitized rating and clamp into the rating domain."""
    base = sanitize_rating(old_rating, floor_rating=floor_rating, ceiling_rating=ceiling_rating)
    if not isfinite(delta):
        delta = 0.0
    return clamp_rating(base + delta, floor_rating=floor_rating, ceiling_rating=ceiling_rating)


def tier_from_rating(rating: float) -> Tier:
    rating = sanitize_rating(rating)
    for lower_bound, tier in TIER_THRESHOLDS:
        if rating >= lower_bound:
            return tier
    return Tier.BRONZE


def lpr_level_from_rating(rating: float) -> int:
    """Map a rating onto the 1-10 display level."""
    rating = sanitize_rating(rating)
    for lower_bound, level, _ in LPR_LEVELS:
        if rating >= lower_bound:
            return level
    return 1


def initial_rating_for_lpr_level(level: int) -> float:
    for _, candidate, initial_rating in LPR_LEVELS:
        if candidate == level:
            return initial_rating
    raise ValueError(f"LPR level must be between 1 and 10, got {level!r}")


@dataclass(frozen=True)
class RatingDistribution:
    """Tier counts across active players."""

    counts: dict[Tier, int]
    average_rating: float
    total_active_players: int

    def percentages(self) -> dict[Tier, int]:
        if self.total_active_players == 0:
            return {tier: 0 for tier in self.counts}
        return {
            tier: int(round_half_away(count * 100.0 / self.total_active_players))
            for tier, count in self.counts.items()
        }


def rating_distribution(records: Iterable[RatingRecord], *, min_matches: int = 5) -> RatingDistribution:
    counts = {tier: 0 for tier in Tier}
    total_rating = 0.0
    active = 0
    for record in records:
        if record.matches_played < min_matches:
            continue
        counts[record.tier] += 1
        total_rating += sanitize_rating(record.rating)
        active += 1

    average = round_half_away(total_rating / active) if active else 0.0
    return RatingDistribution(counts=counts, average_rating=average, total_active_players=active)


__all__ = [
    "DEFAULT_SCALE_FACTOR",
    "LPR_LEVELS",
    "TIER_THRESHOLDS",
    "RatingDistribution",
    "apply_delta",
    "clamp_rating",
    "expected_score",
    "initial_rating_for_lpr_level",
    "is_valid_rating",
    "lpr_level_from_rating",
    "rating_delta",
    "rating_distribution",
    "round_half_away",
    "sanitize_rating",
    "tier_from_rating",
]
