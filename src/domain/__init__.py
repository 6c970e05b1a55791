"""Rating domain modules."""

from domain.ratings.common import MatchOutcome, RatingRecord

__all__ = ["MatchOutcome", "RatingRecord"]
