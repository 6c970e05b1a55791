"""Single-match rating update engine for global and club contexts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from math import copysign

from domain.ratings.common import (
    DEFAULT_RATING,
    ClubStatDelta,
    ClubStatRecord,
    MatchApplication,
    MatchContext,
    MatchOutcome,
    MatchResult,
    MatchType,
    MatchTypeRating,
    RatingChange,
    RatingRecord,
    naive_utc,
)
from domain.ratings.errors import InvalidMatchOutcomeError
from domain.ratings.k_factor import KFactorParameters, KFactorPolicy, coerce_match_count
from domain.ratings.rating_math import (
    DEFAULT_SCALE_FACTOR,
    apply_delta,
    expected_score,
    is_valid_rating,
    rating_delta,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingParameters:
    initial_rating: float = DEFAULT_RATING
    scale_factor: float = DEFAULT_SCALE_FACTOR
    min_delta: float = 1.0
    k_factor: KFactorParameters = field(default_factory=KFactorParameters)


class RatingUpdateEngine:
    """Stateless transform from one match outcome to updated rating records.

    The engine performs no I/O. Callers fetch both players' records (and club
    records for club matches), call :meth:`apply_match`, and persist every
    returned record inside one serializing transaction.
    """

    def __init__(self, params: RatingParameters | None = None) -> None:
        self.params = params or RatingParameters()
        self.policy = KFactorPolicy(self.params.k_factor)

    def apply_match(
        self,
        outcome: MatchOutcome,
        record_a: RatingRecord,
        record_b: RatingRecord,
        *,
        club_a: ClubStatRecord | None = None,
        club_b: ClubStatRecord | None = None,
    ) -> MatchApplication:
        outcome = self._normalized(outcome)
        self._validate(outcome, record_a, record_b, club_a=club_a, club_b=club_b)
        played_at = outcome.played_at or datetime.now(UTC).replace(tzinfo=None)

        change_a, change_b = self._global_changes(outcome, record_a, record_b)

        new_a = self._updated_record(record_a, change_a, outcome, played_at=played_at)
        new_b = self._updated_record(record_b, change_b, outcome, played_at=played_at)

        if outcome.match_type is not None and not outcome.is_club:
            new_a, new_b = self._with_match_type_update(outcome, new_a, new_b, record_a, record_b)

        club_delta = None
        if outcome.is_club:
            club_delta = self._club_delta(outcome, club_a, club_b, played_at=played_at)

        logger.debug(
            "applied match_id=%s context=%s %s: %.0f -> %.0f (%+.0f, k=%.1f) %s: %.0f -> %.0f (%+.0f, k=%.1f)",
            outcome.match_id,
            outcome.context_type.value,
            change_a.player_id,
            change_a.pre_rating,
            change_a.post_rating,
            change_a.rating_delta,
            change_a.k_factor,
            change_b.player_id,
            change_b.pre_rating,
            change_b.post_rating,
            change_b.rating_delta,
            change_b.k_factor,
        )

        return MatchApplication(
            outcome=outcome,
            record_a=new_a,
            record_b=new_b,
            change_a=change_a,
            change_b=change_b,
            club_delta=club_delta,
        )

    def preview(
        self,
        outcome: MatchOutcome,
        record_a: RatingRecord,
        record_b: RatingRecord,
    ) -> tuple[RatingChange, RatingChange]:
        """Global rating changes the outcome would cause, without building new records."""
        outcome = self._normalized(outcome)
        self._validate(outcome, record_a, record_b, club_a=None, club_b=None)
        return self._global_changes(outcome, record_a, record_b)

    def sanitize(self, value: object) -> float:
        if is_valid_rating(value):
            return float(value)  # type: ignore[arg-type]
        logger.warning("sanitized corrupt stored rating %r to %s", value, self.params.initial_rating)
        return self.params.initial_rating

    def _global_changes(
        self,
        outcome: MatchOutcome,
        record_a: RatingRecord,
        record_b: RatingRecord,
    ) -> tuple[RatingChange, RatingChange]:
        pre_a = self.sanitize(record_a.rating)
        pre_b = self.sanitize(record_b.rating)
        k_a = self.policy.k_factor(
            record_a.matches_played,
            outcome.is_club,
            rating=pre_a,
            importance=outcome.importance,
        )
        k_b = self.policy.k_factor(
            record_b.matches_played,
            outcome.is_club,
            rating=pre_b,
            importance=outcome.importance,
        )
        return self._rating_changes(
            outcome,
            pre_a=pre_a,
            pre_b=pre_b,
            k_a=k_a,
            k_b=k_b,
        )

    def _rating_changes(
        self,
        outcome: MatchOutcome,
        *,
        pre_a: float,
        pre_b: float,
        k_a: float,
        k_b: float,
    ) -> tuple[RatingChange, RatingChange]:
        actual_a = 1.0 if outcome.result == MatchResult.A_WINS else 0.0
        actual_b = 1.0 - actual_a

        expected_a = expected_score(pre_a, pre_b, self.params.scale_factor)
        expected_b = expected_score(pre_b, pre_a, self.params.scale_factor)

        change_a = self._rating_change(
            outcome.player_a, pre=pre_a, k=k_a, actual=actual_a, expected=expected_a
        )
        change_b = self._rating_change(
            outcome.player_b, pre=pre_b, k=k_b, actual=actual_b, expected=expected_b
        )
        return change_a, change_b

    def _rating_change(
        self,
        player_id: str,
        *,
        pre: float,
        k: float,
        actual: float,
        expected: float,
    ) -> RatingChange:
        delta = rating_delta(k, actual, expected)
        if abs(delta) < self.params.min_delta:
            # actual - expected is never zero: actual is 0 or 1, expected is in (0, 1).
            delta = copysign(self.params.min_delta, actual - expected)
        post = apply_delta(pre, delta)
        return RatingChange(
            player_id=player_id,
            won=actual == 1.0,
            actual_score=actual,
            expected_score=expected,
            k_factor=k,
            pre_rating=pre,
            rating_delta=post - pre,
            post_rating=post,
        )

    def _updated_record(
        self,
        record: RatingRecord,
        change: RatingChange,
        outcome: MatchOutcome,
        *,
        played_at: datetime,
    ) -> RatingRecord:
        wins, losses, global_matches, club_matches = _repaired_counts(record)
        if change.won:
            wins += 1
        else:
            losses += 1
        if outcome.is_club:
            club_matches += 1
        else:
            global_matches += 1

        current_streak = _next_streak(record.current_streak, won=change.won)
        longest_streak = max(coerce_match_count(record.longest_streak), current_streak)

        return replace(
            record,
            rating=change.post_rating,
            matches_played=wins + losses,
            wins=wins,
            losses=losses,
            current_streak=current_streak,
            longest_streak=longest_streak,
            global_matches=global_matches,
            club_matches=club_matches,
            last_match_at=played_at,
            match_types=dict(record.match_types),
        )

    def _with_match_type_update(
        self,
        outcome: MatchOutcome,
        new_a: RatingRecord,
        new_b: RatingRecord,
        record_a: RatingRecord,
        record_b: RatingRecord,
    ) -> tuple[RatingRecord, RatingRecord]:
        match_type = outcome.match_type
        assert match_type is not None

        fresh = MatchTypeRating(rating=self.params.initial_rating)
        type_a = record_a.match_types.get(match_type) or fresh
        type_b = record_b.match_types.get(match_type) or fresh
        pre_a = self.sanitize(type_a.rating)
        pre_b = self.sanitize(type_b.rating)
        change_a, change_b = self._rating_changes(
            outcome,
            pre_a=pre_a,
            pre_b=pre_b,
            k_a=self.policy.k_factor(
                type_a.matches_played, False, rating=pre_a, importance=outcome.importance
            ),
            k_b=self.policy.k_factor(
                type_b.matches_played, False, rating=pre_b, importance=outcome.importance
            ),
        )

        types_a = dict(new_a.match_types)
        types_a[match_type] = MatchTypeRating(
            rating=change_a.post_rating,
            matches_played=coerce_match_count(type_a.matches_played) + 1,
        )
        types_b = dict(new_b.match_types)
        types_b[match_type] = MatchTypeRating(
            rating=change_b.post_rating,
            matches_played=coerce_match_count(type_b.matches_played) + 1,
        )
        return replace(new_a, match_types=types_a), replace(new_b, match_types=types_b)

    def _club_delta(
        self,
        outcome: MatchOutcome,
        club_a: ClubStatRecord | None,
        club_b: ClubStatRecord | None,
        *,
        played_at: datetime,
    ) -> ClubStatDelta:
        club_id = outcome.club_id
        assert club_id is not None

        club_a = club_a or ClubStatRecord(
            player_id=outcome.player_a,
            club_id=club_id,
            club_rating=self.params.initial_rating,
        )
        club_b = club_b or ClubStatRecord(
            player_id=outcome.player_b,
            club_id=club_id,
            club_rating=self.params.initial_rating,
        )

        # Club ratings never read global numbers: their own rating, their own match count.
        pre_a = self.sanitize(club_a.club_rating)
        pre_b = self.sanitize(club_b.club_rating)
        change_a, change_b = self._rating_changes(
            outcome,
            pre_a=pre_a,
            pre_b=pre_b,
            k_a=self.policy.club_k_factor(club_a.club_matches_played, importance=outcome.importance),
            k_b=self.policy.club_k_factor(club_b.club_matches_played, importance=outcome.importance),
        )

        return ClubStatDelta(
            club_id=club_id,
            record_a=_updated_club_record(club_a, change_a, played_at=played_at),
            record_b=_updated_club_record(club_b, change_b, played_at=played_at),
            change_a=change_a,
            change_b=change_b,
        )

    def _normalized(self, outcome: MatchOutcome) -> MatchOutcome:
        """Coerce enum fields from their raw values and ``played_at`` to naive UTC."""
        match_id = outcome.match_id
        try:
            result = MatchResult(outcome.result)
        except ValueError:
            raise InvalidMatchOutcomeError(
                match_id,
                f"result={outcome.result!r} does not name a winner",
            ) from None
        try:
            context_type = MatchContext(outcome.context_type)
        except ValueError:
            raise InvalidMatchOutcomeError(
                match_id,
                f"unknown context_type={outcome.context_type!r}",
            ) from None
        match_type = outcome.match_type
        if match_type is not None:
            try:
                match_type = MatchType(match_type)
            except ValueError:
                raise InvalidMatchOutcomeError(
                    match_id,
                    f"unknown match_type={outcome.match_type!r}",
                ) from None

        played_at = outcome.played_at
        return replace(
            outcome,
            result=result,
            context_type=context_type,
            match_type=match_type,
            played_at=None if played_at is None else naive_utc(played_at),
        )

    def _validate(
        self,
        outcome: MatchOutcome,
        record_a: RatingRecord,
        record_b: RatingRecord,
        *,
        club_a: ClubStatRecord | None,
        club_b: ClubStatRecord | None,
    ) -> None:
        match_id = outcome.match_id
        if outcome.result not in (MatchResult.A_WINS, MatchResult.B_WINS):
            raise InvalidMatchOutcomeError(
                match_id,
                f"result={outcome.result!r} does not name a winner",
            )
        if outcome.context_type not in (MatchContext.GLOBAL, MatchContext.CLUB):
            raise InvalidMatchOutcomeError(
                match_id,
                f"unknown context_type={outcome.context_type!r}",
            )
        if outcome.context_type == MatchContext.CLUB and not outcome.club_id:
            raise InvalidMatchOutcomeError(match_id, "club match is missing club_id")
        if outcome.context_type == MatchContext.GLOBAL and outcome.club_id:
            raise InvalidMatchOutcomeError(
                match_id,
                f"global match must not carry club_id={outcome.club_id}",
            )
        if outcome.player_a == outcome.player_b:
            raise InvalidMatchOutcomeError(
                match_id,
                f"has identical players ({outcome.player_a})",
            )
        if record_a.player_id != outcome.player_a or record_b.player_id != outcome.player_b:
            raise InvalidMatchOutcomeError(
                match_id,
                f"records {record_a.player_id}/{record_b.player_id} do not match players "
                f"{outcome.player_a}/{outcome.player_b}",
            )
        for club_record, player_id in ((club_a, outcome.player_a), (club_b, outcome.player_b)):
            if club_record is None:
                continue
            if not outcome.is_club:
                raise InvalidMatchOutcomeError(match_id, "club records supplied for a global match")
            if club_record.club_id != outcome.club_id or club_record.player_id != player_id:
                raise InvalidMatchOutcomeError(
                    match_id,
                    f"club record {club_record.player_id}@{club_record.club_id} does not belong to "
                    f"{player_id}@{outcome.club_id}",
                )


def _next_streak(current_streak: object, *, won: bool) -> int:
    streak = current_streak if isinstance(current_streak, int) and not isinstance(current_streak, bool) else 0
    if won:
        return streak + 1 if streak > 0 else 1
    return streak - 1 if streak < 0 else -1


def _repaired_counts(record: RatingRecord) -> tuple[int, int, int, int]:
    """Return (wins, losses, global_matches, club_matches) satisfying the record invariants."""
    wins = coerce_match_count(record.wins)
    losses = coerce_match_count(record.losses)
    matches = wins + losses
    club_matches = min(coerce_match_count(record.club_matches), matches)
    global_matches = matches - club_matches

    if (
        matches != record.matches_played
        or global_matches != record.global_matches
        or club_matches != record.club_matches
    ):
        logger.warning(
            "repaired inconsistent match counts for player_id=%s "
            "(matches=%r wins=%r losses=%r global=%r club=%r)",
            record.player_id,
            record.matches_played,
            record.wins,
            record.losses,
            record.global_matches,
            record.club_matches,
        )
    return wins, losses, global_matches, club_matches


def _updated_club_record(
    record: ClubStatRecord,
    change: RatingChange,
    *,
    played_at: datetime,
) -> ClubStatRecord:
    wins = coerce_match_count(record.club_wins)
    losses = coerce_match_count(record.club_losses)
    if change.won:
        wins += 1
    else:
        losses += 1
    return replace(
        record,
        club_rating=change.post_rating,
        club_matches_played=wins + losses,
        club_wins=wins,
        club_losses=losses,
        last_match_at=played_at,
    )


__all__ = ["RatingParameters", "RatingUpdateEngine"]
