"""SQLAlchemy-backed rating store."""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from domain.ratings.common import (
    DEFAULT_RATING,
    ClubStatRecord,
    Gender,
    MatchType,
    MatchTypeRating,
    RatingRecord,
)
from domain.ratings.leaderboard import LeaderboardFilter, filter_records, window_start
from models import Base, ClubPlayerStat, PlayerRating

logger = logging.getLogger(__name__)


def ensure_rating_schema(engine: Engine) -> None:
    """Create the player_ratings and club_player_stats tables if they do not exist."""
    Base.metadata.create_all(
        bind=engine,
        tables=[PlayerRating.__table__, ClubPlayerStat.__table__],
    )


class SqlRatingStore:
    """``RatingStore`` and ``LeaderboardSource`` over a SQLAlchemy session factory.

    Inside :meth:`transaction` every read and write goes through one session
    whose player rows are locked with ``SELECT ... FOR UPDATE`` in sorted
    player-id order. Outside a transaction, reads use a short-lived session
    and writes commit immediately.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        default_rating: float = DEFAULT_RATING,
    ) -> None:
        self.session_factory = session_factory
        self.default_rating = default_rating
        self._local = threading.local()

    def get(self, player_id: str) -> RatingRecord:
        with self._session() as session:
            row = session.get(PlayerRating, player_id)
            if row is None:
                return RatingRecord(player_id=player_id, rating=self.default_rating)
            return _row_to_record(row)

    def put(self, record: RatingRecord, *, legacy_payload: Mapping[str, Any] | None = None) -> None:
        with self._session(write=True) as session:
            row = session.get(PlayerRating, record.player_id)
            if row is None:
                row = PlayerRating(player_id=record.player_id)
                session.add(row)
            else:
                row.updated_at = datetime.now(UTC).replace(tzinfo=None)
            _copy_record_to_row(record, row)
            if legacy_payload is not None:
                row.legacy_payload = copy.deepcopy(dict(legacy_payload))
            session.flush()

    def legacy_payload(self, player_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            row = session.get(PlayerRating, player_id)
            return None if row is None else row.legacy_payload

    def get_club(self, player_id: str, club_id: str) -> ClubStatRecord | None:
        with self._session() as session:
            row = session.get(ClubPlayerStat, {"player_id": player_id, "club_id": club_id})
            return None if row is None else _row_to_club_record(row)

    def put_club(self, record: ClubStatRecord) -> None:
        with self._session(write=True) as session:
            row = session.get(ClubPlayerStat, {"player_id": record.player_id, "club_id": record.club_id})
            if row is None:
                row = ClubPlayerStat(player_id=record.player_id, club_id=record.club_id)
                session.add(row)
            else:
                row.updated_at = datetime.now(UTC).replace(tzinfo=None)
            row.club_rating = record.club_rating
            row.matches_played = record.club_matches_played
            row.wins = record.club_wins
            row.losses = record.club_losses
            row.club_ranking = record.club_ranking
            row.last_match_at = record.last_match_at
            session.flush()

    @contextmanager
    def transaction(
        self,
        player_ids: Iterable[str],
        club_id: str | None = None,
    ) -> Iterator[None]:
        if getattr(self._local, "session", None) is not None:
            raise RuntimeError("SqlRatingStore.transaction does not nest")

        ordered_ids = sorted(set(player_ids))
        with self.session_factory() as session:
            self._local.session = session
            try:
                # Lock order is fixed so overlapping matches cannot deadlock.
                session.execute(
                    select(PlayerRating.player_id)
                    .where(PlayerRating.player_id.in_(ordered_ids))
                    .order_by(PlayerRating.player_id)
                    .with_for_update()
                ).all()
                if club_id is not None:
                    session.execute(
                        select(ClubPlayerStat.player_id)
                        .where(
                            ClubPlayerStat.club_id == club_id,
                            ClubPlayerStat.player_id.in_(ordered_ids),
                        )
                        .order_by(ClubPlayerStat.player_id)
                        .with_for_update()
                    ).all()
                yield
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                self._local.session = None

    def list_ratings(
        self,
        leaderboard_filter: LeaderboardFilter | None = None,
        *,
        as_of: datetime | None = None,
    ) -> list[RatingRecord]:
        statement = select(PlayerRating).order_by(PlayerRating.player_id)
        if leaderboard_filter is not None:
            if leaderboard_filter.gender is not None:
                statement = statement.where(PlayerRating.gender == leaderboard_filter.gender.value)
            cutoff = window_start(
                leaderboard_filter.window,
                as_of or datetime.now(UTC).replace(tzinfo=None),
            )
            if cutoff is not None:
                statement = statement.where(
                    (PlayerRating.last_match_at.is_(None)) | (PlayerRating.last_match_at >= cutoff)
                )

        with self._session() as session:
            records = [_row_to_record(row) for row in session.execute(statement).scalars()]

        if leaderboard_filter is None:
            return records
        return filter_records(records, leaderboard_filter, as_of=as_of)

    def list_club_ratings(self, club_id: str) -> list[ClubStatRecord]:
        statement = (
            select(ClubPlayerStat)
            .where(ClubPlayerStat.club_id == club_id)
            .order_by(ClubPlayerStat.player_id)
        )
        with self._session() as session:
            return [_row_to_club_record(row) for row in session.execute(statement).scalars()]

    @contextmanager
    def _session(self, *, write: bool = False) -> Iterator[Session]:
        active = getattr(self._local, "session", None)
        if active is not None:
            yield active
            return

        with self.session_factory() as session:
            try:
                yield session
                if write:
                    session.commit()
            except Exception:
                session.rollback()
                raise


def _row_to_record(row: PlayerRating) -> RatingRecord:
    match_types: dict[MatchType, MatchTypeRating] = {}
    for key, value in (row.match_types_json or {}).items():
        try:
            match_type = MatchType(key)
        except ValueError:
            logger.warning("ignoring unknown match type %r for player_id=%s", key, row.player_id)
            continue
        if not isinstance(value, dict):
            continue
        match_types[match_type] = MatchTypeRating(
            rating=value.get("rating"),
            matches_played=value.get("matches_played", 0),
        )

    gender = None
    if row.gender is not None:
        try:
            gender = Gender(row.gender)
        except ValueError:
            logger.warning("ignoring unknown gender %r for player_id=%s", row.gender, row.player_id)

    # Stored values are passed through as-is; the engine sanitizes them on use.
    return RatingRecord(
        player_id=row.player_id,
        rating=row.rating,
        matches_played=row.matches_played,
        wins=row.wins,
        losses=row.losses,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        global_matches=row.global_matches,
        club_matches=row.club_matches,
        last_match_at=row.last_match_at,
        gender=gender,
        match_types=match_types,
        migration_version=row.migration_version,
    )


def _copy_record_to_row(record: RatingRecord, row: PlayerRating) -> None:
    row.rating = record.rating
    row.matches_played = record.matches_played
    row.wins = record.wins
    row.losses = record.losses
    row.current_streak = record.current_streak
    row.longest_streak = record.longest_streak
    row.global_matches = record.global_matches
    row.club_matches = record.club_matches
    row.last_match_at = record.last_match_at
    row.gender = None if record.gender is None else record.gender.value
    row.migration_version = record.migration_version
    row.match_types_json = {
        match_type.value: {"rating": entry.rating, "matches_played": entry.matches_played}
        for match_type, entry in record.match_types.items()
    }


def _row_to_club_record(row: ClubPlayerStat) -> ClubStatRecord:
    return ClubStatRecord(
        player_id=row.player_id,
        club_id=row.club_id,
        club_rating=row.club_rating,
        club_matches_played=row.matches_played,
        club_wins=row.wins,
        club_losses=row.losses,
        club_ranking=row.club_ranking,
        last_match_at=row.last_match_at,
    )


__all__ = ["SqlRatingStore", "ensure_rating_schema"]
