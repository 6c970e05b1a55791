"""In-process rating store for tests, previews and dry runs."""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Any

from domain.ratings.common import DEFAULT_RATING, ClubStatRecord, RatingRecord
from domain.ratings.leaderboard import LeaderboardFilter, filter_records

logger = logging.getLogger(__name__)


class InMemoryRatingStore:
    """Dictionary-backed ``RatingStore`` and ``LeaderboardSource``.

    Writers serialize on per-player locks, always acquired in sorted player-id
    order so two concurrent matches sharing a player cannot deadlock.
    """

    def __init__(
        self,
        records: Iterable[RatingRecord] = (),
        club_records: Iterable[ClubStatRecord] = (),
        *,
        default_rating: float = DEFAULT_RATING,
    ) -> None:
        self.default_rating = default_rating
        self._records: dict[str, RatingRecord] = {record.player_id: record for record in records}
        self._club_records: dict[tuple[str, str], ClubStatRecord] = {
            (record.player_id, record.club_id): record for record in club_records
        }
        self._legacy_payloads: dict[str, dict[str, Any]] = {}
        self._player_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get(self, player_id: str) -> RatingRecord:
        record = self._records.get(player_id)
        if record is None:
            return RatingRecord(player_id=player_id, rating=self.default_rating)
        return record

    def put(self, record: RatingRecord, *, legacy_payload: Mapping[str, Any] | None = None) -> None:
        self._records[record.player_id] = record
        if legacy_payload is not None:
            self._legacy_payloads[record.player_id] = copy.deepcopy(dict(legacy_payload))

    def legacy_payload(self, player_id: str) -> dict[str, Any] | None:
        return self._legacy_payloads.get(player_id)

    def get_club(self, player_id: str, club_id: str) -> ClubStatRecord | None:
        return self._club_records.get((player_id, club_id))

    def put_club(self, record: ClubStatRecord) -> None:
        self._club_records[(record.player_id, record.club_id)] = record

    @contextmanager
    def transaction(
        self,
        player_ids: Iterable[str],
        club_id: str | None = None,
    ) -> Iterator[None]:
        """Hold every involved player's lock for the duration of the block.

        Writes made inside a block that raises are discarded.
        """
        ordered_ids = sorted(set(player_ids))
        with ExitStack() as stack:
            for player_id in ordered_ids:
                stack.enter_context(self._lock_for(player_id))

            saved_records = {player_id: self._records.get(player_id) for player_id in ordered_ids}
            saved_club = {
                player_id: self._club_records.get((player_id, club_id))
                for player_id in ordered_ids
                if club_id is not None
            }
            saved_payloads = {player_id: self._legacy_payloads.get(player_id) for player_id in ordered_ids}
            try:
                yield
            except Exception:
                logger.debug("rolling back in-memory transaction for players=%s", ordered_ids)
                for player_id, record in saved_records.items():
                    if record is None:
                        self._records.pop(player_id, None)
                    else:
                        self._records[player_id] = record
                for player_id, club_record in saved_club.items():
                    assert club_id is not None
                    if club_record is None:
                        self._club_records.pop((player_id, club_id), None)
                    else:
                        self._club_records[(player_id, club_id)] = club_record
                for player_id, payload in saved_payloads.items():
                    if payload is None:
                        self._legacy_payloads.pop(player_id, None)
                    else:
                        self._legacy_payloads[player_id] = payload
                raise

    def list_ratings(
        self,
        leaderboard_filter: LeaderboardFilter | None = None,
        *,
        as_of: datetime | None = None,
    ) -> list[RatingRecord]:
        records = list(self._records.values())
        if leaderboard_filter is None:
            return records
        return filter_records(records, leaderboard_filter, as_of=as_of)

    def list_club_ratings(self, club_id: str) -> list[ClubStatRecord]:
        return [record for (_, record_club_id), record in self._club_records.items() if record_club_id == club_id]

    def _lock_for(self, player_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._player_locks.get(player_id)
            if lock is None:
                lock = threading.Lock()
                self._player_locks[player_id] = lock
            return lock


__all__ = ["InMemoryRatingStore"]
