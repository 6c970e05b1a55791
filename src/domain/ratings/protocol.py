"""Storage contracts the rating engine is driven through."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from domain.ratings.common import ClubStatRecord, RatingRecord

if TYPE_CHECKING:
    from domain.ratings.leaderboard import LeaderboardFilter


@runtime_checkable
class RatingStore(Protocol):
    """Keyed read/write access to rating records.

    ``transaction`` serializes read-modify-write cycles touching the given
    players (and club, when set). Unknown players read as a fresh default
    record rather than raising. ``legacy_payload`` preserves a pre-migration
    document next to the record so it can be rolled back.
    """

    def get(self, player_id: str) -> RatingRecord: ...

    def put(self, record: RatingRecord, *, legacy_payload: Mapping[str, Any] | None = None) -> None: ...

    def get_club(self, player_id: str, club_id: str) -> ClubStatRecord | None: ...

    def put_club(self, record: ClubStatRecord) -> None: ...

    def transaction(
        self,
        player_ids: Iterable[str],
        club_id: str | None = None,
    ) -> AbstractContextManager[None]: ...


@runtime_checkable
class LeaderboardSource(Protocol):
    """Snapshot reads used to build leaderboards."""

    def list_ratings(self, leaderboard_filter: LeaderboardFilter | None = None) -> list[RatingRecord]: ...

    def list_club_ratings(self, club_id: str) -> list[ClubStatRecord]: ...


__all__ = ["LeaderboardSource", "RatingStore"]
