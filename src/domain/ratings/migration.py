"""Normalize legacy single-rating user documents into unified rating records.

Legacy documents come in a handful of known shapes. ``parse_legacy_blob``
classifies a raw document into exactly one of them, and
``MigrationNormalizer.normalize`` handles each shape as its own case:

* ``MigratedBlob``: already carries the migration marker; returned untouched.
* ``ExplicitRatingBlob``: a stored Elo number under ``stats``.
* ``NtrpScalarBlob``: a single NTRP-like level (``ltrLevel``/``ntrpLevel``).
* ``NtrpRangeBlob``: a textual self-assessed range such as ``"3.0-3.5"``.
* ``EmptyBlob``: nothing usable; the player starts at the default rating.

The raw document is always preserved next to the normalized record so a
rollback can reproduce the pre-migration state exactly.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from math import isfinite
from typing import Any, Union

from domain.ratings.common import (
    DEFAULT_RATING,
    Gender,
    MatchType,
    MatchTypeRating,
    RatingRecord,
    naive_utc,
)
from domain.ratings.errors import LegacyPayloadError
from domain.ratings.k_factor import coerce_match_count
from domain.ratings.rating_math import initial_rating_for_lpr_level, is_valid_rating

logger = logging.getLogger(__name__)

MIGRATION_VERSION = "1.0"
MIGRATION_MARKER_FIELD = "migrationVersion"
RECORD_FIELD = "ratingRecord"
LEGACY_FIELD = "legacyData"

_EXPLICIT_RATING_KEYS = ("unifiedEloRating", "eloRating", "eloPoints")
_NTRP_SCALAR_KEYS = ("ltrLevel", "ntrpLevel")
_RANGE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*$")

# Upper NTRP bound (inclusive) -> LPR level; anything above the last bound is level 10.
NTRP_TO_LPR: tuple[tuple[float, int], ...] = (
    (1.0, 1),
    (1.5, 2),
    (2.0, 3),
    (2.5, 4),
    (3.0, 5),
    (3.5, 6),
    (4.0, 7),
    (4.5, 8),
    (5.0, 9),
)


@dataclass(frozen=True)
class MigratedBlob:
    record: RatingRecord
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class ExplicitRatingBlob:
    rating: float
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class NtrpScalarBlob:
    ntrp: float
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class NtrpRangeBlob:
    text: str
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class EmptyBlob:
    raw: Mapping[str, Any]


LegacyBlob = Union[MigratedBlob, ExplicitRatingBlob, NtrpScalarBlob, NtrpRangeBlob, EmptyBlob]


@dataclass(frozen=True)
class MigrationResult:
    """Normalized record plus the untouched legacy document."""

    record: RatingRecord
    legacy_payload: Mapping[str, Any] = field(default_factory=dict)
    migrated: bool = True
    source: str = "default"

    def to_payload(self) -> dict[str, Any]:
        """Document shape that stores both representations side by side."""
        return {
            MIGRATION_MARKER_FIELD: self.record.migration_version or MIGRATION_VERSION,
            RECORD_FIELD: record_to_dict(self.record),
            LEGACY_FIELD: copy.deepcopy(dict(self.legacy_payload)),
        }


def ntrp_to_lpr_level(ntrp: float) -> int:
    for upper_bound, level in NTRP_TO_LPR:
        if ntrp <= upper_bound:
            return level
    return 10


def rating_from_ntrp(ntrp: float) -> float:
    return initial_rating_for_lpr_level(ntrp_to_lpr_level(ntrp))


def parse_range_midpoint(text: str) -> float | None:
    match = _RANGE_PATTERN.match(text)
    if match is None:
        return None
    low, high = float(match.group(1)), float(match.group(2))
    if low > high:
        low, high = high, low
    return (low + high) / 2.0


def parse_legacy_blob(raw: Mapping[str, Any]) -> LegacyBlob:
    """Classify a raw legacy user document into one known shape."""
    if raw.get(MIGRATION_MARKER_FIELD) and isinstance(raw.get(RECORD_FIELD), Mapping):
        return MigratedBlob(record=record_from_dict(raw[RECORD_FIELD]), raw=raw)

    stats = raw.get("stats")
    if isinstance(stats, Mapping):
        for key in _EXPLICIT_RATING_KEYS:
            value = stats.get(key)
            if is_valid_rating(value):
                return ExplicitRatingBlob(rating=float(value), raw=raw)

    profile = raw.get("profile") if isinstance(raw.get("profile"), Mapping) else {}
    for source in (raw, profile):
        for key in _NTRP_SCALAR_KEYS:
            ntrp = _as_finite_float(source.get(key))
            if ntrp is not None and ntrp > 0.0:
                return NtrpScalarBlob(ntrp=ntrp, raw=raw)

    skill_level = profile.get("skillLevel")
    if skill_level is None and isinstance(raw.get("skillLevel"), Mapping):
        skill_level = raw["skillLevel"].get("selfAssessed")
    if isinstance(skill_level, str) and skill_level.strip():
        return NtrpRangeBlob(text=skill_level.strip(), raw=raw)

    return EmptyBlob(raw=raw)


class MigrationNormalizer:
    """One-directional, idempotent legacy-to-unified transform."""

    def __init__(self, *, default_rating: float = DEFAULT_RATING) -> None:
        self.default_rating = default_rating

    def normalize(self, blob: LegacyBlob, *, player_id: str) -> MigrationResult:
        if isinstance(blob, MigratedBlob):
            return MigrationResult(
                record=blob.record,
                legacy_payload=blob.raw.get(LEGACY_FIELD) or {},
                migrated=False,
                source="already_migrated",
            )

        if isinstance(blob, ExplicitRatingBlob):
            rating, source = blob.rating, "explicit_rating"
        elif isinstance(blob, NtrpScalarBlob):
            rating, source = rating_from_ntrp(blob.ntrp), "ntrp_scalar"
        elif isinstance(blob, NtrpRangeBlob):
            midpoint = parse_range_midpoint(blob.text)
            if midpoint is None:
                logger.info(
                    "player_id=%s has unparseable skill range %r; using default rating %s",
                    player_id,
                    blob.text,
                    self.default_rating,
                )
                rating, source = self.default_rating, "default"
            else:
                rating, source = rating_from_ntrp(midpoint), "ntrp_range"
        elif isinstance(blob, EmptyBlob):
            logger.info(
                "player_id=%s has no legacy rating signal; using default rating %s",
                player_id,
                self.default_rating,
            )
            rating, source = self.default_rating, "default"
        else:
            raise TypeError(f"Unsupported legacy blob type: {type(blob)!r}")

        record = _record_from_legacy(player_id, rating, blob.raw)
        return MigrationResult(
            record=record,
            legacy_payload=copy.deepcopy(dict(blob.raw)),
            migrated=True,
            source=source,
        )

    def normalize_document(self, raw: Mapping[str, Any], *, player_id: str) -> MigrationResult:
        return self.normalize(parse_legacy_blob(raw), player_id=player_id)


def rollback(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Reconstruct the pre-migration document from a stored migration payload."""
    if not payload.get(MIGRATION_MARKER_FIELD):
        raise LegacyPayloadError("payload carries no migration marker; nothing to roll back")
    legacy = payload.get(LEGACY_FIELD)
    if not isinstance(legacy, Mapping):
        raise LegacyPayloadError("payload has no preserved legacy data to roll back to")
    return copy.deepcopy(dict(legacy))


def _record_from_legacy(player_id: str, rating: float, raw: Mapping[str, Any]) -> RatingRecord:
    stats = raw.get("stats") if isinstance(raw.get("stats"), Mapping) else {}

    wins = coerce_match_count(stats.get("wins"))
    losses = coerce_match_count(stats.get("losses"))
    matches = wins + losses
    reported = coerce_match_count(stats.get("totalMatches", stats.get("matchesPlayed", matches)))
    if reported != matches:
        # Unattributed matches cannot be placed on either side of wins/losses.
        logger.info(
            "player_id=%s reported %d matches but %d wins + %d losses; using %d",
            player_id,
            reported,
            wins,
            losses,
            matches,
        )
    club_matches = min(coerce_match_count(stats.get("clubMatches")), matches)

    current_streak = stats.get("currentStreak", 0)
    if isinstance(current_streak, bool) or not isinstance(current_streak, int):
        current_streak = 0
    longest_streak = coerce_match_count(stats.get("longestStreak", stats.get("bestStreak")))

    return RatingRecord(
        player_id=player_id,
        rating=rating,
        matches_played=matches,
        wins=wins,
        losses=losses,
        current_streak=current_streak,
        longest_streak=max(longest_streak, current_streak),
        global_matches=matches - club_matches,
        club_matches=club_matches,
        last_match_at=_parse_datetime(stats.get("lastMatchDate") or raw.get("lastActive")),
        gender=_parse_gender(raw),
        match_types=_parse_match_types(raw.get("eloRatings")),
        migration_version=MIGRATION_VERSION,
    )


def _as_finite_float(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return naive_utc(value)
    if isinstance(value, str):
        try:
            return naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def _parse_gender(raw: Mapping[str, Any]) -> Gender | None:
    profile = raw.get("profile") if isinstance(raw.get("profile"), Mapping) else {}
    value = raw.get("gender") or profile.get("gender")
    try:
        return Gender(value)
    except ValueError:
        return None


def _parse_match_types(raw: object) -> dict[MatchType, MatchTypeRating]:
    if not isinstance(raw, Mapping):
        return {}
    match_types: dict[MatchType, MatchTypeRating] = {}
    for match_type in MatchType:
        entry = raw.get(match_type.value)
        if not isinstance(entry, Mapping):
            continue
        current = entry.get("current")
        if is_valid_rating(current):
            match_types[match_type] = MatchTypeRating(
                rating=float(current),
                matches_played=coerce_match_count(entry.get("matchesPlayed")),
            )
    return match_types


def record_to_dict(record: RatingRecord) -> dict[str, Any]:
    return {
        "playerId": record.player_id,
        "rating": record.rating,
        "matchesPlayed": record.matches_played,
        "wins": record.wins,
        "losses": record.losses,
        "currentStreak": record.current_streak,
        "longestStreak": record.longest_streak,
        "globalMatches": record.global_matches,
        "clubMatches": record.club_matches,
        "lastMatchAt": None if record.last_match_at is None else record.last_match_at.isoformat(),
        "gender": None if record.gender is None else record.gender.value,
        "matchTypes": {
            match_type.value: {"rating": entry.rating, "matchesPlayed": entry.matches_played}
            for match_type, entry in record.match_types.items()
        },
        "migrationVersion": record.migration_version,
    }


def record_from_dict(raw: Mapping[str, Any]) -> RatingRecord:
    match_types_raw = raw.get("matchTypes") or {}
    return RatingRecord(
        player_id=str(raw["playerId"]),
        rating=float(raw.get("rating", DEFAULT_RATING)),
        matches_played=int(raw.get("matchesPlayed", 0)),
        wins=int(raw.get("wins", 0)),
        losses=int(raw.get("losses", 0)),
        current_streak=int(raw.get("currentStreak", 0)),
        longest_streak=int(raw.get("longestStreak", 0)),
        global_matches=int(raw.get("globalMatches", 0)),
        club_matches=int(raw.get("clubMatches", 0)),
        last_match_at=_parse_datetime(raw.get("lastMatchAt")),
        gender=None if raw.get("gender") is None else Gender(raw["gender"]),
        match_types={
            MatchType(key): MatchTypeRating(
                rating=float(value["rating"]),
                matches_played=int(value.get("matchesPlayed", 0)),
            )
            for key, value in match_types_raw.items()
        },
        migration_version=raw.get("migrationVersion"),
    )


__all__ = [
    "MIGRATION_VERSION",
    "EmptyBlob",
    "ExplicitRatingBlob",
    "LegacyBlob",
    "MigratedBlob",
    "MigrationNormalizer",
    "MigrationResult",
    "NtrpRangeBlob",
    "NtrpScalarBlob",
    "ntrp_to_lpr_level",
    "parse_legacy_blob",
    "parse_range_midpoint",
    "rating_from_ntrp",
    "record_from_dict",
    "record_to_dict",
    "rollback",
]
