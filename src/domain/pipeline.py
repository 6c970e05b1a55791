"""Store-driven workflows: record a match, preview one, migrate legacy users."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from domain.ratings.common import (
    DEFAULT_RATING,
    ClubStatRecord,
    MatchApplication,
    MatchContext,
    MatchOutcome,
    MatchResult,
    RatingChange,
    RatingRecord,
)
from domain.ratings.engine import RatingUpdateEngine
from domain.ratings.k_factor import coerce_match_count
from domain.ratings.leaderboard import with_club_rankings
from domain.ratings.migration import MigrationNormalizer, MigrationResult
from domain.ratings.protocol import LeaderboardSource, RatingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationSummary:
    """Outcome of one legacy migration batch."""

    processed: int
    migrated: int
    skipped: int
    defaulted: int
    dry_run: bool


def record_match(
    store: RatingStore,
    engine: RatingUpdateEngine,
    outcome: MatchOutcome,
) -> MatchApplication:
    """Apply one match and persist both players (and club records) atomically.

    After a club match the club's cached ``club_ranking`` values are refreshed
    when the store can list club members.
    """
    with store.transaction((outcome.player_a, outcome.player_b), outcome.club_id):
        record_a = store.get(outcome.player_a)
        record_b = store.get(outcome.player_b)
        club_a = club_b = None
        if outcome.is_club and outcome.club_id:
            club_a = store.get_club(outcome.player_a, outcome.club_id)
            club_b = store.get_club(outcome.player_b, outcome.club_id)

        application = engine.apply_match(outcome, record_a, record_b, club_a=club_a, club_b=club_b)

        store.put(application.record_a)
        store.put(application.record_b)
        if application.club_delta is not None:
            store.put_club(application.club_delta.record_a)
            store.put_club(application.club_delta.record_b)

    applied = application.outcome
    logger.info(
        "recorded match_id=%s context=%s %s %+.0f, %s %+.0f",
        applied.match_id,
        applied.context_type.value,
        application.change_a.player_id,
        application.change_a.rating_delta,
        application.change_b.player_id,
        application.change_b.rating_delta,
    )

    if application.club_delta is not None and isinstance(store, LeaderboardSource):
        refresh_club_rankings(
            store,
            application.club_delta.club_id,
            default_rating=engine.params.initial_rating,
        )
    return application


def refresh_club_rankings(
    store: RatingStore,
    club_id: str,
    *,
    default_rating: float = DEFAULT_RATING,
) -> list[ClubStatRecord]:
    """Recompute and persist ``club_ranking`` for every member of ``club_id``.

    ``store`` must also be a ``LeaderboardSource``. Only members present when
    the refresh starts are locked and written.
    """
    assert isinstance(store, LeaderboardSource)
    member_ids = {record.player_id for record in store.list_club_ratings(club_id)}
    with store.transaction(member_ids, club_id):
        current = [record for record in store.list_club_ratings(club_id) if record.player_id in member_ids]
        ranked = with_club_rankings(current, club_id=club_id, default_rating=default_rating)
        changed = [new for old, new in zip(current, ranked) if old.club_ranking != new.club_ranking]
        for record in changed:
            store.put_club(record)

    logger.debug("refreshed club rankings club_id=%s members=%d changed=%d", club_id, len(ranked), len(changed))
    return ranked


def preview_match(
    store: RatingStore,
    engine: RatingUpdateEngine,
    *,
    player_id: str,
    opponent_id: str,
    context_type: MatchContext = MatchContext.GLOBAL,
) -> dict[str, RatingChange]:
    """Rating changes for ``player_id`` if they won or lost against ``opponent_id``."""
    record_a = store.get(player_id)
    record_b = store.get(opponent_id)
    previews: dict[str, RatingChange] = {}
    for label, result in (("win", MatchResult.A_WINS), ("loss", MatchResult.B_WINS)):
        outcome = MatchOutcome(
            match_id=f"preview-{label}",
            context_type=context_type,
            player_a=player_id,
            player_b=opponent_id,
            result=result,
            # Global ratings under club K; the club id itself is not read.
            club_id="preview" if context_type == MatchContext.CLUB else None,
        )
        change, _ = engine.preview(outcome, record_a, record_b)
        previews[label] = change
    return previews


def has_unified_record(record: RatingRecord) -> bool:
    """True when a stored record was migrated already or has played matches since."""
    return record.migration_version is not None or coerce_match_count(record.matches_played) > 0


def migrate_legacy_users(
    store: RatingStore,
    documents: Iterable[tuple[str, Mapping[str, Any]]],
    *,
    normalizer: MigrationNormalizer | None = None,
    dry_run: bool = False,
    echo: Callable[[str], None] | None = None,
) -> tuple[MigrationSummary, list[MigrationResult]]:
    """Normalize ``(player_id, document)`` pairs and store the migrated records.

    A player whose stored record is already unified is skipped, so re-running
    an export never overwrites ratings earned since the first run. Dry runs
    classify documents without reading or writing the store.
    """
    normalizer = normalizer or MigrationNormalizer()
    results: list[MigrationResult] = []
    migrated = skipped = defaulted = 0

    for index, (player_id, document) in enumerate(documents, start=1):
        result = normalizer.normalize_document(document, player_id=player_id)
        if result.migrated and not dry_run:
            with store.transaction((player_id,)):
                existing = store.get(player_id)
                if has_unified_record(existing):
                    logger.info("player_id=%s already has a unified record; skipping", player_id)
                    result = MigrationResult(
                        record=existing,
                        legacy_payload=result.legacy_payload,
                        migrated=False,
                        source="already_migrated",
                    )
                else:
                    store.put(result.record, legacy_payload=result.legacy_payload)
        results.append(result)

        if result.migrated:
            migrated += 1
            if result.source == "default":
                defaulted += 1
        else:
            skipped += 1

        if echo is not None and index % 1_000 == 0:
            echo(f"processed_documents={index}")

    summary = MigrationSummary(
        processed=len(results),
        migrated=migrated,
        skipped=skipped,
        defaulted=defaulted,
        dry_run=dry_run,
    )
    logger.info(
        "legacy migration processed=%d migrated=%d skipped=%d defaulted=%d dry_run=%s",
        summary.processed,
        summary.migrated,
        summary.skipped,
        summary.defaulted,
        summary.dry_run,
    )
    return summary, results


__all__ = [
    "MigrationSummary",
    "has_unified_record",
    "migrate_legacy_users",
    "preview_match",
    "record_match",
    "refresh_club_rankings",
]
