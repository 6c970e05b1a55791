"""Exceptions raised by the rating engine."""

from __future__ import annotations


class RatingEngineError(Exception):
    """Base class for rating-engine failures."""


class InvalidMatchOutcomeError(RatingEngineError, ValueError):
    """A match outcome (or the records supplied with it) cannot be applied."""

    def __init__(self, match_id: str, reason: str) -> None:
        super().__init__(f"match_id={match_id}: {reason}")
        self.match_id = match_id
        self.reason = reason


class LegacyPayloadError(RatingEngineError, ValueError):
    """A stored migration payload cannot be rolled back."""


__all__ = ["InvalidMatchOutcomeError", "LegacyPayloadError", "RatingEngineError"]
