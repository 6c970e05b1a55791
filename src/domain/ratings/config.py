"""Load rating-engine definitions from TOML files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from domain.config_base import (
    NamedConfig,
    load_config_file,
    load_config_dir,
    require_section,
)
from domain.ratings.common import MAX_RATING, MIN_RATING
from domain.ratings.engine import RatingParameters
from domain.ratings.k_factor import KFactorParameters

ROOT_DIR = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = ROOT_DIR / "configs" / "ratings"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "default.toml"


@dataclass(frozen=True)
class RatingEngineConfig(NamedConfig):
    """Configuration for one rating engine."""

    parameters: RatingParameters

    def as_config_json(self) -> dict[str, Any]:
        k = self.parameters.k_factor
        return {
            "initial_rating": self.parameters.initial_rating,
            "scale_factor": self.parameters.scale_factor,
            "min_delta": self.parameters.min_delta,
            "experience_tiers": [list(tier) for tier in k.experience_tiers],
            "veteran_k": k.veteran_k,
            "veteran_rating": k.veteran_rating,
            "club_multiplier": k.club_multiplier,
            "max_k": k.max_k,
            "club_tiers": [list(tier) for tier in k.club_tiers],
            "club_veteran_k": k.club_veteran_k,
            "tournament_multiplier": k.tournament_multiplier,
            "final_multiplier": k.final_multiplier,
            "casual_multiplier": k.casual_multiplier,
        }


def load_rating_engine_configs(config_dir: Path = DEFAULT_CONFIG_DIR) -> list[RatingEngineConfig]:
    """Load and validate all rating-engine TOML config files in a directory."""
    return load_config_dir(
        config_dir,
        _parse_rating_engine_config,
        duplicate_name_label="rating engine",
    )


def load_rating_engine_config(file_path: Path = DEFAULT_CONFIG_PATH) -> RatingEngineConfig:
    """Load and validate one rating-engine TOML config file."""
    return load_config_file(file_path, _parse_rating_engine_config)


def _parse_rating_engine_config(raw: dict[str, Any], file_path: Path) -> RatingEngineConfig:
    system_raw = require_section(raw, "system", file_path)
    rating_raw = require_section(raw, "rating", file_path)
    k_raw = require_section(raw, "k_factor", file_path)
    club_raw = require_section(raw, "club", file_path)
    importance_raw = require_section(raw, "importance", file_path)

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    defaults = KFactorParameters()
    k_parameters = KFactorParameters(
        experience_tiers=_parse_tiers(
            k_raw.get("experience_tiers", defaults.experience_tiers),
            file_path=file_path,
            key="[k_factor].experience_tiers",
        ),
        veteran_k=float(k_raw.get("veteran_k", defaults.veteran_k)),
        veteran_rating=float(k_raw.get("veteran_rating", defaults.veteran_rating)),
        club_multiplier=float(k_raw.get("club_multiplier", defaults.club_multiplier)),
        max_k=float(k_raw.get("max_k", defaults.max_k)),
        club_tiers=_parse_tiers(
            club_raw.get("tiers", defaults.club_tiers),
            file_path=file_path,
            key="[club].tiers",
        ),
        club_veteran_k=float(club_raw.get("veteran_k", defaults.club_veteran_k)),
        tournament_multiplier=float(
            importance_raw.get("tournament_multiplier", defaults.tournament_multiplier)
        ),
        final_multiplier=float(importance_raw.get("final_multiplier", defaults.final_multiplier)),
        casual_multiplier=float(importance_raw.get("casual_multiplier", defaults.casual_multiplier)),
    )
    parameters = RatingParameters(
        initial_rating=float(rating_raw.get("initial_rating", 1200.0)),
        scale_factor=float(rating_raw.get("scale_factor", 400.0)),
        min_delta=float(rating_raw.get("min_delta", 1.0)),
        k_factor=k_parameters,
    )
    _validate_parameters(file_path=file_path, parameters=parameters)

    return RatingEngineConfig(
        name=name,
        description=description,
        file_path=file_path,
        parameters=parameters,
    )


def _parse_tiers(raw: Any, *, file_path: Path, key: str) -> tuple[tuple[int, float], ...]:
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"{file_path}: {key} must be a list of [match_limit, k] pairs")

    tiers: list[tuple[int, float]] = []
    for item in raw:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"{file_path}: {key} entries must be [match_limit, k] pairs")
        tiers.append((int(item[0]), float(item[1])))
    return tuple(tiers)


def _validate_tiers(
    *,
    file_path: Path,
    key: str,
    tiers: tuple[tuple[int, float], ...],
    fallback_k: float,
) -> None:
    previous_limit = 0
    previous_k = float("inf")
    for match_limit, k in tiers:
        if match_limit <= previous_limit:
            raise ValueError(f"{file_path}: {key} match limits must be positive and ascending")
        if k <= 0.0:
            raise ValueError(f"{file_path}: {key} k values must be > 0")
        if k > previous_k:
            raise ValueError(f"{file_path}: {key} k values must not increase with experience")
        previous_limit = match_limit
        previous_k = k
    if fallback_k <= 0.0 or fallback_k > previous_k:
        raise ValueError(f"{file_path}: veteran k for {key} must be > 0 and <= the last tier k")


def _validate_parameters(*, file_path: Path, parameters: RatingParameters) -> None:
    k = parameters.k_factor
    if not MIN_RATING <= parameters.initial_rating <= MAX_RATING:
        raise ValueError(
            f"{file_path}: [rating].initial_rating must be between {MIN_RATING:.0f} and {MAX_RATING:.0f}"
        )
    if parameters.scale_factor <= 0.0:
        raise ValueError(f"{file_path}: [rating].scale_factor must be > 0")
    if parameters.min_delta < 0.0:
        raise ValueError(f"{file_path}: [rating].min_delta must be >= 0")
    _validate_tiers(
        file_path=file_path,
        key="[k_factor].experience_tiers",
        tiers=k.experience_tiers,
        fallback_k=k.veteran_k,
    )
    _validate_tiers(
        file_path=file_path,
        key="[club].tiers",
        tiers=k.club_tiers,
        fallback_k=k.club_veteran_k,
    )
    if not 0.0 < k.club_multiplier < 1.0:
        raise ValueError(f"{file_path}: [k_factor].club_multiplier must be between 0 and 1")
    if k.max_k <= 0.0:
        raise ValueError(f"{file_path}: [k_factor].max_k must be > 0")
    if k.tournament_multiplier <= 0.0:
        raise ValueError(f"{file_path}: [importance].tournament_multiplier must be > 0")
    if k.final_multiplier <= 0.0:
        raise ValueError(f"{file_path}: [importance].final_multiplier must be > 0")
    if k.casual_multiplier <= 0.0:
        raise ValueError(f"{file_path}: [importance].casual_multiplier must be > 0")


__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_PATH",
    "RatingEngineConfig",
    "load_rating_engine_config",
    "load_rating_engine_configs",
]
