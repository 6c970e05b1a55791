"""Tests for TOML-based rating engine config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from domain.ratings.config import (
    DEFAULT_CONFIG_PATH,
    load_rating_engine_config,
    load_rating_engine_configs,
)

FULL_CONFIG = """
[system]
name = "club_heavy"
description = "Faster club convergence"

[rating]
initial_rating = 1250.0
scale_factor = 420.0
min_delta = 2.0

[k_factor]
experience_tiers = [[15, 36.0], [60, 20.0]]
veteran_k = 10.0
veteran_rating = 2100.0
club_multiplier = 0.6
max_k = 48.0

[club]
tiers = [[20, 40.0]]
veteran_k = 20.0

[importance]
tournament_multiplier = 1.4
final_multiplier = 1.2
casual_multiplier = 0.7
""".strip()


def test_load_rating_engine_configs_from_directory(tmp_path: Path) -> None:
    (tmp_path / "club_heavy.toml").write_text(FULL_CONFIG)

    configs = load_rating_engine_configs(tmp_path)
    assert len(configs) == 1

    config = configs[0]
    parameters = config.parameters
    assert config.name == "club_heavy"
    assert config.description == "Faster club convergence"
    assert parameters.initial_rating == pytest.approx(1250.0)
    assert parameters.scale_factor == pytest.approx(420.0)
    assert parameters.min_delta == pytest.approx(2.0)
    assert parameters.k_factor.experience_tiers == ((15, 36.0), (60, 20.0))
    assert parameters.k_factor.veteran_k == pytest.approx(10.0)
    assert parameters.k_factor.veteran_rating == pytest.approx(2100.0)
    assert parameters.k_factor.club_multiplier == pytest.approx(0.6)
    assert parameters.k_factor.max_k == pytest.approx(48.0)
    assert parameters.k_factor.club_tiers == ((20, 40.0),)
    assert parameters.k_factor.club_veteran_k == pytest.approx(20.0)
    assert parameters.k_factor.tournament_multiplier == pytest.approx(1.4)
    assert parameters.k_factor.final_multiplier == pytest.approx(1.2)
    assert parameters.k_factor.casual_multiplier == pytest.approx(0.7)
    assert config.as_config_json()["experience_tiers"] == [[15, 36.0], [60, 20.0]]


def test_shipped_default_config_matches_engine_defaults() -> None:
    config = load_rating_engine_config(DEFAULT_CONFIG_PATH)

    assert config.name == "unified_default"
    assert config.parameters.initial_rating == pytest.approx(1200.0)
    assert config.parameters.k_factor.experience_tiers == ((10, 32.0), (30, 24.0), (100, 16.0))
    assert config.parameters.k_factor.veteran_k == pytest.approx(8.0)
    assert config.parameters.k_factor.club_multiplier == pytest.approx(0.5)


def test_missing_sections_fall_back_to_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "minimal.toml"
    config_path.write_text('[system]\nname = "minimal"\n')

    config = load_rating_engine_config(config_path)

    assert config.description is None
    assert config.parameters.k_factor.club_tiers == ((10, 32.0),)
    assert config.parameters.scale_factor == pytest.approx(400.0)


def test_duplicate_names_raise_error(tmp_path: Path) -> None:
    (tmp_path / "a.toml").write_text(FULL_CONFIG)
    (tmp_path / "b.toml").write_text(FULL_CONFIG)

    with pytest.raises(ValueError, match="Duplicate rating engine config names"):
        load_rating_engine_configs(tmp_path)


def test_missing_name_raises_error(tmp_path: Path) -> None:
    config_path = tmp_path / "nameless.toml"
    config_path.write_text('[system]\ndescription = "x"\n')

    with pytest.raises(ValueError, match=r"\[system\].name is required"):
        load_rating_engine_config(config_path)


@pytest.mark.parametrize(
    ("old", "new", "message"),
    [
        ("club_multiplier = 0.6", "club_multiplier = 1.0", "club_multiplier must be between 0 and 1"),
        ("initial_rating = 1250.0", "initial_rating = 5000.0", "initial_rating must be between"),
        ("scale_factor = 420.0", "scale_factor = 0.0", "scale_factor must be > 0"),
        ("[[15, 36.0], [60, 20.0]]", "[[15, 20.0], [60, 36.0]]", "must not increase with experience"),
        ("[[15, 36.0], [60, 20.0]]", "[[60, 36.0], [15, 20.0]]", "positive and ascending"),
        ("veteran_k = 10.0", "veteran_k = 30.0", "veteran k for"),
        ("max_k = 48.0", "max_k = -1.0", "max_k must be > 0"),
        ("casual_multiplier = 0.7", "casual_multiplier = 0.0", "casual_multiplier must be > 0"),
        ("tiers = [[20, 40.0]]", "tiers = 12", "must be a list of"),
    ],
)
def test_invalid_values_raise_error_naming_file_and_key(
    tmp_path: Path,
    old: str,
    new: str,
    message: str,
) -> None:
    config_path = tmp_path / "broken.toml"
    config_path.write_text(FULL_CONFIG.replace(old, new))

    with pytest.raises(ValueError, match=message) as error:
        load_rating_engine_config(config_path)
    assert str(config_path) in str(error.value)


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_rating_engine_config(tmp_path / "nope.toml")


def test_empty_config_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="No .toml config files"):
        load_rating_engine_configs(tmp_path)
