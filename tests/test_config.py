"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from idle_economy.config import (
    DEFAULT_ECONOMY,
    EconomyConfig,
    deep_merge,
    default_config,
    load_config,
    load_yaml,
)
from idle_economy.errors import ConfigError, EconomyError
from idle_economy.models import BoostId, Rarity
from idle_economy.validators import (
    ConfigValidator,
    ValidationError,
    validate_config,
    validate_config_or_raise,
)


CONFIGS = Path(__file__).parent.parent / "configs"


class TestConfigLoading:
    """Tests for config loading functions."""

    def test_deep_merge_simple(self):
        """Test simple deep merge."""
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        result = deep_merge(base, override)

        assert result == {"a": 1, "b": 3, "c": 4}

    def test_deep_merge_nested(self):
        """Test deep merge with nested dicts."""
        base = {"level1": {"level2": {"a": 1, "b": 2}}}
        override = {"level1": {"level2": {"b": 3, "c": 4}}}
        result = deep_merge(base, override)

        assert result["level1"]["level2"] == {"a": 1, "b": 3, "c": 4}

    def test_deep_merge_replaces_lists(self):
        """Test that lists are replaced rather than concatenated."""
        result = deep_merge({"m": [3, 6, 10]}, {"m": [2, 4]})
        assert result == {"m": [2, 4]}

    def test_deep_merge_does_not_mutate_inputs(self):
        """Test that neither argument is modified."""
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}

    def test_load_config_without_overrides_is_default(self):
        """Test that no overrides yields a copy of the defaults."""
        config = load_config()
        assert config == DEFAULT_ECONOMY
        assert config is not DEFAULT_ECONOMY

    def test_default_yaml_matches_builtin_tables(self):
        """Test that the shipped YAML documents exactly the built-in tables."""
        assert load_yaml(CONFIGS / "default.yaml") == DEFAULT_ECONOMY

    def test_override_applied(self):
        """Test that an override file changes only what it names."""
        config = load_config([CONFIGS / "overrides" / "generous.yaml"])
        assert config["gacha"]["pack_cost"] == 25
        assert config["gacha"]["pity"] == {"default": 20, "min": 10}
        assert config["gacha"]["rates"] == DEFAULT_ECONOMY["gacha"]["rates"]

    def test_overrides_applied_in_order(self, tmp_path):
        """Test that later overrides win."""
        first = tmp_path / "first.yaml"
        second = tmp_path / "second.yaml"
        first.write_text("gacha:\n  pack_cost: 10\n")
        second.write_text("gacha:\n  pack_cost: 20\n")

        config = load_config([first, second])
        assert config["gacha"]["pack_cost"] == 20

    def test_non_mapping_yaml_rejected(self, tmp_path):
        """Test that a YAML list at the top level is a config error."""
        path = tmp_path / "bad.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            load_yaml(path)

    def test_invalid_yaml_rejected(self, tmp_path):
        """Test that malformed YAML is reported as a config error."""
        path = tmp_path / "broken.yaml"
        path.write_text("gacha: [unclosed\n")
        with pytest.raises(ConfigError):
            load_yaml(path)

    def test_empty_yaml_is_empty_override(self, tmp_path):
        """Test that an empty override changes nothing."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config([path]) == DEFAULT_ECONOMY


class TestEconomyConfig:
    """Tests for the typed config wrapper."""

    def test_zone_catalog(self):
        """Test zone catalog contents and ordering."""
        zones = default_config().zone_catalog
        assert list(zones) == [1, 2, 3, 4, 5, 6]
        assert zones[1].unlock_cost_coins == 0
        assert zones[6].required_power == 300
        assert default_config().max_zone == 6

    def test_string_zone_keys_accepted(self):
        """Test that YAML-style string keys still produce integer zone ids."""
        raw = deep_merge(DEFAULT_ECONOMY, {})
        raw["zones"] = {str(k): v for k, v in raw["zones"].items()}
        config = EconomyConfig(raw)
        assert config.get_zone(2).unlock_cost_coins == 80

    def test_unknown_lookups_return_none(self):
        """Test that unknown catalog ids are not errors."""
        config = default_config()
        assert config.get_zone(99) is None
        assert config.get_zone("abc") is None
        assert config.get_boost("rocket") is None

    def test_boost_catalog(self):
        """Test boost definitions."""
        catalog = default_config().boost_catalog
        assert catalog[BoostId.ENERGY_REFILL].instant
        assert catalog[BoostId.COIN_X2_30M].duration_ms == 30 * 60_000
        assert catalog[BoostId.ENERGY_CAP_PLUS50_24H].energy_cap_bonus == 50

    def test_gacha_tables(self):
        """Test gacha accessors."""
        config = default_config()
        assert config.gacha_base_rates[Rarity.COMMON] == 0.60
        assert config.pity_default == 30
        assert config.pity_min == 20
        assert config.gacha_pack_cost == 50

    def test_character_catalog(self):
        """Test characters are built with parsed rarities."""
        catalog = default_config().character_catalog
        assert catalog["dragon"].rarity is Rarity.LEGENDARY
        assert catalog["warrior"].rarity is Rarity.COMMON

    def test_default_config_is_cached(self):
        """Test that the shared default is built once."""
        assert default_config() is default_config()


class TestValidation:
    """Tests for config validation."""

    def test_valid_config(self):
        """Test that default config is valid."""
        errors = validate_config(load_config())
        assert errors == [], f"Errors found: {errors}"

    @pytest.mark.parametrize("name", ["generous.yaml", "long_run.yaml"])
    def test_shipped_overrides_valid(self, name):
        """Test that every shipped override keeps the economy valid."""
        errors = validate_config(load_config([CONFIGS / "overrides" / name]))
        assert errors == [], f"Errors found: {errors}"

    def test_missing_section(self):
        """Test that required sections are reported."""
        config = deep_merge(DEFAULT_ECONOMY, {})
        del config["zones"]
        errors = validate_config(config)
        assert "Missing required section: zones" in errors

    def test_gacha_rates_sum(self):
        """Test that gacha rates must sum to 1."""
        config = deep_merge(DEFAULT_ECONOMY, {"gacha": {"rates": {"common": 0.9}}})
        errors = ConfigValidator(config).validate()

        rate_errors = [e for e in errors if "gacha.rates sum to" in e]
        assert len(rate_errors) == 1

    def test_unknown_rarity(self):
        """Test that rate tables only use known rarities."""
        config = deep_merge(DEFAULT_ECONOMY, {})
        config["gacha"]["rates"] = {"common": 0.5, "mythic": 0.5}
        errors = validate_config(config)
        assert any("mythic" in e for e in errors)

    def test_pity_order(self):
        """Test that the pity floor cannot exceed the default."""
        config = deep_merge(DEFAULT_ECONOMY, {"gacha": {"pity": {"default": 10, "min": 20}}})
        errors = validate_config(config)
        assert any("gacha.pity.min" in e for e in errors)

    def test_zones_must_be_contiguous(self):
        """Test that zone ids cannot skip."""
        config = deep_merge(DEFAULT_ECONOMY, {})
        del config["zones"][3]
        errors = validate_config(config)
        assert any("contiguous" in e for e in errors)

    def test_zone_requirements_non_decreasing(self):
        """Test that later zones cannot be cheaper."""
        config = deep_merge(DEFAULT_ECONOMY, {"zones": {4: {"unlock_cost_coins": 10}}})
        errors = validate_config(config)
        assert any("zones.4.unlock_cost_coins" in e for e in errors)

    def test_first_zone_free(self):
        """Test that zone 1 costs nothing."""
        config = deep_merge(DEFAULT_ECONOMY, {"zones": {1: {"unlock_cost_coins": 5}}})
        errors = validate_config(config)
        assert "zones.1 must be free and require no power" in errors

    def test_timed_boost_needs_duration(self):
        """Test that a timed boost without duration is rejected."""
        config = deep_merge(DEFAULT_ECONOMY, {"boosts": {"coin_x2_30m": {"duration_ms": 0}}})
        errors = validate_config(config)
        assert any("coin_x2_30m" in e and "duration_ms" in e for e in errors)

    def test_talent_milestones_within_max(self):
        """Test that milestones cannot exceed the branch maximum."""
        config = deep_merge(DEFAULT_ECONOMY, {"talents": {"max_per_branch": 5}})
        errors = validate_config(config)
        assert any("talents.milestones" in e for e in errors)

    def test_negative_cap(self):
        """Test that caps must be positive."""
        config = deep_merge(DEFAULT_ECONOMY, {"caps": {"coins": -1}})
        errors = validate_config(config)
        assert any("caps.coins" in e for e in errors)

    def test_simulation_task_range(self):
        """Test that the simulated task range must be ordered."""
        config = deep_merge(DEFAULT_ECONOMY, {"simulation": {"tasks_per_day": [5, 2]}})
        errors = validate_config(config)
        assert any("simulation.tasks_per_day" in e for e in errors)

    def test_simulation_unknown_difficulty(self):
        """Test that simulated difficulties must exist in the task table."""
        config = deep_merge(DEFAULT_ECONOMY, {"simulation": {"difficulty_weights": {"epic": 1.0}}})
        errors = validate_config(config)
        assert any("simulation.difficulty_weights.epic" in e for e in errors)

    def test_validate_or_raise(self):
        """Test that validation errors surface as one exception."""
        config = deep_merge(DEFAULT_ECONOMY, {"gacha": {"pity": {"default": 10, "min": 20}}})
        with pytest.raises(ValidationError) as exc_info:
            validate_config_or_raise(config)

        assert isinstance(exc_info.value, EconomyError)
        assert exc_info.value.errors
