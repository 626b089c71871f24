"""Tests for player creation and record sanitising."""

import json

from idle_economy.dates import DateKey
from idle_economy.models import Boost, Player, Talents, ZoneProgress
from idle_economy.player import new_player, normalize_player


class TestNewPlayer:
    """Tests for new_player."""

    def test_defaults(self):
        """Test that a fresh player uses the configured defaults."""
        player = new_player()
        assert player.coins == 0
        assert player.energy == 100
        assert player.energy_cap == 100
        assert player.daily_goal == 3
        assert player.current_zone == 1
        assert player.zone_unlocked_max == 1
        assert player.level == 1
        assert player.global_multiplier_cache == 1.0
        assert player.talents == Talents()
        assert player.last_idle_tick_at is None


class TestNormalizePlayer:
    """Tests for normalize_player."""

    def test_clamps_to_caps(self):
        """Test that out-of-range numbers are clamped."""
        player = normalize_player({
            "coins": 5_000_000,
            "energy": -3,
            "energy_cap": 0,
            "xp": -1,
            "daily_goal": 99,
        })
        assert player.coins == 1_000_000
        assert player.energy == 0
        assert player.energy_cap == 1
        assert player.xp == 0
        assert player.daily_goal == 20

    def test_bad_values_use_defaults(self):
        """Test NaN, None and strings fall back to defaults."""
        player = normalize_player({
            "coins": float("nan"),
            "energy": None,
            "essence": "lots",
        })
        assert player.coins == 0
        assert player.energy == 100
        assert player.essence == 0

    def test_energy_never_above_cap(self):
        """Test that stored energy is limited by the player's own cap."""
        player = normalize_player({"energy": 250, "energy_cap": 120})
        assert player.energy == 120

    def test_current_zone_within_unlocked(self):
        """Test that the current zone cannot exceed the unlocked maximum."""
        player = normalize_player({"current_zone": 5, "zone_unlocked_max": 3})
        assert player.current_zone == 3

        player = normalize_player({"zone_unlocked_max": 42})
        assert player.zone_unlocked_max == 6

    def test_level_follows_xp(self):
        """Test that the stored level is recomputed."""
        assert normalize_player({"xp": 1_250, "level": 99}).level == 3

    def test_talents_clamped(self):
        """Test talent points within [0, max]."""
        player = normalize_player({"talents": {"idle": 50, "gacha": -2, "power": "x"}})
        assert player.talents == Talents(idle=10, gacha=0, power=0)

    def test_boosts_parsed_and_truncated(self):
        """Test boost records and the boost cap."""
        raw = [{"boost_id": f"b{i}", "expires_at": 1_000, "coin_multiplier": 2} for i in range(30)]
        player = normalize_player({"boosts": raw})
        assert len(player.boosts) == 20
        assert player.boosts[0] == Boost("b0", expires_at=1_000, coin_multiplier=2)

    def test_date_locks_parsed(self):
        """Test date keys and garbage values."""
        player = normalize_player({
            "daily_loop_claimed_date": "2026-03-02",
            "last_event_claim_date": "yesterday",
            "last_gacha_pull_date": None,
        })
        assert player.daily_loop_claimed_date == DateKey.parse("2026-03-02")
        assert player.last_event_claim_date is None
        assert player.last_gacha_pull_date is None

    def test_last_active_date(self):
        """Test the streak day survives storage and rejects garbage."""
        player = normalize_player({"last_active_date": "2026-03-01"})
        assert player.last_active_date == DateKey.parse("2026-03-01")
        assert normalize_player({"last_active_date": 17}).last_active_date is None

    def test_character_stages_follow_evolution_ladder(self):
        """Test that stored stages are limited by evolution.max_stage."""
        player = normalize_player({"character_stages": {"mage": 7, "rogue": 2}})
        assert player.character_stages == {"mage": 3, "rogue": 2}

    def test_zone_progress(self):
        """Test zone progress with string keys from storage."""
        player = normalize_player({"zone_progress": {"2": {"claimed_rewards": ["q1", "q2"]}, "x": {}}})
        assert player.zone_progress == {2: ZoneProgress(frozenset({"q1", "q2"}))}

    def test_garbage_record(self):
        """Test that a non-mapping record becomes a fresh player."""
        assert normalize_player(None) == new_player()
        assert normalize_player("corrupt") == new_player()

    def test_player_round_trip(self):
        """Test that a sanitised player survives to_dict and back unchanged."""
        player = normalize_player({
            "coins": 321,
            "energy": 42.5,
            "unlocked_characters": ["warrior", "mage"],
            "active_team": ["mage"],
            "character_stages": {"mage": 2},
            "talents": {"idle": 3},
            "boosts": [{"boost_id": "coin_x2_30m", "expires_at": 99, "coin_multiplier": 2}],
            "last_idle_claim_date": "2026-03-02",
            "last_active_date": "2026-03-01",
            "last_idle_tick_at": 12_345,
        })
        assert normalize_player(player) == player
        assert normalize_player(player.to_dict()) == player

    def test_input_not_modified(self):
        """Test that sanitising never touches the input record."""
        raw = {"coins": -5, "talents": {"idle": 50}}
        normalize_player(raw)
        assert raw == {"coins": -5, "talents": {"idle": 50}}


class TestNonFiniteRecords:
    """Tests for records holding infinities, as parsed from JSON."""

    def test_infinite_counters(self):
        """Test that infinite counters become defaults instead of raising."""
        player = normalize_player({
            "prestige_count": float("inf"),
            "pity_counter": float("-inf"),
            "coins": float("inf"),
            "energy": float("-inf"),
            "global_multiplier_cache": float("inf"),
        })
        assert player.prestige_count == 0
        assert player.pity_counter == 0
        assert player.coins == 0
        assert player.energy == 100
        assert player.global_multiplier_cache == 1.0

    def test_infinite_nested_values(self):
        """Test talents, stages and boosts with infinities."""
        player = normalize_player({
            "talents": {"idle": float("inf")},
            "character_stages": {"mage": float("inf")},
            "boosts": [{"boost_id": "coin_x2_30m", "expires_at": float("inf")}],
            "last_idle_tick_at": float("inf"),
        })
        assert player.talents.idle == 0
        assert player.character_stages == {"mage": 1}
        assert player.boosts[0].expires_at is None
        assert player.last_idle_tick_at is None

    def test_json_infinity(self):
        """Test a record decoded by json, which accepts Infinity."""
        record = json.loads('{"prestige_count": Infinity, "xp": -Infinity, "coins": NaN}')
        player = normalize_player(record)
        assert player.prestige_count == 0
        assert player.xp == 0
        assert player.coins == 0
