"""Economy configuration: default balance tables, YAML overrides and typed access."""

import copy
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .models import BoostDefinition, BoostId, Character, QuestType, Rarity, Zone, ZoneQuest


logger = logging.getLogger(__name__)


MINUTE_MS = 60 * 1_000
HOUR_MS = 60 * MINUTE_MS


# Single source of truth for every balance number. YAML overrides are merged
# on top of this; the engine never reads any other table.
DEFAULT_ECONOMY: dict = {
    "version": 3,
    "player_defaults": {
        "coins": 0,
        "energy": 100,
        "energy_cap": 100,
        "coins_per_minute_base": 1,
        "daily_goal": 3,
        "current_zone": 1,
        "zone_unlocked_max": 1,
        "essence": 0,
        "essence_spent": 0,
        "streak": 0,
        "xp": 0,
    },
    "caps": {
        "coins": 1_000_000,
        "energy": 1_000,
        "energy_cap": 500,
        "coins_per_minute_base": 100,
        "xp": 10_000_000,
        "streak": 3_650,
        "daily_goal": 20,
        "boosts": 20,
        "essence": 100_000,
        "essence_spent": 100_000,
        "dust": 1_000_000,
    },
    "idle": {
        "max_idle_minutes": 180,
    },
    "boosts": {
        "coin_x2_30m": {
            "cost": 120,
            "duration_ms": 30 * MINUTE_MS,
            "coin_multiplier": 2,
        },
        "coin_x2_2h": {
            "cost": 220,
            "duration_ms": 120 * MINUTE_MS,
            "coin_multiplier": 2,
        },
        "energy_cap_plus50_24h": {
            "cost": 250,
            "duration_ms": 24 * HOUR_MS,
            "energy_cap_bonus": 50,
        },
        "energy_refill": {
            "cost": 75,
            "instant": True,
        },
    },
    "zones": {
        1: {"name": "Starting Forest", "required_power": 0, "unlock_cost_coins": 0, "coins_per_minute_bonus": 0},
        2: {"name": "Dark Caverns", "required_power": 20, "unlock_cost_coins": 80, "coins_per_minute_bonus": 1},
        3: {"name": "Stone Fortress", "required_power": 55, "unlock_cost_coins": 200, "coins_per_minute_bonus": 2},
        4: {"name": "Arcane Tower", "required_power": 100, "unlock_cost_coins": 350, "coins_per_minute_bonus": 3},
        5: {"name": "Eternal Abyss", "required_power": 180, "unlock_cost_coins": 700, "coins_per_minute_bonus": 4},
        6: {"name": "Top of the World", "required_power": 300, "unlock_cost_coins": 1_200, "coins_per_minute_bonus": 5},
    },
    "zone_quests": {
        1: [
            {"id": "z1_q1", "label": "Complete 3 tasks", "type": "tasks_count", "target": 3, "reward_coins": 30},
            {"id": "z1_q2", "label": "Hold 100 coins", "type": "coins_total", "target": 100, "reward_coins": 40},
            {"id": "z1_q3", "label": "Unlock 1 character", "type": "characters_unlocked", "target": 1, "reward_coins": 50},
            {"id": "z1_q4", "label": "Keep a 2-day streak", "type": "streak", "target": 2, "reward_coins": 40},
            {"id": "z1_q5", "label": "Reach level 2", "type": "level", "target": 2, "reward_coins": 60},
        ],
        2: [
            {"id": "z2_q1", "label": "Complete 5 tasks", "type": "tasks_count", "target": 5, "reward_coins": 50},
            {"id": "z2_q2", "label": "Hold 200 coins", "type": "coins_total", "target": 200, "reward_coins": 60},
            {"id": "z2_q3", "label": "Unlock 2 characters", "type": "characters_unlocked", "target": 2, "reward_coins": 70},
            {"id": "z2_q4", "label": "Keep a 3-day streak", "type": "streak", "target": 3, "reward_coins": 60},
            {"id": "z2_q5", "label": "Reach level 3", "type": "level", "target": 3, "reward_coins": 80},
        ],
        3: [
            {"id": "z3_q1", "label": "Complete 8 tasks", "type": "tasks_count", "target": 8, "reward_coins": 70},
            {"id": "z3_q2", "label": "Hold 400 coins", "type": "coins_total", "target": 400, "reward_coins": 80},
            {"id": "z3_q3", "label": "Unlock 3 characters", "type": "characters_unlocked", "target": 3, "reward_coins": 90},
            {"id": "z3_q4", "label": "Keep a 5-day streak", "type": "streak", "target": 5, "reward_coins": 80},
            {"id": "z3_q5", "label": "Reach level 5", "type": "level", "target": 5, "reward_coins": 100},
        ],
        4: [
            {"id": "z4_q1", "label": "Complete 12 tasks", "type": "tasks_count", "target": 12, "reward_coins": 100},
            {"id": "z4_q2", "label": "Hold 700 coins", "type": "coins_total", "target": 700, "reward_coins": 110},
            {"id": "z4_q3", "label": "Unlock 4 characters", "type": "characters_unlocked", "target": 4, "reward_coins": 120},
            {"id": "z4_q4", "label": "Keep a 7-day streak", "type": "streak", "target": 7, "reward_coins": 110},
            {"id": "z4_q5", "label": "Reach level 7", "type": "level", "target": 7, "reward_coins": 130},
        ],
        5: [
            {"id": "z5_q1", "label": "Complete 20 tasks", "type": "tasks_count", "target": 20, "reward_coins": 150},
            {"id": "z5_q2", "label": "Hold 1000 coins", "type": "coins_total", "target": 1000, "reward_coins": 160},
            {"id": "z5_q3", "label": "Unlock 5 characters", "type": "characters_unlocked", "target": 5, "reward_coins": 170},
            {"id": "z5_q4", "label": "Keep a 10-day streak", "type": "streak", "target": 10, "reward_coins": 160},
            {"id": "z5_q5", "label": "Reach level 10", "type": "level", "target": 10, "reward_coins": 180},
        ],
        6: [
            {"id": "z6_q1", "label": "Complete 30 tasks", "type": "tasks_count", "target": 30, "reward_coins": 200},
            {"id": "z6_q2", "label": "Hold 2000 coins", "type": "coins_total", "target": 2000, "reward_coins": 220},
            {"id": "z6_q3", "label": "Unlock 6 characters", "type": "characters_unlocked", "target": 6, "reward_coins": 240},
            {"id": "z6_q4", "label": "Keep a 14-day streak", "type": "streak", "target": 14, "reward_coins": 220},
            {"id": "z6_q5", "label": "Reach level 15", "type": "level", "target": 15, "reward_coins": 250},
        ],
    },
    "gacha": {
        "pack_cost": 50,
        "pity": {
            "default": 30,
            "min": 20,
        },
        "rates": {
            "common": 0.60,
            "uncommon": 0.25,
            "rare": 0.10,
            "epic": 0.04,
            "legendary": 0.01,
        },
    },
    "xp": {
        "per_task": 100,
        "per_level": 500,
    },
    "tasks": {
        "coins_by_difficulty": {"easy": 5, "medium": 8, "hard": 12},
    },
    "talents": {
        "max_per_branch": 10,
        "milestones": [3, 6, 10],
    },
    "daily_loop": {
        "reward_coins": 50,
        "reward_essence": 10,
    },
    "prestige": {
        "required_zone": 6,
        "required_power": 250,
        "essence_per_power": 50,
        "multiplier_per_essence": 0.02,
    },
    "events": {
        "claim_bonus_coins": 20,
        "gacha_dust_bonus": 25,
        "energy_bonus": 20,
        "boost_fallback_coins": 25,
        "boost_extend_ms": 10 * MINUTE_MS,
        "caps": {
            "task_coin_multiplier": 2.0,
            "idle_cpm_multiplier": 2.0,
            "gacha_rare_bonus": 0.15,
            "gacha_first_pack_discount": 0.50,
            "boost_price_multiplier": 0.50,
            "energy_cap_bonus": 50,
        },
    },
    "team": {
        "rarity_base": {
            "common": 1.00,
            "uncommon": 1.05,
            "rare": 1.10,
            "epic": 1.20,
            "legendary": 1.35,
        },
        "rarity_step": {
            "common": 0.05,
            "uncommon": 0.06,
            "rare": 0.07,
            "epic": 0.08,
            "legendary": 0.10,
        },
    },
    "power": {
        "rarity_base": {
            "common": 10,
            "uncommon": 18,
            "rare": 30,
            "epic": 55,
            "legendary": 90,
        },
        "stage_multiplier": {1: 1.0, 2: 1.35, 3: 1.8},
        "team_size": 3,
    },
    "evolution": {
        "max_stage": 3,
        "costs": {
            "common": [120, 300],
            "uncommon": [150, 375],
            "rare": [180, 450],
            "epic": [260, 650],
            "legendary": [400, 1_000],
        },
    },
    "characters": {
        "warrior": "common",
        "ranger": "common",
        "mage": "uncommon",
        "rogue": "uncommon",
        "healer": "rare",
        "paladin": "epic",
        "dragon": "legendary",
    },
    "simulation": {
        "seed": 42,
        "start_date": "2026-03-02",
        "days": 28,
        "tasks_per_day": [2, 5],
        "difficulty_weights": {"easy": 0.5, "medium": 0.35, "hard": 0.15},
        "idle_claims_per_day": 3,
        "refill_below_energy": 30,
        "gacha_pulls_per_day": 2,
        "coin_reserve": 40,
        "duplicate_dust": 5,
        "starter_character": "warrior",
    },
}


def load_yaml(path: Path) -> dict:
    """Load a YAML configuration file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base config.

    Arrays are replaced, not merged.
    Nested dicts are merged recursively.
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def load_config(
    override_paths: Optional[list[Path]] = None,
    base: Optional[dict] = None,
) -> dict:
    """Start from the default economy and apply overrides sequentially.

    Args:
        override_paths: Optional list of override YAML files to apply.
        base: Starting tables; defaults to DEFAULT_ECONOMY.

    Returns:
        Merged configuration dictionary.
    """
    config = copy.deepcopy(DEFAULT_ECONOMY if base is None else base)

    for override_path in override_paths or []:
        logger.debug("Applying economy override %s", override_path)
        override = load_yaml(Path(override_path))
        config = deep_merge(config, override)

    return config


def _int_keys(table: dict) -> dict:
    # YAML files may spell numeric keys as strings
    return {int(k): v for k, v in table.items()}


class EconomyConfig:
    """Wrapper for the economy tables with typed access."""

    def __init__(self, config: dict):
        self._config = config

    @property
    def raw(self) -> dict:
        """Get raw configuration dictionary."""
        return self._config

    @property
    def version(self) -> int:
        return self._config.get("version", 1)

    # Player
    @property
    def player_defaults(self) -> dict:
        return self._config["player_defaults"]

    @property
    def caps(self) -> dict:
        return self._config["caps"]

    def cap(self, name: str) -> float:
        return self._config["caps"][name]

    # Idle
    @property
    def max_idle_minutes(self) -> int:
        return self._config["idle"]["max_idle_minutes"]

    # Boosts
    @property
    def boost_catalog(self) -> dict[BoostId, BoostDefinition]:
        catalog = {}
        for boost_id, data in self._config["boosts"].items():
            key = BoostId(boost_id)
            catalog[key] = BoostDefinition(
                boost_id=key,
                cost=data["cost"],
                duration_ms=data.get("duration_ms"),
                coin_multiplier=data.get("coin_multiplier"),
                energy_cap_bonus=data.get("energy_cap_bonus"),
                instant=data.get("instant", False),
            )
        return catalog

    # Zones
    @property
    def zone_catalog(self) -> dict[int, Zone]:
        return {
            zone_id: Zone(
                zone_id=zone_id,
                required_power=data["required_power"],
                unlock_cost_coins=data["unlock_cost_coins"],
                coins_per_minute_bonus=data["coins_per_minute_bonus"],
                name=data.get("name", ""),
            )
            for zone_id, data in sorted(_int_keys(self._config["zones"]).items())
        }

    @property
    def max_zone(self) -> int:
        return max(_int_keys(self._config["zones"]))

    # Gacha
    @property
    def gacha_base_rates(self) -> dict[Rarity, float]:
        return {Rarity(k): v for k, v in self._config["gacha"]["rates"].items()}

    @property
    def gacha_pack_cost(self) -> int:
        return self._config["gacha"]["pack_cost"]

    @property
    def pity_default(self) -> int:
        return self._config["gacha"]["pity"]["default"]

    @property
    def pity_min(self) -> int:
        return self._config["gacha"]["pity"]["min"]

    # XP and tasks
    @property
    def xp_per_task(self) -> int:
        return self._config["xp"]["per_task"]

    @property
    def xp_per_level(self) -> int:
        return self._config["xp"]["per_level"]

    @property
    def task_coins_by_difficulty(self) -> dict:
        return self._config["tasks"]["coins_by_difficulty"]

    # Talents
    @property
    def talent_max_per_branch(self) -> int:
        return self._config["talents"]["max_per_branch"]

    @property
    def talent_milestones(self) -> list[int]:
        return list(self._config["talents"]["milestones"])

    # Daily loop
    @property
    def daily_loop_reward_coins(self) -> int:
        return self._config["daily_loop"]["reward_coins"]

    @property
    def daily_loop_reward_essence(self) -> int:
        return self._config["daily_loop"]["reward_essence"]

    # Prestige
    @property
    def prestige_required_zone(self) -> int:
        return self._config["prestige"]["required_zone"]

    @property
    def prestige_required_power(self) -> int:
        return self._config["prestige"]["required_power"]

    @property
    def essence_per_power(self) -> int:
        return self._config["prestige"]["essence_per_power"]

    @property
    def multiplier_per_essence(self) -> float:
        return self._config["prestige"]["multiplier_per_essence"]

    # Events
    @property
    def events(self) -> dict:
        return self._config["events"]

    @property
    def event_caps(self) -> dict:
        return self._config["events"]["caps"]

    # Team / power
    @property
    def team_rarity_base(self) -> dict[Rarity, float]:
        return {Rarity(k): v for k, v in self._config["team"]["rarity_base"].items()}

    @property
    def team_rarity_step(self) -> dict[Rarity, float]:
        return {Rarity(k): v for k, v in self._config["team"]["rarity_step"].items()}

    @property
    def power_rarity_base(self) -> dict[Rarity, int]:
        return {Rarity(k): v for k, v in self._config["power"]["rarity_base"].items()}

    @property
    def power_stage_multiplier(self) -> dict[int, float]:
        return _int_keys(self._config["power"]["stage_multiplier"])

    @property
    def power_team_size(self) -> int:
        return self._config["power"]["team_size"]

    @property
    def character_rarities(self) -> dict[str, str]:
        return dict(self._config.get("characters", {}))

    @property
    def character_catalog(self) -> dict[str, Character]:
        return {
            character_id: Character(character_id=character_id, rarity=Rarity(rarity))
            for character_id, rarity in self.character_rarities.items()
        }

    # Evolution
    @property
    def evolution_max_stage(self) -> int:
        return self._config.get("evolution", {}).get("max_stage", 3)

    @property
    def evolution_costs(self) -> dict[Rarity, tuple]:
        """Coin cost per rarity for each stage step (1->2, 2->3, ...)."""
        costs = self._config.get("evolution", {}).get("costs", {})
        return {Rarity(k): tuple(v) for k, v in costs.items()}

    # Zone quests
    @property
    def zone_quest_catalog(self) -> dict[int, tuple]:
        catalog = {}
        for zone_id, quests in _int_keys(self._config.get("zone_quests", {})).items():
            catalog[zone_id] = tuple(
                ZoneQuest(
                    quest_id=q["id"],
                    zone_id=zone_id,
                    quest_type=QuestType(q["type"]),
                    target=q["target"],
                    reward_coins=q.get("reward_coins", 0),
                    label=q.get("label", ""),
                )
                for q in quests
            )
        return catalog

    # Simulation
    @property
    def simulation(self) -> dict:
        return self._config.get("simulation", {})

    def get_zone(self, zone_id: Any) -> Optional[Zone]:
        """Zone by id, or None for unknown ids."""
        try:
            return self.zone_catalog.get(int(zone_id))
        except (TypeError, ValueError):
            return None

    def get_boost(self, boost_id: Any) -> Optional[BoostDefinition]:
        """Boost definition by id, or None for unknown ids."""
        try:
            return self.boost_catalog.get(BoostId(boost_id))
        except ValueError:
            return None


@lru_cache(maxsize=1)
def default_config() -> EconomyConfig:
    """The shipped economy, shared by every call that passes no config."""
    return EconomyConfig(copy.deepcopy(DEFAULT_ECONOMY))


def resolve_config(config: Optional[EconomyConfig]) -> EconomyConfig:
    return default_config() if config is None else config
