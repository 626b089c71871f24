"""Character evolution: coins spent to raise an owned character's stage.

Stages run from 1 to evolution.max_stage. Each step has a coin cost per
rarity; the power-branch talent discount applies on top.
"""

from dataclasses import replace
from typing import Optional

from .config import EconomyConfig, resolve_config
from .models import Player, safe_number
from .talents import apply_evolve_discount


def get_stage(player: Player, character_id: str, config: Optional[EconomyConfig] = None) -> int:
    """Current stage of a character, 1 when never evolved."""
    max_stage = resolve_config(config).evolution_max_stage
    stage = int(safe_number(player.character_stages.get(character_id), 1))
    return max(1, min(stage, max_stage))


def evolve_cost(
    player: Player,
    character_id: str,
    evolve_discount: float = 0.0,
    config: Optional[EconomyConfig] = None,
) -> Optional[int]:
    """Coins for the next stage, or None for unknown or fully evolved characters."""
    cfg = resolve_config(config)
    character = cfg.character_catalog.get(character_id)
    if character is None:
        return None

    stage = get_stage(player, character_id, cfg)
    if stage >= cfg.evolution_max_stage:
        return None

    costs = cfg.evolution_costs.get(character.rarity, ())
    if stage - 1 >= len(costs):
        return None
    return apply_evolve_discount(costs[stage - 1], evolve_discount)


def can_evolve(player: Player, character_id: str, config: Optional[EconomyConfig] = None) -> bool:
    """Known, owned and below the last stage; coins are not checked."""
    if character_id not in player.unlocked_characters:
        return False
    return evolve_cost(player, character_id, config=config) is not None


def can_afford_evolution(
    player: Player,
    character_id: str,
    evolve_discount: float = 0.0,
    config: Optional[EconomyConfig] = None,
) -> bool:
    if not can_evolve(player, character_id, config):
        return False
    return player.coins >= evolve_cost(player, character_id, evolve_discount, config)


def apply_evolution(
    player: Player,
    character_id: str,
    evolve_discount: float = 0.0,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Spend coins and raise the stage by one; returns the player unchanged if not allowed."""
    if not can_afford_evolution(player, character_id, evolve_discount, config):
        return player

    cost = evolve_cost(player, character_id, evolve_discount, config)
    stage = get_stage(player, character_id, config)
    stages = dict(player.character_stages)
    stages[character_id] = stage + 1
    return replace(
        player,
        coins=max(0, player.coins - cost),
        character_stages=stages,
    )
