"""Talent tree: essence spent per branch turned into economy bonuses.

Branches:
    idle  - passive coin multiplier, energy cap and energy regen
    gacha - rare drop bonus and pity reduction
    power - combat power, boost duration and evolution discount

Each branch also has milestones (3 / 6 / 10 points by default) that layer a
small discrete bonus on top of the per-point scaling.
"""

import math
from dataclasses import replace
from typing import Mapping, Optional, Union

from .config import EconomyConfig, resolve_config
from .models import Player, TalentBonuses, TalentBranch, Talents, clamp, safe_number


def cost_for_next_point(current_points: int) -> int:
    """Essence cost of the next point: point #n costs n."""
    return int(max(0, safe_number(current_points, 0))) + 1


def total_cost(points: int) -> int:
    """Essence needed to reach `points` from zero (1 + 2 + ... + points)."""
    points = int(safe_number(points, 0))
    if points <= 0:
        return 0
    return points * (points + 1) // 2


def milestones_reached(level: int, config: Optional[EconomyConfig] = None) -> int:
    thresholds = resolve_config(config).talent_milestones
    return sum(1 for t in thresholds if level >= t)


def _branch_points(talents, branch: str, max_points: int) -> int:
    if isinstance(talents, Talents):
        value = talents.points(branch)
    elif isinstance(talents, Mapping):
        value = talents.get(branch)
    else:
        value = None
    return int(clamp(math.floor(safe_number(value, 0)), 0, max_points))


def compute_talent_bonuses(
    talents: Union[Talents, Mapping, None],
    config: Optional[EconomyConfig] = None,
) -> TalentBonuses:
    """Compute all talent bonuses from current branch points.

    Idle branch:
        idle_coin_mult       = 1 + idle * 0.10 + idle_milestones * 0.01
        energy_cap_bonus     = idle * 10 + power_milestones * 10
        energy_regen_per_min = idle * 0.5
    Gacha branch:
        gacha_rare_bonus     = gacha * 0.01
        pity_reduction       = floor(gacha / 2) + gacha_milestones
    Power branch:
        power_mult           = 1 + power * 0.04
        evolve_discount      = min(0.4, floor(power / 3) * 0.05)
        boost_duration_mult  = 1 + power * 0.05
    """
    cfg = resolve_config(config)
    max_points = cfg.talent_max_per_branch

    idle = _branch_points(talents, "idle", max_points)
    gacha = _branch_points(talents, "gacha", max_points)
    power = _branch_points(talents, "power", max_points)

    idle_milestones = milestones_reached(idle, cfg)
    gacha_milestones = milestones_reached(gacha, cfg)
    power_milestones = milestones_reached(power, cfg)

    return TalentBonuses(
        idle_coin_mult=1 + idle * 0.10 + idle_milestones * 0.01,
        energy_cap_bonus=idle * 10 + power_milestones * 10,
        energy_regen_per_min=idle * 0.5,
        gacha_rare_bonus=gacha * 0.01,
        pity_reduction=gacha // 2 + gacha_milestones,
        power_mult=1 + power * 0.04,
        evolve_discount=min(0.4, (power // 3) * 0.05),
        boost_duration_mult=1 + power * 0.05,
        idle_milestones=idle_milestones,
        gacha_milestones=gacha_milestones,
        power_milestones=power_milestones,
    )


def compute_talent_milestones(
    talents: Union[Talents, Mapping, None],
    config: Optional[EconomyConfig] = None,
) -> dict[str, list[dict]]:
    """Per-branch milestone pips: [{"threshold": 3, "reached": True}, ...]."""
    cfg = resolve_config(config)
    result = {}
    for branch in TalentBranch:
        points = _branch_points(talents, branch.value, cfg.talent_max_per_branch)
        result[branch.value] = [
            {"threshold": t, "reached": points >= t} for t in cfg.talent_milestones
        ]
    return result


def can_spend_essence(
    player: Player,
    branch: Union[TalentBranch, str],
    config: Optional[EconomyConfig] = None,
) -> bool:
    """True if the branch is below max and the player can pay the next point."""
    cfg = resolve_config(config)
    try:
        current = player.talents.points(branch)
    except ValueError:
        return False
    if current >= cfg.talent_max_per_branch:
        return False
    return player.essence >= cost_for_next_point(current)


def apply_spend_essence(
    player: Player,
    branch: Union[TalentBranch, str],
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Buy one talent point; returns the player unchanged if not allowed."""
    if not can_spend_essence(player, branch, config):
        return player

    current = player.talents.points(branch)
    cost = cost_for_next_point(current)
    return replace(
        player,
        essence=player.essence - cost,
        essence_spent=player.essence_spent + cost,
        talents=player.talents.with_points(branch, current + 1),
    )


def apply_evolve_discount(base_cost: int, evolve_discount: float) -> int:
    """Evolution cost after the power-branch discount (rounded up, at least 1)."""
    discount = safe_number(evolve_discount, 0.0)
    if discount <= 0:
        return base_cost
    return max(1, math.ceil(base_cost * (1 - discount)))
