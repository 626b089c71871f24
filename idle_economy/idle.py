"""Idle farming: coins earned and energy spent between two settlements.

Each idle minute consumes one unit of energy. The settlement always moves the
tick anchor to `now`; callers must persist it atomically (for example with a
compare-and-set on the stored anchor) before allowing the next settlement,
otherwise two settlements from the same stale anchor credit coins twice.
"""

import math
from dataclasses import replace
from typing import Iterable, Mapping, Optional, Union

from .boosts import best_coin_multiplier
from .config import EconomyConfig, resolve_config
from .dates import MS_PER_MINUTE, DateKeyLike, as_date_key
from .models import (
    Character,
    IdleInput,
    IdleResult,
    Player,
    clamp,
    safe_number,
    to_rarity,
)


MAX_IDLE_MINUTES = 180

Catalog = Union[Mapping[str, Character], Iterable[Character], None]


def _catalog_index(catalog: Catalog) -> dict[str, Character]:
    if catalog is None:
        return {}
    if isinstance(catalog, Mapping):
        return dict(catalog)
    return {c.character_id: c for c in catalog}


def calc_team_multiplier(
    active_team: Optional[Iterable[str]],
    character_stages: Optional[Mapping[str, int]],
    catalog: Catalog,
    config: Optional[EconomyConfig] = None,
) -> float:
    """Idle multiplier of the active team.

    Each member contributes base[rarity] + stage * step[rarity]; the result is
    the average over the team, so large teams do not trivialise it. An empty
    team gives 1.0. Unknown characters count as common, missing stages as 1.
    """
    team = list(active_team or ())
    if not team:
        return 1.0

    cfg = resolve_config(config)
    rarity_base = cfg.team_rarity_base
    rarity_step = cfg.team_rarity_step
    characters = _catalog_index(catalog)
    stages = character_stages or {}

    contributions = []
    for character_id in team:
        character = characters.get(character_id)
        rarity = to_rarity(character.rarity if character else None)
        stage = safe_number(stages.get(character_id), 1)
        contributions.append(rarity_base[rarity] + stage * rarity_step[rarity])

    return sum(contributions) / len(contributions)


def compute_idle_earnings(
    params: IdleInput,
    config: Optional[EconomyConfig] = None,
) -> IdleResult:
    """Settle idle earnings for the window (last_tick_at, now].

    Rules:
        - First tick (last_tick_at is None): nothing earned, anchor recorded.
        - elapsed minutes are clamped to max_idle_minutes (180).
        - minutes used = min(elapsed, energy); one energy per minute.
        - coins = floor(minutes used x base_cpm x multiplier x best boost).
        - A free claim (event) consumes no energy.
        - Talent energy regen is added after spending, capped at energy_cap.
        - new_last_tick_at is always `now`.
    """
    cfg = resolve_config(config)
    now = safe_number(params.now, 0)
    energy = max(0.0, safe_number(params.energy, 0))

    if params.last_tick_at is None or safe_number(params.last_tick_at, None) is None:
        return IdleResult(coins_earned=0, minutes_used=0, new_energy=energy, new_last_tick_at=now)

    elapsed_minutes = (now - params.last_tick_at) / MS_PER_MINUTE
    if elapsed_minutes <= 0:
        return IdleResult(coins_earned=0, minutes_used=0, new_energy=energy, new_last_tick_at=now)
    elapsed_minutes = min(elapsed_minutes, cfg.max_idle_minutes)

    energy_cap = safe_number(params.energy_cap, energy)
    regen = max(0.0, safe_number(params.energy_regen_per_min, 0.0)) * elapsed_minutes

    if params.free_claim:
        minutes_used = elapsed_minutes
        energy_after = energy
    else:
        minutes_used = min(elapsed_minutes, energy)
        energy_after = energy - minutes_used

    multiplier = safe_number(params.multiplier, 1.0)
    effective_multiplier = multiplier * best_coin_multiplier(params.active_boosts)
    earned = minutes_used * safe_number(params.base_cpm, 0) * effective_multiplier
    # NaN and overflow from huge finite inputs must not reach floor()
    coins = math.floor(min(earned, cfg.cap("coins"))) if earned > 0 else 0

    new_energy = energy_after
    if regen > 0:
        new_energy = min(max(energy_cap, energy_after), energy_after + regen)

    return IdleResult(
        coins_earned=max(0, coins),
        minutes_used=minutes_used,
        new_energy=new_energy,
        new_last_tick_at=now,
    )


def effective_cpm(
    player: Player,
    team_multiplier: float = 1.0,
    talent_multiplier: float = 1.0,
    event_multiplier: float = 1.0,
) -> float:
    """Coins per idle minute before boosts: base x every active multiplier."""
    return (
        player.coins_per_minute_base
        * safe_number(player.global_multiplier_cache, 1.0)
        * safe_number(team_multiplier, 1.0)
        * safe_number(talent_multiplier, 1.0)
        * safe_number(event_multiplier, 1.0)
    )


def apply_idle_settlement(
    player: Player,
    result: IdleResult,
    today: Optional[DateKeyLike] = None,
    claimed: bool = False,
    free_claim_used: bool = False,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Merge a settlement into the player.

    A manual claim (claimed=True) also records today's idle claim for the
    daily loop; free_claim_used locks the event's free claim for today.
    """
    cfg = resolve_config(config)
    today = as_date_key(today)
    return replace(
        player,
        coins=int(clamp(player.coins + result.coins_earned, 0, cfg.cap("coins"))),
        energy=clamp(result.new_energy, 0, cfg.cap("energy")),
        last_idle_tick_at=result.new_last_tick_at,
        last_idle_claim_date=today if claimed and today else player.last_idle_claim_date,
        last_free_idle_claim_date=(
            today if free_claim_used and today else player.last_free_idle_claim_date
        ),
    )
