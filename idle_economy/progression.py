"""Zone unlocks, prestige, power score and task rewards.

Zones unlock strictly one at a time, gated by team power and coins, and each
grants a permanent coins-per-minute bonus. Prestige trades the whole coin/zone
economy for essence, which feeds a permanent global multiplier.

Completed tasks pay coins and XP unless they clone a task the user already
has, and keep the daily streak going.
"""

import math
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Union

from .config import EconomyConfig, resolve_config
from .dates import DateKeyLike, as_date_key, require_date_key
from .idle import Catalog, _catalog_index
from .models import Player, Task, Zone, safe_number, to_rarity


# =========================================================================
# ZONES
# =========================================================================

def get_zone(zone_id: Any, config: Optional[EconomyConfig] = None) -> Optional[Zone]:
    """Zone definition by id, or None."""
    return resolve_config(config).get_zone(zone_id)


def next_zone(player: Player, config: Optional[EconomyConfig] = None) -> Optional[Zone]:
    """The only zone the player may unlock next, or None at the last zone."""
    return get_zone(player.zone_unlocked_max + 1, config)


def can_unlock_zone(
    player: Player,
    power_score: float,
    zone_id: Any,
    config: Optional[EconomyConfig] = None,
) -> bool:
    """Can the player unlock zone_id right now?

    Rules, in order:
        - the zone exists
        - it is not already unlocked
        - it is exactly the next zone (no skipping)
        - power_score >= required power
        - coins >= unlock cost
    """
    zone = get_zone(zone_id, config)
    if zone is None:
        return False

    max_unlocked = player.zone_unlocked_max
    if zone.zone_id <= max_unlocked:
        return False
    if zone.zone_id != max_unlocked + 1:
        return False
    if safe_number(power_score, 0) < zone.required_power:
        return False
    return player.coins >= zone.unlock_cost_coins


def apply_zone_unlock(
    player: Player,
    zone_id: Any,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Return the player after unlocking zone_id.

    Deducts the cost (never below 0), raises zone_unlocked_max, moves the
    player into the zone and adds its permanent CPM bonus.

    Does NOT validate; callers must use can_unlock_zone first. Unknown zones
    return the player unchanged.
    """
    cfg = resolve_config(config)
    zone = cfg.get_zone(zone_id)
    if zone is None:
        return player

    return replace(
        player,
        coins=max(0, player.coins - zone.unlock_cost_coins),
        zone_unlocked_max=max(player.zone_unlocked_max, zone.zone_id),
        current_zone=zone.zone_id,
        coins_per_minute_base=int(min(
            player.coins_per_minute_base + zone.coins_per_minute_bonus,
            cfg.cap("coins_per_minute_base"),
        )),
    )


# =========================================================================
# PRESTIGE
# =========================================================================

def can_prestige(
    player: Optional[Player],
    power_score: float,
    current_zone: Optional[int] = None,
    config: Optional[EconomyConfig] = None,
) -> bool:
    """Prestige needs the final zone and enough power.

    current_zone defaults to the player's current zone.
    """
    if player is None:
        return False
    cfg = resolve_config(config)
    zone = current_zone if current_zone is not None else player.current_zone
    return (
        safe_number(zone, 1) >= cfg.prestige_required_zone
        and safe_number(power_score, 0) >= cfg.prestige_required_power
    )


def compute_essence_gain(power_score: Optional[float], config: Optional[EconomyConfig] = None) -> int:
    """floor(power_score / 50); zero below 50."""
    divisor = resolve_config(config).essence_per_power
    return max(0, math.floor(safe_number(power_score, 0) / divisor))


def compute_global_multiplier(essence: Optional[float], config: Optional[EconomyConfig] = None) -> float:
    """1 + essence x 0.02, never below 1.0."""
    per_essence = resolve_config(config).multiplier_per_essence
    return max(1.0, 1 + safe_number(essence, 0) * per_essence)


def apply_prestige(
    player: Player,
    essence_gain: int,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Return the player after a prestige reset.

    Reset: coins -> 0, current_zone and zone_unlocked_max -> 1,
    zone_progress -> {}, coins_per_minute_base -> 1, energy -> energy_cap.
    Grown: prestige_count + 1, essence + gain, global_multiplier_cache
    recomputed from the new essence total.
    Everything else (xp, level, streak, characters, team, rewards, daily goal,
    energy cap, talents) is carried over untouched.
    """
    cfg = resolve_config(config)
    gain = max(0, int(safe_number(essence_gain, 0)))
    new_essence = int(min(player.essence + gain, cfg.cap("essence")))

    return replace(
        player,
        coins=0,
        current_zone=1,
        zone_unlocked_max=1,
        zone_progress={},
        coins_per_minute_base=1,
        energy=player.energy_cap,
        prestige_count=player.prestige_count + 1,
        essence=new_essence,
        global_multiplier_cache=compute_global_multiplier(new_essence, cfg),
    )


# =========================================================================
# POWER AND LEVELS
# =========================================================================

def compute_power_score(
    active_team: Optional[Iterable[str]],
    character_stages: Optional[Mapping[str, int]],
    catalog: Catalog,
    global_multiplier: float = 1.0,
    config: Optional[EconomyConfig] = None,
) -> int:
    """Team power: sum of the best `team_size` members, times the global multiplier.

    Member score = round(rarity base x stage multiplier). Characters missing
    from the catalog score 0.
    """
    team = list(active_team or ())
    if not team:
        return 0

    cfg = resolve_config(config)
    characters = _catalog_index(catalog)
    stages = character_stages or {}
    stage_multiplier = cfg.power_stage_multiplier
    rarity_base = cfg.power_rarity_base

    scores = []
    for character_id in team:
        character = characters.get(character_id)
        if character is None:
            scores.append(0)
            continue
        base = rarity_base[to_rarity(character.rarity)]
        stage = int(safe_number(stages.get(character_id), 1))
        scores.append(round(base * stage_multiplier.get(stage, 1.0)))

    best = sorted(scores, reverse=True)[:cfg.power_team_size]
    return round(sum(best) * safe_number(global_multiplier, 1.0))


def xp_to_level(xp: float, config: Optional[EconomyConfig] = None) -> int:
    """1-based level: every xp_per_level XP is one level."""
    per_level = resolve_config(config).xp_per_level
    return int(max(0, safe_number(xp, 0)) // per_level) + 1


def xp_to_next_level(xp: float, config: Optional[EconomyConfig] = None) -> int:
    per_level = resolve_config(config).xp_per_level
    return per_level - int(max(0, safe_number(xp, 0))) % per_level


# =========================================================================
# TASKS
# =========================================================================

TaskLike = Union[Task, Mapping[str, Any]]


def _task_identity(task: TaskLike) -> tuple:
    if isinstance(task, Task):
        title, due = task.title, task.due_date
    else:
        title, due = task.get("title"), task.get("due_date")
    return str(title or "").strip().lower(), as_date_key(due)


def is_clone(candidate: TaskLike, existing_tasks: Iterable[TaskLike]) -> bool:
    """Anti-farm check: same title (trimmed, case-insensitive) and same due date.

    Blank titles never count as clones.
    """
    identity = _task_identity(candidate)
    if not identity[0]:
        return False
    return any(_task_identity(task) == identity for task in existing_tasks)


def compute_new_streak(current_streak: int, last_active: DateKeyLike, today: DateKeyLike) -> int:
    """Streak after activity today.

    Same day keeps the streak, the day after the last activity extends it,
    anything else (a gap, no history, a date in the future) restarts at 1.
    """
    streak = max(0, int(safe_number(current_streak, 0)))
    last_key = as_date_key(last_active)
    today_key = require_date_key(today)
    if last_key == today_key:
        return max(streak, 1)
    if last_key is not None and last_key.shift(1) == today_key:
        return streak + 1
    return 1


def is_streak_at_risk(last_active: DateKeyLike, today: DateKeyLike) -> bool:
    """True when the streak only survives if the player is active today."""
    last_key = as_date_key(last_active)
    return last_key is not None and last_key.shift(1) == require_date_key(today)


def coins_for_task(
    difficulty: Optional[str],
    is_clone: bool = False,
    config: Optional[EconomyConfig] = None,
) -> int:
    """Base coins for a completed task; clones earn nothing, unknown difficulty pays as easy."""
    if is_clone:
        return 0
    table = resolve_config(config).task_coins_by_difficulty
    return int(table.get(difficulty, table["easy"]))


def apply_task_completion(
    player: Player,
    difficulty: Optional[str] = "easy",
    task_coin_multiplier: float = 1.0,
    is_clone: bool = False,
    config: Optional[EconomyConfig] = None,
    today: DateKeyLike = None,
) -> Player:
    """Return the player after completing one task.

    Coins are the base reward x the event task multiplier (floored). Clones
    earn no coins and no XP. The level follows the new XP total.

    With today given, the streak and last_active_date are updated as well;
    this happens for clones too, since the user was still active.
    """
    cfg = resolve_config(config)
    updates = {}
    if today is not None:
        today_key = require_date_key(today)
        streak = compute_new_streak(player.streak, player.last_active_date, today_key)
        updates["streak"] = int(min(streak, cfg.cap("streak")))
        updates["last_active_date"] = today_key

    if not is_clone:
        base = coins_for_task(difficulty, config=cfg)
        coins = math.floor(base * safe_number(task_coin_multiplier, 1.0))
        xp = int(min(player.xp + cfg.xp_per_task, cfg.cap("xp")))
        updates["coins"] = int(min(player.coins + max(0, coins), cfg.cap("coins")))
        updates["xp"] = xp
        updates["level"] = xp_to_level(xp, cfg)

    if not updates:
        return player
    return replace(player, **updates)
