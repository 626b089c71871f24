"""Gacha drop tables, pity and the weighted draw.

Talent and event bonuses raise the rare tier's weight; tables are always
renormalised so they stay on the probability simplex. The draw itself takes
one uniform sample from an injected generator, which keeps every roll
reproducible in tests.
"""

import math
from dataclasses import replace
from random import Random
from typing import Mapping, Optional, Union

from .config import EconomyConfig, resolve_config
from .dates import DateKeyLike, as_date_key
from .events import apply_event_modifiers, can_use_gacha_discount, get_active_events
from .models import RARE_OR_BETTER, Player, Rarity, safe_number, to_rarity
from .talents import compute_talent_bonuses


PITY_DEFAULT = 30
PITY_MIN = 20
MAX_RARE_BONUS = 1.0

RatesTable = Mapping[Union[Rarity, str], float]


def _as_table(rates: Optional[RatesTable]) -> dict[Rarity, float]:
    table: dict[Rarity, float] = {}
    for rarity, weight in (rates or {}).items():
        key = to_rarity(rarity)
        table[key] = table.get(key, 0.0) + max(0.0, safe_number(weight, 0.0))
    return table


def normalize_rates(rates: RatesTable) -> dict[Rarity, float]:
    """Rescale a weight table so it sums to exactly 1.0.

    An all-zero table is returned as-is rather than divided by zero.
    """
    table = _as_table(rates)
    total = sum(table.values())
    if total == 0:
        return table
    return {rarity: weight / total for rarity, weight in table.items()}


def apply_gacha_rare_bonus(base_rates: RatesTable, bonus: Optional[float]) -> dict[Rarity, float]:
    """Add `bonus` to the rare tier and renormalise.

    Example: a 0.05 bonus on the base table makes rare 0.15 before
    normalisation, 0.15 / 1.05 ~= 0.143 after; every other tier shrinks
    proportionally.
    """
    bonus = min(safe_number(bonus, 0.0), MAX_RARE_BONUS)
    table = _as_table(base_rates)
    if bonus <= 0:
        return normalize_rates(table)
    table[Rarity.RARE] = table.get(Rarity.RARE, 0.0) + bonus
    return normalize_rates(table)


def compute_effective_pity(
    pity_reduction: Optional[float],
    config: Optional[EconomyConfig] = None,
) -> int:
    """Pulls before a guaranteed rare-or-better: max(min, default - reduction)."""
    cfg = resolve_config(config)
    reduction = max(0, safe_number(pity_reduction, 0))
    return int(max(cfg.pity_min, cfg.pity_default - reduction))


def pick_rarity(rates: Mapping[Rarity, float], sample: float) -> Rarity:
    """Cumulative-probability scan of a normalised table.

    Rounding at the tail (sample close to 1) falls back to the least rare
    tier in the table.
    """
    cumulative = 0.0
    for rarity, probability in rates.items():
        cumulative += probability
        if sample < cumulative:
            return rarity

    if not rates:
        return Rarity.COMMON
    return min(rates, key=list(Rarity).index)


def is_pity_roll(pity_count: Optional[int], pity_threshold: Optional[int]) -> bool:
    """True when this pull reaches the pity threshold."""
    threshold = safe_number(pity_threshold, PITY_DEFAULT)
    return safe_number(pity_count, 0) + 1 >= threshold


def roll_gacha(
    rates: RatesTable,
    pity_count: Optional[int],
    pity_threshold: Optional[int],
    rng: Optional[Random] = None,
) -> Rarity:
    """Draw one rarity.

    If pity_count + 1 reaches pity_threshold, the draw is restricted to the
    rare/epic/legendary sub-table (renormalised), so the result is guaranteed
    rare or better. Otherwise the full table is used.

    Args:
        rates: Weight table (normalised here).
        pity_count: Consecutive pulls without a rare-or-better result.
        pity_threshold: Effective pity (see compute_effective_pity).
        rng: Anything with a random() method returning floats in [0, 1).
            It is called exactly once. Defaults to a fresh Random().

    Returns:
        The drawn rarity.
    """
    table = _as_table(rates)

    if is_pity_roll(pity_count, pity_threshold):
        pool = {r: table.get(r, 0.0) for r in RARE_OR_BETTER}
        if sum(pool.values()) <= 0:
            pool = {Rarity.RARE: 1.0}
        table = pool

    sample = (rng or Random()).random()
    return pick_rarity(normalize_rates(table), sample)


def next_pity_count(pity_count: Optional[int], rarity: Rarity) -> int:
    """Pity counter after a pull: reset by rare or better, otherwise +1."""
    if rarity in RARE_OR_BETTER:
        return 0
    return int(safe_number(pity_count, 0)) + 1


def compute_pull_rates(
    talent_rare_bonus: float = 0.0,
    event_rare_bonus: float = 0.0,
    config: Optional[EconomyConfig] = None,
) -> dict[Rarity, float]:
    """Base rates with the talent and event rare bonuses applied."""
    bonus = safe_number(talent_rare_bonus, 0.0) + safe_number(event_rare_bonus, 0.0)
    return apply_gacha_rare_bonus(resolve_config(config).gacha_base_rates, bonus)


def gacha_pack_price(discount: float = 0.0, config: Optional[EconomyConfig] = None) -> int:
    """Pack price after a fractional discount (rounded up, at least 1)."""
    cost = resolve_config(config).gacha_pack_cost
    discount = min(max(safe_number(discount, 0.0), 0.0), 1.0)
    return max(1, math.ceil(cost * (1 - discount)))


def can_pull_gacha(player: Player, price: int) -> bool:
    return player.coins >= price


def apply_gacha_pull(
    player: Player,
    rarity: Rarity,
    today: DateKeyLike,
    price: int,
    discount_used: bool = False,
) -> Player:
    """Return the player after one pull: coins spent, pity updated, pull recorded."""
    today = as_date_key(today)
    return replace(
        player,
        coins=max(0, player.coins - price),
        pity_counter=next_pity_count(player.pity_counter, rarity),
        last_gacha_pull_date=today,
        last_gacha_discount_date=today if discount_used else player.last_gacha_discount_date,
    )


def open_pack(
    player: Player,
    today: DateKeyLike,
    rng: Optional[Random] = None,
    config: Optional[EconomyConfig] = None,
) -> tuple[Player, Optional[Rarity]]:
    """Buy and open one pack with today's events and the player's talents.

    Uses the daily first-pack discount when available. Returns the player
    unchanged and None when the player cannot afford the pack.
    """
    cfg = resolve_config(config)
    talents = compute_talent_bonuses(player.talents, cfg)
    mods = apply_event_modifiers(get_active_events(today), cfg)

    discount_used = can_use_gacha_discount(player, today) and mods.gacha_first_pack_discount > 0
    price = gacha_pack_price(mods.gacha_first_pack_discount if discount_used else 0.0, cfg)
    if not can_pull_gacha(player, price):
        return player, None

    rates = compute_pull_rates(talents.gacha_rare_bonus, mods.gacha_rare_bonus, cfg)
    threshold = compute_effective_pity(talents.pity_reduction, cfg)
    rarity = roll_gacha(rates, player.pity_counter, threshold, rng)
    return apply_gacha_pull(player, rarity, today, price, discount_used), rarity
