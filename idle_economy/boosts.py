"""Boost catalog helpers: active view, effective caps, prices and purchases.

Boost records are never mutated; expired ones simply drop out of the active
view and are pruned the next time the list is rebuilt.
"""

import math
from dataclasses import replace
from typing import Iterable, Optional

from .config import EconomyConfig, resolve_config
from .models import Boost, BoostDefinition, Player, clamp, safe_number


def get_boost(boost_id, config: Optional[EconomyConfig] = None) -> Optional[BoostDefinition]:
    """Boost definition by id, or None."""
    return resolve_config(config).get_boost(boost_id)


def get_active_boosts(boosts: Optional[Iterable[Boost]], now: float) -> tuple:
    """Stored boosts still running at `now` (expires_at > now)."""
    if not boosts:
        return ()
    return tuple(b for b in boosts if b.is_active(now))


def apply_boosts_to_caps(base_cap: float, active_boosts: Optional[Iterable[Boost]]) -> float:
    """Energy cap after adding every active energy_cap_bonus."""
    bonus = sum(safe_number(b.energy_cap_bonus, 0) for b in active_boosts or ())
    return safe_number(base_cap, 0) + bonus


def best_coin_multiplier(active_boosts: Optional[Iterable[Boost]]) -> float:
    """Highest coin multiplier among active boosts; boosts never reduce income."""
    multipliers = [safe_number(b.coin_multiplier, 1.0) for b in active_boosts or ()]
    return max([1.0] + multipliers)


def effective_energy_cap(
    player: Player,
    now: float,
    event_bonus: float = 0,
    talent_bonus: float = 0,
    config: Optional[EconomyConfig] = None,
) -> float:
    """Energy cap including boosts, event and talent bonuses, within caps.energy."""
    cfg = resolve_config(config)
    cap = apply_boosts_to_caps(player.energy_cap, get_active_boosts(player.boosts, now))
    cap += safe_number(event_bonus, 0) + safe_number(talent_bonus, 0)
    return clamp(cap, 1, cfg.cap("energy"))


def boost_price(
    boost_id,
    price_multiplier: float = 1.0,
    config: Optional[EconomyConfig] = None,
) -> Optional[int]:
    """Coin price of a boost after an event discount; None for unknown boosts."""
    definition = get_boost(boost_id, config)
    if definition is None:
        return None
    multiplier = safe_number(price_multiplier, 1.0)
    return max(0, math.ceil(definition.cost * multiplier))


def can_buy_boost(
    player: Player,
    boost_id,
    price_multiplier: float = 1.0,
    config: Optional[EconomyConfig] = None,
) -> bool:
    price = boost_price(boost_id, price_multiplier, config)
    return price is not None and player.coins >= price


def apply_boost_purchase(
    player: Player,
    boost_id,
    now: float,
    price_multiplier: float = 1.0,
    duration_mult: float = 1.0,
    energy_cap_extra: float = 0,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Return the player after buying a boost.

    Instant boosts (energy refill) fill energy to the effective cap and are
    not stored. Timed boosts are appended with expires_at = now + duration x
    duration_mult; expired entries are pruned and the list is capped.

    Does NOT validate affordability; callers must use can_buy_boost first.
    Unknown boost ids return the player unchanged.
    """
    cfg = resolve_config(config)
    definition = cfg.get_boost(boost_id)
    if definition is None:
        return player

    price = boost_price(boost_id, price_multiplier, cfg)
    coins = max(0, player.coins - price)

    if definition.instant:
        cap = effective_energy_cap(player, now, talent_bonus=energy_cap_extra, config=cfg)
        return replace(player, coins=coins, energy=cap)

    duration = definition.duration_ms * max(1.0, safe_number(duration_mult, 1.0))
    boost = Boost(
        boost_id=definition.boost_id.value,
        expires_at=now + math.floor(duration),
        coin_multiplier=definition.coin_multiplier,
        energy_cap_bonus=definition.energy_cap_bonus,
    )
    boosts = get_active_boosts(player.boosts, now) + (boost,)
    limit = cfg.cap("boosts")
    return replace(player, coins=coins, boosts=boosts[-limit:])


def extend_coin_boost(boosts: Iterable[Boost], extend_ms: float, now: float) -> tuple:
    """Push back the expiry of the longest-running active coin boost.

    Returns the boosts unchanged if no coin boost is active.
    """
    boosts = tuple(boosts or ())
    candidates = [
        (b.expires_at, i) for i, b in enumerate(boosts)
        if b.coin_multiplier and b.is_active(now)
    ]
    if not candidates:
        return boosts
    _, index = max(candidates)
    target = boosts[index]
    extended = replace(target, expires_at=target.expires_at + safe_number(extend_ms, 0))
    return boosts[:index] + (extended,) + boosts[index + 1:]
