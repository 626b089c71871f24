"""Calendar-driven economy events.

One daily event per day of week and one weekly event rotating every 7 days
(epoch week mod 4). Both apply small modifiers to economy values; when they
overlap, the modifiers are stacked per field and clamped so that no pair of
events can run away with the economy.

Everything here is a pure function of the date key and its explicit inputs.
"""

import copy
import math
from dataclasses import replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Union

from .boosts import extend_coin_boost
from .config import EconomyConfig, resolve_config
from .dates import DateKeyLike, as_date_key, require_date_key, same_day
from .models import (
    ActiveEvents,
    DailyClaimReward,
    Event,
    EventKind,
    ModifierBundle,
    ModifierField as F,
    Player,
    clamp,
    safe_number,
)


# DAILY_EVENTS[i] is active when the day of week is i (0 = Sunday).
DAILY_EVENTS = (
    Event(
        event_id="golden_sunday",
        kind=EventKind.DAILY,
        title="Golden Sunday",
        subtitle="Coin rewards shine brighter",
        modifiers={F.TASK_COIN_MULTIPLIER: 1.10},
    ),
    Event(
        event_id="monday_surge",
        kind=EventKind.DAILY,
        title="Monday Surge",
        subtitle="Start the week with stronger passive income",
        modifiers={F.IDLE_CPM_MULTIPLIER: 1.12},
    ),
    Event(
        event_id="gacha_tuesday",
        kind=EventKind.DAILY,
        title="Gacha Tuesday",
        subtitle="Better rare odds and a discounted first pack",
        modifiers={
            F.GACHA_RARE_BONUS: 0.02,
            F.GACHA_FIRST_PACK_DISCOUNT: 0.20,
        },
    ),
    Event(
        event_id="boost_wednesday",
        kind=EventKind.DAILY,
        title="Boost Wednesday",
        subtitle="Boosts are 15% off today",
        modifiers={F.BOOST_PRICE_MULTIPLIER: 0.85},
    ),
    Event(
        event_id="energy_thursday",
        kind=EventKind.DAILY,
        title="Energy Thursday",
        subtitle="+10 max energy and one free idle claim",
        modifiers={
            F.ENERGY_CAP_BONUS: 10,
            F.FREE_IDLE_CLAIM_ONCE_PER_DAY: True,
        },
    ),
    Event(
        event_id="xp_friday",
        kind=EventKind.DAILY,
        title="Frantic Friday",
        subtitle="Task coins and farming sped up",
        modifiers={F.TASK_COIN_MULTIPLIER: 1.10, F.IDLE_CPM_MULTIPLIER: 1.05},
    ),
    Event(
        event_id="power_saturday",
        kind=EventKind.DAILY,
        title="Power Saturday",
        subtitle="Every active multiplier gets a push",
        modifiers={F.TASK_COIN_MULTIPLIER: 1.05, F.IDLE_CPM_MULTIPLIER: 1.08},
    ),
)

# WEEKLY_EVENTS[epoch_week % 4] is active for the whole week.
WEEKLY_EVENTS = (
    Event(
        event_id="harvest_week",
        kind=EventKind.WEEKLY,
        title="Harvest Week",
        subtitle="Higher coin yield from tasks and farming",
        modifiers={F.TASK_COIN_MULTIPLIER: 1.05, F.IDLE_CPM_MULTIPLIER: 1.05},
    ),
    Event(
        event_id="master_week",
        kind=EventKind.WEEKLY,
        title="Master Week",
        subtitle="The master's luck improves gacha pulls",
        modifiers={F.GACHA_RARE_BONUS: 0.02},
    ),
    Event(
        event_id="colossus_week",
        kind=EventKind.WEEKLY,
        title="Colossus Week",
        subtitle="Max energy grows by 15 this week",
        modifiers={F.ENERGY_CAP_BONUS: 15},
    ),
    Event(
        event_id="fortune_week",
        kind=EventKind.WEEKLY,
        title="Fortune Week",
        subtitle="Boosts cost 10% less all week",
        modifiers={F.BOOST_PRICE_MULTIPLIER: 0.90},
    ),
)


class ClaimTheme(str, Enum):
    """Shape of the once-per-day event claim reward."""
    GACHA = "gacha"
    BOOST = "boost"
    ENERGY = "energy"
    COINS = "coins"


CLAIM_THEMES = {
    "gacha_tuesday": ClaimTheme.GACHA,
    "boost_wednesday": ClaimTheme.BOOST,
    "energy_thursday": ClaimTheme.ENERGY,
}


# =========================================================================
# CATALOG ACCESS
# =========================================================================

def get_daily_event(date_key: DateKeyLike) -> Event:
    """Daily event for the day of week of date_key. Always defined.

    Raises:
        DateKeyError: date_key does not name a calendar day.
    """
    return DAILY_EVENTS[require_date_key(date_key).day_of_week]


def get_weekly_event(date_key: DateKeyLike) -> Event:
    """Weekly event for the epoch week of date_key. Rotates every 7 days."""
    return WEEKLY_EVENTS[require_date_key(date_key).epoch_week % len(WEEKLY_EVENTS)]


def get_active_events(date_key: DateKeyLike) -> ActiveEvents:
    """Both events in effect on date_key."""
    return ActiveEvents(
        daily=get_daily_event(date_key),
        weekly=get_weekly_event(date_key),
    )


# =========================================================================
# MODIFIER STACKING
# =========================================================================

def apply_event_modifiers(
    active_events: Union[ActiveEvents, Iterable[Event], None],
    config: Optional[EconomyConfig] = None,
) -> ModifierBundle:
    """Stack the modifiers of all active events into one clamped bundle.

    Stacking rules:
        - task_coin_multiplier, idle_cpm_multiplier: multiplied, capped at 2.0
        - gacha_rare_bonus (<= 0.15), energy_cap_bonus (<= 50): summed
        - boost_price_multiplier: lowest wins, floored at 0.50
        - gacha_first_pack_discount: highest wins, capped at 0.50
        - free_idle_claim_once_per_day: any event enables it

    Fields no event sets keep their identity value.
    """
    caps = resolve_config(config).event_caps

    task_coin = 1.0
    idle_cpm = 1.0
    rare_bonus = 0.0
    pack_discount = 0.0
    boost_price = 1.0
    energy_cap_bonus = 0
    free_idle_claim = False

    for event in active_events or ():
        if event is None:
            continue
        m = event.modifiers
        if F.TASK_COIN_MULTIPLIER in m:
            task_coin *= safe_number(m[F.TASK_COIN_MULTIPLIER], 1.0)
        if F.IDLE_CPM_MULTIPLIER in m:
            idle_cpm *= safe_number(m[F.IDLE_CPM_MULTIPLIER], 1.0)
        if F.GACHA_RARE_BONUS in m:
            rare_bonus += safe_number(m[F.GACHA_RARE_BONUS], 0.0)
        if F.GACHA_FIRST_PACK_DISCOUNT in m:
            pack_discount = max(pack_discount, safe_number(m[F.GACHA_FIRST_PACK_DISCOUNT], 0.0))
        if F.BOOST_PRICE_MULTIPLIER in m:
            boost_price = min(boost_price, safe_number(m[F.BOOST_PRICE_MULTIPLIER], 1.0))
        if F.ENERGY_CAP_BONUS in m:
            energy_cap_bonus += safe_number(m[F.ENERGY_CAP_BONUS], 0)
        if m.get(F.FREE_IDLE_CLAIM_ONCE_PER_DAY):
            free_idle_claim = True

    return ModifierBundle(
        task_coin_multiplier=min(task_coin, caps["task_coin_multiplier"]),
        idle_cpm_multiplier=min(idle_cpm, caps["idle_cpm_multiplier"]),
        gacha_rare_bonus=min(rare_bonus, caps["gacha_rare_bonus"]),
        gacha_first_pack_discount=min(pack_discount, caps["gacha_first_pack_discount"]),
        boost_price_multiplier=max(boost_price, caps["boost_price_multiplier"]),
        energy_cap_bonus=min(energy_cap_bonus, caps["energy_cap_bonus"]),
        free_idle_claim_once_per_day=free_idle_claim,
    )


def get_economy_with_events(
    config: Union[EconomyConfig, Mapping, None],
    date_key: DateKeyLike,
) -> dict:
    """Economy values for a day: the given config merged with the day's modifiers."""
    if isinstance(config, EconomyConfig):
        base = copy.deepcopy(config.raw)
        bundle = apply_event_modifiers(get_active_events(date_key), config)
    else:
        base = copy.deepcopy(dict(config or {}))
        bundle = apply_event_modifiers(get_active_events(date_key))
    return {**base, **bundle.to_dict()}


# =========================================================================
# ONCE-PER-DAY GATES
# =========================================================================

def can_claim_event_bonus(player: Player, date_key: DateKeyLike) -> bool:
    """The event bonus can be claimed once per calendar day."""
    return not same_day(player.last_event_claim_date, date_key)


def can_use_gacha_discount(player: Player, date_key: DateKeyLike) -> bool:
    """First-pack discount: only on days whose daily event offers one, once."""
    daily = get_daily_event(date_key)
    if not safe_number(daily.modifier(F.GACHA_FIRST_PACK_DISCOUNT), 0) > 0:
        return False
    return not same_day(player.last_gacha_discount_date, date_key)


def can_use_free_idle_claim(player: Player, date_key: DateKeyLike) -> bool:
    """Free idle claim: only on days whose daily event grants one, once."""
    daily = get_daily_event(date_key)
    if not daily.modifier(F.FREE_IDLE_CLAIM_ONCE_PER_DAY):
        return False
    return not same_day(player.last_free_idle_claim_date, date_key)


# =========================================================================
# THEMED DAILY CLAIM
# =========================================================================

def claim_theme(event: Optional[Event]) -> ClaimTheme:
    if event is None:
        return ClaimTheme.COINS
    return CLAIM_THEMES.get(event.event_id, ClaimTheme.COINS)


def compute_daily_claim_reward(
    active_events: ActiveEvents,
    player: Player,
    now: float,
    config: Optional[EconomyConfig] = None,
) -> DailyClaimReward:
    """Reward for the once-per-day event claim, shaped by the daily event.

    Reward mapping:
        gacha day  -> flat dust
        boost day  -> extend the active coin boost, or flat coins if none is active
        energy day -> energy up to the remaining headroom under the effective cap
        otherwise  -> base coins x task_coin_multiplier (at least 1)

    Does not check whether today's claim was already used; see
    can_claim_event_bonus() and claim_event_bonus().
    """
    cfg = resolve_config(config)
    settings = cfg.events
    active_events = active_events or ActiveEvents()
    mods = apply_event_modifiers(active_events, cfg)
    theme = claim_theme(active_events.daily)

    if theme is ClaimTheme.GACHA:
        dust = settings["gacha_dust_bonus"]
        return DailyClaimReward(dust_delta=dust, message=f"+{dust} dust")

    if theme is ClaimTheme.BOOST:
        has_coin_boost = any(
            b.coin_multiplier and b.is_active(now) for b in player.boosts
        )
        if has_coin_boost:
            extend_ms = settings["boost_extend_ms"]
            return DailyClaimReward(
                boost_extend_ms=extend_ms,
                message=f"+{extend_ms // 60_000} min boost",
            )
        coins = settings["boost_fallback_coins"]
        return DailyClaimReward(coins_delta=coins, message=f"+{coins} coins")

    if theme is ClaimTheme.ENERGY:
        effective_cap = safe_number(player.energy_cap, 100) + mods.energy_cap_bonus
        current = safe_number(player.energy, 0)
        energy = clamp(effective_cap - current, 0, settings["energy_bonus"])
        return DailyClaimReward(energy_delta=energy, message=f"+{energy:g} energy")

    coins = max(1, math.floor(settings["claim_bonus_coins"] * mods.task_coin_multiplier))
    return DailyClaimReward(coins_delta=coins, message=f"+{coins} coins")


def apply_daily_claim_reward(
    player: Player,
    reward: DailyClaimReward,
    today: DateKeyLike,
    now: float,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Merge a daily claim reward into the player and lock today's claim."""
    caps = resolve_config(config).caps
    boosts = player.boosts
    if reward.boost_extend_ms:
        boosts = extend_coin_boost(boosts, reward.boost_extend_ms, now)

    return replace(
        player,
        coins=int(clamp(player.coins + reward.coins_delta, 0, caps["coins"])),
        dust=int(clamp(player.dust + reward.dust_delta, 0, caps["dust"])),
        energy=clamp(player.energy + reward.energy_delta, 0, caps["energy"]),
        boosts=boosts,
        last_event_claim_date=as_date_key(today),
    )


def claim_event_bonus(
    player: Player,
    today: DateKeyLike,
    now: float,
    config: Optional[EconomyConfig] = None,
) -> tuple[Player, Optional[DailyClaimReward]]:
    """Guarded claim: returns the player unchanged and None if already claimed today."""
    if not can_claim_event_bonus(player, today):
        return player, None
    reward = compute_daily_claim_reward(get_active_events(today), player, now, config)
    return apply_daily_claim_reward(player, reward, today, now, config), reward


# =========================================================================
# DISPLAY HELPERS
# =========================================================================

def event_effect_lines(event: Optional[Event]) -> list[str]:
    """Plain-text description of each modifier an event carries."""
    if event is None:
        return []
    m = event.modifiers
    lines = []
    if F.TASK_COIN_MULTIPLIER in m:
        lines.append(f"+{round((m[F.TASK_COIN_MULTIPLIER] - 1) * 100)}% coins per task")
    if F.IDLE_CPM_MULTIPLIER in m:
        lines.append(f"+{round((m[F.IDLE_CPM_MULTIPLIER] - 1) * 100)}% idle coins/min")
    if F.GACHA_RARE_BONUS in m:
        lines.append(f"+{round(m[F.GACHA_RARE_BONUS] * 100)}% gacha rare rate")
    if F.GACHA_FIRST_PACK_DISCOUNT in m:
        lines.append(f"-{round(m[F.GACHA_FIRST_PACK_DISCOUNT] * 100)}% first pack of the day")
    if F.BOOST_PRICE_MULTIPLIER in m:
        lines.append(f"-{round((1 - m[F.BOOST_PRICE_MULTIPLIER]) * 100)}% boost prices")
    if F.ENERGY_CAP_BONUS in m:
        lines.append(f"+{m[F.ENERGY_CAP_BONUS]} max energy")
    if m.get(F.FREE_IDLE_CLAIM_ONCE_PER_DAY):
        lines.append("1 free idle claim per day")
    return lines


def daily_recommendation(event: Optional[Event]) -> str:
    """One-line suggestion of what to do on the event's day."""
    theme = claim_theme(event)
    if theme is ClaimTheme.GACHA:
        return "Open a pack today (better rare odds)"
    if theme is ClaimTheme.BOOST:
        return "Buy a boost (cheaper today)"
    if theme is ClaimTheme.ENERGY:
        return "Claim idle coins: one claim is free today"
    if event is not None and event.event_id == "monday_surge":
        return "Farm actively and come back in 30 minutes to claim"
    return "Complete tasks to farm more coins today"
