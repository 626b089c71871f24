"""Creating and sanitising player records.

normalize_player() is the single boundary step between a stored record and
the engine: after it runs, every Player field is present, numeric and within
its cap, so the rule modules never branch on missing data.
"""

from typing import Any, Mapping, Optional

from .config import EconomyConfig, resolve_config
from .dates import as_date_key
from .models import Boost, Player, Talents, ZoneProgress, clamp, safe_number


DATE_LOCK_FIELDS = (
    "daily_loop_claimed_date",
    "last_event_claim_date",
    "last_gacha_discount_date",
    "last_free_idle_claim_date",
    "last_idle_claim_date",
    "last_gacha_pull_date",
    "last_active_date",
)


def new_player(config: Optional[EconomyConfig] = None) -> Player:
    """Create a fresh player from the configured defaults."""
    return normalize_player({}, config)


def _clamped(raw: Mapping, name: str, low: float, high: float, default: float) -> float:
    return clamp(safe_number(raw.get(name), default), low, high)


def _as_int(value: float) -> int:
    return int(value)


def _string_tuple(value: Any) -> tuple:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value)


def _talents(raw: Any, max_points: int) -> Talents:
    if isinstance(raw, Talents):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        return Talents()
    return Talents(**{
        branch: _as_int(clamp(safe_number(raw.get(branch), 0), 0, max_points))
        for branch in ("idle", "gacha", "power")
    })


def _zone_progress(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        return {}
    progress = {}
    for zone_id, entry in raw.items():
        try:
            key = int(zone_id)
        except (TypeError, ValueError):
            continue
        if isinstance(entry, ZoneProgress):
            progress[key] = entry
        elif isinstance(entry, Mapping):
            progress[key] = ZoneProgress(
                claimed_rewards=frozenset(_string_tuple(entry.get("claimed_rewards", ())))
            )
    return progress


def _boosts(raw: Any, limit: int) -> tuple:
    if not isinstance(raw, (list, tuple)):
        return ()
    boosts = []
    for entry in raw[:limit]:
        if isinstance(entry, Boost):
            boosts.append(entry)
        elif isinstance(entry, Mapping):
            boosts.append(Boost.from_dict(entry))
    return tuple(boosts)


def _character_stages(raw: Any, max_stage: int) -> dict:
    if not isinstance(raw, Mapping):
        return {}
    return {
        str(character_id): _as_int(clamp(safe_number(stage, 1), 1, max_stage))
        for character_id, stage in raw.items()
    }


def normalize_player(raw: Optional[Mapping], config: Optional[EconomyConfig] = None) -> Player:
    """Apply defaults and hard-cap clamps to a (possibly corrupt) player record.

    Rules:
        - numeric fields are clamped to [0, cap] (energy_cap, daily_goal and
          coins_per_minute_base to [1, cap]); NaN/missing become defaults
        - energy never exceeds min(caps.energy, energy_cap)
        - boosts are truncated to caps.boosts entries
        - date locks are parsed into DateKeys; unparseable values become None

    Args:
        raw: Player record as a mapping, or a Player to re-sanitise.
        config: Economy tables; defaults to the shipped economy.

    Returns:
        A new Player. The input is never modified.
    """
    cfg = resolve_config(config)
    if isinstance(raw, Player):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raw = {}

    defaults = cfg.player_defaults
    caps = cfg.caps

    energy_cap = _as_int(_clamped(raw, "energy_cap", 1, caps["energy_cap"], defaults["energy_cap"]))
    energy = _clamped(raw, "energy", 0, min(caps["energy"], energy_cap), defaults["energy"])
    zone_unlocked_max = _as_int(_clamped(raw, "zone_unlocked_max", 1, cfg.max_zone, defaults["zone_unlocked_max"]))
    current_zone = _as_int(_clamped(raw, "current_zone", 1, zone_unlocked_max, defaults["current_zone"]))
    xp = _as_int(_clamped(raw, "xp", 0, caps["xp"], defaults["xp"]))
    essence = _as_int(_clamped(raw, "essence", 0, caps["essence"], defaults["essence"]))

    multiplier = safe_number(raw.get("global_multiplier_cache"), 1.0)
    last_tick = raw.get("last_idle_tick_at")

    fields = {
        "coins": _as_int(_clamped(raw, "coins", 0, caps["coins"], defaults["coins"])),
        "energy": energy,
        "energy_cap": energy_cap,
        "coins_per_minute_base": _as_int(_clamped(
            raw, "coins_per_minute_base", 1, caps["coins_per_minute_base"],
            defaults["coins_per_minute_base"],
        )),
        "dust": _as_int(_clamped(raw, "dust", 0, caps["dust"], 0)),
        "xp": xp,
        "level": xp // cfg.xp_per_level + 1,
        "streak": _as_int(_clamped(raw, "streak", 0, caps["streak"], defaults["streak"])),
        "daily_goal": _as_int(_clamped(raw, "daily_goal", 1, caps["daily_goal"], defaults["daily_goal"])),
        "unlocked_characters": _string_tuple(raw.get("unlocked_characters")),
        "active_team": _string_tuple(raw.get("active_team")),
        "character_stages": _character_stages(raw.get("character_stages"), cfg.evolution_max_stage),
        "rewards_unlocked": _string_tuple(raw.get("rewards_unlocked")),
        "current_zone": current_zone,
        "zone_unlocked_max": zone_unlocked_max,
        "zone_progress": _zone_progress(raw.get("zone_progress")),
        "essence": essence,
        "essence_spent": _as_int(_clamped(
            raw, "essence_spent", 0, caps["essence_spent"], defaults["essence_spent"],
        )),
        "prestige_count": _as_int(max(0, safe_number(raw.get("prestige_count"), 0))),
        "global_multiplier_cache": max(1.0, multiplier),
        "talents": _talents(raw.get("talents"), cfg.talent_max_per_branch),
        "boosts": _boosts(raw.get("boosts"), caps["boosts"]),
        "pity_counter": _as_int(max(0, safe_number(raw.get("pity_counter"), 0))),
        "last_idle_tick_at": None if last_tick is None else safe_number(last_tick, None),
    }
    for name in DATE_LOCK_FIELDS:
        fields[name] = as_date_key(raw.get(name))

    return Player(**fields)
