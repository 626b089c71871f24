"""Data models for the economy engine."""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .dates import DateKey


class Rarity(str, Enum):
    """Character / gacha rarity tiers, least rare first."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


RARE_OR_BETTER = (Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY)


class TalentBranch(str, Enum):
    """Talent tree branches."""
    IDLE = "idle"
    GACHA = "gacha"
    POWER = "power"


class BoostId(str, Enum):
    """Purchasable boosts."""
    COIN_X2_30M = "coin_x2_30m"
    COIN_X2_2H = "coin_x2_2h"
    ENERGY_CAP_PLUS50_24H = "energy_cap_plus50_24h"
    ENERGY_REFILL = "energy_refill"


class EventKind(str, Enum):
    """Event rotation cadence."""
    DAILY = "daily"
    WEEKLY = "weekly"


class QuestType(str, Enum):
    """What a zone quest measures."""
    TASKS_COUNT = "tasks_count"
    COINS_TOTAL = "coins_total"
    CHARACTERS_UNLOCKED = "characters_unlocked"
    STREAK = "streak"
    LEVEL = "level"


class ModifierField(str, Enum):
    """Closed set of economy values an event may modify."""
    TASK_COIN_MULTIPLIER = "task_coin_multiplier"
    IDLE_CPM_MULTIPLIER = "idle_cpm_multiplier"
    GACHA_RARE_BONUS = "gacha_rare_bonus"
    GACHA_FIRST_PACK_DISCOUNT = "gacha_first_pack_discount"
    BOOST_PRICE_MULTIPLIER = "boost_price_multiplier"
    ENERGY_CAP_BONUS = "energy_cap_bonus"
    FREE_IDLE_CLAIM_ONCE_PER_DAY = "free_idle_claim_once_per_day"


def safe_number(value: Any, default: float = 0) -> float:
    """Return value if it is a real number, otherwise the default.

    None, NaN, infinities, booleans and non-numeric values fall back to the
    default, so callers can floor or int() the result safely.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return value


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_rarity(value: Union[Rarity, str, None]) -> Rarity:
    """Parse a rarity tag; unknown tags are treated as common."""
    if isinstance(value, Rarity):
        return value
    try:
        return Rarity(value)
    except ValueError:
        return Rarity.COMMON


@dataclass(frozen=True)
class Boost:
    """A purchased boost stored on the player.

    Timed boosts carry an absolute expiry; instant boosts are applied at
    purchase time and never stored.
    """
    boost_id: str
    expires_at: Optional[float] = None
    instant: bool = False
    coin_multiplier: Optional[float] = None
    energy_cap_bonus: Optional[int] = None

    def is_active(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at > now

    def to_dict(self) -> dict:
        data = {"boost_id": self.boost_id, "expires_at": self.expires_at}
        if self.instant:
            data["instant"] = True
        if self.coin_multiplier is not None:
            data["coin_multiplier"] = self.coin_multiplier
        if self.energy_cap_bonus is not None:
            data["energy_cap_bonus"] = self.energy_cap_bonus
        return data

    @classmethod
    def from_dict(cls, data: Mapping) -> "Boost":
        expires_at = data.get("expires_at")
        return cls(
            boost_id=str(data.get("boost_id", "")),
            expires_at=None if expires_at is None else safe_number(expires_at, None),
            instant=bool(data.get("instant", False)),
            coin_multiplier=data.get("coin_multiplier"),
            energy_cap_bonus=data.get("energy_cap_bonus"),
        )


@dataclass(frozen=True)
class BoostDefinition:
    """Catalog entry for a purchasable boost (static data)."""
    boost_id: BoostId
    cost: int
    duration_ms: Optional[int] = None
    coin_multiplier: Optional[float] = None
    energy_cap_bonus: Optional[int] = None
    instant: bool = False


@dataclass(frozen=True)
class Zone:
    """Catalog entry for a progression zone (static data)."""
    zone_id: int
    required_power: int
    unlock_cost_coins: int
    coins_per_minute_bonus: int
    name: str = ""


@dataclass(frozen=True)
class Character:
    """Catalog entry for a collectable character."""
    character_id: str
    rarity: Rarity = Rarity.COMMON
    name: str = ""


@dataclass(frozen=True)
class Event:
    """Daily or weekly economy event (static data)."""
    event_id: str
    kind: EventKind
    title: str
    modifiers: Mapping[ModifierField, Union[float, bool]] = field(default_factory=dict)
    subtitle: str = ""

    def __post_init__(self):
        object.__setattr__(
            self,
            "modifiers",
            MappingProxyType({ModifierField(k): v for k, v in self.modifiers.items()}),
        )

    def __hash__(self) -> int:
        return hash((self.event_id, self.kind))

    def modifier(self, name: ModifierField, default=None):
        return self.modifiers.get(name, default)


@dataclass(frozen=True)
class ActiveEvents:
    """The daily and weekly event in effect for one day."""
    daily: Optional[Event] = None
    weekly: Optional[Event] = None

    def __iter__(self):
        return iter([e for e in (self.daily, self.weekly) if e is not None])


@dataclass(frozen=True)
class ModifierBundle:
    """Fully populated, clamped set of event modifiers."""
    task_coin_multiplier: float = 1.0
    idle_cpm_multiplier: float = 1.0
    gacha_rare_bonus: float = 0.0
    gacha_first_pack_discount: float = 0.0
    boost_price_multiplier: float = 1.0
    energy_cap_bonus: int = 0
    free_idle_claim_once_per_day: bool = False

    def to_dict(self) -> dict:
        return {
            "task_coin_multiplier": self.task_coin_multiplier,
            "idle_cpm_multiplier": self.idle_cpm_multiplier,
            "gacha_rare_bonus": self.gacha_rare_bonus,
            "gacha_first_pack_discount": self.gacha_first_pack_discount,
            "boost_price_multiplier": self.boost_price_multiplier,
            "energy_cap_bonus": self.energy_cap_bonus,
            "free_idle_claim_once_per_day": self.free_idle_claim_once_per_day,
        }


@dataclass(frozen=True)
class Talents:
    """Invested talent points per branch."""
    idle: int = 0
    gacha: int = 0
    power: int = 0

    def points(self, branch: Union[TalentBranch, str]) -> int:
        return getattr(self, TalentBranch(branch).value)

    def with_points(self, branch: Union[TalentBranch, str], points: int) -> "Talents":
        values = {"idle": self.idle, "gacha": self.gacha, "power": self.power}
        values[TalentBranch(branch).value] = points
        return Talents(**values)

    def to_dict(self) -> dict:
        return {"idle": self.idle, "gacha": self.gacha, "power": self.power}


@dataclass(frozen=True)
class ZoneProgress:
    """Quest rewards already claimed inside a zone."""
    claimed_rewards: frozenset = frozenset()


@dataclass(frozen=True)
class ZoneQuest:
    """One quest of a zone (static data)."""
    quest_id: str
    zone_id: int
    quest_type: QuestType
    target: int
    reward_coins: int
    label: str = ""


@dataclass(frozen=True)
class QuestProgress:
    current: int
    target: int
    completed: bool


@dataclass(frozen=True)
class Task:
    """The parts of a user task the economy looks at."""
    title: str
    due_date: Optional[DateKey] = None


@dataclass(frozen=True)
class Player:
    """Aggregate root: the single persisted player record.

    Instances are read-only snapshots. Every rule that changes the player
    returns a new instance.
    """

    # Economy
    coins: int = 0
    energy: float = 100
    energy_cap: int = 100
    coins_per_minute_base: int = 1
    dust: int = 0

    # Identity / progression that survives prestige
    xp: int = 0
    level: int = 1
    streak: int = 0
    daily_goal: int = 3
    unlocked_characters: tuple = ()
    active_team: tuple = ()
    character_stages: Mapping[str, int] = field(default_factory=dict)
    rewards_unlocked: tuple = ()

    # Zones
    current_zone: int = 1
    zone_unlocked_max: int = 1
    zone_progress: Mapping[int, ZoneProgress] = field(default_factory=dict)

    # Prestige / talents
    essence: int = 0
    essence_spent: int = 0
    prestige_count: int = 0
    global_multiplier_cache: float = 1.0
    talents: Talents = field(default_factory=Talents)

    # Boosts and gacha
    boosts: tuple = ()
    pity_counter: int = 0

    # One-claim-per-day locks
    daily_loop_claimed_date: Optional[DateKey] = None
    last_event_claim_date: Optional[DateKey] = None
    last_gacha_discount_date: Optional[DateKey] = None
    last_free_idle_claim_date: Optional[DateKey] = None
    last_idle_claim_date: Optional[DateKey] = None
    last_gacha_pull_date: Optional[DateKey] = None
    last_active_date: Optional[DateKey] = None

    # Idle settlement anchor (ms)
    last_idle_tick_at: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert the player to a plain record for persistence."""

        def key_str(value: Optional[DateKey]) -> Optional[str]:
            return None if value is None else str(value)

        return {
            "coins": self.coins,
            "energy": self.energy,
            "energy_cap": self.energy_cap,
            "coins_per_minute_base": self.coins_per_minute_base,
            "dust": self.dust,
            "xp": self.xp,
            "level": self.level,
            "streak": self.streak,
            "daily_goal": self.daily_goal,
            "unlocked_characters": list(self.unlocked_characters),
            "active_team": list(self.active_team),
            "character_stages": dict(self.character_stages),
            "rewards_unlocked": list(self.rewards_unlocked),
            "current_zone": self.current_zone,
            "zone_unlocked_max": self.zone_unlocked_max,
            "zone_progress": {
                str(zone_id): {"claimed_rewards": sorted(progress.claimed_rewards)}
                for zone_id, progress in self.zone_progress.items()
            },
            "essence": self.essence,
            "essence_spent": self.essence_spent,
            "prestige_count": self.prestige_count,
            "global_multiplier_cache": self.global_multiplier_cache,
            "talents": self.talents.to_dict(),
            "boosts": [b.to_dict() for b in self.boosts],
            "pity_counter": self.pity_counter,
            "daily_loop_claimed_date": key_str(self.daily_loop_claimed_date),
            "last_event_claim_date": key_str(self.last_event_claim_date),
            "last_gacha_discount_date": key_str(self.last_gacha_discount_date),
            "last_free_idle_claim_date": key_str(self.last_free_idle_claim_date),
            "last_idle_claim_date": key_str(self.last_idle_claim_date),
            "last_gacha_pull_date": key_str(self.last_gacha_pull_date),
            "last_active_date": key_str(self.last_active_date),
            "last_idle_tick_at": self.last_idle_tick_at,
        }


@dataclass(frozen=True)
class IdleInput:
    """Inputs for one idle settlement."""
    now: float
    last_tick_at: Optional[float]
    energy: float
    energy_cap: float
    base_cpm: float
    multiplier: float = 1.0
    active_boosts: tuple = ()
    energy_regen_per_min: float = 0.0
    free_claim: bool = False


@dataclass(frozen=True)
class IdleResult:
    """Outcome of one idle settlement."""
    coins_earned: int
    minutes_used: float
    new_energy: float
    new_last_tick_at: float


@dataclass(frozen=True)
class DailyClaimReward:
    """Themed reward for the once-per-day event claim."""
    coins_delta: int = 0
    dust_delta: int = 0
    energy_delta: float = 0
    boost_extend_ms: int = 0
    message: str = ""


@dataclass(frozen=True)
class DailyLoopStatus:
    """Progress on the compound daily objective."""
    goal_met: bool
    idle_claimed: bool
    gacha_pulled: bool

    @property
    def all_done(self) -> bool:
        return self.goal_met and self.idle_claimed and self.gacha_pulled


@dataclass(frozen=True)
class TalentBonuses:
    """Continuous and milestone bonuses derived from talent points."""
    idle_coin_mult: float = 1.0
    energy_cap_bonus: int = 0
    energy_regen_per_min: float = 0.0
    gacha_rare_bonus: float = 0.0
    pity_reduction: int = 0
    power_mult: float = 1.0
    evolve_discount: float = 0.0
    boost_duration_mult: float = 1.0
    idle_milestones: int = 0
    gacha_milestones: int = 0
    power_milestones: int = 0
