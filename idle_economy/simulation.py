"""Balance simulator: one scripted player driven through the whole economy.

Every random decision comes from a single Random(seed), and every timestamp
is derived from the simulated calendar, so the same config and seed always
produce the same report.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from random import Random
from typing import Callable, Optional

from .boosts import (
    apply_boost_purchase,
    can_buy_boost,
    effective_energy_cap,
    get_active_boosts,
)
from .config import EconomyConfig, resolve_config
from .daily_loop import claim_daily_loop
from .dates import MS_PER_MINUTE, DateKey, as_date_key
from .evolution import apply_evolution, evolve_cost
from .events import (
    apply_event_modifiers,
    can_use_free_idle_claim,
    claim_event_bonus,
    get_active_events,
)
from .gacha import open_pack
from .idle import apply_idle_settlement, calc_team_multiplier, compute_idle_earnings
from .models import (
    RARE_OR_BETTER,
    BoostId,
    IdleInput,
    ModifierBundle,
    Player,
    Rarity,
    TalentBonuses,
    TalentBranch,
    Task,
)
from .player import new_player
from .progression import (
    apply_prestige,
    apply_task_completion,
    apply_zone_unlock,
    can_prestige,
    can_unlock_zone,
    compute_essence_gain,
    compute_power_score,
    is_clone,
    next_zone,
)
from .talents import apply_spend_essence, can_spend_essence, compute_talent_bonuses
from .zone_quests import claim_zone_quest, get_zone_quests


logger = logging.getLogger(__name__)


WAKE_UP_OFFSET_MS = -4 * 60 * MS_PER_MINUTE  # 08:00, relative to noon
TALENT_ORDER = (TalentBranch.IDLE, TalentBranch.GACHA, TalentBranch.POWER)
TASK_TITLES = (
    "Answer email", "Go for a run", "Read 20 pages", "Tidy desk",
    "Plan tomorrow", "Water plants", "Practice guitar", "Call family",
)


@dataclass
class DaySnapshot:
    """Player state at the end of one simulated day."""
    day: int
    date: str
    daily_event: str
    weekly_event: str
    coins: int
    energy: float
    zone: int
    power: int
    essence: int
    prestige_count: int
    tasks_done: int
    clone_tasks: int
    task_coins: int
    idle_coins: int
    pulls: int
    streak: int
    daily_loop_claimed: bool
    event_bonus_claimed: bool

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date,
            "daily_event": self.daily_event,
            "weekly_event": self.weekly_event,
            "coins": self.coins,
            "energy": self.energy,
            "zone": self.zone,
            "power": self.power,
            "essence": self.essence,
            "prestige_count": self.prestige_count,
            "tasks_done": self.tasks_done,
            "clone_tasks": self.clone_tasks,
            "task_coins": self.task_coins,
            "idle_coins": self.idle_coins,
            "pulls": self.pulls,
            "streak": self.streak,
            "daily_loop_claimed": self.daily_loop_claimed,
            "event_bonus_claimed": self.event_bonus_claimed,
        }


@dataclass
class SimulationReport:
    """Outcome of a simulation run."""
    seed: int
    days: list[DaySnapshot] = field(default_factory=list)
    rarity_counts: Counter = field(default_factory=Counter)
    zone_unlocks: list[tuple[int, int]] = field(default_factory=list)  # (day, zone)
    prestiges: list[tuple[int, int]] = field(default_factory=list)  # (day, essence gained)
    quests_claimed: list[tuple[int, str]] = field(default_factory=list)  # (day, quest id)
    evolutions: list[tuple[int, str, int]] = field(default_factory=list)  # (day, character, stage)
    daily_loops_claimed: int = 0
    event_claims: int = 0
    boosts_bought: int = 0
    clone_tasks: int = 0
    final_player: Optional[Player] = None

    @property
    def total_idle_coins(self) -> int:
        return sum(d.idle_coins for d in self.days)

    @property
    def total_task_coins(self) -> int:
        return sum(d.task_coins for d in self.days)

    @property
    def total_pulls(self) -> int:
        return sum(self.rarity_counts.values())

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "days": [d.to_dict() for d in self.days],
            "rarity_counts": {r.value: n for r, n in sorted(
                self.rarity_counts.items(), key=lambda item: list(Rarity).index(item[0])
            )},
            "zone_unlocks": list(self.zone_unlocks),
            "prestiges": list(self.prestiges),
            "quests_claimed": list(self.quests_claimed),
            "evolutions": list(self.evolutions),
            "daily_loops_claimed": self.daily_loops_claimed,
            "event_claims": self.event_claims,
            "boosts_bought": self.boosts_bought,
            "clone_tasks": self.clone_tasks,
            "final_player": self.final_player.to_dict() if self.final_player else None,
        }


class Simulator:
    """Day-by-day economy simulation for balance checks."""

    def __init__(
        self,
        config: Optional[EconomyConfig] = None,
        seed: Optional[int] = None,
        days: Optional[int] = None,
        start_date: Optional[str] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        self.config = resolve_config(config)
        self.settings = self.config.simulation

        self.seed = self.settings.get("seed", 42) if seed is None else seed
        self.days = self.settings.get("days", 28) if days is None else days
        self.start_date = as_date_key(start_date or self.settings.get("start_date"))
        if self.start_date is None:
            self.start_date = DateKey.parse("2026-03-02")
        self.progress_callback = progress_callback

        self.rng = Random(self.seed)
        self.catalog = self.config.character_catalog
        self.player: Optional[Player] = None
        self.tasks_since_prestige = 0
        self.report = SimulationReport(seed=self.seed)

    def run(self) -> SimulationReport:
        """Run the full simulation."""
        self._initialize()

        for day in range(self.days):
            today = self.start_date.shift(day)
            self._simulate_day(day + 1, today)

            if self.progress_callback:
                self.progress_callback(day + 1, self.days)

        self.report.final_player = self.player
        logger.info(
            "Simulation finished: %d days, %d pulls, zone %d, %d prestiges",
            self.days, self.report.total_pulls, self.player.zone_unlocked_max,
            len(self.report.prestiges),
        )
        return self.report

    def _initialize(self) -> None:
        self.tasks_since_prestige = 0
        starter = self.settings.get("starter_character", "warrior")
        self.player = replace(
            new_player(self.config),
            unlocked_characters=(starter,),
            active_team=(starter,),
            character_stages={starter: 1},
        )
        logger.debug("Simulation seed=%s start=%s days=%d", self.seed, self.start_date, self.days)

    # ---------------------------------------------------------------------
    # One day
    # ---------------------------------------------------------------------

    def _simulate_day(self, day_number: int, today: DateKey) -> None:
        events = get_active_events(today)
        mods = apply_event_modifiers(events, self.config)
        now = today.noon_ms + WAKE_UP_OFFSET_MS

        tasks_done, clone_tasks, task_coins = self._do_tasks(today, mods)

        self.player, reward = claim_event_bonus(self.player, today, now, self.config)
        if reward is not None:
            self.report.event_claims += 1

        idle_coins = 0
        for _ in range(self.settings.get("idle_claims_per_day", 3)):
            now += self.rng.randint(90, 240) * MS_PER_MINUTE
            idle_coins += self._claim_idle(today, now, mods)

        pulls = self._open_packs(today)

        self.player, claimed = claim_daily_loop(self.player, tasks_done - clone_tasks, today, self.config)
        if claimed:
            self.report.daily_loops_claimed += 1

        self._spend_essence()
        self._claim_quests(day_number)
        self._evolve(day_number)
        self._unlock_zones(day_number)
        self._maybe_prestige(day_number)

        self.report.days.append(DaySnapshot(
            day=day_number,
            date=str(today),
            daily_event=events.daily.event_id,
            weekly_event=events.weekly.event_id,
            coins=self.player.coins,
            energy=round(self.player.energy, 2),
            zone=self.player.zone_unlocked_max,
            power=self._power(),
            essence=self.player.essence,
            prestige_count=self.player.prestige_count,
            tasks_done=tasks_done,
            clone_tasks=clone_tasks,
            task_coins=task_coins,
            idle_coins=idle_coins,
            pulls=pulls,
            streak=self.player.streak,
            daily_loop_claimed=claimed,
            event_bonus_claimed=reward is not None,
        ))

    def _do_tasks(self, today: DateKey, mods: ModifierBundle) -> tuple[int, int, int]:
        """Complete today's tasks; a repeated title counts as a clone.

        Returns (tasks done, clones, coins earned).
        """
        low, high = self.settings.get("tasks_per_day", [2, 5])
        weights = self.settings.get("difficulty_weights", {"easy": 1.0})
        difficulties = list(weights)

        count = self.rng.randint(low, high)
        coins_before = self.player.coins
        done: list[Task] = []
        clones = 0
        for _ in range(count):
            difficulty = self.rng.choices(difficulties, weights=[weights[d] for d in difficulties])[0]
            task = Task(self.rng.choice(TASK_TITLES), due_date=today)
            clone = is_clone(task, done)
            done.append(task)
            clones += clone
            self.player = apply_task_completion(
                self.player, difficulty, mods.task_coin_multiplier,
                is_clone=clone, config=self.config, today=today,
            )

        self.tasks_since_prestige += count - clones
        self.report.clone_tasks += clones
        return count, clones, self.player.coins - coins_before

    def _claim_idle(self, today: DateKey, now: int, mods: ModifierBundle) -> int:
        talents = self._talents()
        self._maybe_refill(now, mods, talents)

        free_claim = can_use_free_idle_claim(self.player, today)
        energy_cap = effective_energy_cap(
            self.player, now, mods.energy_cap_bonus, talents.energy_cap_bonus, self.config,
        )
        multiplier = (
            calc_team_multiplier(
                self.player.active_team, self.player.character_stages, self.catalog, self.config,
            )
            * talents.idle_coin_mult
            * mods.idle_cpm_multiplier
            * self.player.global_multiplier_cache
        )
        result = compute_idle_earnings(IdleInput(
            now=now,
            last_tick_at=self.player.last_idle_tick_at,
            energy=self.player.energy,
            energy_cap=energy_cap,
            base_cpm=self.player.coins_per_minute_base,
            multiplier=multiplier,
            active_boosts=get_active_boosts(self.player.boosts, now),
            energy_regen_per_min=talents.energy_regen_per_min,
            free_claim=free_claim,
        ), self.config)
        self.player = apply_idle_settlement(
            self.player, result, today,
            claimed=True,
            free_claim_used=free_claim and result.coins_earned > 0,
            config=self.config,
        )
        return result.coins_earned

    def _maybe_refill(self, now: int, mods: ModifierBundle, talents: TalentBonuses) -> None:
        if self.player.energy >= self.settings.get("refill_below_energy", 30):
            return
        if not can_buy_boost(self.player, BoostId.ENERGY_REFILL, mods.boost_price_multiplier, self.config):
            return
        self.player = apply_boost_purchase(
            self.player, BoostId.ENERGY_REFILL, now,
            price_multiplier=mods.boost_price_multiplier,
            energy_cap_extra=mods.energy_cap_bonus + talents.energy_cap_bonus,
            config=self.config,
        )
        self.report.boosts_bought += 1

    def _open_packs(self, today: DateKey) -> int:
        reserve = self.settings.get("coin_reserve", 0)
        pulls = 0
        for _ in range(self.settings.get("gacha_pulls_per_day", 1)):
            if self.player.coins < self.config.gacha_pack_cost + reserve and pulls > 0:
                break
            self.player, rarity = open_pack(self.player, today, self.rng, self.config)
            if rarity is None:
                break
            pulls += 1
            self.report.rarity_counts[rarity] += 1
            self._collect(rarity)
        return pulls

    def _collect(self, rarity: Rarity) -> None:
        """Unlock a new character of the drawn rarity, or convert the duplicate to dust."""
        owned = set(self.player.unlocked_characters)
        candidates = sorted(
            c.character_id for c in self.catalog.values()
            if c.rarity == rarity and c.character_id not in owned
        )
        if not candidates:
            dust = self.player.dust + self.settings.get("duplicate_dust", 5)
            self.player = replace(self.player, dust=int(min(dust, self.config.cap("dust"))))
            return

        character_id = self.rng.choice(candidates)
        unlocked = self.player.unlocked_characters + (character_id,)
        stages = {**self.player.character_stages, character_id: 1}
        self.player = replace(
            self.player,
            unlocked_characters=unlocked,
            character_stages=stages,
            active_team=self._best_team(unlocked, stages),
        )
        if rarity in RARE_OR_BETTER:
            logger.debug("Unlocked %s character %s", rarity.value, character_id)

    def _best_team(self, unlocked: tuple, stages: dict) -> tuple:
        def score(character_id: str) -> int:
            return compute_power_score((character_id,), stages, self.catalog, config=self.config)

        ranked = sorted(unlocked, key=lambda c: (-score(c), c))
        return tuple(ranked[:self.config.power_team_size])

    # ---------------------------------------------------------------------
    # Progression
    # ---------------------------------------------------------------------

    def _talents(self) -> TalentBonuses:
        return compute_talent_bonuses(self.player.talents, self.config)

    def _power(self) -> int:
        multiplier = self.player.global_multiplier_cache * self._talents().power_mult
        return compute_power_score(
            self.player.active_team, self.player.character_stages, self.catalog,
            multiplier, self.config,
        )

    def _spend_essence(self) -> None:
        """Buy talent points in the cheapest branch first (ties: idle, gacha, power)."""
        while True:
            branches = [b for b in TALENT_ORDER if can_spend_essence(self.player, b, self.config)]
            if not branches:
                return
            branch = min(branches, key=lambda b: self.player.talents.points(b))
            self.player = apply_spend_essence(self.player, branch, self.config)

    def _claim_quests(self, day_number: int) -> None:
        for zone_id in range(1, self.player.zone_unlocked_max + 1):
            for quest in get_zone_quests(zone_id, self.config):
                self.player, claimed = claim_zone_quest(
                    self.player, quest.quest_id, self.tasks_since_prestige, self.config,
                )
                if claimed:
                    self.report.quests_claimed.append((day_number, quest.quest_id))

    def _evolve(self, day_number: int) -> None:
        """Evolve team members with coins left over after saving for the next zone."""
        zone = next_zone(self.player, self.config)
        reserve = zone.unlock_cost_coins if zone else 0
        discount = self._talents().evolve_discount

        evolved = False
        for character_id in self.player.active_team:
            cost = evolve_cost(self.player, character_id, discount, self.config)
            if cost is None or self.player.coins < cost + reserve:
                continue
            self.player = apply_evolution(self.player, character_id, discount, self.config)
            stage = self.player.character_stages[character_id]
            self.report.evolutions.append((day_number, character_id, stage))
            evolved = True

        if evolved:
            self.player = replace(
                self.player,
                active_team=self._best_team(self.player.unlocked_characters, self.player.character_stages),
            )

    def _unlock_zones(self, day_number: int) -> None:
        while True:
            zone = next_zone(self.player, self.config)
            if zone is None or not can_unlock_zone(self.player, self._power(), zone.zone_id, self.config):
                return
            self.player = apply_zone_unlock(self.player, zone.zone_id, self.config)
            self.report.zone_unlocks.append((day_number, zone.zone_id))
            logger.info("Day %d: unlocked zone %d (%s)", day_number, zone.zone_id, zone.name)

    def _maybe_prestige(self, day_number: int) -> None:
        power = self._power()
        if not can_prestige(self.player, power, config=self.config):
            return
        gain = compute_essence_gain(power, self.config)
        self.player = apply_prestige(self.player, gain, self.config)
        self.tasks_since_prestige = 0
        self.report.prestiges.append((day_number, gain))
        logger.info("Day %d: prestige #%d, +%d essence", day_number, self.player.prestige_count, gain)


def run_simulation(
    config: Optional[EconomyConfig] = None,
    seed: Optional[int] = None,
    days: Optional[int] = None,
    start_date: Optional[str] = None,
) -> SimulationReport:
    """Convenience wrapper around Simulator(...).run()."""
    return Simulator(config, seed=seed, days=days, start_date=start_date).run()
