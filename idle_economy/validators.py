"""Economy configuration validators."""

from .errors import EconomyError
from .models import BoostId, QuestType, Rarity


class ValidationError(EconomyError):
    """Configuration validation error."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Configuration validation failed: {errors}")


class ConfigValidator:
    """Validator for economy configuration."""

    def __init__(self, config: dict):
        self.config = config
        self.errors: list[str] = []

    def validate(self) -> list[str]:
        """Run all validations and return list of errors."""
        self.errors = []

        self._validate_required_sections()
        self._validate_caps()
        self._validate_idle()
        self._validate_boosts()
        self._validate_zones()
        self._validate_gacha_rates()
        self._validate_pity()
        self._validate_talents()
        self._validate_daily_loop()
        self._validate_prestige()
        self._validate_event_caps()
        self._validate_characters()
        self._validate_evolution()
        self._validate_zone_quests()
        self._validate_simulation()

        return self.errors

    def validate_or_raise(self) -> None:
        """Run validation and raise exception if errors found."""
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

    def _validate_required_sections(self) -> None:
        """Check that all required top-level sections exist."""
        required_sections = [
            "player_defaults",
            "caps",
            "idle",
            "boosts",
            "zones",
            "gacha",
            "xp",
            "talents",
            "daily_loop",
            "prestige",
            "events",
            "team",
            "power",
        ]
        for section in required_sections:
            if section not in self.config:
                self.errors.append(f"Missing required section: {section}")

    def _validate_caps(self) -> None:
        """Every cap must be a positive number."""
        caps = self.config.get("caps", {})
        for name, value in caps.items():
            if not isinstance(value, (int, float)) or value <= 0:
                self.errors.append(f"caps.{name} must be a positive number (got {value!r})")

    def _validate_idle(self) -> None:
        minutes = self.config.get("idle", {}).get("max_idle_minutes")
        if minutes is not None and (not isinstance(minutes, (int, float)) or minutes <= 0):
            self.errors.append("idle.max_idle_minutes must be positive")

    def _validate_boosts(self) -> None:
        """Boosts must be known ids and either timed or instant."""
        boosts = self.config.get("boosts", {})
        known = {b.value for b in BoostId}

        for boost_id, data in boosts.items():
            if boost_id not in known:
                self.errors.append(f"boosts.{boost_id}: unknown boost id")
                continue
            if data.get("cost", -1) < 0:
                self.errors.append(f"boosts.{boost_id}.cost must be >= 0")
            if data.get("instant", False):
                continue
            duration = data.get("duration_ms")
            if not isinstance(duration, int) or duration <= 0:
                self.errors.append(
                    f"boosts.{boost_id}: timed boosts need a positive duration_ms"
                )
            if data.get("coin_multiplier") is None and data.get("energy_cap_bonus") is None:
                self.errors.append(
                    f"boosts.{boost_id}: needs coin_multiplier or energy_cap_bonus"
                )

    def _validate_zones(self) -> None:
        """Zones must be numbered 1..N with non-decreasing requirements."""
        zones = self.config.get("zones", {})
        if not zones:
            return

        try:
            ids = sorted(int(k) for k in zones)
        except (TypeError, ValueError):
            self.errors.append("zones: ids must be integers")
            return

        if ids != list(range(1, len(ids) + 1)):
            self.errors.append(f"zones: ids must be contiguous from 1 (got {ids})")
            return

        by_id = {int(k): v for k, v in zones.items()}
        first = by_id[1]
        if first.get("unlock_cost_coins", 0) != 0 or first.get("required_power", 0) != 0:
            self.errors.append("zones.1 must be free and require no power")

        prev_power = -1
        prev_cost = -1
        for zone_id in ids:
            zone = by_id[zone_id]
            power = zone.get("required_power", 0)
            cost = zone.get("unlock_cost_coins", 0)
            if power < prev_power:
                self.errors.append(
                    f"zones.{zone_id}.required_power ({power}) must be >= previous zone"
                )
            if cost < prev_cost:
                self.errors.append(
                    f"zones.{zone_id}.unlock_cost_coins ({cost}) must be >= previous zone"
                )
            if zone.get("coins_per_minute_bonus", 0) < 0:
                self.errors.append(f"zones.{zone_id}.coins_per_minute_bonus must be >= 0")
            prev_power = power
            prev_cost = cost

    def _validate_gacha_rates(self) -> None:
        """Validate gacha rates sum to 1.0."""
        rates = self.config.get("gacha", {}).get("rates", {})
        if not rates:
            return

        known = {r.value for r in Rarity}
        for rarity, value in rates.items():
            if rarity not in known:
                self.errors.append(f"gacha.rates.{rarity}: unknown rarity")
            if value < 0:
                self.errors.append(f"gacha.rates.{rarity} must be >= 0")

        total = sum(rates.values())
        if abs(total - 1.0) > 0.01:
            self.errors.append(
                f"gacha.rates sum to {total:.4f}, expected 1.0"
            )

    def _validate_pity(self) -> None:
        pity = self.config.get("gacha", {}).get("pity", {})
        if not pity:
            return
        default = pity.get("default", 30)
        minimum = pity.get("min", 20)
        if minimum < 1:
            self.errors.append("gacha.pity.min must be >= 1")
        if minimum > default:
            self.errors.append(
                f"gacha.pity.min ({minimum}) must be <= default ({default})"
            )

    def _validate_talents(self) -> None:
        talents = self.config.get("talents", {})
        if not talents:
            return
        max_points = talents.get("max_per_branch", 10)
        milestones = talents.get("milestones", [])

        if sorted(set(milestones)) != list(milestones):
            self.errors.append("talents.milestones must be strictly increasing")
        if milestones and milestones[-1] > max_points:
            self.errors.append(
                f"talents.milestones ({milestones[-1]}) > talents.max_per_branch ({max_points})"
            )

    def _validate_daily_loop(self) -> None:
        loop = self.config.get("daily_loop", {})
        for name in ("reward_coins", "reward_essence"):
            if loop.get(name, 0) < 0:
                self.errors.append(f"daily_loop.{name} must be >= 0")

    def _validate_prestige(self) -> None:
        prestige = self.config.get("prestige", {})
        zones = self.config.get("zones", {})
        if not prestige:
            return
        if prestige.get("essence_per_power", 1) <= 0:
            self.errors.append("prestige.essence_per_power must be positive")
        required_zone = prestige.get("required_zone", 1)
        if zones and required_zone > len(zones):
            self.errors.append(
                f"prestige.required_zone ({required_zone}) > number of zones ({len(zones)})"
            )

    def _validate_event_caps(self) -> None:
        caps = self.config.get("events", {}).get("caps", {})
        floor = caps.get("boost_price_multiplier")
        if floor is not None and not (0 < floor <= 1):
            self.errors.append("events.caps.boost_price_multiplier must be in (0, 1]")
        discount = caps.get("gacha_first_pack_discount")
        if discount is not None and not (0 <= discount < 1):
            self.errors.append("events.caps.gacha_first_pack_discount must be in [0, 1)")

    def _validate_characters(self) -> None:
        known = {r.value for r in Rarity}
        for character_id, rarity in self.config.get("characters", {}).items():
            if rarity not in known:
                self.errors.append(f"characters.{character_id}: unknown rarity {rarity!r}")

    def _validate_evolution(self) -> None:
        """One non-decreasing cost per stage step, for known rarities."""
        evolution = self.config.get("evolution")
        if not evolution:
            return

        max_stage = evolution.get("max_stage", 3)
        if not isinstance(max_stage, int) or max_stage < 1:
            self.errors.append(f"evolution.max_stage must be an integer >= 1 (got {max_stage!r})")
            return

        known = {r.value for r in Rarity}
        for rarity, costs in evolution.get("costs", {}).items():
            if rarity not in known:
                self.errors.append(f"evolution.costs.{rarity}: unknown rarity")
                continue
            if len(costs) != max_stage - 1:
                self.errors.append(
                    f"evolution.costs.{rarity}: expected {max_stage - 1} costs (got {len(costs)})"
                )
            if any(cost < 0 for cost in costs):
                self.errors.append(f"evolution.costs.{rarity}: costs must be >= 0")
            if list(costs) != sorted(costs):
                self.errors.append(f"evolution.costs.{rarity}: costs must not decrease")

    def _validate_zone_quests(self) -> None:
        quests = self.config.get("zone_quests")
        if not quests:
            return

        zone_ids = {str(key) for key in self.config.get("zones", {})}
        types = {t.value for t in QuestType}
        seen = set()

        for zone_key, zone_quests in quests.items():
            if str(zone_key) not in zone_ids:
                self.errors.append(f"zone_quests.{zone_key}: unknown zone")

            for quest in zone_quests:
                quest_id = quest.get("id")
                if not quest_id:
                    self.errors.append(f"zone_quests.{zone_key}: quest without id")
                    continue
                if quest_id in seen:
                    self.errors.append(f"zone_quests.{zone_key}.{quest_id}: duplicate id")
                seen.add(quest_id)
                if quest.get("type") not in types:
                    self.errors.append(f"zone_quests.{zone_key}.{quest_id}: unknown type {quest.get('type')!r}")
                if quest.get("target", 0) <= 0:
                    self.errors.append(f"zone_quests.{zone_key}.{quest_id}: target must be > 0")
                if quest.get("reward_coins", 0) < 0:
                    self.errors.append(f"zone_quests.{zone_key}.{quest_id}: reward_coins must be >= 0")

    def _validate_simulation(self) -> None:
        """Validate the optional balance-simulation settings."""
        sim = self.config.get("simulation")
        if not sim:
            return

        if sim.get("days", 1) < 1:
            self.errors.append("simulation.days must be >= 1")

        tasks = sim.get("tasks_per_day", [0, 0])
        if len(tasks) != 2 or tasks[0] < 0 or tasks[0] > tasks[1]:
            self.errors.append(
                f"simulation.tasks_per_day must be [min, max] with 0 <= min <= max (got {tasks})"
            )

        difficulties = self.config.get("tasks", {}).get("coins_by_difficulty", {})
        weights = sim.get("difficulty_weights", {})
        for difficulty, weight in weights.items():
            if difficulty not in difficulties:
                self.errors.append(f"simulation.difficulty_weights.{difficulty}: unknown difficulty")
            if weight < 0:
                self.errors.append(f"simulation.difficulty_weights.{difficulty} must be >= 0")
        if weights and sum(weights.values()) <= 0:
            self.errors.append("simulation.difficulty_weights must not all be zero")

        starter = sim.get("starter_character")
        characters = self.config.get("characters", {})
        if starter is not None and characters and starter not in characters:
            self.errors.append(f"simulation.starter_character {starter!r} is not a known character")


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    validator = ConfigValidator(config)
    return validator.validate()


def validate_config_or_raise(config: dict) -> None:
    """Validate configuration and raise exception if errors found."""
    validator = ConfigValidator(config)
    validator.validate_or_raise()
