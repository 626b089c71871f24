"""Tests for the balance simulator."""

import json
from pathlib import Path

import pytest

from idle_economy.config import EconomyConfig, default_config, load_config
from idle_economy.daily_loop import claim_daily_loop
from idle_economy.dates import DateKey
from idle_economy.events import claim_event_bonus
from idle_economy.models import Rarity
from idle_economy.simulation import Simulator, run_simulation


CONFIGS = Path(__file__).parent.parent / "configs"


@pytest.fixture(scope="module")
def report():
    return run_simulation(seed=42, days=21, start_date="2026-03-02")


def unlock_segments(report):
    """Unlocked zone ids, split at each prestige (which resets zones to 1)."""
    prestige_days = [day for day, _ in report.prestiges]
    segments = [[] for _ in range(len(prestige_days) + 1)]
    for day, zone in report.zone_unlocks:
        segments[sum(1 for p in prestige_days if p < day)].append(zone)
    return segments


class TestSimulationDeterminism:
    """Tests for reproducible runs."""

    def test_same_seed_same_report(self, report):
        """Test that the same seed produces an identical report."""
        again = run_simulation(seed=42, days=21, start_date="2026-03-02")
        assert again.to_dict() == report.to_dict()

    def test_report_is_json_serialisable(self, report):
        """Test that the full report can be written as JSON."""
        data = json.loads(json.dumps(report.to_dict()))
        assert data["seed"] == 42
        assert len(data["days"]) == 21

    def test_seed_changes_outcome(self, report):
        """Test that different seeds give different runs."""
        other = run_simulation(seed=7, days=21, start_date="2026-03-02")
        assert other.to_dict()["days"] != report.to_dict()["days"]

    def test_defaults_from_config(self):
        """Test that unset arguments come from the simulation section."""
        simulator = Simulator()
        assert simulator.seed == 42
        assert simulator.days == 28
        assert str(simulator.start_date) == "2026-03-02"


class TestSimulationInvariants:
    """Tests for economy invariants across a whole run."""

    def test_day_count_and_dates(self, report):
        """Test that one snapshot is recorded per calendar day."""
        assert [d.day for d in report.days] == list(range(1, 22))
        assert report.days[0].date == "2026-03-02"
        assert report.days[-1].date == "2026-03-22"

    def test_event_calendar(self, report):
        """Test that snapshots carry the scheduled events."""
        assert report.days[0].daily_event == "monday_surge"
        assert report.days[0].weekly_event == "colossus_week"
        assert report.days[3].weekly_event == "fortune_week"

    def test_balances_never_negative(self, report):
        """Test coin, energy and essence floors."""
        for snapshot in report.days:
            assert snapshot.coins >= 0
            assert snapshot.energy >= 0
            assert snapshot.essence >= 0

    def test_caps_respected(self, report):
        """Test that the final player is within the hard caps."""
        config = default_config()
        player = report.final_player
        assert player.coins <= config.cap("coins")
        assert player.energy <= config.cap("energy")
        assert player.zone_unlocked_max <= config.max_zone
        assert 1 <= player.current_zone <= player.zone_unlocked_max
        assert max(player.talents.to_dict().values()) <= config.talent_max_per_branch

    def test_pull_totals(self, report):
        """Test that daily pulls add up to the rarity histogram."""
        assert report.total_pulls == sum(d.pulls for d in report.days)
        assert set(report.rarity_counts) <= set(Rarity)

    def test_tasks_within_range(self, report):
        """Test the configured tasks-per-day range."""
        for snapshot in report.days:
            assert 2 <= snapshot.tasks_done <= 5

    def test_zone_unlocks_in_order(self, report):
        """Test that zones unlock one at a time, restarting after each prestige."""
        for segment in unlock_segments(report):
            assert segment == list(range(2, 2 + len(segment)))

    def test_zone_unlocks_in_order_across_prestiges(self):
        """Test the unlock order over a run long enough to prestige."""
        report = run_simulation(seed=2026, days=120)
        segments = unlock_segments(report)
        assert len(segments) == len(report.prestiges) + 1
        for segment in segments:
            assert segment == list(range(2, 2 + len(segment)))

    def test_daily_loop_paid_once_per_day(self, report):
        """Test that the daily loop is claimed at most once a day."""
        claimed_days = [d for d in report.days if d.daily_loop_claimed]
        assert len(claimed_days) == report.daily_loops_claimed
        assert claimed_days

        last = DateKey.parse(claimed_days[-1].date)
        player = report.final_player
        assert player.daily_loop_claimed_date == last
        again, claimed = claim_daily_loop(player, 99, last)
        assert claimed is False
        assert again is player

    def test_event_bonus_once_per_day(self, report):
        """Test the event claim lock."""
        assert report.event_claims == sum(d.event_bonus_claimed for d in report.days)
        assert report.event_claims == len(report.days)

        last = DateKey.parse(report.days[-1].date)
        player = report.final_player
        again, reward = claim_event_bonus(player, last, last.noon_ms)
        assert reward is None
        assert again is player

    def test_streak_grows_every_day(self, report):
        """Test that daily activity extends the streak by one each day."""
        assert [d.streak for d in report.days] == list(range(1, 22))
        assert report.final_player.last_active_date == DateKey.parse("2026-03-22")

    def test_clone_tasks(self, report):
        """Test that the first task of a day is never a clone."""
        assert report.clone_tasks == sum(d.clone_tasks for d in report.days)
        for snapshot in report.days:
            assert 0 <= snapshot.clone_tasks < snapshot.tasks_done

    def test_quests_claimed_once(self, report):
        """Test that each quest pays at most once between prestiges."""
        assert (1, "z1_q3") in report.quests_claimed
        prestige_days = [day for day, _ in report.prestiges]
        seen = set()
        for day, quest_id in report.quests_claimed:
            segment = sum(1 for p in prestige_days if p < day)
            assert (segment, quest_id) not in seen
            seen.add((segment, quest_id))

    def test_evolutions_step_by_step(self, report):
        """Test that every evolution raises a stage by exactly one."""
        stages = {}
        for _, character_id, stage in report.evolutions:
            assert stage == stages.get(character_id, 1) + 1
            stages[character_id] = stage
        for character_id, stage in stages.items():
            assert report.final_player.character_stages[character_id] == stage

    def test_starter_character(self):
        """Test that the player starts with the configured character."""
        report = run_simulation(seed=1, days=1)
        assert "warrior" in report.final_player.unlocked_characters


class TestSimulationOptions:
    """Tests for callbacks and overrides."""

    def test_progress_callback(self):
        """Test that progress is reported once per day."""
        calls = []
        Simulator(seed=3, days=5, progress_callback=lambda d, t: calls.append((d, t))).run()
        assert calls == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]

    def test_generous_override(self):
        """Test a run with the generous balance override."""
        config = EconomyConfig(load_config([CONFIGS / "overrides" / "generous.yaml"]))
        report = run_simulation(config, seed=42, days=14)

        assert len(report.days) == 14
        for snapshot in report.days:
            assert 4 <= snapshot.tasks_done <= 8
            assert snapshot.pulls <= 3

    def test_long_run_reaches_progression(self):
        """Test that a long run unlocks zones and buys talents."""
        report = run_simulation(seed=2026, days=120)
        assert report.zone_unlocks
        assert report.total_pulls > 0
        assert report.daily_loops_claimed > 0
