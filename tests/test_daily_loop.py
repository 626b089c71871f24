"""Tests for the daily loop objective."""

from dataclasses import replace

from idle_economy.daily_loop import (
    apply_daily_loop_reward,
    claim_daily_loop,
    get_daily_loop_status,
    is_daily_loop_claimed,
)
from idle_economy.dates import DateKey
from idle_economy.models import Player


TODAY = DateKey.parse("2026-03-02")
YESTERDAY = TODAY.shift(-1)


def finished_player(**fields) -> Player:
    return Player(last_idle_claim_date=TODAY, last_gacha_pull_date=TODAY, **fields)


class TestStatus:
    """Tests for get_daily_loop_status."""

    def test_nothing_done(self):
        """Test a fresh player."""
        status = get_daily_loop_status(Player(), 0, TODAY)
        assert not status.goal_met
        assert not status.idle_claimed
        assert not status.gacha_pulled
        assert not status.all_done

    def test_all_done(self):
        """Test that all three objectives complete the loop."""
        status = get_daily_loop_status(finished_player(), 3, TODAY)
        assert status.goal_met and status.idle_claimed and status.gacha_pulled
        assert status.all_done

    def test_goal_uses_player_daily_goal(self):
        """Test a custom daily goal."""
        player = finished_player(daily_goal=5)
        assert not get_daily_loop_status(player, 4, TODAY).goal_met
        assert get_daily_loop_status(player, 5, TODAY).goal_met

    def test_yesterday_does_not_count(self):
        """Test that yesterday's claims reset automatically."""
        player = Player(last_idle_claim_date=YESTERDAY, last_gacha_pull_date=YESTERDAY)
        status = get_daily_loop_status(player, 3, TODAY)
        assert status.goal_met
        assert not status.idle_claimed
        assert not status.gacha_pulled
        assert not status.all_done

    def test_string_day(self):
        """Test that plain date strings are accepted."""
        assert get_daily_loop_status(finished_player(), 3, "2026-03-02").all_done

    def test_missing_done_count(self):
        """Test that an unknown task count counts as zero."""
        assert not get_daily_loop_status(finished_player(), None, TODAY).goal_met


class TestReward:
    """Tests for the one-time daily reward."""

    def test_apply_reward(self):
        """Test coins, essence and the claim stamp."""
        player = finished_player(coins=10, essence=1)
        updated = apply_daily_loop_reward(player, TODAY)

        assert updated.coins == 60
        assert updated.essence == 11
        assert updated.daily_loop_claimed_date == TODAY
        assert is_daily_loop_claimed(updated, TODAY)
        assert not is_daily_loop_claimed(updated, TODAY.shift(1))

    def test_apply_reward_does_not_recheck(self):
        """Test that the raw apply pays again; callers must check first."""
        player = apply_daily_loop_reward(Player(), TODAY)
        again = apply_daily_loop_reward(player, TODAY)
        assert again.coins == 100

    def test_guarded_claim(self):
        """Test that the guarded claim pays once."""
        player, claimed = claim_daily_loop(finished_player(), 3, TODAY)
        assert claimed
        assert player.coins == 50

        same, claimed_again = claim_daily_loop(player, 3, TODAY)
        assert not claimed_again
        assert same is player

    def test_guarded_claim_requires_all_done(self):
        """Test that an incomplete loop is not paid."""
        player = Player()
        updated, claimed = claim_daily_loop(player, 3, TODAY)
        assert not claimed
        assert updated is player

    def test_next_day_claimable_again(self):
        """Test the automatic reset on the next calendar day."""
        player, _ = claim_daily_loop(finished_player(), 3, TODAY)
        tomorrow = TODAY.shift(1)
        player = replace(player, last_idle_claim_date=tomorrow, last_gacha_pull_date=tomorrow)
        _, claimed = claim_daily_loop(player, 3, tomorrow)
        assert claimed
