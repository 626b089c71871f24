"""Daily loop: finish the task goal, claim idle coins and open a pack, once per day."""

from dataclasses import replace
from typing import Optional

from .config import EconomyConfig, resolve_config
from .dates import DateKeyLike, as_date_key, same_day
from .models import DailyLoopStatus, Player, clamp, safe_number


def get_daily_loop_status(
    player: Player,
    done_count: Optional[int],
    today: DateKeyLike,
) -> DailyLoopStatus:
    """Evaluate the three daily objectives for today."""
    goal = safe_number(player.daily_goal, 3)
    return DailyLoopStatus(
        goal_met=safe_number(done_count, 0) >= goal,
        idle_claimed=same_day(player.last_idle_claim_date, today),
        gacha_pulled=same_day(player.last_gacha_pull_date, today),
    )


def is_daily_loop_claimed(player: Player, today: DateKeyLike) -> bool:
    return same_day(player.daily_loop_claimed_date, today)


def apply_daily_loop_reward(
    player: Player,
    today: DateKeyLike,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Grant the daily loop reward and stamp today's claim.

    Not idempotent: the caller must check is_daily_loop_claimed() first
    (or use claim_daily_loop()).
    """
    cfg = resolve_config(config)
    return replace(
        player,
        coins=int(clamp(player.coins + cfg.daily_loop_reward_coins, 0, cfg.cap("coins"))),
        essence=int(clamp(player.essence + cfg.daily_loop_reward_essence, 0, cfg.cap("essence"))),
        daily_loop_claimed_date=as_date_key(today),
    )


def claim_daily_loop(
    player: Player,
    done_count: Optional[int],
    today: DateKeyLike,
    config: Optional[EconomyConfig] = None,
) -> tuple[Player, bool]:
    """Claim the reward if every objective is done and today is still unclaimed.

    Returns (player, claimed); the player is unchanged when nothing was claimed.
    """
    if is_daily_loop_claimed(player, today):
        return player, False
    if not get_daily_loop_status(player, done_count, today).all_done:
        return player, False
    return apply_daily_loop_reward(player, today, config), True
