"""Zone quests: per-zone goals that pay a one-time coin reward.

Progress is read from the player (coins, characters, streak, level) except
for completed tasks, which the app counts and passes in. A quest can be
claimed once its zone is unlocked and its target is met; the claim is
recorded in the zone's progress so it never pays twice.
"""

from dataclasses import replace
from typing import Any, Optional

from .config import EconomyConfig, resolve_config
from .models import Player, QuestProgress, QuestType, ZoneProgress, ZoneQuest, safe_number
from .progression import xp_to_level


def get_zone_quests(zone_id: Any, config: Optional[EconomyConfig] = None) -> tuple:
    """Quests of a zone in display order; empty for unknown zones."""
    try:
        key = int(zone_id)
    except (TypeError, ValueError):
        return ()
    return resolve_config(config).zone_quest_catalog.get(key, ())


def get_quest(quest_id: str, config: Optional[EconomyConfig] = None) -> Optional[ZoneQuest]:
    for quests in resolve_config(config).zone_quest_catalog.values():
        for quest in quests:
            if quest.quest_id == quest_id:
                return quest
    return None


def _current_value(
    quest: ZoneQuest,
    player: Player,
    tasks_completed: int,
    config: EconomyConfig,
) -> int:
    if quest.quest_type is QuestType.TASKS_COUNT:
        return int(max(0, safe_number(tasks_completed, 0)))
    if quest.quest_type is QuestType.COINS_TOTAL:
        return player.coins
    if quest.quest_type is QuestType.CHARACTERS_UNLOCKED:
        return len(player.unlocked_characters)
    if quest.quest_type is QuestType.STREAK:
        return player.streak
    return xp_to_level(player.xp, config)


def compute_quest_progress(
    quest: ZoneQuest,
    player: Player,
    tasks_completed: int = 0,
    config: Optional[EconomyConfig] = None,
) -> QuestProgress:
    """Progress toward a quest target; current never exceeds the target."""
    cfg = resolve_config(config)
    current = _current_value(quest, player, tasks_completed, cfg)
    return QuestProgress(
        current=min(current, quest.target),
        target=quest.target,
        completed=current >= quest.target,
    )


def is_quest_claimed(player: Player, quest: ZoneQuest) -> bool:
    progress = player.zone_progress.get(quest.zone_id)
    return progress is not None and quest.quest_id in progress.claimed_rewards


def can_claim_quest(
    player: Player,
    quest_id: str,
    tasks_completed: int = 0,
    config: Optional[EconomyConfig] = None,
) -> bool:
    """Can the player claim quest_id right now?

    Rules, in order:
        - the quest exists
        - its zone is unlocked
        - it is not claimed yet
        - its target is met
    """
    cfg = resolve_config(config)
    quest = get_quest(quest_id, cfg)
    if quest is None:
        return False
    if quest.zone_id > player.zone_unlocked_max:
        return False
    if is_quest_claimed(player, quest):
        return False
    return compute_quest_progress(quest, player, tasks_completed, cfg).completed


def apply_quest_reward(
    player: Player,
    quest_id: str,
    config: Optional[EconomyConfig] = None,
) -> Player:
    """Add the quest's coins and mark it claimed in its zone.

    Does NOT validate; callers must use can_claim_quest first. Unknown quests
    return the player unchanged.
    """
    cfg = resolve_config(config)
    quest = get_quest(quest_id, cfg)
    if quest is None:
        return player

    zone_progress = dict(player.zone_progress)
    current = zone_progress.get(quest.zone_id, ZoneProgress())
    zone_progress[quest.zone_id] = ZoneProgress(current.claimed_rewards | {quest.quest_id})
    return replace(
        player,
        coins=int(min(player.coins + quest.reward_coins, cfg.cap("coins"))),
        zone_progress=zone_progress,
    )


def claim_zone_quest(
    player: Player,
    quest_id: str,
    tasks_completed: int = 0,
    config: Optional[EconomyConfig] = None,
) -> tuple[Player, bool]:
    """Guarded claim: (player, True) when paid, (player unchanged, False) otherwise."""
    if not can_claim_quest(player, quest_id, tasks_completed, config):
        return player, False
    return apply_quest_reward(player, quest_id, config), True
