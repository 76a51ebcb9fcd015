"""Monster leveling and care reward formulas."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from monsterden import config
from monsterden.common.errors import InvalidRange

BASE_XP = 100
MONSTER_BASE_COST = 100
BASE_COIN_REWARD = 10
MATCHED_STATE_COIN_REWARD = 20
XP_REWARD = 25

# care action -> the monster state it soothes
ACTION_STATES: Dict[str, str] = {
    "feed": "hungry",
    "play": "gamester",
    "comfort": "sad",
    "calm": "angry",
    "lullaby": "sleepy",
}
ACTIONS = tuple(ACTION_STATES)
MONSTER_STATES = ("happy", "sad", "gamester", "angry", "hungry", "sleepy")


def max_xp(level: int, base_xp: Optional[int] = None) -> int:
    """XP needed to leave ``level``: ``floor(base_xp * level ** 1.5)``."""
    if level < 1:
        raise InvalidRange(f"Level must be at least 1; got {level}")
    base = base_xp if base_xp is not None else config.base_xp
    return math.floor(base * level**1.5)


def creation_cost(existing: int, base_cost: Optional[int] = None) -> int:
    """Coins needed for the next monster when ``existing`` are already owned.

    The first monster is free; after that the cost grows with
    ``log2(existing + 1)``.
    """
    if existing < 0:
        raise InvalidRange(f"Monster count must not be negative; got {existing}")
    if existing == 0:
        return 0
    base = base_cost if base_cost is not None else config.monster_base_cost
    return math.floor(base * math.log2(existing + 1))


def coin_reward(action: str, state: str) -> int:
    """Coins for ``action``; doubled when it matches the monster's ``state``."""
    if action not in ACTION_STATES:
        raise InvalidRange(f"Unknown care action '{action}'")
    if ACTION_STATES[action] == state:
        return config.matched_state_coin_reward
    return config.base_coin_reward


@dataclass(frozen=True)
class LevelResult:
    level: int
    xp: int
    max_xp: int
    leveled_up: bool


def apply_xp(level: int, xp: int, gained: int, base_xp: Optional[int] = None) -> LevelResult:
    """Add ``gained`` XP, crossing as many thresholds as it covers.

    XP beyond a threshold carries into the next level.
    """
    if xp < 0 or gained < 0:
        raise InvalidRange("XP values must not be negative")
    threshold = max_xp(level, base_xp)
    xp += gained
    start = level
    while xp >= threshold:
        xp -= threshold
        level += 1
        threshold = max_xp(level, base_xp)
    return LevelResult(level=level, xp=xp, max_xp=threshold, leveled_up=level > start)


__all__ = [
    "BASE_XP",
    "MONSTER_BASE_COST",
    "BASE_COIN_REWARD",
    "MATCHED_STATE_COIN_REWARD",
    "XP_REWARD",
    "ACTION_STATES",
    "ACTIONS",
    "MONSTER_STATES",
    "max_xp",
    "creation_cost",
    "coin_reward",
    "LevelResult",
    "apply_xp",
]
