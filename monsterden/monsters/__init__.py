"""Monsters: leveling formulas, care actions and background unlocks."""

from monsterden.monsters.actions import ActionResult, MonsterService
from monsterden.monsters.store import MemoryMonsterStore, Monster, OwnedBackground

__all__ = ["ActionResult", "MonsterService", "MemoryMonsterStore", "Monster", "OwnedBackground"]
