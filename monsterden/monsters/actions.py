"""Monster care actions, creation and background unlocks.

Each operation commits its own write first and only then touches the wallet,
the quests and the event bus. Quest updates that follow a committed care
action are best effort: a quest store conflict is logged and the action still
succeeds, because the XP and coins are already persisted.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from monsterden import config
from monsterden.catalog import get_background
from monsterden.common.errors import (
    InvalidRange,
    NotFound,
    StorageConflict,
    require_user,
)
from monsterden.events import (
    BackgroundUnlocked,
    EventBus,
    MonsterLeveled,
    MonsterOwnershipChanged,
)
from monsterden.monsters.leveling import (
    ACTION_STATES,
    MONSTER_STATES,
    apply_xp,
    coin_reward,
    creation_cost,
)
from monsterden.monsters.store import MemoryMonsterStore, Monster, OwnedBackground
from monsterden.quests.coordinator import ProgressionCoordinator
from monsterden.wallet.ledger import WalletLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    leveled_up: bool
    new_level: int
    new_xp: int
    max_xp: int
    coins_earned: int
    new_balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leveled_up": self.leveled_up,
            "new_level": self.new_level,
            "new_xp": self.new_xp,
            "max_xp": self.max_xp,
            "coins_earned": self.coins_earned,
            "new_balance": self.new_balance,
        }


def _first_care_today(monster: Monster, now) -> bool:
    return monster.last_cared_at is None or monster.last_cared_at.date() < now.date()


class MonsterService:
    def __init__(
        self,
        store: MemoryMonsterStore,
        ledger: WalletLedger,
        coordinator: ProgressionCoordinator,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.coordinator = coordinator
        self.bus = bus

    def _publish(self, event: Any) -> None:
        if self.bus is not None:
            self.bus.publish(event)

    def list_monsters(self, user_id: str | None) -> List[Monster]:
        return self.store.list_for_owner(require_user(user_id))

    def get_monster(self, user_id: str | None, monster_id: str) -> Monster:
        return self.store.get(require_user(user_id), monster_id)

    def create_monster(self, user_id: str | None, name: str) -> Tuple[Monster, int]:
        """Create a monster, charging for every one after the first.

        The monster is stored before the wallet is charged; if the debit fails
        it is removed again. Returns the monster and the coins debited.
        """
        user_id = require_user(user_id)
        name = (name or "").strip()
        if not name:
            raise InvalidRange("Monster name must not be empty")

        cost = creation_cost(self.store.count(user_id))
        monster, count = self.store.insert(user_id, name)
        if cost > 0:
            try:
                self.ledger.debit(user_id, cost)
            except Exception:
                self.store.remove(user_id, monster.id)
                raise
        logger.info("User %s created monster %s for %d coins", user_id, monster.id, cost)
        self._publish(MonsterOwnershipChanged(user_id, count))
        return monster, cost

    def perform_monster_action(self, user_id: str | None, monster_id: str, action: str) -> ActionResult:
        user_id = require_user(user_id)
        if action not in ACTION_STATES:
            raise InvalidRange(f"Unknown care action '{action}'")
        now = self.store.now()

        def care(monster: Monster) -> Monster:
            result = apply_xp(monster.level, monster.xp, config.xp_reward)
            return replace(
                monster,
                level=result.level,
                xp=result.xp,
                max_xp=result.max_xp,
                state="happy",
                last_cared_at=now,
            )

        before, after = self.store.update(user_id, monster_id, care)
        coins = coin_reward(action, before.state)
        balance = self.ledger.credit(user_id, coins)

        objectives = [f"{action}_monsters", "total_actions"]
        if _first_care_today(before, now):
            objectives.append("care_different_monsters")
        for objective in objectives:
            try:
                self.coordinator.increment_quest_progress(user_id, objective, 1)
            except StorageConflict:
                logger.exception("Could not record %s for %s", objective, user_id)

        leveled_up = after.level > before.level
        if leveled_up:
            logger.info("Monster %s reached level %d", monster_id, after.level)
            self._publish(MonsterLeveled(user_id, monster_id, after.level))

        return ActionResult(
            leveled_up=leveled_up,
            new_level=after.level,
            new_xp=after.xp,
            max_xp=after.max_xp,
            coins_earned=coins,
            new_balance=balance,
        )

    def randomize_states(self, rng: Optional[random.Random] = None) -> int:
        """Move every monster to a random mood other than ``happy``.

        Run on a schedule so that care actions have a mood to match.
        """
        rng = rng or random.Random()
        moods = [state for state in MONSTER_STATES if state != "happy"]
        count = self.store.set_states(lambda _monster: rng.choice(moods))
        logger.info("Changed the mood of %d monsters", count)
        return count

    def purchase_background(
        self, user_id: str | None, monster_id: str, background_id: str
    ) -> OwnedBackground:
        """Buy ``background_id`` for one of the user's monsters.

        The ownership record is written first so two racing purchases cannot
        both pay; if the debit then fails the record is removed again.
        """
        user_id = require_user(user_id)
        background = get_background(background_id)
        if background is None:
            raise NotFound(f"Unknown background '{background_id}'")
        self.store.get(user_id, monster_id)

        owned = self.store.add_background(user_id, monster_id, background_id)
        try:
            self.ledger.debit(user_id, background.price)
        except Exception:
            self.store.remove_background(user_id, monster_id, background_id)
            raise
        logger.info(
            "User %s unlocked %s for monster %s (%d coins)",
            user_id,
            background_id,
            monster_id,
            background.price,
        )
        self._publish(BackgroundUnlocked(user_id, monster_id, background_id))
        return owned

    def equip_background(
        self, user_id: str | None, monster_id: str, background_id: str | None
    ) -> Monster:
        """Show ``background_id`` behind the monster, or clear it with ``None``."""
        user_id = require_user(user_id)
        if background_id is not None:
            if get_background(background_id) is None:
                raise NotFound(f"Unknown background '{background_id}'")
            if not self.store.has_background(user_id, monster_id, background_id):
                self.store.get(user_id, monster_id)
                raise NotFound("This monster does not own that background")
        _, after = self.store.update(
            user_id, monster_id, lambda m: replace(m, background_id=background_id)
        )
        return after

    def list_backgrounds(self, user_id: str | None, monster_id: str) -> List[OwnedBackground]:
        user_id = require_user(user_id)
        self.store.get(user_id, monster_id)
        return self.store.list_backgrounds(user_id, monster_id)


__all__ = ["ActionResult", "MonsterService"]
