"""Progression coordinator: applies quest update policies and pays rewards.

Incremental objectives move by ``min(progress + delta, target)`` and stop once
a record is completed. Absolute objectives take ``max(progress, observed)``
clamped to the target, so duplicate or out-of-order observations never make a
record regress. Both updates are compare-and-set writes retried with backoff.

Claims are not retried. The record is claimed first and the wallet credited
second; when the credit fails the claim is reverted before the error
propagates, so a quest is never left claimed without its reward.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from monsterden.catalog import (
    ABSOLUTE_OBJECTIVES,
    QuestDefinition,
    definitions_by_objective,
    get_quest_definition,
    list_quest_definitions,
)
from monsterden.common.errors import (
    InvalidAmount,
    InvalidRange,
    NotFound,
    require_positive,
    require_user,
)
from monsterden.common.retry import retry_idempotent
from monsterden.events import (
    BackgroundUnlocked,
    EventBus,
    MonsterLeveled,
    MonsterOwnershipChanged,
    WalletChanged,
)
from monsterden.quests.store import QuestProgress, QuestProgressStore
from monsterden.wallet.ledger import WalletLedger

logger = logging.getLogger(__name__)


def _definitions(objective: str) -> tuple:
    try:
        return definitions_by_objective(objective)
    except KeyError as exc:
        raise InvalidRange(f"Unknown quest objective '{objective}'") from exc


class ProgressionCoordinator:
    def __init__(
        self,
        store: QuestProgressStore,
        ledger: WalletLedger,
        *,
        retry_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _retry(self, func, label: str):
        return retry_idempotent(
            func,
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            label=label,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_quests_with_progress(self, user_id: str | None) -> Dict[str, List[Dict[str, object]]]:
        """Return ``{"daily": [...], "achievement": [...]}`` for ``user_id``.

        Missing progress records are created on the way.
        """
        user_id = require_user(user_id)
        existing = {record.quest_id: record for record in self.store.list_for_user(user_id)}
        payload: Dict[str, List[Dict[str, object]]] = {"daily": [], "achievement": []}
        for quest in list_quest_definitions():
            record = existing.get(quest.id)
            if record is None:
                record = self.store.get_or_create(user_id, quest.id, quest.objective)
            payload[quest.type].append(
                {"definition": quest.to_dict(), "progress": record.to_dict()}
            )
        return payload

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def _increment_one(self, user_id: str, quest: QuestDefinition, amount: int) -> QuestProgress:
        record = self.store.get_or_create(user_id, quest.id, quest.objective)
        if record.completed:
            return record
        value = min(record.progress + amount, quest.target)
        return self.store.set_progress(
            user_id, quest.id, quest.objective, value, quest.target, expected=record.progress
        )

    def _observe_one(self, user_id: str, quest: QuestDefinition, observed: int) -> QuestProgress:
        record = self.store.get_or_create(user_id, quest.id, quest.objective)
        value = min(max(record.progress, observed), quest.target)
        if value == record.progress and (record.completed or value < quest.target):
            return record
        return self.store.set_progress(
            user_id, quest.id, quest.objective, value, quest.target, expected=record.progress
        )

    def increment_quest_progress(
        self, user_id: str | None, objective: str, amount: int = 1
    ) -> List[QuestProgress]:
        """Add ``amount`` to every quest tracking ``objective``."""
        user_id = require_user(user_id)
        amount = require_positive(amount)
        updated = []
        for quest in _definitions(objective):
            updated.append(
                self._retry(
                    lambda quest=quest: self._increment_one(user_id, quest, amount),
                    label=f"increment {quest.id} for {user_id}",
                )
            )
        return updated

    def observe(self, user_id: str | None, objective: str, value: int) -> List[QuestProgress]:
        """Raise every quest tracking ``objective`` to at least ``value``."""
        user_id = require_user(user_id)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidAmount(f"Observed value must be a non-negative integer; got {value!r}")
        updated = []
        for quest in _definitions(objective):
            updated.append(
                self._retry(
                    lambda quest=quest: self._observe_one(user_id, quest, value),
                    label=f"observe {quest.id} for {user_id}",
                )
            )
        return updated

    def record(self, user_id: str | None, objective: str, value: int) -> List[QuestProgress]:
        """Apply ``value`` with the policy that fits ``objective``."""
        if objective in ABSOLUTE_OBJECTIVES:
            return self.observe(user_id, objective, value)
        return self.increment_quest_progress(user_id, objective, value)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim_reward(self, user_id: str | None, quest_id: str) -> int:
        """Claim a completed quest and credit its reward. Returns the reward."""
        user_id = require_user(user_id)
        quest = get_quest_definition(quest_id)
        if quest is None:
            raise NotFound(f"Unknown quest '{quest_id}'")

        claimed = self.store.mark_claimed(user_id, quest_id)
        try:
            self.ledger.credit(user_id, quest.reward)
        except Exception:
            logger.exception("Reward credit failed for %s/%s; reverting claim", user_id, quest_id)
            if claimed.claimed_at is not None and not self.store.unmark_claimed(
                user_id, quest_id, claimed.claimed_at
            ):
                logger.error("Could not revert claim of %s for %s", quest_id, user_id)
            raise
        logger.info("User %s claimed %s for %d coins", user_id, quest_id, quest.reward)
        return quest.reward

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_wallet_changed(self, event: WalletChanged) -> None:
        self.observe(event.user_id, "reach_coins", event.total_earned)

    def on_background_unlocked(self, event: BackgroundUnlocked) -> None:
        self.increment_quest_progress(event.user_id, "unlock_backgrounds", 1)

    def on_monster_ownership_changed(self, event: MonsterOwnershipChanged) -> None:
        self.observe(event.user_id, "own_monsters", event.count)

    def on_monster_leveled(self, event: MonsterLeveled) -> None:
        self.observe(event.user_id, "level_up_monster", event.new_level)

    def register(self, bus: EventBus) -> None:
        bus.subscribe(WalletChanged, self.on_wallet_changed)
        bus.subscribe(BackgroundUnlocked, self.on_background_unlocked)
        bus.subscribe(MonsterOwnershipChanged, self.on_monster_ownership_changed)
        bus.subscribe(MonsterLeveled, self.on_monster_leveled)


__all__ = ["ProgressionCoordinator"]
