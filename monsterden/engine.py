"""Wiring for the progression engine.

:class:`Engine` builds the stores named by the configuration, one event bus,
and the wallet, quest and monster services on top of them. Routes, the daily
reset job and tests all go through an ``Engine`` instance; the process-wide
one is created lazily by :func:`get_engine`.
"""

from __future__ import annotations

import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from monsterden import config
from monsterden.catalog import DAILY_QUEST_IDS
from monsterden.common.storage import optional_storage
from monsterden.events import EventBus
from monsterden.monsters.actions import ActionResult, MonsterService
from monsterden.monsters.store import MemoryMonsterStore
from monsterden.quests.coordinator import ProgressionCoordinator
from monsterden.quests.store import (
    DynamoQuestProgressStore,
    MemoryQuestProgressStore,
    QuestProgress,
    QuestProgressStore,
)
from monsterden.wallet.ledger import WalletLedger
from monsterden.wallet.store import (
    DynamoWalletStore,
    MemoryWalletStore,
    WalletSnapshot,
    WalletStore,
)

logger = logging.getLogger(__name__)


def build_wallet_store() -> WalletStore:
    if config.storage_backend == "dynamodb":
        return DynamoWalletStore(config.wallet_table, config.starting_balance)
    return MemoryWalletStore(config.starting_balance, optional_storage(config.wallet_uri))


def build_quest_store() -> QuestProgressStore:
    if config.storage_backend == "dynamodb":
        return DynamoQuestProgressStore(config.quests_table)
    return MemoryQuestProgressStore(optional_storage(config.quests_uri))


class Engine:
    def __init__(
        self,
        wallet_store: Optional[WalletStore] = None,
        quest_store: Optional[QuestProgressStore] = None,
        monster_store: Optional[MemoryMonsterStore] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._executor: Optional[ThreadPoolExecutor] = None
        if bus is None:
            if config.events_async:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="events")
            bus = EventBus(
                self._executor,
                retry_attempts=config.retry_attempts,
                retry_backoff=config.retry_backoff_seconds,
            )
        self.bus = bus
        self.wallet_store = wallet_store or build_wallet_store()
        self.quest_store = quest_store or build_quest_store()
        self.monster_store = monster_store or MemoryMonsterStore(
            optional_storage(config.monsters_uri)
        )

        self.ledger = WalletLedger(self.wallet_store, self.bus)
        self.coordinator = ProgressionCoordinator(
            self.quest_store,
            self.ledger,
            retry_attempts=config.retry_attempts,
            retry_backoff=config.retry_backoff_seconds,
        )
        self.coordinator.register(self.bus)
        self.monsters = MonsterService(self.monster_store, self.ledger, self.coordinator, self.bus)

    # wallet
    def get_wallet(self, user_id: str | None) -> WalletSnapshot:
        return self.ledger.read(user_id)

    def credit(self, user_id: str | None, amount: int) -> int:
        return self.ledger.credit(user_id, amount)

    def debit(self, user_id: str | None, amount: int) -> int:
        return self.ledger.debit(user_id, amount)

    def grant_package(self, user_id: str | None, product_id: str) -> int:
        """Credit a coin package once its checkout has been paid."""
        return self.ledger.grant_package(user_id, product_id)

    # quests
    def list_quests_with_progress(self, user_id: str | None) -> Dict[str, List[Dict[str, object]]]:
        return self.coordinator.list_quests_with_progress(user_id)

    def increment_quest_progress(
        self, user_id: str | None, objective: str, amount: int = 1
    ) -> List[QuestProgress]:
        return self.coordinator.increment_quest_progress(user_id, objective, amount)

    def claim_quest_reward(self, user_id: str | None, quest_id: str) -> int:
        return self.coordinator.claim_reward(user_id, quest_id)

    def reset_daily_quests(self, scope: str | None = None) -> int:
        """Zero every daily quest record, for one user or (``None``) for all."""
        scope = scope or None
        count = self.quest_store.reset_daily(DAILY_QUEST_IDS, user_id=scope)
        logger.info("Reset %d daily quest records (scope=%s)", count, scope or "all")
        return count

    # monsters
    def perform_monster_action(self, user_id: str | None, monster_id: str, action: str) -> ActionResult:
        return self.monsters.perform_monster_action(user_id, monster_id, action)

    def randomize_monster_states(self, rng: Optional[random.Random] = None) -> int:
        return self.monsters.randomize_states(rng)

    def drain(self, timeout: Optional[float] = None) -> None:
        self.bus.drain(timeout)

    def close(self) -> None:
        if self._executor is not None:
            self.bus.drain()
            self._executor.shutdown(wait=True)
            self._executor = None


_ENGINE: Optional[Engine] = None
_ENGINE_LOCK = threading.Lock()


def get_engine() -> Engine:
    global _ENGINE
    with _ENGINE_LOCK:
        if _ENGINE is None:
            _ENGINE = Engine()
        return _ENGINE


def set_engine(engine: Optional[Engine]) -> None:
    """Replace the process-wide engine; ``None`` forces a rebuild on next use."""
    global _ENGINE
    with _ENGINE_LOCK:
        previous, _ENGINE = _ENGINE, engine
    if previous is not None and previous is not engine:
        previous.close()


__all__ = ["Engine", "get_engine", "set_engine", "build_wallet_store", "build_quest_store"]
