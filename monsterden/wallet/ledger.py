"""Wallet ledger: the single source of coin balances.

``balance`` never goes negative: a debit that would overdraw is rejected with
:class:`~monsterden.common.errors.InsufficientFunds` and leaves the record as
it was. ``total_earned`` only grows. Every successful credit or debit
publishes :class:`~monsterden.events.WalletChanged` once the store has
committed, which keeps "earn N coins" quests in sync.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from monsterden.catalog import COIN_PACKAGES
from monsterden.common.errors import NotFound, require_positive, require_user
from monsterden.events import EventBus, WalletChanged
from monsterden.wallet.store import WalletSnapshot, WalletStore

logger = logging.getLogger(__name__)


class WalletLedger:
    def __init__(self, store: WalletStore, bus: Optional[EventBus] = None) -> None:
        self.store = store
        self.bus = bus

    def read(self, user_id: str | None) -> WalletSnapshot:
        """Return the wallet for ``user_id``, creating it on first access."""
        return self.store.get_or_create(require_user(user_id))

    def credit(self, user_id: str | None, amount: int) -> int:
        """Add ``amount`` earned coins and return the new balance."""
        user_id = require_user(user_id)
        amount = require_positive(amount)
        snapshot = self.store.apply_credit(user_id, amount)
        logger.info("Credited %d coins to %s (balance %d)", amount, user_id, snapshot.balance)
        self._changed(snapshot)
        return snapshot.balance

    def debit(self, user_id: str | None, amount: int) -> int:
        """Remove ``amount`` coins and return the new balance."""
        user_id = require_user(user_id)
        amount = require_positive(amount)
        snapshot = self.store.apply_debit(user_id, amount)
        logger.info("Debited %d coins from %s (balance %d)", amount, user_id, snapshot.balance)
        self._changed(snapshot)
        return snapshot.balance

    def grant_package(self, user_id: str | None, product_id: str) -> int:
        """Credit the coins of a purchased package. Returns the new balance."""
        package = COIN_PACKAGES.get(product_id)
        if package is None:
            raise NotFound(f"Unknown coin package '{product_id}'")
        return self.credit(user_id, package.coins)

    def _changed(self, snapshot: WalletSnapshot) -> None:
        if self.bus is not None:
            self.bus.publish(WalletChanged(snapshot.owner_id, snapshot.total_earned))


def list_packages() -> List[Dict[str, object]]:
    return [pkg.to_dict() for pkg in COIN_PACKAGES.values()]


__all__ = ["WalletLedger", "list_packages"]
