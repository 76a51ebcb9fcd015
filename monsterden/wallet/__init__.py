"""Coin wallets: persistence backends and the ledger service."""

from monsterden.wallet.ledger import WalletLedger, list_packages
from monsterden.wallet.store import (
    DynamoWalletStore,
    MemoryWalletStore,
    WalletSnapshot,
    WalletStore,
)

__all__ = [
    "WalletLedger",
    "list_packages",
    "WalletSnapshot",
    "WalletStore",
    "MemoryWalletStore",
    "DynamoWalletStore",
]
