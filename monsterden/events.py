"""Post-commit events linking the wallet, monsters and quests.

Stores never call the quest coordinator directly. After a write commits the
owning service publishes one of the events below and the bus hands it to
every subscribed handler. Delivery is best effort and at least once: a
handler is retried on transient storage errors, and anything it still raises
is logged and dropped. A failing handler never fails the write that published
the event, so handlers must be idempotent.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional, Type

from monsterden.common.retry import retry_idempotent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletChanged:
    user_id: str
    total_earned: int


@dataclass(frozen=True)
class BackgroundUnlocked:
    user_id: str
    monster_id: str
    background_id: str


@dataclass(frozen=True)
class MonsterOwnershipChanged:
    user_id: str
    count: int


@dataclass(frozen=True)
class MonsterLeveled:
    user_id: str
    monster_id: str
    new_level: int


Handler = Callable[[Any], None]


class EventBus:
    """In-process publish/subscribe keyed by event class.

    With no ``executor`` handlers run inline once :meth:`publish` is called,
    which the services only do after their write has returned. With an
    executor each delivery is submitted as a background task; the returned
    futures are tracked so tests and shutdown can wait for them.
    """

    def __init__(
        self,
        executor: Optional[Executor] = None,
        *,
        retry_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ) -> None:
        self._handlers: DefaultDict[Type[Any], List[Handler]] = defaultdict(list)
        self._executor = executor
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[Any], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: Type[Any]) -> List[Handler]:
        return list(self._handlers.get(event_type, ()))

    def publish(self, event: Any) -> None:
        for handler in self.handlers_for(type(event)):
            if self._executor is None:
                self._deliver(handler, event)
                continue
            future = self._executor.submit(self._deliver, handler, event)
            with self._lock:
                self._pending = [f for f in self._pending if not f.done()]
                self._pending.append(future)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background deliveries submitted so far."""
        with self._lock:
            pending, self._pending = self._pending, []
        for future in pending:
            future.result(timeout=timeout)

    def _deliver(self, handler: Handler, event: Any) -> None:
        name = getattr(handler, "__qualname__", repr(handler))
        try:
            retry_idempotent(
                lambda: handler(event),
                attempts=self._retry_attempts,
                backoff=self._retry_backoff,
                label=f"{name} for {type(event).__name__}",
            )
        except Exception:
            logger.exception("Event handler %s failed for %r", name, event)


__all__ = [
    "WalletChanged",
    "BackgroundUnlocked",
    "MonsterOwnershipChanged",
    "MonsterLeveled",
    "EventBus",
]
