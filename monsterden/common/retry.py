"""Bounded retries for idempotent storage work."""

from __future__ import annotations

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from monsterden.common.errors import (
    ConcurrentUpdate,
    StorageConflict,
    TransientStorageError,
)
from monsterden import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE: Tuple[Type[BaseException], ...] = (ConcurrentUpdate, TransientStorageError)
MAX_BACKOFF_SECONDS = 2.0


def retry_idempotent(
    func: Callable[[], T],
    *,
    attempts: int | None = None,
    backoff: float | None = None,
    label: str = "storage operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or ``attempts`` retryable failures occur.

    Only use this for work that is safe to repeat: absolute updates,
    compare-and-set increments and trigger handlers. The delay doubles after
    each failure and is capped at :data:`MAX_BACKOFF_SECONDS`. Exhaustion
    raises :class:`StorageConflict`.
    """

    attempts = attempts if attempts is not None else config.retry_attempts
    attempts = max(int(attempts), 1)
    delay = backoff if backoff is not None else config.retry_backoff_seconds

    last_exc: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE as exc:
            last_exc = exc
            if attempt == attempts:
                break
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                label,
                attempt,
                attempts,
                exc,
                delay,
            )
            if delay > 0:
                sleep(delay)
            delay = min(delay * 2, MAX_BACKOFF_SECONDS) if delay else 0.0

    raise StorageConflict(f"{label} gave up after {attempts} attempts") from last_exc


__all__ = ["retry_idempotent", "RETRYABLE", "MAX_BACKOFF_SECONDS"]
