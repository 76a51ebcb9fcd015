from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, Dict, Type, TypeVar

from fastapi import HTTPException, status


class ProgressionError(Exception):
    """Base class for expected engine outcomes surfaced to the caller."""

    detail = "Request could not be completed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class Unauthenticated(ProgressionError):
    detail = "Authentication required"


class NotFound(ProgressionError):
    detail = "Not found"


class InsufficientFunds(ProgressionError):
    detail = "Insufficient funds"

    def __init__(self, balance: int, amount: int) -> None:
        super().__init__(f"Insufficient funds: balance {balance} is below {amount}")
        self.balance = balance
        self.amount = amount


class NotCompleted(ProgressionError):
    detail = "Quest is not completed yet"


class AlreadyClaimed(ProgressionError):
    detail = "Quest reward already claimed"


class AlreadyOwned(ProgressionError):
    detail = "Item already owned"


class InvalidRange(ProgressionError, ValueError):
    detail = "Invalid range"


class InvalidAmount(ProgressionError, ValueError):
    detail = "Amount must be a positive integer"


class StorageConflict(ProgressionError):
    detail = "Storage conflict, please retry"


class ConcurrentUpdate(Exception):
    """Raised by a store when a compare-and-set observed a different value."""


class TransientStorageError(Exception):
    """Raised by a store for failures that may succeed when retried."""


def require_user(user_id: str | None) -> str:
    """Return ``user_id`` or raise :class:`Unauthenticated` when missing."""
    if not user_id:
        raise Unauthenticated()
    return user_id


def require_positive(amount: Any) -> int:
    """Return ``amount`` when it is a strictly positive int."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer; got {amount!r}")
    return amount


STATUS_CODES: Dict[Type[ProgressionError], int] = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    InsufficientFunds: status.HTTP_402_PAYMENT_REQUIRED,
    NotFound: status.HTTP_404_NOT_FOUND,
    NotCompleted: status.HTTP_409_CONFLICT,
    AlreadyClaimed: status.HTTP_409_CONFLICT,
    AlreadyOwned: status.HTTP_409_CONFLICT,
    StorageConflict: status.HTTP_409_CONFLICT,
    InvalidRange: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidAmount: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def to_http_exception(exc: ProgressionError) -> HTTPException:
    """Map an engine error to the HTTP response shown to the user."""
    for cls in type(exc).__mro__:
        code = STATUS_CODES.get(cls)  # type: ignore[arg-type]
        if code is not None:
            return HTTPException(status_code=code, detail=exc.detail)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)


F = TypeVar("F", bound=Callable[..., Any])


def handle_progression_errors(func: F) -> F:
    """Decorator mapping :class:`ProgressionError` to ``HTTPException``."""

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except ProgressionError as exc:
                raise to_http_exception(exc) from exc

        async_wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return async_wrapper  # type: ignore[return-value]

    @wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ProgressionError as exc:
            raise to_http_exception(exc) from exc

    sync_wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
    return sync_wrapper  # type: ignore[return-value]


__all__ = [
    "ProgressionError",
    "Unauthenticated",
    "NotFound",
    "InsufficientFunds",
    "NotCompleted",
    "AlreadyClaimed",
    "AlreadyOwned",
    "InvalidRange",
    "InvalidAmount",
    "StorageConflict",
    "ConcurrentUpdate",
    "TransientStorageError",
    "require_user",
    "require_positive",
    "to_http_exception",
    "handle_progression_errors",
]
