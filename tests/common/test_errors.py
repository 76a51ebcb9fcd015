import asyncio
import inspect

import pytest
from fastapi import HTTPException

from monsterden.common.errors import (
    AlreadyClaimed,
    AlreadyOwned,
    InsufficientFunds,
    InvalidAmount,
    InvalidRange,
    NotCompleted,
    NotFound,
    ProgressionError,
    StorageConflict,
    Unauthenticated,
    handle_progression_errors,
    require_positive,
    require_user,
    to_http_exception,
)


@pytest.mark.parametrize(
    "exc, status",
    [
        (Unauthenticated(), 401),
        (InsufficientFunds(5, 10), 402),
        (NotFound(), 404),
        (NotCompleted(), 409),
        (AlreadyClaimed(), 409),
        (AlreadyOwned(), 409),
        (StorageConflict(), 409),
        (InvalidRange(), 422),
        (InvalidAmount(), 422),
    ],
)
def test_error_maps_to_status(exc, status):
    http_exc = to_http_exception(exc)
    assert http_exc.status_code == status
    assert http_exc.detail == exc.detail


def test_unmapped_progression_error_is_bad_request():
    class Odd(ProgressionError):
        pass

    assert to_http_exception(Odd("odd")).status_code == 400


def test_insufficient_funds_carries_amounts():
    exc = InsufficientFunds(3, 10)
    assert exc.balance == 3
    assert exc.amount == 10
    assert "3" in exc.detail and "10" in exc.detail


def test_value_errors_are_value_errors():
    assert isinstance(InvalidAmount(), ValueError)
    assert isinstance(InvalidRange(), ValueError)


@pytest.mark.parametrize("amount", [0, -1, True, 1.5, "3", None])
def test_require_positive_rejects(amount):
    with pytest.raises(InvalidAmount):
        require_positive(amount)


def test_require_positive_and_user_accept_valid_values():
    assert require_positive(7) == 7
    assert require_user("alice") == "alice"
    with pytest.raises(Unauthenticated):
        require_user(None)
    with pytest.raises(Unauthenticated):
        require_user("")


def test_decorator_maps_sync_errors():
    @handle_progression_errors
    def view(amount: int):
        raise InsufficientFunds(0, amount)

    with pytest.raises(HTTPException) as exc_info:
        view(5)
    assert exc_info.value.status_code == 402
    assert isinstance(exc_info.value.__cause__, InsufficientFunds)


def test_decorator_maps_async_errors_and_keeps_signature():
    @handle_progression_errors
    async def view(quest_id: str):
        raise NotCompleted()

    assert list(inspect.signature(view).parameters) == ["quest_id"]
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(view("daily_feed_3"))
    assert exc_info.value.status_code == 409


async def test_decorator_passes_results_through():
    @handle_progression_errors
    async def view():
        return {"ok": True}

    assert await view() == {"ok": True}
