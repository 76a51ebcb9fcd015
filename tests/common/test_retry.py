import pytest

from monsterden.common.errors import ConcurrentUpdate, StorageConflict, TransientStorageError
from monsterden.common.retry import MAX_BACKOFF_SECONDS, retry_idempotent


def _flaky(failures):
    calls = []

    def func():
        calls.append(1)
        if failures:
            raise failures.pop(0)
        return "done"

    return func, calls


def test_retries_until_success_with_doubling_backoff():
    func, calls = _flaky([ConcurrentUpdate("cas"), TransientStorageError("throttled")])
    sleeps = []
    assert retry_idempotent(func, attempts=3, backoff=0.1, sleep=sleeps.append) == "done"
    assert len(calls) == 3
    assert sleeps == pytest.approx([0.1, 0.2])


def test_exhaustion_raises_storage_conflict():
    func, calls = _flaky([ConcurrentUpdate(str(i)) for i in range(5)])
    with pytest.raises(StorageConflict) as exc_info:
        retry_idempotent(func, attempts=3, backoff=0, label="feed", sleep=lambda _: None)
    assert len(calls) == 3
    assert isinstance(exc_info.value.__cause__, ConcurrentUpdate)
    assert "feed" in exc_info.value.detail


def test_non_retryable_errors_propagate_immediately():
    func, calls = _flaky([KeyError("boom")])
    with pytest.raises(KeyError):
        retry_idempotent(func, attempts=5, backoff=0, sleep=lambda _: None)
    assert len(calls) == 1


def test_backoff_is_capped():
    func, _ = _flaky([ConcurrentUpdate("x") for _ in range(4)])
    sleeps = []
    with pytest.raises(StorageConflict):
        retry_idempotent(func, attempts=4, backoff=1.5, sleep=sleeps.append)
    assert sleeps == [1.5, MAX_BACKOFF_SECONDS, MAX_BACKOFF_SECONDS]


def test_defaults_come_from_config(monkeypatch):
    from monsterden import config

    monkeypatch.setattr(config, "retry_attempts", 2)
    monkeypatch.setattr(config, "retry_backoff_seconds", 0.0)
    func, calls = _flaky([ConcurrentUpdate("a"), ConcurrentUpdate("b")])
    with pytest.raises(StorageConflict):
        retry_idempotent(func)
    assert len(calls) == 2
