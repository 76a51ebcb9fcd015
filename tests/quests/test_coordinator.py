import threading

import pytest

from monsterden.common.errors import (
    AlreadyClaimed,
    ConcurrentUpdate,
    InvalidAmount,
    InvalidRange,
    NotCompleted,
    NotFound,
    StorageConflict,
    Unauthenticated,
)


def _progress(engine, user, quest_id):
    return engine.quest_store.get(user, quest_id)


def test_list_quests_with_progress_creates_missing_records(engine):
    payload = engine.list_quests_with_progress("alice")

    assert set(payload) == {"daily", "achievement"}
    assert len(payload["daily"]) == 5
    assert len(payload["achievement"]) == 11
    entry = payload["daily"][0]
    assert entry["definition"]["id"] == "daily_feed_3"
    assert entry["progress"]["progress"] == 0
    assert len(engine.quest_store.list_for_user("alice")) == 16


def test_list_quests_requires_user(engine):
    with pytest.raises(Unauthenticated):
        engine.list_quests_with_progress(None)


def test_feed_quest_completes_and_pays_exactly_once(engine):
    for _ in range(3):
        engine.increment_quest_progress("alice", "feed_monsters", 1)

    record = _progress(engine, "alice", "daily_feed_3")
    assert record.progress == 3
    assert record.completed
    completed_at = record.completed_at

    assert engine.claim_quest_reward("alice", "daily_feed_3") == 15
    assert engine.get_wallet("alice").balance == 25 + 15
    with pytest.raises(AlreadyClaimed):
        engine.claim_quest_reward("alice", "daily_feed_3")
    assert engine.get_wallet("alice").balance == 25 + 15

    engine.increment_quest_progress("alice", "feed_monsters", 1)
    record = _progress(engine, "alice", "daily_feed_3")
    assert record.progress == 3
    assert record.completed_at == completed_at
    assert _progress(engine, "alice", "achievement_feed_50").progress == 4


def test_incremental_progress_is_clamped_to_target(engine):
    engine.increment_quest_progress("alice", "comfort_monsters", 10)
    assert _progress(engine, "alice", "daily_comfort_2").progress == 2


def test_incremental_amount_must_be_positive(engine):
    with pytest.raises(InvalidAmount):
        engine.increment_quest_progress("alice", "feed_monsters", 0)


def test_unknown_objective_is_rejected(engine):
    with pytest.raises(InvalidRange):
        engine.increment_quest_progress("alice", "dance_monsters", 1)


def test_absolute_updates_never_regress(engine):
    for observed in (5, 3, 9):
        engine.coordinator.observe("alice", "own_monsters", observed)

    assert _progress(engine, "alice", "achievement_own_10").progress == 9
    own_5 = _progress(engine, "alice", "achievement_own_5")
    assert own_5.progress == 5
    assert own_5.completed


def test_absolute_duplicate_observation_is_a_no_op(engine):
    engine.coordinator.observe("alice", "level_up_monster", 4)
    before = _progress(engine, "alice", "achievement_level_10")
    engine.coordinator.observe("alice", "level_up_monster", 4)
    assert _progress(engine, "alice", "achievement_level_10") == before


def test_record_picks_policy_by_objective(engine):
    engine.coordinator.record("alice", "own_monsters", 2)
    engine.coordinator.record("alice", "own_monsters", 1)
    engine.coordinator.record("alice", "feed_monsters", 2)
    engine.coordinator.record("alice", "feed_monsters", 1)
    assert _progress(engine, "alice", "achievement_own_5").progress == 2
    assert _progress(engine, "alice", "achievement_feed_50").progress == 3


def test_claim_requires_completion_and_known_quest(engine):
    with pytest.raises(NotCompleted):
        engine.claim_quest_reward("alice", "daily_feed_3")
    engine.increment_quest_progress("alice", "feed_monsters", 1)
    with pytest.raises(NotCompleted):
        engine.claim_quest_reward("alice", "daily_feed_3")
    with pytest.raises(NotFound):
        engine.claim_quest_reward("alice", "daily_missing")
    assert engine.get_wallet("alice").balance == 25


def test_concurrent_claims_pay_once(engine):
    engine.increment_quest_progress("alice", "feed_monsters", 3)
    barrier = threading.Barrier(6)
    results = []

    def claim():
        barrier.wait()
        try:
            results.append(engine.claim_quest_reward("alice", "daily_feed_3"))
        except AlreadyClaimed:
            results.append("already")

    threads = [threading.Thread(target=claim) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(15) == 1
    assert results.count("already") == 5
    assert engine.get_wallet("alice").balance == 40


def test_failed_credit_reverts_the_claim(engine, monkeypatch):
    engine.increment_quest_progress("alice", "feed_monsters", 3)
    real_credit = engine.ledger.credit
    outage = [True]

    def broken_credit(user_id, amount):
        if outage:
            raise OSError("ledger unavailable")
        return real_credit(user_id, amount)

    monkeypatch.setattr(engine.ledger, "credit", broken_credit)
    with pytest.raises(OSError):
        engine.claim_quest_reward("alice", "daily_feed_3")

    record = _progress(engine, "alice", "daily_feed_3")
    assert record.completed
    assert not record.claimed

    outage.clear()
    assert engine.claim_quest_reward("alice", "daily_feed_3") == 15
    assert engine.get_wallet("alice").balance == 40


def test_claims_are_not_retried(engine, monkeypatch):
    engine.increment_quest_progress("alice", "feed_monsters", 3)
    calls = []

    def conflicting_claim(user_id, quest_id):
        calls.append(quest_id)
        raise ConcurrentUpdate("lost")

    monkeypatch.setattr(engine.quest_store, "mark_claimed", conflicting_claim)
    with pytest.raises(ConcurrentUpdate):
        engine.claim_quest_reward("alice", "daily_feed_3")
    assert calls == ["daily_feed_3"]


def test_lost_compare_and_set_is_retried(engine, monkeypatch):
    real_set_progress = engine.quest_store.set_progress
    failures = []

    def flaky(*args, **kwargs):
        if not failures:
            failures.append(1)
            raise ConcurrentUpdate("raced")
        return real_set_progress(*args, **kwargs)

    monkeypatch.setattr(engine.quest_store, "set_progress", flaky)
    engine.increment_quest_progress("alice", "comfort_monsters", 1)
    assert _progress(engine, "alice", "daily_comfort_2").progress == 1
    assert failures == [1]


def test_retry_exhaustion_raises_storage_conflict(engine, monkeypatch):
    def always_conflicts(*args, **kwargs):
        raise ConcurrentUpdate("raced")

    monkeypatch.setattr(engine.quest_store, "set_progress", always_conflicts)
    with pytest.raises(StorageConflict):
        engine.increment_quest_progress("alice", "comfort_monsters", 1)


def test_concurrent_increments_are_not_lost(engine):
    # every lost race means another thread won, so 8 threads need at most 8 tries
    engine.coordinator.retry_attempts = 10
    barrier = threading.Barrier(8)

    def feed():
        barrier.wait()
        engine.increment_quest_progress("alice", "feed_monsters", 1)

    threads = [threading.Thread(target=feed) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert _progress(engine, "alice", "achievement_feed_50").progress == 8
    assert _progress(engine, "alice", "daily_feed_3").progress == 3


def test_wallet_credit_updates_coin_quests(engine):
    engine.credit("alice", 1000)
    record = _progress(engine, "alice", "achievement_coins_1000")
    assert record.completed
    assert _progress(engine, "alice", "achievement_coins_5000").progress == 1000


def test_trigger_failure_does_not_fail_the_wallet_write(engine, monkeypatch, caplog):
    def broken_observe(*args, **kwargs):
        raise RuntimeError("quest store down")

    monkeypatch.setattr(engine.coordinator, "observe", broken_observe)
    assert engine.credit("alice", 50) == 75
    assert engine.get_wallet("alice").total_earned == 50
    assert "quest store down" in caplog.text
