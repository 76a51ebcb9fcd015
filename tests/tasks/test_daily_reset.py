from monsterden.tasks import daily_reset


def _complete_feed_quest(engine, user):
    engine.increment_quest_progress(user, "feed_monsters", 3)
    engine.claim_quest_reward(user, "daily_feed_3")


def test_reset_then_read_shows_fresh_daily_quests(engine):
    for user in ("alice", "bob"):
        _complete_feed_quest(engine, user)

    count = daily_reset.reset_daily_quests(engine=engine)
    assert count == 2

    payload = engine.list_quests_with_progress("alice")
    daily = {q["definition"]["id"]: q["progress"] for q in payload["daily"]}
    assert daily["daily_feed_3"]["progress"] == 0
    assert daily["daily_feed_3"]["completed_at"] is None
    assert daily["daily_feed_3"]["claimed_at"] is None
    assert daily["daily_feed_3"]["last_reset_at"] is not None

    achievements = {q["definition"]["id"]: q["progress"] for q in payload["achievement"]}
    assert achievements["achievement_feed_50"]["progress"] == 3


def test_reset_quest_can_be_completed_and_claimed_again(engine):
    _complete_feed_quest(engine, "alice")
    daily_reset.reset_daily_quests(engine=engine)

    _complete_feed_quest(engine, "alice")
    assert engine.get_wallet("alice").balance == 25 + 15 + 15


def test_scoped_reset_leaves_other_users(engine):
    engine.increment_quest_progress("alice", "feed_monsters", 2)
    engine.increment_quest_progress("bob", "feed_monsters", 2)

    assert daily_reset.reset_daily_quests("alice", engine=engine) == 1
    assert engine.quest_store.get("alice", "daily_feed_3").progress == 0
    assert engine.quest_store.get("bob", "daily_feed_3").progress == 2


def test_lambda_handler_uses_process_engine(engine):
    engine.increment_quest_progress("alice", "feed_monsters", 1)
    engine.increment_quest_progress("bob", "feed_monsters", 1)

    assert daily_reset.lambda_handler({"user_id": "bob"}, None) == {"reset": 1, "scope": "bob"}
    assert daily_reset.lambda_handler({}, None) == {"reset": 2, "scope": "all"}
    assert engine.quest_store.get("alice", "daily_feed_3").progress == 0


def test_empty_scope_means_everyone(engine):
    engine.increment_quest_progress("alice", "feed_monsters", 1)
    engine.increment_quest_progress("bob", "feed_monsters", 1)

    assert daily_reset.reset_daily_quests("", engine=engine) == 2
    assert engine.quest_store.get("bob", "daily_feed_3").progress == 0
