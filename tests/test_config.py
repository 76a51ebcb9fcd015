import pytest

from monsterden import config_module
from monsterden.config import ConfigValidationError, validate_positive_int


def test_defaults_from_config_yaml(monkeypatch):
    for name in ("APP_ENV", "STORAGE_BACKEND", "CRON_SECRET", "DISABLE_AUTH"):
        monkeypatch.delenv(name, raising=False)
    cfg = config_module._load_config()
    assert cfg.storage_backend == "memory"
    assert cfg.starting_balance == 25
    assert cfg.base_xp == 100
    assert cfg.monster_base_cost == 100
    assert cfg.base_coin_reward == 10
    assert cfg.matched_state_coin_reward == 20
    assert cfg.xp_reward == 25
    assert cfg.retry_attempts == 3
    assert cfg.events_async is False
    assert "http://localhost:3000" in cfg.cors_origins


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "DynamoDB")
    monkeypatch.setenv("WALLET_TABLE", "Wallets-test")
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    monkeypatch.setenv("DISABLE_AUTH", "yes")
    monkeypatch.setenv("EVENTS_ASYNC", "1")
    cfg = config_module._load_config()
    assert cfg.storage_backend == "dynamodb"
    assert cfg.wallet_table == "Wallets-test"
    assert cfg.cron_secret == "s3cret"
    assert cfg.disable_auth is True
    assert cfg.events_async is True


def test_production_cors_list(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    cfg = config_module._load_config()
    assert cfg.cors_origins == ["https://monsterden.app"]


@pytest.mark.parametrize(
    "name, value",
    [("STORAGE_BACKEND", "postgres"), ("APP_ENV", "staging")],
)
def test_invalid_env_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigValidationError):
        config_module._load_config()


def test_validate_positive_int():
    assert validate_positive_int("x", "7") == 7
    assert validate_positive_int("x", 0) == 0
    for bad in (-1, "abc", None, True):
        with pytest.raises(ConfigValidationError):
            validate_positive_int("x", bad)
