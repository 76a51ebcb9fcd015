from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = {"memory", "dynamodb"}


class ConfigValidationError(ValueError):
    """Raised when configuration values are invalid."""


def validate_positive_int(name: str, value: Any) -> int:
    """Return ``value`` as an int, rejecting negatives and non-numbers."""
    if isinstance(value, bool):
        raise ConfigValidationError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"{name} must be an integer; got {value!r}") from exc
    if number < 0:
        raise ConfigValidationError(f"{name} must not be negative; got {number}")
    return number


@dataclass
class Config:
    # basic app environment
    app_env: Optional[str] = None
    disable_auth: Optional[bool] = None
    demo_user: str = "demo"
    log_config: Optional[str] = None
    rate_limit_per_minute: int = 6000
    cors_origins: Optional[List[str]] = None
    cron_secret: Optional[str] = None
    repo_root: Optional[Path] = None

    # storage
    storage_backend: str = "memory"
    wallet_uri: Optional[str] = None
    quests_uri: Optional[str] = None
    monsters_uri: Optional[str] = None
    wallet_table: str = "MonsterdenWallets"
    quests_table: str = "MonsterdenQuestProgress"

    # economy
    starting_balance: int = 25
    base_xp: int = 100
    monster_base_cost: int = 100
    base_coin_reward: int = 10
    matched_state_coin_reward: int = 20
    xp_reward: int = 25

    # triggers / retries
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    events_async: bool = False


def _project_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.yaml"


def _env_flag(name: str) -> Optional[bool]:
    val = os.getenv(name)
    if val is None:
        return None
    return val.lower() in {"1", "true", "yes"}


def _flatten_dict(src: Dict[str, Any], dst: Dict[str, Any]) -> None:
    """Flatten one level of ``src`` into ``dst`` while preserving nested maps."""
    for key, value in src.items():
        if isinstance(value, dict) and key != "cors":
            for sub_key, sub_val in value.items():
                dst[sub_key] = sub_val
        else:
            dst[key] = value


def _parse_str_list(val: Any) -> Optional[List[str]]:
    """Convert comma-separated strings or lists into list of strings."""
    if isinstance(val, list):
        items = [str(v).strip() for v in val if str(v).strip()]
        return items or []
    if isinstance(val, str):
        items = [s.strip() for s in val.split(",") if s.strip()]
        return items or []
    return None


def _load_config() -> Config:
    """Load configuration from config.yaml with optional env overrides."""
    path = _project_config_path()
    data: Dict[str, Any] = {}

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
                if isinstance(file_data, dict):
                    _flatten_dict(file_data, data)
        except yaml.YAMLError as exc:
            logger.exception("Failed to parse config file %s", path)
            raise ConfigValidationError(f"Error parsing config file '{path}': {exc}") from exc
        except OSError as exc:
            logger.exception("Failed to read config file %s", path)
            raise ConfigValidationError(f"Error reading config file '{path}': {exc}") from exc

    base_dir = path.parent

    app_env_env = os.getenv("APP_ENV")
    if app_env_env:
        allowed_envs = {"local", "production", "aws"}
        if app_env_env not in allowed_envs:
            raise ConfigValidationError(f"Unexpected APP_ENV '{app_env_env}'")
        data["app_env"] = app_env_env

    disable_auth_env = _env_flag("DISABLE_AUTH")
    if disable_auth_env is not None:
        data["disable_auth"] = disable_auth_env

    events_async_env = _env_flag("EVENTS_ASYNC")
    if events_async_env is not None:
        data["events_async"] = events_async_env

    for key, env_name in (
        ("storage_backend", "STORAGE_BACKEND"),
        ("wallet_uri", "WALLET_URI"),
        ("quests_uri", "QUESTS_URI"),
        ("monsters_uri", "MONSTERS_URI"),
        ("wallet_table", "WALLET_TABLE"),
        ("quests_table", "QUESTS_TABLE"),
        ("cron_secret", "CRON_SECRET"),
    ):
        env_val = os.getenv(env_name)
        if env_val is not None:
            data[key] = env_val

    storage_backend = str(data.get("storage_backend") or "memory").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ConfigValidationError(
            f"storage_backend must be one of {sorted(STORAGE_BACKENDS)}; got '{storage_backend}'"
        )

    repo_root_raw = data.get("repo_root")
    repo_root = (base_dir / repo_root_raw).resolve() if repo_root_raw else base_dir

    cors_raw = data.get("cors")
    cors_origins = None
    if isinstance(cors_raw, dict):
        env = data.get("app_env")
        raw = cors_raw.get(env) if env else None
        cors_origins = _parse_str_list(raw or cors_raw.get("default"))

    economy = {
        key: validate_positive_int(key, data[key])
        for key in (
            "starting_balance",
            "base_xp",
            "monster_base_cost",
            "base_coin_reward",
            "matched_state_coin_reward",
            "xp_reward",
            "retry_attempts",
        )
        if key in data
    }
    if economy.get("base_xp") == 0:
        raise ConfigValidationError("base_xp must be greater than zero")

    try:
        retry_backoff = float(data.get("retry_backoff_seconds", 0.05))
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError("retry_backoff_seconds must be a number") from exc

    cfg = Config(
        app_env=data.get("app_env"),
        disable_auth=data.get("disable_auth"),
        demo_user=str(data.get("demo_user") or "demo"),
        log_config=data.get("log_config"),
        rate_limit_per_minute=data.get("rate_limit_per_minute", 60),
        cors_origins=cors_origins,
        cron_secret=data.get("cron_secret"),
        repo_root=repo_root,
        storage_backend=storage_backend,
        wallet_uri=data.get("wallet_uri"),
        quests_uri=data.get("quests_uri"),
        monsters_uri=data.get("monsters_uri"),
        wallet_table=data.get("wallet_table") or "MonsterdenWallets",
        quests_table=data.get("quests_table") or "MonsterdenQuestProgress",
        retry_backoff_seconds=max(retry_backoff, 0.0),
        events_async=bool(data.get("events_async", False)),
        **economy,
    )

    return cfg


@lru_cache()
def load_config() -> Config:
    """Load configuration and cache the result."""
    return _load_config()


settings = load_config()
config = settings


def reload_config() -> Config:
    """Reload configuration and update module-level ``config``."""
    global config, settings
    load_config.cache_clear()
    new_config = load_config()
    config = settings = new_config
    return new_config


def demo_identity() -> str:
    """Return the user id used when authentication is disabled."""
    return config.demo_user or "demo"


def __getattr__(name: str) -> Any:
    try:
        return getattr(load_config(), name)
    except AttributeError as exc:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from exc
