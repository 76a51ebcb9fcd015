from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from monsterden.engine import Engine, get_engine

log = logging.getLogger("tasks.daily_reset")


def reset_daily_quests(scope: Optional[str] = None, engine: Optional[Engine] = None) -> int:
    """Zero the daily quests of one user, or of everyone when ``scope`` is None."""
    engine = engine or get_engine()
    return engine.reset_daily_quests(scope)


def lambda_handler(event: Dict[str, Any], _context: Any) -> Dict[str, Any]:
    """AWS Lambda entry point for the scheduled reset."""
    scope = event.get("user_id") if isinstance(event, dict) else None
    count = reset_daily_quests(scope or None)
    log.info("Daily reset finished: %d records", count)
    return {"reset": count, "scope": scope or "all"}


if __name__ == "__main__":
    print(reset_daily_quests())
