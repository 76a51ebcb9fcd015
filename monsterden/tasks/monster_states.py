from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from monsterden.engine import Engine, get_engine

log = logging.getLogger("tasks.monster_states")


def randomize_monster_states(engine: Optional[Engine] = None) -> int:
    """Give every monster a new mood to be cared for."""
    engine = engine or get_engine()
    return engine.randomize_monster_states()


def lambda_handler(_event: Dict[str, Any], _context: Any) -> Dict[str, Any]:
    """AWS Lambda entry point for the scheduled mood change."""
    count = randomize_monster_states()
    log.info("Monster mood change finished: %d monsters", count)
    return {"updated": count}


if __name__ == "__main__":
    print(randomize_monster_states())
