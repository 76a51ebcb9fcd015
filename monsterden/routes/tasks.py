import asyncio
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from monsterden import config
from monsterden.engine import Engine
from monsterden.routes import get_app_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Accept only ``Authorization: Bearer <cron_secret>``."""
    secret = config.cron_secret
    if not secret:
        logger.error("cron_secret is not configured; rejecting scheduled task call")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron not configured")
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/reset-daily", dependencies=[Depends(require_cron_secret)])
async def reset_daily(user_id: Optional[str] = None, engine: Engine = Depends(get_app_engine)):
    """Zero daily quest progress for every user, or one user via ``user_id``."""
    count = await asyncio.to_thread(engine.reset_daily_quests, user_id)
    return {"reset": count, "scope": user_id or "all"}


@router.post("/monster-states", dependencies=[Depends(require_cron_secret)])
async def monster_states(engine: Engine = Depends(get_app_engine)):
    """Move every monster to a random mood other than happy."""
    count = await asyncio.to_thread(engine.randomize_monster_states)
    return {"updated": count}
