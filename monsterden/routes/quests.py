import asyncio

from fastapi import APIRouter, Depends

from monsterden.auth import require_active_user
from monsterden.common.errors import handle_progression_errors
from monsterden.engine import Engine
from monsterden.routes import get_app_engine

router = APIRouter(prefix="/quests", tags=["quests"])


@router.get("")
@handle_progression_errors
async def list_quests(
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Return daily quests and achievements with the caller's progress."""
    return await asyncio.to_thread(engine.list_quests_with_progress, current_user)


@router.post("/{quest_id}/claim")
@handle_progression_errors
async def claim(
    quest_id: str,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Claim the reward of a completed quest."""
    reward = await asyncio.to_thread(engine.claim_quest_reward, current_user, quest_id)
    balance = await asyncio.to_thread(engine.get_wallet, current_user)
    return {"quest_id": quest_id, "reward": reward, "balance": balance.balance}
