import asyncio

from fastapi import APIRouter, Depends

from monsterden.auth import require_active_user
from monsterden.common.errors import handle_progression_errors
from monsterden.engine import Engine
from monsterden.routes import get_app_engine
from monsterden.wallet.ledger import list_packages

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("")
@handle_progression_errors
async def read_wallet(
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Return the caller's balance, creating the wallet on first access."""
    snapshot = await asyncio.to_thread(engine.get_wallet, current_user)
    return snapshot.to_dict()


@router.get("/packages")
async def packages():
    return list_packages()
