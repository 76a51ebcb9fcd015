import asyncio
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from monsterden.auth import require_active_user
from monsterden.catalog import BACKGROUNDS
from monsterden.common.errors import handle_progression_errors
from monsterden.engine import Engine
from monsterden.routes import get_app_engine

router = APIRouter(prefix="/monsters", tags=["monsters"])


class MonsterIn(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class EquipIn(BaseModel):
    background_id: Optional[str] = None


@router.get("")
@handle_progression_errors
async def list_monsters(
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    monsters = await asyncio.to_thread(engine.monsters.list_monsters, current_user)
    return [m.to_dict() for m in monsters]


@router.post("", status_code=201)
@handle_progression_errors
async def create_monster(
    payload: MonsterIn,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Create a monster; every monster after the first costs coins."""
    monster, cost = await asyncio.to_thread(
        engine.monsters.create_monster, current_user, payload.name
    )
    return {"monster": monster.to_dict(), "cost": cost}


@router.get("/backgrounds")
async def background_catalog():
    return [
        {"id": bg.id, "name": bg.name, "rarity": bg.rarity, "price": bg.price}
        for bg in BACKGROUNDS
    ]


@router.get("/{monster_id}")
@handle_progression_errors
async def get_monster(
    monster_id: str,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    monster = await asyncio.to_thread(engine.monsters.get_monster, current_user, monster_id)
    return monster.to_dict()


@router.post("/{monster_id}/actions/{action}")
@handle_progression_errors
async def perform_action(
    monster_id: str,
    action: str,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Care for a monster and return the XP, level and coin outcome."""
    result = await asyncio.to_thread(
        engine.perform_monster_action, current_user, monster_id, action
    )
    return result.to_dict()


@router.get("/{monster_id}/backgrounds")
@handle_progression_errors
async def owned_backgrounds(
    monster_id: str,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    owned = await asyncio.to_thread(engine.monsters.list_backgrounds, current_user, monster_id)
    return [o.to_dict() for o in owned]


@router.post("/{monster_id}/backgrounds/{background_id}", status_code=201)
@handle_progression_errors
async def purchase_background(
    monster_id: str,
    background_id: str,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    owned = await asyncio.to_thread(
        engine.monsters.purchase_background, current_user, monster_id, background_id
    )
    balance = await asyncio.to_thread(engine.get_wallet, current_user)
    return {"background": owned.to_dict(), "balance": balance.balance}


@router.put("/{monster_id}/background")
@handle_progression_errors
async def equip_background(
    monster_id: str,
    payload: EquipIn,
    current_user: str = Depends(require_active_user),
    engine: Engine = Depends(get_app_engine),
):
    """Equip an owned background, or clear it with ``null``."""
    monster = await asyncio.to_thread(
        engine.monsters.equip_background, current_user, monster_id, payload.background_id
    )
    return monster.to_dict()
