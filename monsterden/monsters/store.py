from __future__ import annotations

"""In-process monster and owned-background store.

Monsters are owned by exactly one user and are always looked up by
``(owner_id, monster_id)`` so a caller can never touch another user's
monster. Owned backgrounds are unique per ``(owner_id, monster_id,
background_id)``.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from monsterden.common.errors import AlreadyOwned, NotFound
from monsterden.common.storage import JSONStorage
from monsterden.monsters.leveling import max_xp
from monsterden.quests.store import Clock, utcnow

logger = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Any) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class Monster:
    id: str
    owner_id: str
    name: str
    level: int = 1
    xp: int = 0
    max_xp: int = 0
    state: str = "happy"
    last_cared_at: Optional[datetime] = None
    background_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "level": self.level,
            "xp": self.xp,
            "max_xp": self.max_xp,
            "state": self.state,
            "last_cared_at": _ts(self.last_cared_at),
            "background_id": self.background_id,
            "created_at": _ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Monster":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            name=data.get("name", ""),
            level=int(data.get("level", 1)),
            xp=int(data.get("xp", 0)),
            max_xp=int(data.get("max_xp") or 0),
            state=data.get("state", "happy"),
            last_cared_at=_parse(data.get("last_cared_at")),
            background_id=data.get("background_id"),
            created_at=_parse(data.get("created_at")),
        )


@dataclass(frozen=True)
class OwnedBackground:
    owner_id: str
    monster_id: str
    background_id: str
    acquired_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "monster_id": self.monster_id,
            "background_id": self.background_id,
            "acquired_at": _ts(self.acquired_at),
        }


BackgroundKey = Tuple[str, str, str]


class MemoryMonsterStore:
    """Thread-safe monster records with optional JSON snapshots."""

    def __init__(self, storage: Optional[JSONStorage] = None, clock: Clock = utcnow) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = threading.Lock()
        self._monsters: Dict[str, Monster] = {}
        self._backgrounds: Dict[BackgroundKey, OwnedBackground] = {}
        if storage is not None:
            data = storage.load()
            for raw in data.get("monsters", []):
                monster = Monster.from_dict(raw)
                self._monsters[monster.id] = monster
            for raw in data.get("backgrounds", []):
                owned = OwnedBackground(
                    raw["owner_id"],
                    raw["monster_id"],
                    raw["background_id"],
                    _parse(raw["acquired_at"]) or clock(),
                )
                self._backgrounds[(owned.owner_id, owned.monster_id, owned.background_id)] = owned

    def _commit(
        self,
        monsters: Optional[Dict[str, Monster]] = None,
        backgrounds: Optional[Dict[BackgroundKey, OwnedBackground]] = None,
    ) -> None:
        # persist the new state before swapping it in so a failed save changes nothing
        monsters = self._monsters if monsters is None else monsters
        backgrounds = self._backgrounds if backgrounds is None else backgrounds
        if self._storage is not None:
            self._storage.save(
                {
                    "monsters": [m.to_dict() for m in monsters.values()],
                    "backgrounds": [b.to_dict() for b in backgrounds.values()],
                }
            )
        self._monsters = monsters
        self._backgrounds = backgrounds

    def now(self) -> datetime:
        return self._clock()

    def count(self, owner_id: str) -> int:
        with self._lock:
            return sum(1 for m in self._monsters.values() if m.owner_id == owner_id)

    def list_for_owner(self, owner_id: str) -> List[Monster]:
        with self._lock:
            return [m for m in self._monsters.values() if m.owner_id == owner_id]

    def get(self, owner_id: str, monster_id: str) -> Monster:
        with self._lock:
            monster = self._monsters.get(monster_id)
        if monster is None or monster.owner_id != owner_id:
            raise NotFound("Monster not found")
        return monster

    def insert(self, owner_id: str, name: str) -> Tuple[Monster, int]:
        """Store a new level 1 monster and return it with the owner's new count."""
        monster = Monster(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            name=name,
            max_xp=max_xp(1),
            created_at=self._clock(),
        )
        with self._lock:
            self._commit(monsters={**self._monsters, monster.id: monster})
            count = sum(1 for m in self._monsters.values() if m.owner_id == owner_id)
        return monster, count

    def remove(self, owner_id: str, monster_id: str) -> bool:
        with self._lock:
            monster = self._monsters.get(monster_id)
            if monster is None or monster.owner_id != owner_id:
                return False
            monsters = {key: m for key, m in self._monsters.items() if key != monster_id}
            backgrounds = {
                key: owned for key, owned in self._backgrounds.items() if key[1] != monster_id
            }
            self._commit(monsters, backgrounds)
        return True

    def update(
        self, owner_id: str, monster_id: str, change: Callable[[Monster], Monster]
    ) -> Tuple[Monster, Monster]:
        """Apply ``change`` atomically. Returns ``(before, after)``."""
        with self._lock:
            before = self._monsters.get(monster_id)
            if before is None or before.owner_id != owner_id:
                raise NotFound("Monster not found")
            after = change(before)
            self._commit(monsters={**self._monsters, monster_id: after})
        return before, after

    def set_states(self, pick: Callable[[Monster], str]) -> int:
        """Give every monster the state ``pick`` returns for it, in one write."""
        with self._lock:
            if not self._monsters:
                return 0
            monsters = {
                monster_id: replace(monster, state=pick(monster))
                for monster_id, monster in self._monsters.items()
            }
            self._commit(monsters=monsters)
            return len(monsters)

    def has_background(self, owner_id: str, monster_id: str, background_id: str) -> bool:
        with self._lock:
            return (owner_id, monster_id, background_id) in self._backgrounds

    def add_background(self, owner_id: str, monster_id: str, background_id: str) -> OwnedBackground:
        key = (owner_id, monster_id, background_id)
        with self._lock:
            if key in self._backgrounds:
                raise AlreadyOwned("This monster already owns that background")
            owned = OwnedBackground(owner_id, monster_id, background_id, self._clock())
            self._commit(backgrounds={**self._backgrounds, key: owned})
        return owned

    def remove_background(self, owner_id: str, monster_id: str, background_id: str) -> bool:
        with self._lock:
            key = (owner_id, monster_id, background_id)
            if key not in self._backgrounds:
                return False
            self._commit(
                backgrounds={k: owned for k, owned in self._backgrounds.items() if k != key}
            )
        return True

    def list_backgrounds(self, owner_id: str, monster_id: Optional[str] = None) -> List[OwnedBackground]:
        with self._lock:
            return [
                owned
                for (owner, monster, _), owned in self._backgrounds.items()
                if owner == owner_id and (monster_id is None or monster == monster_id)
            ]


__all__ = ["Monster", "OwnedBackground", "MemoryMonsterStore"]
