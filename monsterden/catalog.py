from __future__ import annotations

"""Static catalog read by the engine: quests, backgrounds and coin packages.

The catalog is immutable at runtime. Quest definitions are indexed by id and
by objective so the coordinator can fan a single event out to every quest
tracking the same behaviour.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Literal, Mapping, Optional, Tuple

QuestType = Literal["daily", "achievement"]
QuestObjective = Literal[
    "feed_monsters",
    "play_monsters",
    "comfort_monsters",
    "calm_monsters",
    "lullaby_monsters",
    "care_different_monsters",
    "total_actions",
    "own_monsters",
    "level_up_monster",
    "reach_coins",
    "unlock_backgrounds",
]

QUEST_TYPES: Tuple[str, ...] = ("daily", "achievement")

# Counting objectives: progress = min(progress + delta, target)
INCREMENTAL_OBJECTIVES = frozenset(
    {
        "feed_monsters",
        "play_monsters",
        "comfort_monsters",
        "calm_monsters",
        "lullaby_monsters",
        "care_different_monsters",
        "total_actions",
        "unlock_backgrounds",
    }
)
# Observed-value objectives: progress = max(progress, observed)
ABSOLUTE_OBJECTIVES = frozenset(
    {
        "own_monsters",
        "level_up_monster",
        "reach_coins",
    }
)
OBJECTIVES = INCREMENTAL_OBJECTIVES | ABSOLUTE_OBJECTIVES


@dataclass(frozen=True)
class QuestDefinition:
    """Lightweight structure describing an available quest."""

    id: str
    type: QuestType
    objective: QuestObjective
    target: int
    reward: int
    title: str
    description: str
    icon: str = ""

    def __post_init__(self) -> None:
        if self.type not in QUEST_TYPES:
            raise ValueError(f"Unknown quest type '{self.type}' for {self.id}")
        if self.objective not in OBJECTIVES:
            raise ValueError(f"Unknown objective '{self.objective}' for {self.id}")
        if self.target <= 0 or self.reward <= 0:
            raise ValueError(f"Quest {self.id} needs a positive target and reward")

    @property
    def is_daily(self) -> bool:
        return self.type == "daily"

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "objective": self.objective,
            "target": self.target,
            "reward": self.reward,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
        }


DAILY_QUESTS: List[QuestDefinition] = [
    QuestDefinition(
        id="daily_feed_3",
        type="daily",
        objective="feed_monsters",
        target=3,
        reward=15,
        title="Snack time",
        description="Feed your monsters 3 times",
        icon="🍖",
    ),
    QuestDefinition(
        id="daily_play_3",
        type="daily",
        objective="play_monsters",
        target=3,
        reward=15,
        title="Play time",
        description="Play with your monsters 3 times",
        icon="🎮",
    ),
    QuestDefinition(
        id="daily_care_3_different",
        type="daily",
        objective="care_different_monsters",
        target=3,
        reward=20,
        title="Attentive keeper",
        description="Look after 3 different monsters",
        icon="💝",
    ),
    QuestDefinition(
        id="daily_total_actions_5",
        type="daily",
        objective="total_actions",
        target=5,
        reward=25,
        title="Busy day",
        description="Perform 5 actions in total",
        icon="⚡",
    ),
    QuestDefinition(
        id="daily_comfort_2",
        type="daily",
        objective="comfort_monsters",
        target=2,
        reward=10,
        title="Comforting hugs",
        description="Comfort your monsters 2 times",
        icon="🤗",
    ),
]

ACHIEVEMENTS: List[QuestDefinition] = [
    QuestDefinition(
        id="achievement_own_5",
        type="achievement",
        objective="own_monsters",
        target=5,
        reward=100,
        title="Budding collector",
        description="Own 5 monsters",
        icon="👥",
    ),
    QuestDefinition(
        id="achievement_own_10",
        type="achievement",
        objective="own_monsters",
        target=10,
        reward=250,
        title="Seasoned breeder",
        description="Own 10 monsters",
        icon="🏆",
    ),
    QuestDefinition(
        id="achievement_feed_50",
        type="achievement",
        objective="feed_monsters",
        target=50,
        reward=150,
        title="Head chef",
        description="Feed your monsters 50 times",
        icon="👨‍🍳",
    ),
    QuestDefinition(
        id="achievement_feed_100",
        type="achievement",
        objective="feed_monsters",
        target=100,
        reward=300,
        title="Master of feasts",
        description="Feed your monsters 100 times",
        icon="🍽️",
    ),
    QuestDefinition(
        id="achievement_play_50",
        type="achievement",
        objective="play_monsters",
        target=50,
        reward=150,
        title="Playmate",
        description="Play with your monsters 50 times",
        icon="🎲",
    ),
    QuestDefinition(
        id="achievement_total_actions_100",
        type="achievement",
        objective="total_actions",
        target=100,
        reward=200,
        title="Devoted keeper",
        description="Perform 100 actions in total",
        icon="🌟",
    ),
    QuestDefinition(
        id="achievement_total_actions_500",
        type="achievement",
        objective="total_actions",
        target=500,
        reward=500,
        title="Living legend",
        description="Perform 500 actions in total",
        icon="👑",
    ),
    QuestDefinition(
        id="achievement_level_10",
        type="achievement",
        objective="level_up_monster",
        target=10,
        reward=200,
        title="Expert trainer",
        description="Raise a monster to level 10",
        icon="📈",
    ),
    QuestDefinition(
        id="achievement_coins_1000",
        type="achievement",
        objective="reach_coins",
        target=1000,
        reward=100,
        title="Saver",
        description="Earn 1000 coins",
        icon="💰",
    ),
    QuestDefinition(
        id="achievement_coins_5000",
        type="achievement",
        objective="reach_coins",
        target=5000,
        reward=500,
        title="Tycoon",
        description="Earn 5000 coins",
        icon="💎",
    ),
    QuestDefinition(
        id="achievement_backgrounds_3",
        type="achievement",
        objective="unlock_backgrounds",
        target=3,
        reward=75,
        title="Interior designer",
        description="Unlock 3 backgrounds",
        icon="🖼️",
    ),
]

ALL_QUESTS: List[QuestDefinition] = DAILY_QUESTS + ACHIEVEMENTS


def _index_by_objective(quests: List[QuestDefinition]) -> Dict[str, Tuple[QuestDefinition, ...]]:
    grouped: Dict[str, List[QuestDefinition]] = {objective: [] for objective in OBJECTIVES}
    for quest in quests:
        grouped[quest.objective].append(quest)
    return {objective: tuple(items) for objective, items in grouped.items()}


QUESTS_BY_ID: Mapping[str, QuestDefinition] = MappingProxyType({q.id: q for q in ALL_QUESTS})
QUESTS_BY_OBJECTIVE: Mapping[str, Tuple[QuestDefinition, ...]] = MappingProxyType(
    _index_by_objective(ALL_QUESTS)
)
DAILY_QUEST_IDS: Tuple[str, ...] = tuple(q.id for q in DAILY_QUESTS)


def list_quest_definitions() -> List[QuestDefinition]:
    """Return every quest definition in display order."""
    return list(ALL_QUESTS)


def get_quest_definition(quest_id: str) -> Optional[QuestDefinition]:
    return QUESTS_BY_ID.get(quest_id)


def definitions_by_objective(objective: str) -> Tuple[QuestDefinition, ...]:
    """Return the quests tracking ``objective``; unknown objectives raise ``KeyError``."""
    if objective not in OBJECTIVES:
        raise KeyError(objective)
    return QUESTS_BY_OBJECTIVE[objective]


# ---------------------------------------------------------------------------
# Backgrounds
# ---------------------------------------------------------------------------

RARITY_PRICE_MULTIPLIERS: Mapping[str, float] = MappingProxyType(
    {
        "common": 1.0,
        "uncommon": 1.5,
        "rare": 2.5,
        "epic": 4.0,
        "legendary": 10.0,
    }
)


@dataclass(frozen=True)
class BackgroundDefinition:
    id: str
    name: str
    rarity: str
    base_price: int

    @property
    def price(self) -> int:
        """Final price in coins after the rarity multiplier."""
        # round half up; Python's round() would send 22.5 to 22
        return int(self.base_price * RARITY_PRICE_MULTIPLIERS[self.rarity] + 0.5)


BACKGROUNDS: List[BackgroundDefinition] = [
    BackgroundDefinition("bg-sunset", "Sunset", "common", 10),
    BackgroundDefinition("bg-forest", "Green forest", "common", 10),
    BackgroundDefinition("bg-ocean", "Blue ocean", "common", 10),
    BackgroundDefinition("bg-mountains", "Snowy mountains", "uncommon", 15),
    BackgroundDefinition("bg-desert", "Golden desert", "uncommon", 15),
    BackgroundDefinition("bg-city", "Night city", "uncommon", 15),
    BackgroundDefinition("bg-space", "Starry space", "rare", 20),
    BackgroundDefinition("bg-volcano", "Active volcano", "rare", 20),
    BackgroundDefinition("bg-crystal-cave", "Crystal cave", "rare", 20),
    BackgroundDefinition("bg-aurora", "Aurora", "epic", 30),
    BackgroundDefinition("bg-underwater", "Coral reef", "epic", 30),
    BackgroundDefinition("bg-portal", "Dimensional portal", "epic", 30),
    BackgroundDefinition("bg-galaxy", "Spiral galaxy", "legendary", 50),
    BackgroundDefinition("bg-nebula", "Cosmic nebula", "legendary", 50),
    BackgroundDefinition("bg-celestial", "Celestial realm", "legendary", 50),
]
BACKGROUNDS_BY_ID: Mapping[str, BackgroundDefinition] = MappingProxyType(
    {bg.id: bg for bg in BACKGROUNDS}
)


def get_background(background_id: str) -> Optional[BackgroundDefinition]:
    return BACKGROUNDS_BY_ID.get(background_id)


# ---------------------------------------------------------------------------
# Coin packages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CoinPackage:
    product_id: str
    coins: int
    price: float
    label: str
    popular: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "product_id": self.product_id,
            "coins": self.coins,
            "price": self.price,
            "label": self.label,
            "popular": self.popular,
        }


COIN_PACKAGES: Mapping[str, CoinPackage] = MappingProxyType(
    {
        pkg.product_id: pkg
        for pkg in (
            CoinPackage("prod_small_bag", 150, 1.0, "Small bag"),
            CoinPackage("prod_magic_bag", 350, 2.0, "Magic bag", popular=True),
            CoinPackage("prod_royal_chest", 1000, 5.0, "Royal chest"),
            CoinPackage("prod_legendary_hoard", 2500, 10.0, "Legendary hoard"),
        )
    }
)


__all__ = [
    "QuestType",
    "QuestObjective",
    "INCREMENTAL_OBJECTIVES",
    "ABSOLUTE_OBJECTIVES",
    "OBJECTIVES",
    "QuestDefinition",
    "DAILY_QUESTS",
    "ACHIEVEMENTS",
    "ALL_QUESTS",
    "DAILY_QUEST_IDS",
    "QUESTS_BY_ID",
    "QUESTS_BY_OBJECTIVE",
    "list_quest_definitions",
    "get_quest_definition",
    "definitions_by_objective",
    "RARITY_PRICE_MULTIPLIERS",
    "BackgroundDefinition",
    "BACKGROUNDS",
    "get_background",
    "CoinPackage",
    "COIN_PACKAGES",
]
