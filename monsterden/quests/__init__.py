"""Quest progress tracking and reward claims."""

from monsterden.quests.coordinator import ProgressionCoordinator
from monsterden.quests.store import (
    DynamoQuestProgressStore,
    MemoryQuestProgressStore,
    QuestProgress,
    QuestProgressStore,
)

__all__ = [
    "ProgressionCoordinator",
    "QuestProgress",
    "QuestProgressStore",
    "MemoryQuestProgressStore",
    "DynamoQuestProgressStore",
]
