from __future__ import annotations

"""Per-user quest progress records.

One record exists per ``(user_id, quest_id)``. The store owns the two
timestamps that must be written exactly once:

* ``completed_at`` is stamped the first time a persisted ``progress`` reaches
  the quest target and is never overwritten afterwards.
* ``claimed_at`` is stamped by :meth:`mark_claimed`, which refuses records
  that are not completed or already claimed. Two racing claims produce one
  success and one :class:`~monsterden.common.errors.AlreadyClaimed`.

Clamping policy belongs to the coordinator; the store persists whatever value
it is handed. ``set_progress`` accepts an ``expected`` value and then behaves
as a compare-and-set, raising :class:`ConcurrentUpdate` on a mismatch.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from monsterden.common.dynamo import (
    as_int,
    dynamodb_table,
    is_conditional_failure,
    raise_storage_error,
)
from monsterden.common.errors import AlreadyClaimed, ConcurrentUpdate, NotCompleted
from monsterden.common.storage import JSONStorage

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class QuestProgress:
    user_id: str
    quest_id: str
    objective: str
    progress: int = 0
    completed_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    last_reset_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @property
    def claimed(self) -> bool:
        return self.claimed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "quest_id": self.quest_id,
            "objective": self.objective,
            "progress": self.progress,
            "completed_at": _format_ts(self.completed_at),
            "claimed_at": _format_ts(self.claimed_at),
            "last_reset_at": _format_ts(self.last_reset_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestProgress":
        return cls(
            user_id=str(data["user_id"]),
            quest_id=str(data["quest_id"]),
            objective=str(data.get("objective", "")),
            progress=as_int(data.get("progress")),
            completed_at=_parse_ts(data.get("completed_at")),
            claimed_at=_parse_ts(data.get("claimed_at")),
            last_reset_at=_parse_ts(data.get("last_reset_at")),
        )


class QuestProgressStore(Protocol):
    def get(self, user_id: str, quest_id: str) -> Optional[QuestProgress]: ...

    def get_or_create(self, user_id: str, quest_id: str, objective: str) -> QuestProgress: ...

    def list_for_user(self, user_id: str) -> List[QuestProgress]: ...

    def set_progress(
        self,
        user_id: str,
        quest_id: str,
        objective: str,
        value: int,
        target: int,
        expected: Optional[int] = None,
    ) -> QuestProgress: ...

    def mark_claimed(self, user_id: str, quest_id: str) -> QuestProgress: ...

    def unmark_claimed(self, user_id: str, quest_id: str, claimed_at: datetime) -> bool: ...

    def reset_daily(self, quest_ids: Iterable[str], user_id: Optional[str] = None) -> int: ...


def _claim_refusal(record: Optional[QuestProgress]) -> Exception:
    if record is None or not record.completed:
        return NotCompleted()
    return AlreadyClaimed()


class MemoryQuestProgressStore:
    """Thread-safe in-process quest progress with optional JSON snapshots."""

    def __init__(self, storage: Optional[JSONStorage] = None, clock: Clock = utcnow) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], QuestProgress] = {}
        if storage is not None:
            for user_id, quests in storage.load().items():
                if not isinstance(quests, dict):
                    continue
                for quest_id, raw in quests.items():
                    if isinstance(raw, dict):
                        record = QuestProgress.from_dict(
                            {**raw, "user_id": user_id, "quest_id": quest_id}
                        )
                        self._records[(user_id, quest_id)] = record

    def _save(self, changed: Dict[Tuple[str, str], QuestProgress]) -> None:
        if self._storage is not None:
            merged = {**self._records, **changed}
            data: Dict[str, Dict[str, Any]] = {}
            for (user_id, quest_id), record in merged.items():
                data.setdefault(user_id, {})[quest_id] = record.to_dict()
            self._storage.save(data)
        self._records.update(changed)

    def get(self, user_id: str, quest_id: str) -> Optional[QuestProgress]:
        with self._lock:
            return self._records.get((user_id, quest_id))

    def get_or_create(self, user_id: str, quest_id: str, objective: str) -> QuestProgress:
        key = (user_id, quest_id)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                return existing
            record = QuestProgress(user_id=user_id, quest_id=quest_id, objective=objective)
            self._save({key: record})
            return record

    def list_for_user(self, user_id: str) -> List[QuestProgress]:
        with self._lock:
            return [rec for (uid, _), rec in self._records.items() if uid == user_id]

    def set_progress(
        self,
        user_id: str,
        quest_id: str,
        objective: str,
        value: int,
        target: int,
        expected: Optional[int] = None,
    ) -> QuestProgress:
        key = (user_id, quest_id)
        with self._lock:
            current = self._records.get(key) or QuestProgress(user_id, quest_id, objective)
            if expected is not None and current.progress != expected:
                raise ConcurrentUpdate(
                    f"{user_id}/{quest_id}: expected progress {expected}, found {current.progress}"
                )
            completed_at = current.completed_at
            if completed_at is None and value >= target:
                completed_at = self._clock()
            record = replace(current, progress=value, completed_at=completed_at)
            self._save({key: record})
            return record

    def mark_claimed(self, user_id: str, quest_id: str) -> QuestProgress:
        key = (user_id, quest_id)
        with self._lock:
            current = self._records.get(key)
            if current is None or not current.completed or current.claimed:
                raise _claim_refusal(current)
            record = replace(current, claimed_at=self._clock())
            self._save({key: record})
            return record

    def unmark_claimed(self, user_id: str, quest_id: str, claimed_at: datetime) -> bool:
        key = (user_id, quest_id)
        with self._lock:
            current = self._records.get(key)
            if current is None or current.claimed_at != claimed_at:
                return False
            self._save({key: replace(current, claimed_at=None)})
            return True

    def reset_daily(self, quest_ids: Iterable[str], user_id: Optional[str] = None) -> int:
        wanted = set(quest_ids)
        with self._lock:
            now = self._clock()
            changed = {
                key: replace(
                    record,
                    progress=0,
                    completed_at=None,
                    claimed_at=None,
                    last_reset_at=now,
                )
                for key, record in self._records.items()
                if key[1] in wanted and (user_id is None or key[0] == user_id)
            }
            if changed:
                self._save(changed)
            return len(changed)


class DynamoQuestProgressStore:
    """Quest progress in a DynamoDB table keyed by ``user_id`` + ``quest_id``."""

    def __init__(self, table_name: str, table: Any | None = None, clock: Clock = utcnow) -> None:
        self.table_name = table_name
        self.table = table
        self._clock = clock

    def _table(self):
        if self.table is None:
            self.table = dynamodb_table(self.table_name)
        return self.table

    @staticmethod
    def _key(user_id: str, quest_id: str) -> Dict[str, str]:
        return {"user_id": user_id, "quest_id": quest_id}

    @staticmethod
    def _item(record: QuestProgress) -> Dict[str, Any]:
        # DynamoDB attributes are omitted rather than stored as null
        return {k: v for k, v in record.to_dict().items() if v is not None}

    def get(self, user_id: str, quest_id: str) -> Optional[QuestProgress]:
        try:
            resp = self._table().get_item(Key=self._key(user_id, quest_id), ConsistentRead=True)
        except (ClientError, BotoCoreError) as exc:
            raise_storage_error(exc)
        item = resp.get("Item")
        return QuestProgress.from_dict(item) if item else None

    def get_or_create(self, user_id: str, quest_id: str, objective: str) -> QuestProgress:
        existing = self.get(user_id, quest_id)
        if existing is not None:
            return existing
        record = QuestProgress(user_id=user_id, quest_id=quest_id, objective=objective)
        try:
            self._table().put_item(
                Item=self._item(record),
                ConditionExpression="attribute_not_exists(quest_id)",
            )
        except (ClientError, BotoCoreError) as exc:
            if not is_conditional_failure(exc):
                raise_storage_error(exc)
            created = self.get(user_id, quest_id)
            if created is None:
                raise_storage_error(exc)
            return created
        return record

    def list_for_user(self, user_id: str) -> List[QuestProgress]:
        from boto3.dynamodb.conditions import Key

        records: List[QuestProgress] = []
        kwargs: Dict[str, Any] = {"KeyConditionExpression": Key("user_id").eq(user_id)}
        while True:
            try:
                resp = self._table().query(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise_storage_error(exc)
            records.extend(QuestProgress.from_dict(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return records
            kwargs["ExclusiveStartKey"] = last_key

    def set_progress(
        self,
        user_id: str,
        quest_id: str,
        objective: str,
        value: int,
        target: int,
        expected: Optional[int] = None,
    ) -> QuestProgress:
        update = "SET progress = :value, objective = if_not_exists(objective, :objective)"
        values: Dict[str, Any] = {":value": value, ":objective": objective}
        if value >= target:
            update += ", completed_at = if_not_exists(completed_at, :now)"
            values[":now"] = _format_ts(self._clock())
        kwargs: Dict[str, Any] = {
            "Key": self._key(user_id, quest_id),
            "UpdateExpression": update,
            "ExpressionAttributeValues": values,
            "ReturnValues": "ALL_NEW",
        }
        if expected is not None:
            condition = "progress = :expected"
            if expected == 0:
                condition = "attribute_not_exists(progress) OR progress = :expected"
            kwargs["ConditionExpression"] = condition
            values[":expected"] = expected
        try:
            resp = self._table().update_item(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            if is_conditional_failure(exc):
                raise ConcurrentUpdate(
                    f"{user_id}/{quest_id}: progress changed from {expected}"
                ) from exc
            raise_storage_error(exc)
        return QuestProgress.from_dict(resp["Attributes"])

    def mark_claimed(self, user_id: str, quest_id: str) -> QuestProgress:
        try:
            resp = self._table().update_item(
                Key=self._key(user_id, quest_id),
                UpdateExpression="SET claimed_at = :now",
                ConditionExpression="attribute_exists(completed_at) AND attribute_not_exists(claimed_at)",
                ExpressionAttributeValues={":now": _format_ts(self._clock())},
                ReturnValues="ALL_NEW",
            )
        except (ClientError, BotoCoreError) as exc:
            if is_conditional_failure(exc):
                raise _claim_refusal(self.get(user_id, quest_id)) from exc
            raise_storage_error(exc)
        return QuestProgress.from_dict(resp["Attributes"])

    def unmark_claimed(self, user_id: str, quest_id: str, claimed_at: datetime) -> bool:
        try:
            self._table().update_item(
                Key=self._key(user_id, quest_id),
                UpdateExpression="REMOVE claimed_at",
                ConditionExpression="claimed_at = :claimed_at",
                ExpressionAttributeValues={":claimed_at": _format_ts(claimed_at)},
            )
        except (ClientError, BotoCoreError) as exc:
            if is_conditional_failure(exc):
                return False
            raise_storage_error(exc)
        return True

    def reset_daily(self, quest_ids: Iterable[str], user_id: Optional[str] = None) -> int:
        """Zero every matching record using paginated reads and one batch writer."""
        from boto3.dynamodb.conditions import Attr, Key

        wanted = list(dict.fromkeys(quest_ids))
        if not wanted:
            return 0
        now = self._clock()
        kwargs: Dict[str, Any] = {"FilterExpression": Attr("quest_id").is_in(wanted)}
        if user_id is not None:
            kwargs["KeyConditionExpression"] = Key("user_id").eq(user_id)
        read = self._table().query if user_id is not None else self._table().scan

        count = 0
        try:
            with self._table().batch_writer() as batch:
                while True:
                    resp = read(**kwargs)
                    for item in resp.get("Items", []):
                        record = QuestProgress.from_dict(item)
                        cleared = QuestProgress(
                            user_id=record.user_id,
                            quest_id=record.quest_id,
                            objective=record.objective,
                            last_reset_at=now,
                        )
                        batch.put_item(Item=self._item(cleared))
                        count += 1
                    last_key = resp.get("LastEvaluatedKey")
                    if not last_key:
                        break
                    kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as exc:
            raise_storage_error(exc)
        return count


__all__ = [
    "QuestProgress",
    "QuestProgressStore",
    "MemoryQuestProgressStore",
    "DynamoQuestProgressStore",
    "utcnow",
]
