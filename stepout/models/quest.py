"""Quest model for the stage-based recommendation engine.

Redis-backed QuestSet documents, each holding one generation run of three
quests plus the behavior-change stage computed at that time.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import redis

QUESTS_PER_SET = 3
QUESTSET_PREFIX = "questset:"
USER_INDEX_PREFIX = "questsets:"

_POINTS_PATTERN = re.compile(r"\+(\d+)")


class Stage(str, Enum):
    """Transtheoretical model stages, in their fixed linear order."""

    PRECONTEMPLATION = "precontemplation"
    CONTEMPLATION = "contemplation"
    PREPARATION = "preparation"
    ACTION = "action"
    MAINTENANCE = "maintenance"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)

    @property
    def label(self) -> str:
        """Korean display name shown in the chat client."""
        return STAGE_LABELS[self]

    def __lt__(self, other):
        if not isinstance(other, Stage):
            return NotImplemented
        return self.order < other.order

    def __le__(self, other):
        if not isinstance(other, Stage):
            return NotImplemented
        return self.order <= other.order

    def __gt__(self, other):
        if not isinstance(other, Stage):
            return NotImplemented
        return self.order > other.order

    def __ge__(self, other):
        if not isinstance(other, Stage):
            return NotImplemented
        return self.order >= other.order

    @classmethod
    def parse(cls, value) -> Optional[Stage]:
        """Resolve an English stage name or Korean label; None if unknown."""
        if isinstance(value, Stage):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        try:
            return cls(text.lower())
        except ValueError:
            pass
        for stage, label in STAGE_LABELS.items():
            if label in text:
                return stage
        return None


_STAGE_ORDER = list(Stage)

STAGE_LABELS = {
    Stage.PRECONTEMPLATION: "무관심기",
    Stage.CONTEMPLATION: "숙고기",
    Stage.PREPARATION: "준비기",
    Stage.ACTION: "행동기",
    Stage.MAINTENANCE: "유지기",
}


@dataclass
class Quest:
    id: str
    title: str
    unlock_condition: str
    completion_condition: str
    reward: str                      # usually contains "+N" points
    completed: bool = False
    completed_at: Optional[str] = None   # ISO 8601, set on completion only

    @property
    def reward_points(self) -> int:
        """First ``+N`` value in the reward text, 0 when absent."""
        match = _POINTS_PATTERN.search(self.reward)
        return int(match.group(1)) if match else 0

    def mark_completed(self, now: datetime | None = None) -> bool:
        """Flip completed false→true once. Returns False if already completed."""
        if self.completed:
            return False
        self.completed = True
        self.completed_at = (now or datetime.now(timezone.utc)).isoformat()
        return True

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "unlock_condition": self.unlock_condition,
            "completion_condition": self.completion_condition,
            "reward": self.reward,
            "completed": bool(self.completed),
        }
        if self.completed_at:
            d["completedAt"] = self.completed_at
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Quest:
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            unlock_condition=data.get("unlock_condition", ""),
            completion_condition=data.get("completion_condition", ""),
            reward=data.get("reward", ""),
            completed=bool(data.get("completed", False)),
            completed_at=data.get("completedAt") or data.get("completed_at"),
        )


@dataclass
class QuestSet:
    user_id: str
    stage: Stage
    quests: list[Quest]
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    id: Optional[str] = None         # assigned by the store
    user_name: str = ""
    updated_at: str = ""

    def __post_init__(self):
        if not self.user_name:
            self.user_name = self.user_id
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def completed_count(self) -> int:
        return sum(1 for q in self.quests if q.completed)

    @property
    def progress(self) -> int:
        """Completion percentage, rounded."""
        if not self.quests:
            return 0
        return round(self.completed_count / len(self.quests) * 100)

    @property
    def created_timestamp(self) -> float:
        try:
            return datetime.fromisoformat(self.created_at).timestamp()
        except (ValueError, TypeError):
            return 0.0

    def find_quest(self, quest_id: str) -> Optional[Quest]:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None

    def copy(self) -> QuestSet:
        """Deep copy; quests are never shared between stored records."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "stage": self.stage.value,
            "quests": [q.to_dict() for q in self.quests],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> QuestSet:
        stage = Stage.parse(data.get("stage")) or Stage.PREPARATION
        return cls(
            user_id=data.get("userId", ""),
            stage=stage,
            quests=[Quest.from_dict(q) for q in data.get("quests", [])],
            created_at=data.get("createdAt") or datetime.now(timezone.utc).isoformat(),
            id=data.get("id"),
            user_name=data.get("userName", ""),
            updated_at=data.get("updatedAt", ""),
        )

    def to_redis(self, r: redis.Redis) -> None:
        """Persist the document and index it under its owner by creation time."""
        if not self.id:
            raise ValueError("QuestSet id must be assigned before persisting")
        self.updated_at = datetime.now(timezone.utc).isoformat()
        r.set(f"{QUESTSET_PREFIX}{self.id}", json.dumps(self.to_dict(), ensure_ascii=False))
        r.zadd(f"{USER_INDEX_PREFIX}{self.user_id}", {self.id: self.created_timestamp})

    @classmethod
    def from_redis(cls, r: redis.Redis, quest_set_id: str) -> Optional[QuestSet]:
        """Load a QuestSet from Redis by id."""
        raw = r.get(f"{QUESTSET_PREFIX}{quest_set_id}")
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return cls.from_dict(json.loads(raw))
