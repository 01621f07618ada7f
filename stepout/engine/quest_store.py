"""Redis-backed Profile and QuestSet stores.

QuestSets are append-only documents indexed per user in a sorted set scored
by creation time, so "latest" and "history newest-first" are range queries.
Only the completion flags of a stored set are ever updated in place.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

import redis

from stepout.config.settings import REDIS_URL
from stepout.models.profile import Profile
from stepout.models.quest import (
    QuestSet,
    QUESTSET_PREFIX,
    USER_INDEX_PREFIX,
)

logger = logging.getLogger(__name__)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


# ── Profiles ─────────────────────────────────────────────────────────────


def store_profile(profile: Profile, r: redis.Redis | None = None) -> bool:
    """Create or replace a user's profile."""
    r = r or _get_redis()
    profile.to_redis(r)
    logger.info("Profile saved for %s", profile.user_id)
    return True


def get_profile(user_id: str, r: redis.Redis | None = None) -> Optional[Profile]:
    r = r or _get_redis()
    return Profile.from_redis(r, user_id)


# ── Quest Sets ───────────────────────────────────────────────────────────


def _new_quest_set_id(user_id: str, r: redis.Redis) -> str:
    base = f"{user_id}_{int(time.time() * 1000)}"
    candidate = base
    suffix = 1
    while r.exists(f"{QUESTSET_PREFIX}{candidate}"):
        suffix += 1
        candidate = f"{base}_{suffix}"
    return candidate


def store_quest_set(quest_set: QuestSet, r: redis.Redis | None = None) -> str:
    """Persist a new QuestSet, assigning its storage id. Returns the id."""
    r = r or _get_redis()
    quest_set.id = _new_quest_set_id(quest_set.user_id, r)
    quest_set.copy().to_redis(r)
    logger.info(
        "QuestSet %s saved (%s, %d quests)",
        quest_set.id, quest_set.stage.value, len(quest_set.quests),
    )
    return quest_set.id


def get_quest_set(quest_set_id: str, r: redis.Redis | None = None) -> Optional[QuestSet]:
    r = r or _get_redis()
    return QuestSet.from_redis(r, quest_set_id)


def get_latest_quest_set(user_id: str, r: redis.Redis | None = None) -> Optional[QuestSet]:
    r = r or _get_redis()
    ids = r.zrevrange(f"{USER_INDEX_PREFIX}{user_id}", 0, 0)
    if not ids:
        return None
    return QuestSet.from_redis(r, ids[0])


def get_quest_history(user_id: str, r: redis.Redis | None = None) -> list[QuestSet]:
    """All of a user's QuestSets, newest first."""
    r = r or _get_redis()
    history = []
    for quest_set_id in r.zrevrange(f"{USER_INDEX_PREFIX}{user_id}", 0, -1):
        quest_set = QuestSet.from_redis(r, quest_set_id)
        if quest_set:
            history.append(quest_set)
    return history


def update_quest_completion(
    quest_set_id: str,
    quest_id: str,
    completed: bool,
    r: redis.Redis | None = None,
) -> bool:
    """Record a completion event on a stored QuestSet.

    Completion only moves false→true; un-completing is rejected. Returns
    False for unknown ids or a rejected change.
    """
    r = r or _get_redis()
    quest_set = QuestSet.from_redis(r, quest_set_id)
    if not quest_set:
        logger.warning("QuestSet %s not found", quest_set_id)
        return False

    quest = quest_set.find_quest(quest_id)
    if not quest:
        logger.warning("Quest %s not found in %s", quest_id, quest_set_id)
        return False

    if not completed:
        if quest.completed:
            logger.warning("Refusing to reopen completed quest %s", quest_id)
            return False
        return True

    if not quest.mark_completed(datetime.now(timezone.utc)):
        return True   # already completed, nothing to change

    quest_set.to_redis(r)
    logger.info("Quest %s in %s marked completed", quest_id, quest_set_id)
    return True
