"""Quest generation and completion orchestration.

Generation tries the narrative collaborator exactly once and otherwise runs
the deterministic engine immediately, so a user always receives a QuestSet
as long as the store is reachable. Store failures surface as
``redis.RedisError`` and are translated at the HTTP edge.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

import redis

from stepout.agents import narrative_agent
from stepout.config.settings import NARRATIVE_ENABLED
from stepout.data_pipeline.narrative_parser import parse_narrative_payload
from stepout.engine import adaptation
from stepout.engine.intake import FALLBACK_ENCOURAGEMENTS
from stepout.engine.quest_store import (
    get_latest_quest_set,
    get_profile,
    get_quest_history,
    store_quest_set,
    update_quest_completion,
)
from stepout.engine.stage_classifier import classify, get_stage_reason
from stepout.models.profile import Profile
from stepout.models.quest import QuestSet, Stage

logger = logging.getLogger(__name__)

SOURCE_NARRATIVE = "narrative"
SOURCE_ENGINE = "engine"

FALLBACK_CONGRATULATIONS = (
    "🎉 축하합니다! \"{title}\" 완료하셨네요!",
    "정말 대단해요! 한 걸음 더 나아가셨습니다! 💪",
    "완료하신 것을 보니 정말 뿌듯합니다! ⭐",
    "훌륭합니다! 꾸준히 실천하고 계시는군요! 👏",
)


class QuestServiceError(Exception):
    """Base error for quest orchestration."""


class ProfileNotFoundError(QuestServiceError):
    def __init__(self, user_id: str):
        super().__init__(f"Profile not found: {user_id}")
        self.user_id = user_id


class QuestNotFoundError(QuestServiceError):
    def __init__(self, user_id: str, quest_id: str | None = None):
        detail = f"quest {quest_id}" if quest_id else "any quest set"
        super().__init__(f"No {detail} for user {user_id}")
        self.user_id = user_id
        self.quest_id = quest_id


@dataclass
class GenerationResult:
    quest_set: QuestSet
    source: str
    stage_reason: str


@dataclass
class CompletionResult:
    quest_set: QuestSet
    quest_id: str
    message: str
    reward: str
    already_completed: bool = False


# ── Generation ───────────────────────────────────────────────────────────


async def _narrative_quest_set(
    profile: Profile,
    history: list[QuestSet],
    local_stage: Stage,
) -> Optional[QuestSet]:
    """One narrative attempt. None on any failure, never raises."""
    text = await narrative_agent.generate_quest_text(profile, history)
    if not text:
        return None

    payload = parse_narrative_payload(text)
    if payload is None:
        return None

    stage = Stage.parse(payload.stage)
    if stage is None:
        logger.warning(
            "Narrative stage %r not recognized, using classified stage %s",
            payload.stage, local_stage.value,
        )
        stage = local_stage

    return QuestSet(
        user_id=profile.user_id,
        user_name=profile.name,
        stage=stage,
        quests=payload.to_quests(),
    )


def _engine_quest_set(profile: Profile, history: list[QuestSet], stage: Stage) -> QuestSet:
    return QuestSet(
        user_id=profile.user_id,
        user_name=profile.name,
        stage=stage,
        quests=adaptation.generate(profile, stage, history),
    )


async def generate_quest_set(
    user_id: str,
    r: redis.Redis | None = None,
    use_narrative: bool = True,
) -> GenerationResult:
    """Produce, persist and return a new QuestSet for the user."""
    profile = get_profile(user_id, r)
    if profile is None:
        raise ProfileNotFoundError(user_id)

    history = get_quest_history(user_id, r)
    stage = classify(profile)

    quest_set = None
    source = SOURCE_ENGINE
    if use_narrative and NARRATIVE_ENABLED and narrative_agent.is_configured():
        quest_set = await _narrative_quest_set(profile, history, stage)
        if quest_set is not None:
            source = SOURCE_NARRATIVE
        else:
            logger.info("Narrative path failed for %s, falling back to engine", user_id)

    if quest_set is None:
        quest_set = _engine_quest_set(profile, history, stage)

    store_quest_set(quest_set, r)
    logger.info(
        "Generated quest set %s for %s (%s, %s)",
        quest_set.id, user_id, quest_set.stage.value, source,
    )
    return GenerationResult(
        quest_set=quest_set,
        source=source,
        stage_reason=get_stage_reason(profile, quest_set.stage),
    )


# ── Completion ───────────────────────────────────────────────────────────


def fallback_congratulation(title: str) -> str:
    return random.choice(FALLBACK_CONGRATULATIONS).format(title=title)


async def complete_quest(
    user_id: str,
    quest_id: str,
    r: redis.Redis | None = None,
) -> CompletionResult:
    """Mark a quest of the user's latest set complete and congratulate."""
    quest_set = get_latest_quest_set(user_id, r)
    if quest_set is None:
        raise QuestNotFoundError(user_id)

    quest = quest_set.find_quest(quest_id)
    if quest is None:
        raise QuestNotFoundError(user_id, quest_id)

    if quest.completed:
        return CompletionResult(
            quest_set=quest_set,
            quest_id=quest_id,
            message="이미 완료한 퀘스트예요! 👍",
            reward=quest.reward,
            already_completed=True,
        )

    update_quest_completion(quest_set.id, quest_id, True, r)
    quest_set = get_latest_quest_set(user_id, r) or quest_set

    message = None
    if NARRATIVE_ENABLED:
        message = await narrative_agent.generate_completion_message(
            quest.title, quest.reward, quest_set.completed_count, len(quest_set.quests),
        )

    return CompletionResult(
        quest_set=quest_set,
        quest_id=quest_id,
        message=message or fallback_congratulation(quest.title),
        reward=quest.reward,
    )


def quest_status(user_id: str, r: redis.Redis | None = None) -> dict:
    """Progress summary of the user's latest QuestSet."""
    quest_set = get_latest_quest_set(user_id, r)
    if quest_set is None:
        raise QuestNotFoundError(user_id)
    return {
        "quest_set_id": quest_set.id,
        "stage": quest_set.stage.value,
        "stage_label": quest_set.stage.label,
        "completed": quest_set.completed_count,
        "total": len(quest_set.quests),
        "progress": quest_set.progress,
        "points": sum(q.reward_points for q in quest_set.quests if q.completed),
    }


# ── Intake ───────────────────────────────────────────────────────────────


async def intake_feedback(
    question: str,
    category: str,
    response: str,
    progress: float,
) -> str:
    feedback = None
    if NARRATIVE_ENABLED:
        feedback = await narrative_agent.generate_assessment_feedback(
            question, category, response, progress,
        )
    return feedback or random.choice(FALLBACK_ENCOURAGEMENTS)
