"""Quest Adaptation Engine.

Instantiates the stage's base quests and escalates the ones whose quest type
(first title word) the user has already completed:

1. title gets the enhancement suffix
2. every "N분" duration in the completion condition is scaled by 1.5
   (ceiling); without a duration an intensifier phrase is appended
3. every "+N" in the reward is scaled by the difficulty multiplier
   min(1 + 0.1 * total_completed, 2.0) (ceiling)

Pure and deterministic; inputs are never mutated.
"""

from __future__ import annotations

import math
import re
from dataclasses import replace
from typing import Mapping, Sequence

from stepout.engine.history import HistorySummary, aggregate, quest_token
from stepout.engine.quest_catalog import QUEST_CATALOG, QuestTemplate, instantiate
from stepout.models.profile import Profile
from stepout.models.quest import Quest, QuestSet, Stage

ESCALATION_SUFFIX = " (향상된 버전)"
INTENSIFIER = " (더 적극적으로)"
DURATION_FACTOR = 1.5
MULTIPLIER_STEP = 0.1
MULTIPLIER_CAP = 2.0

_DURATION_PATTERN = re.compile(r"(\d+)분")
_POINTS_PATTERN = re.compile(r"\+(\d+)")


def difficulty_multiplier(total_completed: int) -> float:
    return min(round(1 + MULTIPLIER_STEP * total_completed, 9), MULTIPLIER_CAP)


def _scale(value: int, factor: float) -> int:
    # round() guards against float noise such as 10 * 1.1 == 11.000000000000002
    return math.ceil(round(value * factor, 9))


def escalate_condition(condition: str) -> str:
    escalated = _DURATION_PATTERN.sub(
        lambda m: f"{_scale(int(m.group(1)), DURATION_FACTOR)}분", condition
    )
    if escalated == condition:
        return f"{condition}{INTENSIFIER}"
    return escalated


def escalate_reward(reward: str, multiplier: float) -> str:
    return _POINTS_PATTERN.sub(lambda m: f"+{_scale(int(m.group(1)), multiplier)}", reward)


def escalate_quest(quest: Quest, multiplier: float) -> Quest:
    return replace(
        quest,
        title=f"{quest.title}{ESCALATION_SUFFIX}",
        completion_condition=escalate_condition(quest.completion_condition),
        reward=escalate_reward(quest.reward, multiplier),
    )


def adjust_for_history(base_quests: list[Quest], summary: HistorySummary) -> list[Quest]:
    multiplier = difficulty_multiplier(summary.total_completed)
    adjusted = []
    for quest in base_quests:
        if quest_token(quest.title) in summary.completed_tokens:
            adjusted.append(escalate_quest(quest, multiplier))
        else:
            adjusted.append(replace(quest))
    return adjusted


def generate(
    profile: Profile,
    stage: Stage,
    history: Sequence[QuestSet] | None = None,
    catalog: Mapping[Stage, tuple[QuestTemplate, ...]] = QUEST_CATALOG,
) -> list[Quest]:
    """Produce the finalized quest list for a stage, scaled by history."""
    base_quests = instantiate(profile, stage, catalog)
    if not history:
        return base_quests
    return adjust_for_history(base_quests, aggregate(history))
