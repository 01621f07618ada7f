"""History Aggregator — reduces past quest sets for the adaptation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from stepout.models.quest import QuestSet


@dataclass(frozen=True)
class HistorySummary:
    completed_tokens: frozenset = frozenset()   # first title word of every completed quest
    total_completed: int = 0


def quest_token(title: str) -> str:
    """Quest-type token: the first whitespace-delimited word of the title."""
    parts = title.split()
    return parts[0] if parts else ""


def aggregate(history: Iterable[QuestSet]) -> HistorySummary:
    tokens: set[str] = set()
    total = 0
    for quest_set in history:
        for quest in quest_set.quests:
            if quest.completed:
                tokens.add(quest_token(quest.title))
                total += 1
    return HistorySummary(completed_tokens=frozenset(tokens), total_completed=total)


def summarize_for_prompt(history: list[QuestSet]) -> list[str]:
    """One line per past set for the narrative prompt, oldest numbered first.

    ``history`` is newest-first as returned by the store.
    """
    lines = []
    for index, quest_set in enumerate(reversed(history), start=1):
        titles = ", ".join(
            f"{q.title} ({'완료' if q.completed else '미완료'})" for q in quest_set.quests
        )
        lines.append(
            f"{index}차 퀘스트 ({quest_set.stage.value}): "
            f"{quest_set.completed_count}/{len(quest_set.quests)} 완료\n"
            f"  - 퀘스트 목록: {titles}"
        )
    return lines
