"""Parsing boundary for narrative-collaborator output.

The LLM answers in prose that may embed a JSON object of the form
``{"stage": ..., "quests": [{"title", "unlock_condition",
"completion_condition", "reward"}, ...]}``. Everything here treats that text
as untrusted: every failure mode collapses to ``None`` so callers only ever
see a validated payload or nothing.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from stepout.models.quest import QUESTS_PER_SET, Quest

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")


class NarrativeQuest(BaseModel):
    title: str = Field(min_length=1)
    unlock_condition: str = Field(min_length=1)
    completion_condition: str = Field(min_length=1)
    reward: str = Field(min_length=1)


class NarrativePayload(BaseModel):
    name: Optional[str] = None
    stage: Optional[str] = None
    quests: list[NarrativeQuest] = Field(min_length=QUESTS_PER_SET)

    def to_quests(self) -> list[Quest]:
        """Typed quests with fresh opaque ids, truncated to one set."""
        return [
            Quest(
                id=f"quest_{uuid.uuid4().hex[:12]}",
                title=q.title.strip(),
                unlock_condition=q.unlock_condition.strip(),
                completion_condition=q.completion_condition.strip(),
                reward=q.reward.strip(),
            )
            for q in self.quests[:QUESTS_PER_SET]
        ]


def _scan_objects(text: str) -> Optional[str]:
    """Find the first decodable JSON object mentioning quests or stage."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start >= 0:
        try:
            _, end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        candidate = text[start:end]
        if '"quests"' in candidate or '"stage"' in candidate:
            return candidate
        start = text.find("{", end)
    return None


def extract_json_from_text(text: str) -> Optional[str]:
    """Pull the embedded JSON object out of free-form model output."""
    if not text or not isinstance(text, str):
        return None

    # 1. ```json ... ``` block
    match = _JSON_FENCE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    # 2. Unlabelled fenced block holding the quest object
    match = _ANY_FENCE.search(text)
    if match:
        content = match.group(1).strip()
        if content.startswith("{") and '"quests"' in content:
            return content

    # 3. Bare object anywhere in the prose
    return _scan_objects(text)


def parse_narrative_payload(text: str) -> Optional[NarrativePayload]:
    """Validate narrative output. Returns None on any structural problem."""
    raw = extract_json_from_text(text)
    if raw is None:
        logger.warning("Narrative output contained no JSON payload")
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Narrative payload is not valid JSON: %s", exc)
        logger.debug("Raw payload: %s", raw[:500])
        return None

    if not isinstance(data, dict):
        logger.warning("Narrative payload is not an object")
        return None

    try:
        return NarrativePayload.model_validate(data)
    except ValidationError as exc:
        logger.warning("Narrative payload failed validation: %d errors", exc.error_count())
        logger.debug("Validation details: %s", exc)
        return None
