"""Narrative Agent — optional LLM collaborator for quest design and feedback.

Uses direct Anthropic API calls to design quests from the intake profile,
congratulate completions, and give short feedback during the intake. The
output is free text and non-deterministic; every function returns ``None``
when the API is unconfigured or fails so callers can fall back to the
deterministic quest engine and fixed messages.
"""

from __future__ import annotations

import logging
from typing import Optional

from stepout.config.settings import (
    ANTHROPIC_API_KEY,
    NARRATIVE_MAX_TOKENS,
    NARRATIVE_MODEL,
    NARRATIVE_TEMPERATURE,
    NARRATIVE_TIMEOUT_SECONDS,
)
from stepout.engine.history import summarize_for_prompt
from stepout.models.profile import Profile
from stepout.models.quest import QuestSet

logger = logging.getLogger(__name__)


# ── System Prompts ───────────────────────────────────────────────────────

QUEST_SYSTEM_PROMPT = """\
너는 '히키코모리 회복 지원 앱'의 스마트 퀘스트 설계자야.
지금 너는 DB에서 {user_name}의 문진 정보를 불러온 상태야.
이 데이터를 기반으로 아래의 3단계에 따라 분석하고, 사용자 맞춤형 퀘스트를 설계해줘.

## 1단계: 변화 단계 분류
사용자가 변화 단계 모델 중 어디에 해당하는지 판단하고 근거를 간단히 설명해줘.
(무관심기 / 숙고기 / 준비기 / 행동기 / 유지기 중 하나)

## 2단계: 퀘스트 3개 생성
- 무리한 외출이나 과도한 사회 활동은 피할 것
- 사용자의 관심사나 디지털 습관을 반영할 것
- 작고 실현 가능한 행동부터 시작해 작은 성공 경험을 줄 것
- 보상에는 "+숫자" 형태의 포인트를 포함할 것

## 3단계: JSON 정리
최종 결과를 아래 형식의 JSON으로 정리해줘:
{{
  "name": "{user_name}",
  "stage": "precontemplation | contemplation | preparation | action | maintenance",
  "quests": [
    {{
      "title": "퀘스트 제목",
      "unlock_condition": "해금 조건",
      "completion_condition": "달성 조건",
      "reward": "보상"
    }}
  ]
}}
"""

ASSESSMENT_SYSTEM_PROMPT = """\
너는 '히키코모리 회복 지원 앱'의 스마트 상담사야.
사용자에게 회복 여정을 위한 문진을 진행하고 있어.
말투는 친근하고 따뜻하게, 부담 주지 않도록 해.
사용자의 응답에 대해 1-2문장의 짧은 피드백만 해줘. 다음 질문은 하지 마.
"""

COMPLETION_SYSTEM_PROMPT = """\
너는 '히키코모리 회복 지원 앱'의 퀘스트 진행자야.
사용자가 퀘스트를 완료하면 게임적 요소를 활용해서 재미있고 따뜻하게 축하해줘.
2-3문장 이내로 답해.
"""


# ── Context Builder ──────────────────────────────────────────────────────


def _join(values: list[str]) -> str:
    return ", ".join(values) if values else "없음"


def build_quest_prompt(profile: Profile, history: list[QuestSet]) -> str:
    """Render the profile and quest history into the quest-design prompt."""
    p = profile
    lines = [
        f"DB에서 불러온 {p.name}님의 문진 정보:",
        "",
        "기본 정보:",
        f"- 이름: {p.name}",
        f"- 나이: {p.age}세",
        f"- 성별: {p.gender}",
        f"- 거주 형태: {p.residence.living_situation}",
        f"- 거주 환경: {p.residence.environment}",
        "",
        "은둔 상태:",
        f"- 시작 시점: {p.hikikomori_status.start_date}",
        f"- 일일 방밖 활동: {p.hikikomori_status.avg_out_time_per_day}",
        f"- 최근 한달 외출: {p.hikikomori_status.outings_last_month}회",
        f"- 주요 외출지: {_join(p.hikikomori_status.usual_destinations)}",
        "",
        "심리/정서 상태:",
        f"- 외출 불안감: {p.mental_state.anxiety_level}/5",
        f"- 사회적 부담감: {p.mental_state.social_discomfort}",
        f"- 정서적 어려움: {_join(p.mental_state.emotional_issues)}",
        f"- 자기효능감: {p.mental_state.self_efficacy}",
        "",
        "디지털 사용:",
        f"- 일일 사용시간: {p.digital_behavior.daily_screen_time}",
        f"- 주요 플랫폼: {_join(p.digital_behavior.platforms)}",
        f"- 온라인 관계: {p.digital_behavior.online_connections}",
        "",
        "관심사:",
        f"- 좋아하는 것: {_join(p.interests.likes)}",
        f"- 목표/희망: {p.interests.goals}",
        f"- 싫어하는 것: {_join(p.interests.dislikes)}",
        "",
        "건강 상태:",
        f"- 만성질환: {p.health.chronic_conditions}",
        f"- 생활습관: {p.health.lifestyle}",
        f"- 신체능력: {p.health.physical_ability}",
        f"- 복용약물: {p.health.medication}",
        "",
        "과거 경험:",
        f"- 외출 시도 경험: {'있음' if p.past_experiences.tried_to_go_out else '없음'}",
        f"- 동기 요인: {_join(p.past_experiences.motivators)}",
        f"- 실패 요인: {_join(p.past_experiences.fail_reasons)}",
        "",
    ]

    if history:
        lines.append("이전 퀘스트 히스토리:")
        lines.extend(summarize_for_prompt(history))
    else:
        lines.append("이전 퀘스트 기록: 없음 (첫 퀘스트 생성)")

    lines.append("")
    lines.append("위 데이터를 바탕으로 3단계 분석을 진행하고 맞춤형 퀘스트를 설계해줘!")
    return "\n".join(lines)


# ── Claude API Caller ────────────────────────────────────────────────────


def is_configured() -> bool:
    return bool(ANTHROPIC_API_KEY)


async def call_claude(system_prompt: str, user_prompt: str) -> Optional[str]:
    """Call Claude via the Anthropic API. Returns None on any failure."""
    import anthropic

    if not is_configured():
        logger.info("ANTHROPIC_API_KEY not configured — narrative path disabled")
        return None

    try:
        async with anthropic.AsyncAnthropic(
            api_key=ANTHROPIC_API_KEY,
            timeout=NARRATIVE_TIMEOUT_SECONDS,
            max_retries=0,
        ) as client:
            response = await client.messages.create(
                model=NARRATIVE_MODEL,
                max_tokens=NARRATIVE_MAX_TOKENS,
                temperature=NARRATIVE_TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
    except Exception as exc:
        logger.error("Claude API call failed: %s", exc)
        return None

    text = "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    ).strip()
    return text or None


async def generate_quest_text(profile: Profile, history: list[QuestSet]) -> Optional[str]:
    """Ask the model to classify the user and design three quests."""
    return await call_claude(
        QUEST_SYSTEM_PROMPT.format(user_name=profile.name),
        build_quest_prompt(profile, history),
    )


async def generate_completion_message(
    quest_title: str,
    quest_reward: str,
    completed: int,
    total: int,
) -> Optional[str]:
    user_prompt = (
        "사용자가 퀘스트를 완료했어:\n"
        f"- 완료한 퀘스트: {quest_title}\n"
        f"- 획득 보상: {quest_reward}\n"
        f"- 전체 진행률: {completed}/{total}\n\n"
        "축하 메시지와 격려의 말을 해줘!"
    )
    return await call_claude(COMPLETION_SYSTEM_PROMPT, user_prompt)


async def generate_assessment_feedback(
    question: str,
    category: str,
    response: str,
    progress: float,
) -> Optional[str]:
    user_prompt = (
        "현재 문진 상황:\n"
        f"- 카테고리: {category}\n"
        f"- 질문: {question}\n"
        f"- 사용자 응답: {response}\n"
        f"- 진행률: {round(progress)}%\n\n"
        "사용자의 응답에 대해 따뜻한 피드백을 1-2문장으로 제공해줘."
    )
    return await call_claude(ASSESSMENT_SYSTEM_PROMPT, user_prompt)
