"""Guided self-report intake.

The questionnaire is asked one item at a time; each free-text answer is
mapped onto the profile draft by its key. List answers are comma separated.
Numeric answers fall back to safe defaults and are clamped so the finished
profile always satisfies the model invariants (anxiety 1-5, outings >= 0).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from stepout.models.profile import Profile

logger = logging.getLogger(__name__)


class IntakeError(Exception):
    """Raised when the intake session is used out of order."""


@dataclass(frozen=True)
class AssessmentQuestion:
    category: str
    question: str
    key: str


ASSESSMENT_QUESTIONS: tuple[AssessmentQuestion, ...] = (
    # 기본 프로파일
    AssessmentQuestion("기본 프로파일", "안녕하세요! 먼저 성함을 알려주세요.", "name"),
    AssessmentQuestion("기본 프로파일", "나이를 알려주세요. (숫자만 입력해주세요)", "age"),
    AssessmentQuestion("기본 프로파일", "성별을 알려주세요. (예: 남성/여성)", "gender"),
    AssessmentQuestion("기본 프로파일", "현재 어떤 형태로 거주하고 계신가요? (예: 1인 가구, 가족과 거주 등)", "livingSituation"),
    AssessmentQuestion("기본 프로파일", "거주지 유형을 알려주세요. (예: 도시/시골, 고층아파트/주택 등)", "environment"),
    # 은둔 상태
    AssessmentQuestion("은둔 상태", "은둔 생활을 시작하신 시점이 언제인지 알려주세요. (예: 2022년 5월부터 등)", "startDate"),
    AssessmentQuestion("은둔 상태", "하루 평균 방 밖에서 활동하는 시간은 얼마나 되나요?", "avgOutTimePerDay"),
    AssessmentQuestion("은둔 상태", "최근 한 달간 외출하신 횟수를 알려주세요.", "outingsLastMonth"),
    AssessmentQuestion("은둔 상태", "외출하실 때 주로 어디에 가시나요? (예: 편의점, 병원, 아예 안 감 등)", "usualDestinations"),
    # 심리/정서
    AssessmentQuestion("심리/정서", "외출에 대한 불안감은 1~5점 중 어느 정도인가요? (1: 전혀 없음, 5: 매우 심함)", "anxietyLevel"),
    AssessmentQuestion("심리/정서", "타인과 대화나 접촉에 대한 부담감이 있나요? 있다면 어떤 상황이 특히 부담스러운지 알려주세요.", "socialDiscomfort"),
    AssessmentQuestion("심리/정서", "최근 한 달간 우울, 불면, 불안 등의 정서적 어려움을 경험하셨나요?", "emotionalIssues"),
    AssessmentQuestion("심리/정서", "자기효능감(내가 할 수 있다는 느낌)이나 자존감은 어떤 편인가요?", "selfEfficacy"),
    # 디지털 사용
    AssessmentQuestion("디지털 사용", "하루에 스마트폰이나 PC를 얼마나 사용하시나요?", "dailyScreenTime"),
    AssessmentQuestion("디지털 사용", "자주 사용하는 앱이나 플랫폼은 무엇인가요?", "platforms"),
    AssessmentQuestion("디지털 사용", "온라인에서 관계를 맺고 있는 사람이 있나요? (예: 게임 친구, 커뮤니티 친구 등)", "onlineConnections"),
    # 흥미/관심사
    AssessmentQuestion("흥미/관심사", "요즘 좋아하는 콘텐츠가 있다면 알려주세요. (예: 장르, 게임, 음악 등)", "likes"),
    AssessmentQuestion("흥미/관심사", "막연하게라도 하고 싶은 일이 있나요?", "goals"),
    AssessmentQuestion("흥미/관심사", "싫어하거나 피하는 활동, 장소, 사람 유형이 있다면 알려주세요.", "dislikes"),
    # 건강/체력
    AssessmentQuestion("건강/체력", "만성질환이 있으신가요?", "chronicConditions"),
    AssessmentQuestion("건강/체력", "수면과 식사 습관은 어떤 편인가요?", "lifestyle"),
    AssessmentQuestion("건강/체력", "간단한 산책이나 가벼운 활동은 가능한가요?", "physicalAbility"),
    AssessmentQuestion("건강/체력", "현재 복용 중인 약이 있나요?", "medication"),
    # 과거 경험
    AssessmentQuestion("과거 경험", "이전에 외출을 시도해본 적이 있나요?", "triedToGoOut"),
    AssessmentQuestion("과거 경험", "어떤 계기로 나간 적이 있나요?", "motivators"),
    AssessmentQuestion("과거 경험", "시도했지만 실패하거나 중단한 이유가 있다면 말씀해주세요.", "failReasons"),
)

FALLBACK_ENCOURAGEMENTS = (
    "답변해주셔서 감사합니다! 😊",
    "잘하고 계세요! 👍",
    "소중한 정보네요!",
    "계속해서 차근차근 진행해볼게요.",
    "훌륭합니다! 🌟",
)

# answer key → (section, field) in the wire-format profile dict
_SECTION_KEYS = {
    "livingSituation": "residence",
    "environment": "residence",
    "startDate": "hikikomoriStatus",
    "avgOutTimePerDay": "hikikomoriStatus",
    "outingsLastMonth": "hikikomoriStatus",
    "usualDestinations": "hikikomoriStatus",
    "anxietyLevel": "mentalState",
    "socialDiscomfort": "mentalState",
    "emotionalIssues": "mentalState",
    "selfEfficacy": "mentalState",
    "dailyScreenTime": "digitalBehavior",
    "platforms": "digitalBehavior",
    "onlineConnections": "digitalBehavior",
    "likes": "interests",
    "goals": "interests",
    "dislikes": "interests",
    "chronicConditions": "health",
    "lifestyle": "health",
    "physicalAbility": "health",
    "medication": "health",
    "triedToGoOut": "pastExperiences",
    "motivators": "pastExperiences",
    "failReasons": "pastExperiences",
}

_LIST_KEYS = {
    "usualDestinations", "emotionalIssues", "platforms",
    "likes", "dislikes", "motivators", "failReasons",
}

_YES_MARKERS = ("네", "예", "있")


def split_list(response: str) -> list[str]:
    return [part.strip() for part in response.split(",") if part.strip()]


def parse_int(response: str, default: int) -> int:
    """Leading integer of the answer ("3회" → 3), default when none."""
    digits = ""
    for ch in response.strip():
        if ch.isdigit():
            digits += ch
        elif digits:
            break
    return int(digits) if digits else default


def parse_yes(response: str) -> bool:
    return any(marker in response for marker in _YES_MARKERS)


def _parse_value(key: str, response: str) -> Any:
    if key in _LIST_KEYS:
        return split_list(response)
    if key == "age":
        return max(parse_int(response, 0), 0)
    if key == "outingsLastMonth":
        return max(parse_int(response, 0), 0)
    if key == "anxietyLevel":
        return min(max(parse_int(response, 1), 1), 5)
    if key == "triedToGoOut":
        return parse_yes(response)
    return response.strip()


def apply_answer(draft: dict, key: str, response: str) -> dict:
    """Map one answer onto the profile draft (wire-format dict), in place."""
    value = _parse_value(key, response)
    section = _SECTION_KEYS.get(key)
    if section is None:
        draft[key] = value
    else:
        draft.setdefault(section, {})[key] = value
    return draft


@dataclass
class IntakeSession:
    """Tracks progress through the questionnaire for one user."""

    draft: dict = field(default_factory=dict)
    index: int = 0

    @property
    def is_complete(self) -> bool:
        return self.index >= len(ASSESSMENT_QUESTIONS)

    @property
    def progress(self) -> float:
        return self.index / len(ASSESSMENT_QUESTIONS) * 100

    @property
    def current_question(self) -> AssessmentQuestion | None:
        if self.is_complete:
            return None
        return ASSESSMENT_QUESTIONS[self.index]

    def answer(self, response: str) -> AssessmentQuestion | None:
        """Record the answer to the current question; returns the next one."""
        question = self.current_question
        if question is None:
            raise IntakeError("All intake questions have already been answered")
        apply_answer(self.draft, question.key, response)
        self.index += 1
        return self.current_question

    def to_profile(self) -> Profile:
        if not self.is_complete:
            raise IntakeError(
                f"Intake incomplete: {self.index}/{len(ASSESSMENT_QUESTIONS)} answered"
            )
        profile = Profile.from_dict(self.draft)
        logger.info("Intake complete for %s", profile.user_id)
        return profile
