"""Quest Template Catalog.

Three ordered templates per stage, increasing in exertion and social
exposure from passive media consumption (precontemplation) to talking with
strangers and pursuing the stated goal (maintenance).

Template strings may reference ``{like}``, ``{platform}`` and ``{goal}``;
each template carries the fallback phrase used when the profile has no value.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from stepout.models.profile import Profile
from stepout.models.quest import Quest, Stage


@dataclass(frozen=True)
class QuestTemplate:
    title: str
    unlock_condition: str
    completion_condition: str
    reward: str
    fallbacks: tuple = ()            # (placeholder, phrase) pairs

    def render(self, profile: Profile) -> dict[str, str]:
        values = profile_values(profile)
        defaults = dict(self.fallbacks)
        params = {
            key: values.get(key) or defaults.get(key, "")
            for key in ("like", "platform", "goal")
        }
        return {
            "title": self.title.format(**params),
            "unlock_condition": self.unlock_condition.format(**params),
            "completion_condition": self.completion_condition.format(**params),
            "reward": self.reward.format(**params),
        }


def profile_values(profile: Profile) -> dict[str, str]:
    """First like, first platform and the goal text; empty string when missing."""
    likes = profile.interests.likes
    platforms = profile.digital_behavior.platforms
    return {
        "like": likes[0] if likes else "",
        "platform": platforms[0] if platforms else "",
        "goal": profile.interests.goals or "",
    }


QUEST_CATALOG: Mapping[Stage, tuple[QuestTemplate, ...]] = MappingProxyType({
    Stage.PRECONTEMPLATION: (
        QuestTemplate(
            title="좋아하는 콘텐츠 감상하기",
            unlock_condition="즉시 시작 가능",
            completion_condition="{like} 관련 영상/음악 30분 감상",
            reward="성취감 포인트 +10",
            fallbacks=(("like", "관심 콘텐츠"),),
        ),
        QuestTemplate(
            title="창문 근처에서 시간 보내기",
            unlock_condition="첫 번째 퀘스트 완료 후",
            completion_condition="창문 근처에서 5분간 밖을 바라보며 휴식",
            reward="자연광 보너스 +15",
        ),
        QuestTemplate(
            title="온라인 소통 시도하기",
            unlock_condition="두 번째 퀘스트 완료 후",
            completion_condition="{platform}에서 긍정적인 댓글 1개 작성",
            reward="소통 경험치 +20",
            fallbacks=(("platform", "온라인 플랫폼"),),
        ),
    ),
    Stage.CONTEMPLATION: (
        QuestTemplate(
            title="실내 가벼운 운동하기",
            unlock_condition="컨디션이 좋은 날",
            completion_condition="스트레칭이나 간단한 운동 10분 실시",
            reward="체력 회복 +15",
        ),
        QuestTemplate(
            title="관심사 탐구하기",
            unlock_condition="즉시 시작 가능",
            completion_condition="{goal} 관련 정보 1시간 탐색",
            reward="지식 경험치 +25",
            fallbacks=(("goal", "관심 있는 활동"),),
        ),
        QuestTemplate(
            title="짧은 외출 계획 세우기",
            unlock_condition="앞선 퀘스트 완료 후",
            completion_condition="가까운 거리 외출 계획을 구체적으로 작성하기",
            reward="계획 수립 보너스 +30",
        ),
    ),
    Stage.PREPARATION: (
        QuestTemplate(
            title="집 앞 짧은 산책",
            unlock_condition="날씨가 좋은 날",
            completion_condition="집 앞에서 10분간 신선한 공기 마시기",
            reward="체력 회복 +20",
        ),
        QuestTemplate(
            title="필수 용품 구매하기",
            unlock_condition="컨디션 양호한 날",
            completion_condition="가까운 편의점이나 마트에서 필요한 물건 구매",
            reward="실생활 적응 +35",
        ),
        QuestTemplate(
            title="온라인 친구와 소통하기",
            unlock_condition="즉시 시작 가능",
            completion_condition="온라인 친구와 30분 이상 대화하기",
            reward="사회성 경험치 +40",
        ),
    ),
    Stage.ACTION: (
        QuestTemplate(
            title="새로운 장소 탐험하기",
            unlock_condition="컨디션이 좋은 날",
            completion_condition="평소 가지 않던 근처 장소 1곳 방문하기",
            reward="탐험 경험치 +45",
        ),
        QuestTemplate(
            title="취미 활동 실천하기",
            unlock_condition="즉시 시작 가능",
            completion_condition="{like} 관련 실제 활동 2시간 진행",
            reward="창작 포인트 +50",
            fallbacks=(("like", "관심사"),),
        ),
        QuestTemplate(
            title="카페나 도서관 이용하기",
            unlock_condition="앞선 퀘스트들 완료 후",
            completion_condition="공공장소에서 1시간 이상 머물며 활동하기",
            reward="사회 적응 +55",
        ),
    ),
    Stage.MAINTENANCE: (
        QuestTemplate(
            title="정기적인 외출 루틴 만들기",
            unlock_condition="매주 실행",
            completion_condition="일주일에 3회 이상 외출하기",
            reward="루틴 마스터 +60",
        ),
        QuestTemplate(
            title="새로운 사람과 대화하기",
            unlock_condition="사회적 준비 완료 시",
            completion_condition="모르는 사람과 5분 이상 자연스러운 대화",
            reward="사회성 마스터 +70",
        ),
        QuestTemplate(
            title="목표 활동 도전하기",
            unlock_condition="자신감 충분할 때",
            completion_condition="{goal}에 실제로 도전해보기",
            reward="성취 마스터 +100",
            fallbacks=(("goal", "목표 활동"),),
        ),
    ),
})


def instantiate(
    profile: Profile,
    stage: Stage,
    catalog: Mapping[Stage, tuple[QuestTemplate, ...]] = QUEST_CATALOG,
) -> list[Quest]:
    """Build the base quests for a stage, ids ``quest_<stage>_<1..n>``."""
    return [
        Quest(id=f"quest_{stage.value}_{index}", completed=False, **template.render(profile))
        for index, template in enumerate(catalog[stage], start=1)
    ]
