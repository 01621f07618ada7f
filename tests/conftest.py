"""Shared test fixtures for the StepOut test suite."""

import copy

import pytest
import fakeredis

from stepout.models.profile import Profile
from stepout.models.quest import Quest, QuestSet, Stage


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


# ── Profile Factories ───────────────────────────────────────────────────

BASE_PROFILE = {
    "name": "김정민",
    "age": 29,
    "gender": "남성",
    "residence": {"livingSituation": "1인 가구", "environment": "도시, 고층아파트"},
    "hikikomoriStatus": {
        "startDate": "2022년 5월",
        "avgOutTimePerDay": "10분 이하",
        "outingsLastMonth": 2,
        "usualDestinations": ["편의점"],
    },
    "mentalState": {
        "anxietyLevel": 3,
        "socialDiscomfort": "낯선 사람과 마주칠 때 긴장",
        "emotionalIssues": ["우울"],
        "selfEfficacy": "보통",
    },
    "digitalBehavior": {
        "dailyScreenTime": "10시간 이상",
        "platforms": ["유튜브", "디스코드"],
        "onlineConnections": "게임 친구 있음",
    },
    "interests": {
        "likes": ["게임", "SF영화"],
        "goals": "유튜브 콘텐츠 제작",
        "dislikes": ["시끄러운 공간"],
    },
    "health": {
        "chronicConditions": "없음",
        "lifestyle": "불규칙한 식사와 수면",
        "physicalAbility": "짧은 산책 가능",
        "medication": "없음",
    },
    "pastExperiences": {
        "triedToGoOut": False,
        "motivators": [],
        "failReasons": [],
    },
}


@pytest.fixture
def make_profile():
    """Factory fixture building Profile instances from the wire format.

    Section overrides are merged into the base profile:
        profile = make_profile(mentalState={"anxietyLevel": 5})
    """
    def _factory(**overrides):
        data = copy.deepcopy(BASE_PROFILE)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key].update(value)
            else:
                data[key] = value
        return Profile.from_dict(data)

    return _factory


@pytest.fixture
def make_quest_set():
    """Factory fixture for QuestSets with given titles and completion flags.

    Usage:
        qs = make_quest_set(["집 앞 짧은 산책"], completed=[True])
    """
    _counter = 0

    def _factory(titles=None, completed=None, stage=Stage.PREPARATION, user_id="김정민", **kwargs):
        nonlocal _counter
        _counter += 1
        titles = titles or ["퀘스트 A", "퀘스트 B", "퀘스트 C"]
        completed = completed or [False] * len(titles)
        quests = [
            Quest(
                id=f"q{_counter}_{i}",
                title=title,
                unlock_condition="즉시 시작 가능",
                completion_condition="10분간 진행",
                reward="포인트 +10",
                completed=done,
            )
            for i, (title, done) in enumerate(zip(titles, completed), start=1)
        ]
        return QuestSet(user_id=user_id, stage=stage, quests=quests, **kwargs)

    return _factory


@pytest.fixture
def profile_body():
    """Wire-format profile body for the REST API."""
    return copy.deepcopy(BASE_PROFILE)


# ── Intake Answers ──────────────────────────────────────────────────────

DEMO_ANSWERS = {
    "name": "김정민",
    "age": "29",
    "gender": "남성",
    "livingSituation": "1인 가구",
    "environment": "도시, 고층아파트",
    "startDate": "2022년 5월",
    "avgOutTimePerDay": "10분 이하",
    "outingsLastMonth": "2회",
    "usualDestinations": "편의점, 단지 내 산책",
    "anxietyLevel": "4",
    "socialDiscomfort": "낯선 사람과 마주칠 때 긴장",
    "emotionalIssues": "우울, 불면",
    "selfEfficacy": "낮음",
    "dailyScreenTime": "10시간 이상",
    "platforms": "유튜브, 디스코드",
    "onlineConnections": "게임 친구 있음",
    "likes": "게임, SF영화, 힙합",
    "goals": "유튜브 콘텐츠 제작",
    "dislikes": "시끄러운 공간",
    "chronicConditions": "없음",
    "lifestyle": "불규칙한 식사와 수면",
    "physicalAbility": "짧은 산책 가능",
    "medication": "없음",
    "triedToGoOut": "네, 몇 번",
    "motivators": "날씨가 좋을 때",
    "failReasons": "혼잡한 장소에서 불안",
}


@pytest.fixture
def demo_answers():
    """Free-text answers to every intake question, keyed by question key."""
    return dict(DEMO_ANSWERS)
