"""Seed Redis with the 김정민 demo profile and a first quest set.

Run: python -m stepout.scripts.seed_demo
"""

import redis

from stepout.config.settings import REDIS_URL
from stepout.engine import adaptation
from stepout.engine.quest_store import store_profile, store_quest_set
from stepout.engine.stage_classifier import classify, get_stage_reason
from stepout.models.profile import PROFILE_PREFIX, Profile
from stepout.models.quest import QUESTSET_PREFIX, USER_INDEX_PREFIX, QuestSet

DEMO_PROFILE = {
    "name": "김정민",
    "age": 29,
    "gender": "남성",
    "residence": {
        "livingSituation": "1인 가구",
        "environment": "도시, 고층아파트",
    },
    "hikikomoriStatus": {
        "startDate": "2022년 5월",
        "avgOutTimePerDay": "10분 이하",
        "outingsLastMonth": 2,
        "usualDestinations": ["편의점", "단지 내 산책"],
    },
    "mentalState": {
        "anxietyLevel": 4,
        "socialDiscomfort": "낯선 사람과 마주칠 때 긴장",
        "emotionalIssues": ["우울", "불면"],
        "selfEfficacy": "낮음",
    },
    "digitalBehavior": {
        "dailyScreenTime": "10시간 이상",
        "platforms": ["유튜브", "디스코드", "커뮤니티"],
        "onlineConnections": "게임 친구 있음",
    },
    "interests": {
        "likes": ["게임", "SF영화", "힙합"],
        "goals": "유튜브 콘텐츠 제작",
        "dislikes": ["시끄러운 공간", "모르는 사람과 대화"],
    },
    "health": {
        "chronicConditions": "없음",
        "lifestyle": "불규칙한 식사와 수면",
        "physicalAbility": "짧은 산책 가능",
        "medication": "없음",
    },
    "pastExperiences": {
        "triedToGoOut": True,
        "motivators": ["날씨가 좋을 때", "게임 관련 이벤트"],
        "failReasons": ["혼잡한 장소에서 불안"],
    },
}


def clear_user(r: redis.Redis, user_id: str) -> None:
    """Remove a user's profile and quest sets from Redis."""
    index_key = f"{USER_INDEX_PREFIX}{user_id}"
    for quest_set_id in r.zrange(index_key, 0, -1):
        r.delete(f"{QUESTSET_PREFIX}{quest_set_id}")
    r.delete(index_key)
    r.delete(f"{PROFILE_PREFIX}{user_id}")


def seed(r: redis.Redis | None = None) -> QuestSet:
    r = r or redis.Redis.from_url(REDIS_URL, decode_responses=True)
    profile = Profile.from_dict(DEMO_PROFILE)
    clear_user(r, profile.user_id)
    store_profile(profile, r)

    stage = classify(profile)
    quest_set = QuestSet(
        user_id=profile.user_id,
        user_name=profile.name,
        stage=stage,
        quests=adaptation.generate(profile, stage),
    )
    store_quest_set(quest_set, r)

    print(f"Seeded profile {profile.user_id} ({stage.label}: {get_stage_reason(profile, stage)})")
    print(f"\nQuest set {quest_set.id}:")
    for q in quest_set.quests:
        print(f"  [{q.id}] {q.title} — {q.reward}")
    return quest_set


if __name__ == "__main__":
    seed()
