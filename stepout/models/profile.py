"""Profile model for the self-report intake.

Nested dataclasses mirroring the intake questionnaire sections. The wire
format (``to_dict`` / ``from_dict``) keeps the camelCase keys the chat
client and the narrative prompt use.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import redis

PROFILE_PREFIX = "profile:"


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in value]


@dataclass
class Residence:
    living_situation: str = ""
    environment: str = ""


@dataclass
class HikikomoriStatus:
    start_date: str = ""
    avg_out_time_per_day: str = ""
    outings_last_month: int = 0     # >= 0
    usual_destinations: list = field(default_factory=list)


@dataclass
class MentalState:
    anxiety_level: int = 1          # 1-5
    social_discomfort: str = ""
    emotional_issues: list = field(default_factory=list)
    self_efficacy: str = ""


@dataclass
class DigitalBehavior:
    daily_screen_time: str = ""
    platforms: list = field(default_factory=list)
    online_connections: str = ""


@dataclass
class Interests:
    likes: list = field(default_factory=list)
    goals: str = ""
    dislikes: list = field(default_factory=list)


@dataclass
class Health:
    chronic_conditions: str = ""
    lifestyle: str = ""
    physical_ability: str = ""
    medication: str = ""


@dataclass
class PastExperiences:
    tried_to_go_out: bool = False
    motivators: list = field(default_factory=list)
    fail_reasons: list = field(default_factory=list)


@dataclass
class Profile:
    name: str
    age: int = 0
    gender: str = ""
    residence: Residence = field(default_factory=Residence)
    hikikomori_status: HikikomoriStatus = field(default_factory=HikikomoriStatus)
    mental_state: MentalState = field(default_factory=MentalState)
    digital_behavior: DigitalBehavior = field(default_factory=DigitalBehavior)
    interests: Interests = field(default_factory=Interests)
    health: Health = field(default_factory=Health)
    past_experiences: PastExperiences = field(default_factory=PastExperiences)
    user_id: str = ""               # defaults to name
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self):
        if not self.user_id:
            self.user_id = self.name

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "age": int(self.age),
            "gender": self.gender,
            "residence": {
                "livingSituation": self.residence.living_situation,
                "environment": self.residence.environment,
            },
            "hikikomoriStatus": {
                "startDate": self.hikikomori_status.start_date,
                "avgOutTimePerDay": self.hikikomori_status.avg_out_time_per_day,
                "outingsLastMonth": int(self.hikikomori_status.outings_last_month),
                "usualDestinations": list(self.hikikomori_status.usual_destinations),
            },
            "mentalState": {
                "anxietyLevel": int(self.mental_state.anxiety_level),
                "socialDiscomfort": self.mental_state.social_discomfort,
                "emotionalIssues": list(self.mental_state.emotional_issues),
                "selfEfficacy": self.mental_state.self_efficacy,
            },
            "digitalBehavior": {
                "dailyScreenTime": self.digital_behavior.daily_screen_time,
                "platforms": list(self.digital_behavior.platforms),
                "onlineConnections": self.digital_behavior.online_connections,
            },
            "interests": {
                "likes": list(self.interests.likes),
                "goals": self.interests.goals,
                "dislikes": list(self.interests.dislikes),
            },
            "health": {
                "chronicConditions": self.health.chronic_conditions,
                "lifestyle": self.health.lifestyle,
                "physicalAbility": self.health.physical_ability,
                "medication": self.health.medication,
            },
            "pastExperiences": {
                "triedToGoOut": bool(self.past_experiences.tried_to_go_out),
                "motivators": list(self.past_experiences.motivators),
                "failReasons": list(self.past_experiences.fail_reasons),
            },
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Profile:
        residence = data.get("residence") or {}
        status = data.get("hikikomoriStatus") or {}
        mental = data.get("mentalState") or {}
        digital = data.get("digitalBehavior") or {}
        interests = data.get("interests") or {}
        health = data.get("health") or {}
        past = data.get("pastExperiences") or {}

        kwargs: dict[str, Any] = {}
        if data.get("createdAt"):
            kwargs["created_at"] = data["createdAt"]
        if data.get("updatedAt"):
            kwargs["updated_at"] = data["updatedAt"]

        return cls(
            name=data.get("name", ""),
            age=int(data.get("age") or 0),
            gender=data.get("gender", ""),
            residence=Residence(
                living_situation=residence.get("livingSituation", ""),
                environment=residence.get("environment", ""),
            ),
            hikikomori_status=HikikomoriStatus(
                start_date=status.get("startDate", ""),
                avg_out_time_per_day=status.get("avgOutTimePerDay", ""),
                outings_last_month=int(status.get("outingsLastMonth") or 0),
                usual_destinations=_as_list(status.get("usualDestinations")),
            ),
            mental_state=MentalState(
                anxiety_level=int(mental.get("anxietyLevel") or 1),
                social_discomfort=mental.get("socialDiscomfort", ""),
                emotional_issues=_as_list(mental.get("emotionalIssues")),
                self_efficacy=mental.get("selfEfficacy", ""),
            ),
            digital_behavior=DigitalBehavior(
                daily_screen_time=digital.get("dailyScreenTime", ""),
                platforms=_as_list(digital.get("platforms")),
                online_connections=digital.get("onlineConnections", ""),
            ),
            interests=Interests(
                likes=_as_list(interests.get("likes")),
                goals=interests.get("goals") or "",
                dislikes=_as_list(interests.get("dislikes")),
            ),
            health=Health(
                chronic_conditions=health.get("chronicConditions", ""),
                lifestyle=health.get("lifestyle", ""),
                physical_ability=health.get("physicalAbility", ""),
                medication=health.get("medication", ""),
            ),
            past_experiences=PastExperiences(
                tried_to_go_out=bool(past.get("triedToGoOut", False)),
                motivators=_as_list(past.get("motivators")),
                fail_reasons=_as_list(past.get("failReasons")),
            ),
            user_id=data.get("id") or data.get("name", ""),
            **kwargs,
        )

    def to_redis(self, r: redis.Redis) -> None:
        """Persist profile JSON under its user id."""
        self.updated_at = datetime.now(timezone.utc).isoformat()
        r.set(f"{PROFILE_PREFIX}{self.user_id}", json.dumps(self.to_dict(), ensure_ascii=False))

    @classmethod
    def from_redis(cls, r: redis.Redis, user_id: str) -> Optional[Profile]:
        """Load profile from Redis by user id."""
        raw = r.get(f"{PROFILE_PREFIX}{user_id}")
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return cls.from_dict(json.loads(raw))
