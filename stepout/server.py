"""FastAPI server bridging the quest engine to the chat client.

WebSocket for real-time quest events + REST endpoints for the intake,
profiles and quest sets.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from stepout.config.settings import NARRATIVE_ENABLED, REDIS_URL, SERVER_HOST, SERVER_PORT
from stepout.agents import narrative_agent
from stepout.engine.intake import ASSESSMENT_QUESTIONS, IntakeError, IntakeSession
from stepout.engine.quest_store import (
    get_latest_quest_set,
    get_profile,
    get_quest_history,
    store_profile,
)
from stepout.engine.stage_classifier import classify, get_stage_reason
from stepout.models.profile import Profile
from stepout.services import quest_service
from stepout.services.quest_service import ProfileNotFoundError, QuestNotFoundError

logger = logging.getLogger(__name__)

app = FastAPI(title="StepOut", description="Stage-based recovery quests")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

RETRY_MESSAGE = "일시적인 오류가 발생했습니다. 잠시 후 다시 시도해주세요."


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _unavailable(exc: Exception) -> JSONResponse:
    logger.error("Store unavailable: %s", exc)
    return _error(503, RETRY_MESSAGE)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.info("Rejected %s %s: %s", request.method, request.url.path, problems)
    return _error(400, "Invalid request: " + "; ".join(problems), details=problems)


def _build_ws_message(msg_type: str, payload: dict) -> str:
    """Build a JSON WebSocket message matching the client WSMessage format."""
    return json.dumps({
        "type": msg_type,
        "payload": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }, ensure_ascii=False)


# ── WebSocket Manager ────────────────────────────────────────────────────

class ConnectionManager:
    """WebSocket connection manager with heartbeat."""

    HEARTBEAT_INTERVAL = 30  # seconds between pings

    def __init__(self):
        self._connections: list[WebSocket] = []
        self._heartbeat_task: Optional[asyncio.Task] = None

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self._connections.append(ws)
        logger.info("WebSocket connected. Total: %d", len(self._connections))
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    def disconnect(self, ws: WebSocket):
        if ws in self._connections:
            self._connections.remove(ws)
        logger.info("WebSocket disconnected. Total: %d", len(self._connections))
        if not self._connections and self._heartbeat_task and not self._heartbeat_task.done():
            self._heartbeat_task.cancel()

    async def broadcast(self, message: str):
        disconnected = []
        for ws in self._connections:
            try:
                await ws.send_text(message)
            except Exception:
                disconnected.append(ws)
        for ws in disconnected:
            if ws in self._connections:
                self._connections.remove(ws)

    async def _heartbeat_loop(self):
        """Send periodic ping frames to detect dead connections."""
        try:
            while self._connections:
                await asyncio.sleep(self.HEARTBEAT_INTERVAL)
                await self.broadcast(json.dumps({"type": "ping"}))
        except asyncio.CancelledError:
            pass

    @property
    def count(self) -> int:
        return len(self._connections)


manager = ConnectionManager()


# ── WebSocket Endpoint ───────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        await ws.send_text(_build_ws_message("connected", {
            "narrative_enabled": NARRATIVE_ENABLED and narrative_agent.is_configured(),
        }))

        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if msg.get("type") == "ping":
                await ws.send_text(_build_ws_message("pong", {}))
            else:
                logger.info("Client message: %s", msg)

    except WebSocketDisconnect:
        manager.disconnect(ws)


# ── Health ───────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    r = _get_redis()
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False

    return {
        "status": "ok",
        "redis": redis_ok,
        "narrative": NARRATIVE_ENABLED and narrative_agent.is_configured(),
        "ws_connections": manager.count,
    }


# ── Intake ───────────────────────────────────────────────────────────────

@app.get("/api/intake/questions")
async def intake_questions():
    return {
        "questions": [
            {"index": i, "category": q.category, "question": q.question, "key": q.key}
            for i, q in enumerate(ASSESSMENT_QUESTIONS)
        ],
        "total": len(ASSESSMENT_QUESTIONS),
    }


class IntakeFeedbackRequest(BaseModel):
    question_index: int = Field(ge=0)
    response: str


@app.post("/api/intake/feedback")
async def intake_feedback(req: IntakeFeedbackRequest):
    """Short encouragement for one intake answer, plus the next question."""
    if req.question_index >= len(ASSESSMENT_QUESTIONS):
        return _error(404, "Question not found", question_index=req.question_index)

    question = ASSESSMENT_QUESTIONS[req.question_index]
    progress = (req.question_index + 1) / len(ASSESSMENT_QUESTIONS) * 100
    feedback = await quest_service.intake_feedback(
        question.question, question.category, req.response, progress,
    )

    next_index = req.question_index + 1
    next_question = None
    if next_index < len(ASSESSMENT_QUESTIONS):
        nq = ASSESSMENT_QUESTIONS[next_index]
        next_question = {"index": next_index, "category": nq.category,
                         "question": nq.question, "key": nq.key}

    return {
        "feedback": feedback,
        "progress": round(progress),
        "next_question": next_question,
    }


class IntakeCompleteRequest(BaseModel):
    answers: list[str]
    user_id: Optional[str] = None


@app.post("/api/intake/complete")
async def intake_complete(req: IntakeCompleteRequest):
    """Build and store a profile from the full list of intake answers."""
    session = IntakeSession()
    try:
        for answer in req.answers:
            session.answer(answer)
        profile = session.to_profile()
    except IntakeError as exc:
        return _error(400, str(exc))

    if req.user_id:
        profile.user_id = req.user_id
    if not profile.user_id:
        return _error(400, "Name is required")

    try:
        store_profile(profile, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)

    return {"status": "saved", "profile": profile.to_dict()}


# ── Profiles ─────────────────────────────────────────────────────────────

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ResidenceBody(_WireModel):
    living_situation: str = Field(default="", alias="livingSituation")
    environment: str = ""


class HikikomoriStatusBody(_WireModel):
    start_date: str = Field(default="", alias="startDate")
    avg_out_time_per_day: str = Field(default="", alias="avgOutTimePerDay")
    outings_last_month: int = Field(default=0, ge=0, alias="outingsLastMonth")
    usual_destinations: list[str] = Field(default_factory=list, alias="usualDestinations")


class MentalStateBody(_WireModel):
    anxiety_level: int = Field(default=1, ge=1, le=5, alias="anxietyLevel")
    social_discomfort: str = Field(default="", alias="socialDiscomfort")
    emotional_issues: list[str] = Field(default_factory=list, alias="emotionalIssues")
    self_efficacy: str = Field(default="", alias="selfEfficacy")


class DigitalBehaviorBody(_WireModel):
    daily_screen_time: str = Field(default="", alias="dailyScreenTime")
    platforms: list[str] = Field(default_factory=list)
    online_connections: str = Field(default="", alias="onlineConnections")


class InterestsBody(_WireModel):
    likes: list[str] = Field(default_factory=list)
    goals: str = ""
    dislikes: list[str] = Field(default_factory=list)


class HealthBody(_WireModel):
    chronic_conditions: str = Field(default="", alias="chronicConditions")
    lifestyle: str = ""
    physical_ability: str = Field(default="", alias="physicalAbility")
    medication: str = ""


class PastExperiencesBody(_WireModel):
    tried_to_go_out: bool = Field(default=False, alias="triedToGoOut")
    motivators: list[str] = Field(default_factory=list)
    fail_reasons: list[str] = Field(default_factory=list, alias="failReasons")


class ProfileRequest(_WireModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    age: int = Field(default=0, ge=0)
    gender: str = ""
    residence: ResidenceBody = Field(default_factory=ResidenceBody)
    hikikomori_status: HikikomoriStatusBody = Field(
        default_factory=HikikomoriStatusBody, alias="hikikomoriStatus")
    mental_state: MentalStateBody = Field(default_factory=MentalStateBody, alias="mentalState")
    digital_behavior: DigitalBehaviorBody = Field(
        default_factory=DigitalBehaviorBody, alias="digitalBehavior")
    interests: InterestsBody = Field(default_factory=InterestsBody)
    health: HealthBody = Field(default_factory=HealthBody)
    past_experiences: PastExperiencesBody = Field(
        default_factory=PastExperiencesBody, alias="pastExperiences")


@app.post("/api/profiles")
async def create_profile(req: ProfileRequest):
    profile = Profile.from_dict(req.model_dump(by_alias=True, exclude_none=True))

    try:
        store_profile(profile, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)

    return {"status": "saved", "profile": profile.to_dict()}


@app.get("/api/profiles/{user_id}")
async def read_profile(user_id: str):
    try:
        profile = get_profile(user_id, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)
    if profile is None:
        return _error(404, "Profile not found", user_id=user_id)
    return profile.to_dict()


@app.get("/api/profiles/{user_id}/stage")
async def read_profile_stage(user_id: str):
    try:
        profile = get_profile(user_id, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)
    if profile is None:
        return _error(404, "Profile not found", user_id=user_id)

    stage = classify(profile)
    return {
        "user_id": user_id,
        "stage": stage.value,
        "label": stage.label,
        "reason": get_stage_reason(profile, stage),
    }


# ── Quests ───────────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    use_narrative: bool = True


@app.post("/api/quests/{user_id}/generate")
async def generate_quests(user_id: str, req: Optional[GenerateRequest] = None):
    req = req or GenerateRequest()
    try:
        result = await quest_service.generate_quest_set(
            user_id, _get_redis(), use_narrative=req.use_narrative,
        )
    except ProfileNotFoundError:
        return _error(404, "Profile not found", user_id=user_id)
    except redis.RedisError as exc:
        return _unavailable(exc)

    quest_set = result.quest_set
    payload = {
        "quest_set": quest_set.to_dict(),
        "stage_label": quest_set.stage.label,
        "stage_reason": result.stage_reason,
        "source": result.source,
    }
    await manager.broadcast(_build_ws_message("quest_set_generated", payload))
    return payload


@app.get("/api/quests/{user_id}/latest")
async def latest_quests(user_id: str):
    try:
        quest_set = get_latest_quest_set(user_id, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)
    if quest_set is None:
        return _error(404, "No quest set found", user_id=user_id)
    return quest_set.to_dict()


@app.get("/api/quests/{user_id}/history")
async def quest_history(user_id: str):
    try:
        history = get_quest_history(user_id, _get_redis())
    except redis.RedisError as exc:
        return _unavailable(exc)
    return {
        "user_id": user_id,
        "quest_sets": [qs.to_dict() for qs in history],
        "total_completed": sum(qs.completed_count for qs in history),
    }


@app.get("/api/quests/{user_id}/status")
async def quest_status(user_id: str):
    try:
        return quest_service.quest_status(user_id, _get_redis())
    except QuestNotFoundError:
        return _error(404, "No quest set found", user_id=user_id)
    except redis.RedisError as exc:
        return _unavailable(exc)


@app.post("/api/quests/{user_id}/{quest_id}/complete")
async def complete_quest(user_id: str, quest_id: str):
    try:
        result = await quest_service.complete_quest(user_id, quest_id, _get_redis())
    except QuestNotFoundError as exc:
        return _error(404, str(exc), user_id=user_id, quest_id=quest_id)
    except redis.RedisError as exc:
        return _unavailable(exc)

    quest_set = result.quest_set
    payload = {
        "quest_set_id": quest_set.id,
        "quest_id": quest_id,
        "message": result.message,
        "reward": result.reward,
        "already_completed": result.already_completed,
        "completed": quest_set.completed_count,
        "total": len(quest_set.quests),
        "progress": quest_set.progress,
    }
    if not result.already_completed:
        await manager.broadcast(_build_ws_message("quest_completed", payload))
    return payload


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
