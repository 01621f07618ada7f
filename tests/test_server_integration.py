"""Integration tests for FastAPI server endpoints.

Uses httpx.AsyncClient with ASGITransport to test the REST API
without starting a real server. Redis is patched to use fakeredis
and the narrative collaborator is reported as unconfigured.
"""

import pytest
import fakeredis
import redis
from unittest.mock import patch
from httpx import AsyncClient, ASGITransport

from stepout.engine.intake import ASSESSMENT_QUESTIONS, FALLBACK_ENCOURAGEMENTS


@pytest.fixture
def fake_redis():
    """Create a shared fakeredis instance for this test."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def patched_app(fake_redis):
    """Import and patch the FastAPI app to use fakeredis everywhere."""
    with (
        patch("stepout.server._get_redis", return_value=fake_redis),
        patch("stepout.engine.quest_store._get_redis", return_value=fake_redis),
        patch("stepout.agents.narrative_agent.is_configured", return_value=False),
        patch("stepout.agents.narrative_agent.ANTHROPIC_API_KEY", ""),
    ):
        from stepout.server import app
        yield app


@pytest.fixture
async def client(patched_app):
    transport = ASGITransport(app=patched_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _create_profile(client, body):
    resp = await client.post("/api/profiles", json=body)
    assert resp.status_code == 200
    return resp.json()["profile"]


# ═══════════════════════════════════════════════════════════════════════════
# Health Check
# ═══════════════════════════════════════════════════════════════════════════


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_ok(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["redis"] is True
        assert data["narrative"] is False


# ═══════════════════════════════════════════════════════════════════════════
# Intake Endpoints
# ═══════════════════════════════════════════════════════════════════════════


class TestIntakeEndpoints:
    @pytest.mark.asyncio
    async def test_questions(self, client):
        resp = await client.get("/api/intake/questions")
        data = resp.json()
        assert data["total"] == len(ASSESSMENT_QUESTIONS)
        assert data["questions"][0]["key"] == "name"

    @pytest.mark.asyncio
    async def test_feedback_fallback(self, client):
        resp = await client.post("/api/intake/feedback", json={"question_index": 0, "response": "김정민"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["feedback"] in FALLBACK_ENCOURAGEMENTS
        assert data["next_question"]["key"] == "age"

    @pytest.mark.asyncio
    async def test_feedback_last_question(self, client):
        last = len(ASSESSMENT_QUESTIONS) - 1
        resp = await client.post("/api/intake/feedback", json={"question_index": last, "response": "없음"})
        data = resp.json()
        assert data["progress"] == 100
        assert data["next_question"] is None

    @pytest.mark.asyncio
    async def test_feedback_unknown_question(self, client):
        resp = await client.post("/api/intake/feedback", json={"question_index": 99, "response": "x"})
        assert resp.status_code == 404
        assert "error" in resp.json()

    @pytest.mark.asyncio
    async def test_complete_intake_stores_profile(self, client, demo_answers):
        answers = [demo_answers[q.key] for q in ASSESSMENT_QUESTIONS]
        resp = await client.post("/api/intake/complete", json={"answers": answers})
        assert resp.status_code == 200
        assert resp.json()["profile"]["mentalState"]["anxietyLevel"] == 4

        resp = await client.get("/api/profiles/김정민/stage")
        assert resp.json()["stage"] == "contemplation"

    @pytest.mark.asyncio
    async def test_incomplete_intake_rejected(self, client):
        resp = await client.post("/api/intake/complete", json={"answers": ["김정민", "29"]})
        assert resp.status_code == 400
        assert "error" in resp.json()


# ═══════════════════════════════════════════════════════════════════════════
# Profile Endpoints
# ═══════════════════════════════════════════════════════════════════════════


class TestProfileEndpoints:
    @pytest.mark.asyncio
    async def test_create_and_read(self, client, profile_body):
        await _create_profile(client, profile_body)
        resp = await client.get("/api/profiles/김정민")
        assert resp.status_code == 200
        assert resp.json()["interests"]["likes"] == ["게임", "SF영화"]

    @pytest.mark.asyncio
    async def test_missing_profile(self, client):
        resp = await client.get("/api/profiles/nobody")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Profile not found"

    @pytest.mark.asyncio
    async def test_invalid_anxiety_rejected(self, client, profile_body):
        profile_body["mentalState"]["anxietyLevel"] = 9
        resp = await client.post("/api/profiles", json=profile_body)
        assert resp.status_code == 400
        assert "anxietyLevel" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_zero_anxiety_rejected_not_coerced(self, client, fake_redis):
        resp = await client.post("/api/profiles", json={"name": "lee", "mentalState": {"anxietyLevel": 0}})
        assert resp.status_code == 400
        assert "mentalState.anxietyLevel" in resp.json()["error"]
        assert fake_redis.get("profile:lee") is None

    @pytest.mark.asyncio
    async def test_null_outings_rejected(self, client, profile_body):
        profile_body["hikikomoriStatus"]["outingsLastMonth"] = None
        resp = await client.post("/api/profiles", json=profile_body)
        assert resp.status_code == 400
        assert "outingsLastMonth" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_negative_outings_rejected(self, client, profile_body):
        profile_body["hikikomoriStatus"]["outingsLastMonth"] = -1
        resp = await client.post("/api/profiles", json=profile_body)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_string_false_parsed_as_false(self, client, profile_body):
        """The string "false" parses to False, so no attempt + high anxiety is precontemplation."""
        profile_body["pastExperiences"] = {"triedToGoOut": "false", "failReasons": ["x"]}
        profile_body["mentalState"]["anxietyLevel"] = 5
        resp = await client.post("/api/profiles", json=profile_body)
        assert resp.status_code == 200
        assert resp.json()["profile"]["pastExperiences"]["triedToGoOut"] is False

        stage = (await client.get("/api/profiles/김정민/stage")).json()
        assert stage["stage"] == "precontemplation"

    @pytest.mark.asyncio
    async def test_list_field_type_checked(self, client, profile_body):
        profile_body["interests"]["likes"] = "게임"
        resp = await client.post("/api/profiles", json=profile_body)
        assert resp.status_code == 400
        assert "interests.likes" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_missing_name_rejected(self, client):
        resp = await client.post("/api/profiles", json={"age": 20})
        assert resp.status_code == 400
        assert "name" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_stage(self, client, profile_body):
        await _create_profile(client, profile_body)
        resp = await client.get("/api/profiles/김정민/stage")
        data = resp.json()
        assert data["stage"] == "preparation"
        assert data["label"] == "준비기"
        assert data["reason"]


# ═══════════════════════════════════════════════════════════════════════════
# Quest Endpoints
# ═══════════════════════════════════════════════════════════════════════════


class TestQuestEndpoints:
    @pytest.mark.asyncio
    async def test_generate_without_profile(self, client):
        resp = await client.post("/api/quests/nobody/generate", json={})
        assert resp.status_code == 404
        assert "error" in resp.json()

    @pytest.mark.asyncio
    async def test_generate_uses_engine(self, client, profile_body):
        await _create_profile(client, profile_body)
        resp = await client.post("/api/quests/김정민/generate", json={"use_narrative": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["source"] == "engine"
        assert data["stage_label"] == "준비기"
        assert len(data["quest_set"]["quests"]) == 3

    @pytest.mark.asyncio
    async def test_latest_and_history(self, client, profile_body):
        await _create_profile(client, profile_body)
        first = (await client.post("/api/quests/김정민/generate", json={})).json()
        second = (await client.post("/api/quests/김정민/generate", json={})).json()

        latest = (await client.get("/api/quests/김정민/latest")).json()
        assert latest["id"] == second["quest_set"]["id"]

        history = (await client.get("/api/quests/김정민/history")).json()
        ids = [qs["id"] for qs in history["quest_sets"]]
        assert ids == [second["quest_set"]["id"], first["quest_set"]["id"]]

    @pytest.mark.asyncio
    async def test_latest_missing(self, client):
        resp = await client.get("/api/quests/nobody/latest")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_and_status(self, client, profile_body):
        await _create_profile(client, profile_body)
        await client.post("/api/quests/김정민/generate", json={})

        resp = await client.post("/api/quests/김정민/quest_preparation_1/complete")
        assert resp.status_code == 200
        data = resp.json()
        assert data["completed"] == 1
        assert data["already_completed"] is False
        assert data["message"]

        again = (await client.post("/api/quests/김정민/quest_preparation_1/complete")).json()
        assert again["already_completed"] is True

        status = (await client.get("/api/quests/김정민/status")).json()
        assert status["completed"] == 1
        assert status["progress"] == 33

    @pytest.mark.asyncio
    async def test_complete_unknown_quest(self, client, profile_body):
        await _create_profile(client, profile_body)
        await client.post("/api/quests/김정민/generate", json={})
        resp = await client.post("/api/quests/김정민/missing/complete")
        assert resp.status_code == 404
        assert "error" in resp.json()

    @pytest.mark.asyncio
    async def test_store_failure_returns_503(self, client):
        with patch(
            "stepout.services.quest_service.get_profile",
            side_effect=redis.ConnectionError("down"),
        ):
            resp = await client.post("/api/quests/김정민/generate", json={})
        assert resp.status_code == 503
        assert "error" in resp.json()
