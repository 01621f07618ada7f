"""WebSocket communication layer tests.

Uses Starlette's TestClient for WebSocket testing and the same client for
the REST endpoints that trigger broadcasts.
"""

import json
import pytest
import fakeredis
from unittest.mock import patch
from starlette.testclient import TestClient


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def patched_app(fake_redis):
    """Import and patch the FastAPI app to use fakeredis."""
    with (
        patch("stepout.server._get_redis", return_value=fake_redis),
        patch("stepout.engine.quest_store._get_redis", return_value=fake_redis),
        patch("stepout.agents.narrative_agent.is_configured", return_value=False),
    ):
        from stepout.server import app
        yield app


@pytest.fixture
def test_client(patched_app):
    """Starlette test client for sync WebSocket testing."""
    return TestClient(patched_app)


# ═══════════════════════════════════════════════════════════════════════════
# WebSocket Tests
# ═══════════════════════════════════════════════════════════════════════════


class TestWebSocket:
    def test_ws_connect_receives_greeting(self, test_client):
        """On connect, the server sends a connected message."""
        with test_client.websocket_connect("/ws") as ws:
            msg = json.loads(ws.receive_text())
            assert msg["type"] == "connected"
            assert "payload" in msg
            assert "timestamp" in msg
            assert msg["payload"]["narrative_enabled"] is False

    def test_ws_ping_pong(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_text()
            ws.send_text(json.dumps({"type": "ping"}))
            msg = json.loads(ws.receive_text())
            assert msg["type"] == "pong"

    def test_ws_ignores_invalid_json(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_text()
            ws.send_text("not json")
            ws.send_text(json.dumps({"type": "ping"}))
            assert json.loads(ws.receive_text())["type"] == "pong"


# ═══════════════════════════════════════════════════════════════════════════
# Broadcasts
# ═══════════════════════════════════════════════════════════════════════════


class TestBroadcasts:
    def test_generate_broadcasts_quest_set(self, test_client, profile_body):
        test_client.post("/api/profiles", json=profile_body)
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_text()
            resp = test_client.post("/api/quests/김정민/generate", json={})
            assert resp.status_code == 200

            msg = json.loads(ws.receive_text())
            assert msg["type"] == "quest_set_generated"
            assert msg["payload"]["quest_set"]["userId"] == "김정민"
            assert msg["payload"]["source"] == "engine"

    def test_complete_broadcasts_quest_completed(self, test_client, profile_body):
        test_client.post("/api/profiles", json=profile_body)
        test_client.post("/api/quests/김정민/generate", json={})
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_text()
            resp = test_client.post("/api/quests/김정민/quest_preparation_1/complete")
            assert resp.status_code == 200

            msg = json.loads(ws.receive_text())
            assert msg["type"] == "quest_completed"
            assert msg["payload"]["quest_id"] == "quest_preparation_1"
            assert msg["payload"]["completed"] == 1
