"""
Tests for the REST API routes
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import fastapi_server


@pytest.fixture
def controller():
    controller = Mock()
    controller.bots = {}
    controller.get_all_bots_status.return_value = {"total_bots": 0, "bots": {}}
    with patch.object(fastapi_server, "apply_bot_controller", controller):
        yield controller


@pytest.fixture
def client(controller):
    return TestClient(fastapi_server.app)


START_BODY = {"platform": "indeed", "userId": "user_123", "jobsToApply": 3}


class TestStartRoute:
    """Tests for POST /api/automation/start"""

    def test_missing_fields_are_rejected(self, client, controller):
        """Should return 422 when required fields are missing"""
        response = client.post("/api/automation/start", json={"platform": "indeed"})

        assert response.status_code == 422
        controller.start_automation_controller.assert_not_called()

    def test_start(self, client, controller):
        """Should pass the validated body to the controller"""
        controller.start_automation_controller.return_value = {
            "success": True,
            "status": "started",
            "bot_id": "apply_bot_indeed_1",
            "session_id": "session_abc",
            "message": "Bot started successfully in background",
        }

        response = client.post(
            "/api/automation/start", json={**START_BODY, "userProfile": {"firstName": "Ada"}}
        )

        assert response.status_code == 200
        assert response.json()["session_id"] == "session_abc"
        start_request = controller.start_automation_controller.call_args[0][0]
        assert start_request["jobsToApply"] == 3
        assert start_request["userProfile"] == {"firstName": "Ada"}
        assert start_request["devMode"] is False
        assert "sessionId" not in start_request

    def test_invalid_request_is_400(self, client, controller):
        """Should return 400 for an invalid start request"""
        controller.start_automation_controller.return_value = {
            "success": False,
            "status": "invalid_request",
            "error_code": "PLATFORM_NOT_SUPPORTED",
            "message": "Platform not supported: monster",
        }

        response = client.post("/api/automation/start", json={**START_BODY, "platform": "monster"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "PLATFORM_NOT_SUPPORTED"

    def test_failed_start_is_500(self, client, controller):
        """Should return 500 when the bot fails to start"""
        controller.start_automation_controller.return_value = {
            "success": False,
            "message": "Failed to start automation: boom",
        }

        response = client.post("/api/automation/start", json=START_BODY)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to start automation: boom"


class TestSessionRoutes:
    """Tests for per-session and service routes"""

    def test_platforms(self, client):
        """Should list the supported platforms"""
        response = client.get("/api/platforms")
        assert "wellfound" in response.json()["platforms"]

    def test_health(self, client, controller):
        """Should report the number of active sessions"""
        controller.get_all_bots_status.return_value = {"total_bots": 2, "bots": {}}
        assert client.get("/health").json() == {"status": "healthy", "active_sessions": 2}

    def test_activity_is_drained(self, client, controller):
        """Should return and drain pending activity messages"""
        controller.drain_activity_messages.return_value = [{"type": "activity", "message": "Hi"}]

        body = client.get("/api/automation/session_abc/activity").json()

        assert body["count"] == 1
        assert body["messages"][0]["message"] == "Hi"
        controller.drain_activity_messages.assert_called_once_with("session_abc")

    def test_stop_pause_resume(self, client, controller):
        """Should forward stop, pause and resume to the controller"""
        for action in ("stop", "pause", "resume"):
            getattr(controller, f"{action}_automation_controller").return_value = {
                "success": True,
                "message": f"{action} ok",
            }
            response = client.post(f"/api/automation/session_abc/{action}")
            assert response.json() == {"success": True, "message": f"{action} ok"}

    def test_status_of_unknown_session(self, client, controller):
        """Should report an unknown status for missing sessions"""
        controller.get_bot_status.return_value = {
            "session_id": "nope",
            "bot_exists": False,
            "message": "No bot found for this session",
        }

        body = client.get("/api/automation/nope/status").json()

        assert body["success"] is False
        assert body["status"] == "unknown"
        assert body["message"] == "No bot found for this session"

    def test_status(self, client, controller):
        """Should return the bot and session status"""
        controller.get_bot_status.return_value = {
            "session_id": "session_abc",
            "bot_exists": True,
            "bot_id": "apply_bot_indeed_1",
            "platform": "indeed",
            "is_running": True,
            "status": "running",
            "has_browser": True,
            "session": {"results": {"submitted": 1}},
        }

        body = client.get("/api/automation/session_abc/status").json()

        assert body["success"] is True
        assert body["is_running"] is True
        assert body["session"]["results"]["submitted"] == 1
