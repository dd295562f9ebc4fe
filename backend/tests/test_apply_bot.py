"""
Tests for the Apply bot, its actions and the bot controller
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from apply_bot.actions import (
    PauseAutomationAction,
    ResumeAutomationAction,
    StartAutomationAction,
    StopAutomationAction,
)
from apply_bot.apply_bot import ApplyBot
from apply_bot.apply_bot_controller import ApplyBotController
from background.automation_orchestrator import AutomationOrchestrator
from shared.models import AutomationStatus


@pytest.fixture
def start_request():
    return {
        "platform": "indeed",
        "userId": "user_123",
        "jobsToApply": 3,
        "sessionId": "session_abc",
        "preferences": {},
    }


@pytest.fixture
def messages():
    return []


@pytest.fixture
def orchestrator():
    orchestrator = Mock()
    session = Mock()
    session.jobs_to_apply = 3
    session.platform = "indeed"
    session.stop_reason = None
    session.get_results.return_value = {"submitted": 3, "failed": 0, "skipped": 1}
    orchestrator.create_session.return_value = session
    orchestrator.run_session.return_value = AutomationStatus.COMPLETED
    return orchestrator


@pytest.fixture
def bot(start_request, orchestrator, messages):
    return ApplyBot(
        "apply_bot_indeed_1",
        "user_123",
        start_request,
        orchestrator,
        websocket_callback=messages.append,
    )


@pytest.fixture
def running_bot(bot):
    bot.is_running = True
    bot.status = "running"
    bot.automation_session = Mock()
    bot.browser_operator = Mock()
    bot.browser_operator.is_operations_paused.return_value = False
    return bot


def mock_user_service(can_apply=True, state=None):
    service = Mock()
    service.can_apply_more.return_value = can_apply
    service.user_state = state
    service.plan_limits = {"free": 5, "starter": 50}
    return service


class TestStartAutomationAction:
    """Tests for running a session through StartAutomationAction"""

    def test_runs_session_to_completion(self, bot, orchestrator):
        """Should run the session and return the completed results"""
        service = mock_user_service()
        with patch("apply_bot.actions.start_automation_action.UserService", return_value=service):
            result = StartAutomationAction(bot).execute()

        assert result["success"] is True
        assert result["status"] == "completed"
        assert result["message"] == "Automation completed"
        assert result["results"]["submitted"] == 3
        assert orchestrator.create_session.call_args[1]["user_service"] is service
        assert bot.status == "completed"
        assert bot.is_running is False

    def test_stopped_session(self, bot, orchestrator):
        """Should report a stopped session with its stop reason"""
        orchestrator.run_session.return_value = AutomationStatus.STOPPED
        orchestrator.create_session.return_value.stop_reason = "Stopped by user"

        with patch(
            "apply_bot.actions.start_automation_action.UserService",
            return_value=mock_user_service(),
        ):
            result = StartAutomationAction(bot).execute()

        assert result["status"] == "stopped"
        assert result["message"] == "Stopped by user"

    def test_failed_session(self, bot, orchestrator):
        """Should report a failed session as an error"""
        orchestrator.run_session.return_value = AutomationStatus.FAILED
        orchestrator.create_session.return_value.stop_reason = "Automation failed: no browser"

        with patch(
            "apply_bot.actions.start_automation_action.UserService",
            return_value=mock_user_service(),
        ):
            result = StartAutomationAction(bot).execute()

        assert result["success"] is False
        assert result["status"] == "error"
        assert bot.status == "error"

    def test_limit_reached(self, bot, orchestrator, messages):
        """Should refuse to start when the plan limit is used up"""
        service = mock_user_service(False, {"userRole": "free", "applicationsUsed": 5})
        with patch("apply_bot.actions.start_automation_action.UserService", return_value=service):
            result = StartAutomationAction(bot).execute()

        assert result["status"] == "limit_reached"
        assert result["error_code"] == "APPLICATION_LIMIT_REACHED"
        assert result["plan"] == "free"
        assert result["limit"] == 5
        assert result["used"] == 5
        orchestrator.create_session.assert_not_called()
        assert messages[-1]["status"] == "error"
        assert bot.is_running is False

    def test_already_running(self, running_bot, orchestrator):
        """Should not start a second session on a running bot"""
        result = StartAutomationAction(running_bot).execute()
        assert result["status"] == "already_running"
        orchestrator.create_session.assert_not_called()


class TestPauseResumeActions:
    """Tests for pausing and resuming a running bot"""

    def test_pause_requires_running_bot(self, bot):
        """Should reject pause when the bot is not running"""
        result = PauseAutomationAction(bot).execute()
        assert result == {"success": False, "message": "Bot is not running", "status": "not_running"}

    def test_pause_then_resume(self, running_bot, messages):
        """Should pause the session and browser, then resume both"""
        result = PauseAutomationAction(running_bot).execute()

        assert result["status"] == "paused"
        running_bot.automation_session.request_pause.assert_called_once()
        running_bot.browser_operator.pause_operations.assert_called_once()
        assert PauseAutomationAction(running_bot).execute()["message"] == "Bot is already paused"

        result = ResumeAutomationAction(running_bot).execute()

        assert result["status"] == "running"
        running_bot.browser_operator.resume_operations.assert_called_once()
        running_bot.automation_session.request_resume.assert_called_once()
        assert messages[-1] == {
            "type": "status_update",
            "status": "running",
            "message": "Automation resumed",
            "bot_id": "apply_bot_indeed_1",
        }

    def test_resume_requires_paused_bot(self, running_bot):
        """Should reject resume when the bot is not paused"""
        result = ResumeAutomationAction(running_bot).execute()
        assert result["success"] is False
        assert result["status"] == "running"


class TestStopAction:
    """Tests for StopAutomationAction"""

    def test_stop_without_session(self, bot):
        """Should mark the bot stopped even without a session"""
        result = StopAutomationAction(bot).execute()
        assert result["message"] == "Bot was not running"
        assert bot.status == "stopped"

    def test_stop_releases_paused_browser(self, running_bot):
        """Should resume paused browser operations so the bot thread can exit"""
        running_bot.browser_operator.is_operations_paused.return_value = True

        result = StopAutomationAction(running_bot).execute()

        assert result["success"] is True
        running_bot.automation_session.request_stop.assert_called_once()
        running_bot.browser_operator.resume_operations.assert_called_once()
        assert running_bot.is_running is False


class TestApplyBotController:
    """Tests for bot bookkeeping in ApplyBotController"""

    @pytest.fixture
    def controller(self):
        return ApplyBotController(orchestrator=AutomationOrchestrator())

    def test_invalid_request(self, controller, start_request):
        """Should reject an unsupported platform without creating a bot"""
        start_request["platform"] = "monster"
        result = controller.start_automation_controller(start_request)

        assert result["success"] is False
        assert result["status"] == "invalid_request"
        assert result["error_code"] == "PLATFORM_NOT_SUPPORTED"
        assert controller.bots == {}

    def test_start_runs_bot_in_thread(self, controller, start_request):
        """Should start the bot in a background thread and register polling"""
        with patch("apply_bot.apply_bot_controller.threading.Thread") as mock_thread:
            result = controller.start_automation_controller(start_request)

        assert result["success"] is True
        assert result["status"] == "started"
        assert result["bot_id"].startswith("apply_bot_indeed_")
        assert controller.has_polling_session("session_abc")
        bot = controller.get_active_bot("session_abc")
        assert bot.bot_thread is mock_thread.return_value
        mock_thread.return_value.start.assert_called_once()

    def test_start_while_running_is_rejected(self, controller, start_request):
        """Should refuse a start while the session already has a running bot"""
        existing = Mock(is_running=True, bot_id="apply_bot_indeed_old")
        controller.bots["session_abc"] = existing

        result = controller.start_automation_controller(start_request)

        assert result["success"] is False
        assert result["bot_id"] == "apply_bot_indeed_old"

    def test_activity_messages_need_polling_session(self, controller):
        """Should drop activity for sessions nobody polls"""
        controller._send_activity_message("session_abc", {"message": "dropped"})
        assert controller.drain_activity_messages("session_abc") == []

    def test_activity_messages_are_capped_and_drained(self, controller):
        """Should keep only the newest messages and empty the queue on drain"""
        controller.register_polling_session("session_abc")
        with patch("apply_bot.apply_bot_controller.MAX_MESSAGES_PER_SESSION", 3):
            for i in range(5):
                controller._send_activity_message("session_abc", {"message": str(i)})

        drained = controller.drain_activity_messages("session_abc")

        assert [m["message"] for m in drained] == ["2", "3", "4"]
        assert controller.drain_activity_messages("session_abc") == []

    def test_stop_unknown_session(self, controller):
        """Should fail to stop a session with no bot"""
        result = controller.stop_automation_controller("nope")
        assert result["success"] is False
        assert result["message"] == "No active bot found for this session"

    def test_stop_removes_bot(self, controller):
        """Should stop the bot and forget its session data"""
        bot = Mock(bot_id="apply_bot_indeed_1", bot_thread=None)
        bot.stop_automation.return_value = {"success": True, "message": "Automation stopped", "status": "stopped"}
        controller.bots["session_abc"] = bot
        controller.register_polling_session("session_abc")

        result = controller.stop_automation_controller("session_abc")

        assert result["status"] == "stopped"
        assert result["bot_id"] == "apply_bot_indeed_1"
        assert controller.bots == {}
        assert not controller.has_polling_session("session_abc")
        assert "session_abc" not in controller.stopping_sessions

    def test_pause_unknown_session(self, controller):
        """Should fail to pause or resume a session with no bot"""
        assert controller.pause_automation_controller("nope")["success"] is False
        assert controller.resume_automation_controller("nope")["success"] is False

    def test_bot_status(self, controller, bot):
        """Should describe known bots and report unknown sessions"""
        controller.bots["session_abc"] = bot

        status = controller.get_bot_status("session_abc")

        assert status["bot_exists"] is True
        assert status["platform"] == "indeed"
        assert status["has_browser"] is False
        assert controller.get_bot_status("nope")["bot_exists"] is False
        assert controller.get_all_bots_status()["total_bots"] == 1
