"""
Tests for start-request validation and the automation session lifecycle
"""

import logging
import os
import sys
from unittest.mock import Mock, patch

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from background.automation_orchestrator import (
    FINISH_GRACE_PERIOD,
    AutomationOrchestrator,
    AutomationSession,
    validate_start_request,
)
from background.storage import StateStorage
from exceptions import InvalidStartRequestException, PlatformNotSupportedException
from platforms.base_platform_automation import APPLY, SEARCH
from shared.models import AutomationStatus, SubmissionStatus


@pytest.fixture
def request_data():
    return {
        "platform": "Indeed",
        "userId": "user_123",
        "jobsToApply": 3,
        "sessionId": "session_abc",
        "preferences": {"positions": ["Python Developer"], "location": ["Austin, TX"]},
        "userProfile": {"phone": "555-0100", "city": None},
    }


@pytest.fixture
def browser_operator():
    operator = Mock()
    operator.window_id = 7
    operator.start.return_value = Mock(url="about:blank")
    operator.get_tab_id.return_value = 1
    operator.open_tab.return_value = (2, Mock(url="https://jobs.lever.co/acme/1/apply"))
    return operator


@pytest.fixture
def user_service():
    service = Mock()
    service.get_user_details.return_value = {"firstName": "Ada", "phone": "555-0000", "city": "Austin"}
    return service


@pytest.fixture
def activity():
    return []


@pytest.fixture
def make_session(request_data, browser_operator, user_service, scheduler, tmp_path, activity):
    def _make(**overrides):
        data = validate_start_request(dict(request_data, **overrides))
        return AutomationSession(
            data,
            activity_callback=activity.append,
            browser_operator=browser_operator,
            scheduler=scheduler,
            storage=StateStorage(str(tmp_path / "state.json")),
            user_service=user_service,
        )

    return _make


class TestValidateStartRequest:
    """Tests for validate_start_request"""

    def test_normalizes_request(self, request_data):
        """Should lowercase the platform and fill in defaults"""
        del request_data["sessionId"]
        del request_data["preferences"]

        normalized = validate_start_request(request_data)

        assert normalized["platform"] == "indeed"
        assert normalized["sessionId"]
        assert normalized["preferences"] == {}
        assert normalized["devMode"] is False

    @pytest.mark.parametrize("field", ["platform", "userId", "jobsToApply"])
    def test_missing_field(self, request_data, field):
        """Should name the missing required field"""
        del request_data[field]
        with pytest.raises(InvalidStartRequestException) as exc_info:
            validate_start_request(request_data)
        assert exc_info.value.field == field

    @pytest.mark.parametrize("value", [0, -2, "5", 2.5, True])
    def test_jobs_to_apply_must_be_positive_int(self, request_data, value):
        """Should reject jobsToApply values that are not positive integers"""
        request_data["jobsToApply"] = value
        with pytest.raises(InvalidStartRequestException) as exc_info:
            validate_start_request(request_data)
        assert exc_info.value.field == "jobsToApply"

    def test_unknown_platform(self, request_data):
        """Should reject unsupported platforms and list the supported ones"""
        request_data["platform"] = "monster"
        with pytest.raises(PlatformNotSupportedException) as exc_info:
            validate_start_request(request_data)
        assert exc_info.value.platform == "monster"
        assert "linkedin" in exc_info.value.supported_platforms

    def test_not_an_object(self):
        """Should reject a body that is not an object"""
        with pytest.raises(InvalidStartRequestException):
            validate_start_request(["indeed"])


class TestAutomationSession:
    """Tests for AutomationSession"""

    def test_initial_state(self, make_session):
        """Should build search data from the request"""
        session = make_session()

        assert session.status == AutomationStatus.CREATED
        assert session.search_data.limit == 3
        assert session.search_data.domain == ["indeed.com"]
        assert session.session_config["platform"] == "indeed"

    def test_request_profile_overrides_server_profile(self, make_session, user_service):
        """Should merge the request profile over the fetched one, once"""
        session = make_session()

        profile = session.get_user_profile()
        session.get_user_profile()

        assert profile["firstName"] == "Ada"
        assert profile["phone"] == "555-0100"
        assert profile["city"] == "Austin"
        user_service.get_user_details.assert_called_once()

    def test_start_opens_search_tab(self, make_session, browser_operator):
        """Should open the search URL and attach a search automation"""
        session = make_session()
        automation = Mock()

        with patch.object(session, "create_automation", return_value=automation) as mock_create:
            session.start()

        url = browser_operator.navigate_to.call_args[0][0]
        assert url.startswith("https://www.indeed.com/jobs?")
        mock_create.assert_called_once_with(browser_operator.start.return_value, 1, SEARCH)
        automation.initialize.assert_called_once()
        assert session.automations == {1: automation}
        assert session.status == AutomationStatus.RUNNING
        assert session.window_manager.is_automation_window(7)

    def test_create_automation_carries_session_config(self, make_session):
        """Should configure automations from the session"""
        session = make_session()
        page = Mock(url="https://www.indeed.com/jobs")

        automation = session.create_automation(page, 1, SEARCH)

        assert automation.platform == "indeed"
        assert automation.mode == SEARCH
        assert automation.tab_id == 1
        assert automation.config["userProfile"]["firstName"] == "Ada"
        assert automation.jobs_to_apply == 3

    def test_open_and_close_job_tab(self, make_session, browser_operator):
        """Should open a job tab in apply mode and clean it up on close"""
        session = make_session(platform="lever")
        automation = Mock()

        with patch.object(session, "create_automation", return_value=automation) as mock_create:
            tab_id = session.open_job_tab("https://jobs.lever.co/acme/1")

        assert tab_id == 2
        browser_operator.open_tab.assert_called_once_with("https://jobs.lever.co/acme/1/apply")
        assert mock_create.call_args[0][2] == APPLY
        automation.initialize.assert_called_once()

        session.close_job_tab(2)
        automation.cleanup.assert_called_once()
        browser_operator.close_tab.assert_called_once_with(2)
        assert session.automations == {}

    def test_job_tab_is_closed_when_automation_fails_to_start(self, make_session, browser_operator):
        """Should close the new tab when its automation cannot be initialized"""
        session = make_session(platform="lever")
        automation = Mock()
        automation.initialize.side_effect = Exception("port refused")

        with patch.object(session, "create_automation", return_value=automation):
            with pytest.raises(Exception, match="port refused"):
                session.open_job_tab("https://jobs.lever.co/acme/1")

        automation.cleanup.assert_called_once()
        browser_operator.close_tab.assert_called_once_with(2)
        assert session.automations == {}

    def test_record_result(self, make_session):
        """Should count submissions by outcome"""
        session = make_session()
        session.record_result(SubmissionStatus.SUCCESS)
        session.record_result(SubmissionStatus.SKIP, "Already applied")
        session.record_result(SubmissionStatus.TIMEOUT)

        results = session.get_results()
        assert results["submitted"] == 1
        assert results["skipped"] == 1
        assert results["failed"] == 1
        assert results["limit"] == 3

    def test_update_progress_accepts_wrapped_progress(self, make_session):
        """Should unwrap progress sent as {"progress": ...}"""
        session = make_session()
        session.update_progress({"progress": {"completed": 2}})
        assert session.get_status()["progress"] == {"completed": 2}

    def test_complete_session_waits_for_grace_period(self, make_session, pump, activity):
        """Should finish only after the grace period"""
        session = make_session()
        session.status = AutomationStatus.RUNNING

        session.complete_session("Reached the application limit")
        pump()
        assert session.status == AutomationStatus.RUNNING

        pump(FINISH_GRACE_PERIOD)
        assert session.status == AutomationStatus.COMPLETED
        assert session.stop_reason == "Reached the application limit"
        assert activity[-1]["type"] == "status_update"
        assert activity[-1]["status"] == "completed"

    def test_finish_is_final(self, make_session):
        """Should keep the first finishing status"""
        session = make_session()
        session.finish(AutomationStatus.STOPPED, "Too many errors")
        session.finish(AutomationStatus.COMPLETED, "done")

        assert session.status == AutomationStatus.STOPPED
        assert session.stop_reason == "Too many errors"


class TestCommands:
    """Tests for queued session commands"""

    def test_pause_and_resume(self, make_session):
        """Should pause and resume every automation"""
        session = make_session()
        automation = Mock()
        session.automations[1] = automation
        session.status = AutomationStatus.RUNNING

        session.request_pause()
        session.drain_commands()
        assert session.status == AutomationStatus.PAUSED
        automation.pause.assert_called_once()

        session.request_resume()
        session.drain_commands()
        assert session.status == AutomationStatus.RUNNING
        automation.resume.assert_called_once()

    def test_pause_ignored_unless_running(self, make_session):
        """Should ignore pause before the session runs"""
        session = make_session()
        session.request_pause()
        session.drain_commands()
        assert session.status == AutomationStatus.CREATED

    def test_stop(self, make_session):
        """Should stop automations and finish as stopped"""
        session = make_session()
        automation = Mock()
        session.automations[1] = automation
        session.status = AutomationStatus.RUNNING

        session.request_stop()
        session.drain_commands()

        automation.stop.assert_called_once()
        assert session.status == AutomationStatus.STOPPED
        assert session.stop_reason == "Stopped by user"
        assert session.is_finished()


class TestShutdown:
    """Tests for AutomationSession.shutdown"""

    def test_unfinished_session_is_interrupted(self, make_session, browser_operator, scheduler):
        """Should clean up and mark an unfinished session interrupted"""
        session = make_session()
        automation = Mock()
        session.automations[1] = automation
        session.window_id = 7
        session.status = AutomationStatus.RUNNING
        session.scheduler.call_later(10, Mock())

        session.shutdown()

        automation.cleanup.assert_called_once()
        browser_operator.close.assert_called_once()
        assert session.status == AutomationStatus.INTERRUPTED
        assert scheduler.pending_count() == 0

    def test_browser_close_errors_are_logged(self, make_session, browser_operator):
        """Should not raise when the browser fails to close"""
        session = make_session()
        session.finish(AutomationStatus.COMPLETED)
        browser_operator.close.side_effect = Exception("browser already gone")

        session.shutdown()

        assert session.status == AutomationStatus.COMPLETED

    def test_dev_mode_console_level_is_restored(self, make_session):
        """Should put the console back to INFO when a dev-mode session ends"""
        session = make_session(devMode=True)

        with patch("background.automation_orchestrator.set_console_level") as mock_level:
            session.shutdown()

        mock_level.assert_called_once_with(logging.INFO)


class TestAutomationOrchestrator:
    """Tests for AutomationOrchestrator"""

    @pytest.fixture
    def orchestrator(self, tmp_path):
        return AutomationOrchestrator(storage=StateStorage(str(tmp_path / "state.json")))

    def test_failed_start_is_recorded_and_removed(
        self, orchestrator, request_data, browser_operator, user_service, scheduler
    ):
        """Should mark a session failed and drop it when start raises"""
        browser_operator.start.side_effect = Exception("no browser")
        session = orchestrator.create_session(
            request_data,
            browser_operator=browser_operator,
            user_service=user_service,
            scheduler=scheduler,
        )
        assert orchestrator.get_session("session_abc") is session

        status = orchestrator.run_session(session)

        assert status == AutomationStatus.FAILED
        assert session.stop_reason == "Automation failed: no browser"
        assert orchestrator.get_session("session_abc") is None

    def test_commands_for_unknown_session(self, orchestrator):
        """Should return False for unknown session ids"""
        assert orchestrator.stop_session("nope") is False
        assert orchestrator.pause_session("nope") is False
        assert orchestrator.resume_session("nope") is False

    def test_list_sessions(self, orchestrator, request_data, browser_operator, user_service):
        """Should list sessions with their status"""
        orchestrator.create_session(
            request_data, browser_operator=browser_operator, user_service=user_service
        )

        sessions = orchestrator.list_sessions()

        assert len(sessions) == 1
        assert sessions[0]["sessionId"] == "session_abc"
        assert sessions[0]["status"] == "created"

    def test_stop_is_queued(self, orchestrator, request_data, browser_operator, user_service):
        """Should queue stop for the bot thread"""
        session = orchestrator.create_session(
            request_data, browser_operator=browser_operator, user_service=user_service
        )

        assert orchestrator.stop_session("session_abc") is True
        assert session.commands.get_nowait() == "stop"

    def test_sessions_share_one_window_registry(self, orchestrator, request_data, user_service):
        """Every session registers into the orchestrator's window manager"""
        sessions = []
        for window_id, session_id in ((7, "s1"), (8, "s2")):
            operator = Mock(window_id=window_id)
            operator.get_tab_id.return_value = 1
            session = orchestrator.create_session(
                dict(request_data, sessionId=session_id),
                browser_operator=operator,
                user_service=user_service,
            )
            assert session.window_manager is orchestrator.window_manager
            assert session.storage is orchestrator.storage
            with patch.object(session, "create_automation", return_value=Mock()):
                session.start()
            sessions.append(session)

        sessions[0].shutdown()

        stored = orchestrator.storage.get("automationWindows")
        assert [window["windowId"] for window in stored] == [8]
        assert orchestrator.window_manager.is_automation_window(8)

    def test_cleanup_stale_windows(self, orchestrator, request_data, browser_operator, user_service):
        """Should drop persisted windows that no live session owns"""
        orchestrator.storage.set("automationWindows", [{"windowId": 3}, {"windowId": 7}])
        session = orchestrator.create_session(
            request_data, browser_operator=browser_operator, user_service=user_service
        )
        session.window_id = 7

        assert orchestrator.cleanup_stale_windows() == 1
        assert [w["windowId"] for w in orchestrator.storage.get("automationWindows")] == [7]
