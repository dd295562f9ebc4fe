"""
Tests for the background handler: task hand-out, job tabs, completions,
error limits and timeouts, driven over real ports on a fake clock
"""

import os
import sys
from unittest.mock import Mock

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from background.background_handler import BackgroundHandler, parse_port_name
from config import APPLICATION_TIMEOUT, ERROR_BACKOFF_STEP_MS, MAX_ERRORS_PER_SESSION
from shared.messaging import MessageHub, MessageType, PortSender, make_message
from shared.models import SearchData, SubmissionStatus

JOB_URL = "https://www.indeed.com/viewjob?jk=abc123"
SEARCH_TAB = 1
APPLY_TAB = 2


@pytest.fixture
def session():
    """Stand-in for the AutomationSession that owns the handler"""
    session = Mock()
    session.platform = "indeed"
    session.session_id = "session_abc"
    session.user_id = "user_123"
    session.dev_mode = False
    session.session_config = {"sessionId": "session_abc", "platform": "indeed"}
    session.search_data = SearchData(limit=3, domain=["indeed.com"])
    session.get_user_profile.return_value = {"firstName": "Ada"}
    session.open_job_tab.return_value = APPLY_TAB
    return session


@pytest.fixture
def hub(scheduler):
    return MessageHub(scheduler)


@pytest.fixture
def handler(session, scheduler, hub):
    return BackgroundHandler(session, scheduler, hub)


class Client:
    """Automation end of a port that records what the handler sends back"""

    def __init__(self, hub, name, tab_id, url=""):
        self.port = hub.connect(name, PortSender(tab_id, url))
        self.received = []
        self.port.on_message(lambda message, port: self.received.append(message))

    def send(self, message_type, data=None, **extra):
        self.port.post_message(make_message(message_type, data, **extra))

    def types(self):
        return [message["type"] for message in self.received]

    def last(self, message_type):
        matches = [m for m in self.received if m["type"] == message_type]
        return matches[-1] if matches else None


@pytest.fixture
def search_client(handler, hub, pump):
    client = Client(hub, "indeed-search-1700000000000-abc123", SEARCH_TAB, "https://www.indeed.com/jobs")
    pump()
    pump(0.2)
    client.send(MessageType.GET_SEARCH_TASK)
    pump()
    return client


def start_job(search_client, pump, url=JOB_URL):
    search_client.send(MessageType.START_APPLICATION, {"url": url, "title": "Engineer", "description": "Build"})
    pump()


def connect_apply_client(hub, pump):
    client = Client(hub, "indeed-apply-1700000000001-abc123", APPLY_TAB, JOB_URL)
    pump()
    pump(0.2)
    return client


class TestParsePortName:
    """Tests for parse_port_name"""

    def test_parts(self):
        """Should split a port name into platform, type, timestamp and suffix"""
        assert parse_port_name("lever-apply-1700000000000-x1y2z3") == {
            "platform": "lever",
            "type": "apply",
            "timestamp": "1700000000000",
            "suffix": "x1y2z3",
        }

    def test_short_name(self):
        """Should leave missing parts as None"""
        assert parse_port_name("lever")["type"] is None


class TestConnections:
    """Tests for port registration"""

    def test_connection_is_confirmed(self, handler, search_client):
        """Should send CONNECTION_ESTABLISHED on connect"""
        message = search_client.last(MessageType.CONNECTION_ESTABLISHED)
        assert message["data"]["tabId"] == SEARCH_TAB
        assert message["data"]["portType"] == "search"
        assert message["data"]["sessionId"] == "session_abc"

    def test_foreign_platform_port_is_rejected(self, handler, hub, pump):
        """Should disconnect ports named for another platform"""
        client = Client(hub, "lever-search-1700000000000-abc123", 5)
        pump()

        assert not client.port.connected
        assert client.port.name not in handler.ports

    def test_reconnect_from_same_tab_replaces_port(self, handler, hub, search_client, pump):
        """Should disconnect the previous port of the same tab and type"""
        replacement = Client(hub, "indeed-search-1700000009999-abc123", SEARCH_TAB)
        pump()

        assert not search_client.port.connected
        assert handler.get_search_port().name == replacement.port.name

    def test_stale_ports_are_cleaned_up(self, handler, search_client, pump, clock):
        """Should disconnect ports that have been silent too long"""
        clock.advance(121)
        assert handler.cleanup_stale_ports() == 1
        assert handler.ports == {}


class TestSearchTask:
    """Tests for search task and housekeeping messages"""

    def test_search_task_data(self, handler, search_client):
        """Should answer GET_SEARCH_TASK with the session's search data"""
        data = search_client.last(MessageType.SEARCH_TASK_DATA)["data"]
        assert data["tabId"] == SEARCH_TAB
        assert data["limit"] == 3
        assert data["current"] == 0
        assert data["domain"] == ["indeed.com"]
        assert handler.state.search_tab_id == SEARCH_TAB

    def test_keepalive_is_answered(self, search_client, pump):
        """Should answer KEEPALIVE with a timestamped response"""
        search_client.send(MessageType.KEEPALIVE)
        pump()
        assert MessageType.KEEPALIVE_RESPONSE in search_client.types()

    def test_unknown_message_type(self, search_client, pump):
        """Should answer unknown message types with ERROR"""
        search_client.send("SOMETHING_NEW")
        pump()
        assert search_client.last(MessageType.ERROR)["message"] == "Unknown message type: SOMETHING_NEW"

    def test_duplicate_messages_inside_window_are_ignored(self, search_client, pump):
        """Should drop a repeated message from the same tab within the window"""
        search_client.send(MessageType.CHECK_APPLICATION_STATUS)
        search_client.send(MessageType.CHECK_APPLICATION_STATUS)
        pump()
        assert search_client.types().count(MessageType.APPLICATION_STATUS) == 1


class TestStartApplication:
    """Tests for START_APPLICATION handling"""

    def test_opens_job_tab(self, handler, session, search_client, pump):
        """Should open the job in a new tab and acknowledge"""
        start_job(search_client, pump)

        session.open_job_tab.assert_called_once_with(JOB_URL)
        assert search_client.last(MessageType.SUCCESS)["message"] == "Apply tab will be created"
        assert handler.state.is_processing_job
        assert handler.state.current_job_tab_id == APPLY_TAB
        link = handler.state.search_data.submitted_links[0]
        assert link.url == JOB_URL
        assert link.status == SubmissionStatus.PROCESSING

    def test_second_job_while_busy_is_duplicate(self, session, search_client, pump):
        """Should answer DUPLICATE while another job is processing"""
        start_job(search_client, pump)
        pump(2)
        start_job(search_client, pump, "https://www.indeed.com/viewjob?jk=other")

        assert search_client.last(MessageType.DUPLICATE)["message"] == "Already processing another job"
        session.open_job_tab.assert_called_once()

    def test_already_submitted_url_is_duplicate(self, handler, session, search_client, pump):
        """Should answer DUPLICATE for a URL already submitted"""
        handler.state.search_data.submitted_links.append(_submitted(JOB_URL))
        start_job(search_client, pump, JOB_URL + "&from=serp")

        assert search_client.last(MessageType.DUPLICATE)["message"] == "This job has already been processed"
        session.open_job_tab.assert_not_called()

    def test_invalid_url_is_rejected(self, session, search_client, pump):
        """Should answer ERROR for a URL that is not a job page"""
        start_job(search_client, pump, "")
        assert search_client.last(MessageType.ERROR)["message"].startswith("Invalid job URL")
        session.open_job_tab.assert_not_called()

    def test_job_description_is_cached_for_the_apply_tab(self, handler, hub, search_client, pump, tmp_path):
        """Should hand the search tab's job description to the apply tab"""
        from background.storage import StateStorage

        handler.storage = StateStorage(str(tmp_path / "state.json"))
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)
        apply_client.send(MessageType.GET_APPLICATION_TASK)
        pump()

        task = apply_client.last(MessageType.APPLICATION_TASK_DATA)["data"]
        assert task["session"]["jobDescription"] == "Build"
        assert task["profile"] == {"firstName": "Ada"}
        assert task["userId"] == "user_123"

    def test_failed_tab_open_releases_the_job(self, handler, session, search_client, pump):
        """Should record an error and keep searching when the job tab cannot be opened"""
        session.open_job_tab.side_effect = [
            Exception("Blocked by additional verification challenge"),
            3,
        ]
        start_job(search_client, pump)

        assert not handler.state.is_processing_job
        assert handler.error_count == 1
        link = handler.state.search_data.submitted_links[0]
        assert link.status == SubmissionStatus.ERROR
        assert "verification" in link.error
        assert session.record_result.call_args[0][0] == SubmissionStatus.ERROR
        assert search_client.last(MessageType.DUPLICATE) is None

        pump(ERROR_BACKOFF_STEP_MS / 1000)
        search_next = search_client.last(MessageType.SEARCH_NEXT)
        assert search_next["data"]["status"] == "ERROR"
        assert search_next["data"]["url"] == JOB_URL

        start_job(search_client, pump, "https://www.indeed.com/viewjob?jk=b2")

        assert search_client.last(MessageType.DUPLICATE) is None
        assert session.open_job_tab.call_count == 2
        assert handler.state.is_processing_job
        assert handler.state.current_job_tab_id == 3


def _submitted(url):
    from shared.models import SubmittedLink

    return SubmittedLink(url=url, status=SubmissionStatus.SUCCESS)


class TestCompletion:
    """Tests for task completion messages"""

    def test_success_moves_search_on(self, handler, session, hub, search_client, pump):
        """Should record success, close the tab and send SEARCH_NEXT"""
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)

        apply_client.send(MessageType.APPLICATION_SUCCESS, {"title": "Engineer"}, url=JOB_URL)
        pump()

        session.record_result.assert_called_once_with(SubmissionStatus.SUCCESS, {"title": "Engineer"})
        session.close_job_tab.assert_called_once_with(APPLY_TAB)
        assert handler.state.search_data.current == 1
        assert handler.state.search_data.submitted_links[0].status == SubmissionStatus.SUCCESS
        assert not handler.state.is_processing_job

        search_next = search_client.last(MessageType.SEARCH_NEXT)
        assert search_next["data"]["status"] == "SUCCESS"
        assert search_next["data"]["url"] == JOB_URL

    def test_skip_is_recorded(self, handler, session, hub, search_client, pump):
        """Should record a skipped job and move on"""
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)

        apply_client.send(MessageType.APPLICATION_SKIPPED, "Already applied", url=JOB_URL)
        pump()

        session.record_result.assert_called_once_with(SubmissionStatus.SKIP, "Already applied")
        link = handler.state.search_data.submitted_links[0]
        assert link.status == SubmissionStatus.SKIP
        assert link.error == "Already applied"
        assert search_client.last(MessageType.SEARCH_NEXT)["data"]["message"] == "Already applied"

    def test_error_backs_off_before_next_search(self, session, hub, search_client, pump):
        """Should delay SEARCH_NEXT after an error"""
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)

        apply_client.send(MessageType.APPLICATION_ERROR, "Form not found", url=JOB_URL)
        pump()
        assert search_client.last(MessageType.SEARCH_NEXT) is None

        pump(ERROR_BACKOFF_STEP_MS / 1000)
        assert search_client.last(MessageType.SEARCH_NEXT)["data"]["status"] == "ERROR"

    def test_in_page_completion_keeps_search_tab_open(self, handler, session, search_client, pump):
        """Boards that apply in the search tab report completion on the search port"""
        session.open_job_tab.return_value = SEARCH_TAB
        start_job(search_client, pump)

        search_client.send(MessageType.APPLICATION_SUCCESS, {"title": "Engineer"}, url=JOB_URL)
        pump()

        session.close_job_tab.assert_not_called()
        assert handler.state.search_data.current == 1

    def test_limit_reached_completes_session(self, handler, session, hub, search_client, pump):
        """Should complete the session when the limit is reached"""
        handler.state.search_data.limit = 1
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)

        apply_client.send(MessageType.APPLICATION_SUCCESS, {}, url=JOB_URL)
        pump()

        session.complete_session.assert_called_once()
        assert MessageType.AUTOMATION_COMPLETED in search_client.types()
        assert MessageType.SEARCH_NEXT not in search_client.types()

    def test_too_many_errors_stop_session(self, handler, session, hub, search_client, pump):
        """Should stop the session after too many errors"""
        apply_client = connect_apply_client(hub, pump)
        for i in range(MAX_ERRORS_PER_SESSION):
            handler.state.is_processing_job = True
            handler.state.current_job_url = f"https://www.indeed.com/viewjob?jk=job{i}"
            apply_client.send(MessageType.APPLICATION_ERROR, "boom", url=handler.state.current_job_url)
            pump(2)

        session.stop_session.assert_called_once()
        assert "Too many errors" in session.stop_session.call_args[0][0]
        assert MessageType.AUTOMATION_STOPPED in search_client.types()

    def test_search_completed(self, session, search_client, pump):
        """Should finish the session when the search runs out of jobs"""
        search_client.send(MessageType.SEARCH_COMPLETED)
        pump()
        session.complete_session.assert_called_once()


class TestTimeout:
    """Tests for the application timeout"""

    def test_application_timeout_marks_link_and_moves_on(self, handler, session, search_client, pump):
        """Should mark a timed out job and send SEARCH_NEXT"""
        start_job(search_client, pump)

        pump(APPLICATION_TIMEOUT)

        link = handler.state.search_data.submitted_links[0]
        assert link.status == SubmissionStatus.TIMEOUT
        session.close_job_tab.assert_called_once_with(APPLY_TAB)
        assert search_client.last(MessageType.SEARCH_NEXT)["data"]["status"] == "TIMEOUT"
        assert not handler.state.is_processing_job

    def test_completion_cancels_timeout(self, handler, hub, search_client, pump):
        """Should cancel the timeout once the job completes"""
        start_job(search_client, pump)
        apply_client = connect_apply_client(hub, pump)
        apply_client.send(MessageType.APPLICATION_SUCCESS, {}, url=JOB_URL)
        pump()

        pump(APPLICATION_TIMEOUT)

        assert handler.state.search_data.submitted_links[0].status == SubmissionStatus.SUCCESS
        assert search_client.types().count(MessageType.SEARCH_NEXT) == 1


class TestCleanup:
    """Tests for handler cleanup"""

    def test_cleanup_disconnects_ports(self, handler, search_client, pump):
        """Should disconnect and forget every port"""
        handler.cleanup()
        assert handler.ports == {}
        assert not search_client.port.connected
