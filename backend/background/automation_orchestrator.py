"""
Automation Orchestrator for AutoApply
@file purpose: Validate start requests and run one automation session: the
automation window, the search tab, the apply tabs and the background handler,
all pumped by a single scheduler on the bot thread
"""

import logging
import queue
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional

from background.background_handler import BackgroundHandler
from background.storage import StateStorage
from background.window_manager import WindowManager
from browser.browser_operator import BrowserOperator
from config import HEADLESS
from exceptions import InvalidStartRequestException, PlatformNotSupportedException
from logger import set_console_level, update_log_context
from platforms.base_platform_automation import APPLY, SEARCH
from platforms.platform_registry import get_platform, get_supported_platforms
from services.user_service import UserService
from shared.activity_manager import ActivityManager
from shared.messaging import MessageHub
from shared.models import AutomationStatus, SearchData, SubmissionStatus, merge_user_profiles
from shared.scheduler import Scheduler
from util.url_utils import get_platform_domains, get_search_link_pattern

logger = logging.getLogger(__name__)

COMMAND_POLL_INTERVAL = 0.5
# Lets the final AUTOMATION_COMPLETED reach the search tab before the loop exits
FINISH_GRACE_PERIOD = 1

FINISHED_STATUSES = {
    AutomationStatus.STOPPED,
    AutomationStatus.COMPLETED,
    AutomationStatus.FAILED,
    AutomationStatus.INTERRUPTED,
}


def validate_start_request(request: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a start request and return it normalized

    Raises InvalidStartRequestException for missing or malformed fields and
    PlatformNotSupportedException for an unknown platform.
    """
    if not isinstance(request, dict):
        raise InvalidStartRequestException("Start request must be an object")

    for field in ("platform", "userId", "jobsToApply"):
        if request.get(field) in (None, ""):
            raise InvalidStartRequestException(f"Missing required field: {field}", field)

    jobs_to_apply = request["jobsToApply"]
    if isinstance(jobs_to_apply, bool) or not isinstance(jobs_to_apply, int) or jobs_to_apply <= 0:
        raise InvalidStartRequestException("jobsToApply must be a positive integer", "jobsToApply")

    platform = str(request["platform"]).strip().lower()
    if get_platform(platform) is None:
        raise PlatformNotSupportedException(
            f"Platform not supported: {request['platform']}",
            platform,
            get_supported_platforms(),
        )

    normalized = dict(request)
    normalized["platform"] = platform
    normalized["sessionId"] = request.get("sessionId") or uuid.uuid4().hex
    normalized["preferences"] = request.get("preferences") or {}
    normalized["devMode"] = bool(request.get("devMode", False))
    return normalized


class AutomationSession:
    """
    One automation run on one platform

    Everything here runs on the thread that calls ``start()`` and ``run()``.
    Other threads talk to the session only through ``request_pause``,
    ``request_resume`` and ``request_stop``, which queue commands that the
    scheduler drains every half second.
    """

    def __init__(
        self,
        request: Dict[str, Any],
        activity_callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        browser_operator: Optional[BrowserOperator] = None,
        scheduler: Optional[Scheduler] = None,
        storage: Optional[StateStorage] = None,
        window_manager: Optional[WindowManager] = None,
        user_service: Optional[UserService] = None,
    ):
        self.session_id: str = request["sessionId"]
        self.platform: str = request["platform"]
        self.user_id: str = request["userId"]
        self.jobs_to_apply: int = request["jobsToApply"]
        self.preferences: Dict[str, Any] = request.get("preferences") or {}
        self.dev_mode: bool = bool(request.get("devMode", False))
        self.request_profile: Optional[Dict[str, Any]] = request.get("userProfile")
        self.platform_class = get_platform(self.platform)

        self.session_config: Dict[str, Any] = {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "platform": self.platform,
            "jobsToApply": self.jobs_to_apply,
            "preferences": self.preferences,
            "devMode": self.dev_mode,
        }
        if request.get("apiHost"):
            self.session_config["apiHost"] = request["apiHost"]

        self.scheduler = scheduler or Scheduler()
        self.hub = MessageHub(self.scheduler)
        self.storage = storage or StateStorage()
        self.window_manager = window_manager or WindowManager(self.storage)
        self.browser_operator = browser_operator or BrowserOperator(headless=HEADLESS)
        self.user_service = user_service or UserService(
            self.user_id, api_host=self.session_config.get("apiHost")
        )
        self.activity_manager = ActivityManager(
            websocket_callback=activity_callback, bot_id=self.session_id, platform=self.platform
        )

        self.search_data = SearchData(
            limit=self.jobs_to_apply,
            domain=get_platform_domains(self.platform),
            search_link_pattern=get_search_link_pattern(self.platform),
        )
        self.handler = BackgroundHandler(self, self.scheduler, self.hub, self.storage)

        self.automations: Dict[int, Any] = {}
        self.search_tab_id: Optional[int] = None
        self.window_id: Optional[int] = None
        self.status = AutomationStatus.CREATED
        self.stop_reason: Optional[str] = None
        self.progress: Dict[str, Any] = {}
        self.results = {"submitted": 0, "failed": 0, "skipped": 0}

        self.commands: "queue.Queue[str]" = queue.Queue()
        self._command_timer = None
        self._profile: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Open the automation window on the search results and start searching"""
        self.status = AutomationStatus.STARTING
        update_log_context(user_id=self.user_id, session_id=self.session_id, platform=self.platform)
        self.activity_manager.send_status_update("starting", f"Starting {self.platform} automation")

        page = self.browser_operator.start()
        self.window_id = self.browser_operator.window_id
        self.window_manager.initialize()
        self.window_manager.register_automation_window(
            self.window_id,
            {"platform": self.platform, "sessionId": self.session_id, "userId": self.user_id},
        )

        search_url = self.platform_class.build_search_url(self.preferences)
        self.activity_manager.send_activity_message(f"Opening {self.platform} search: {search_url}")
        self.browser_operator.navigate_to(search_url)
        self.search_tab_id = self.browser_operator.get_tab_id(page)

        self.handler.start()
        automation = self.create_automation(page, self.search_tab_id, SEARCH)
        self.automations[self.search_tab_id] = automation
        automation.initialize()

        self._command_timer = self.scheduler.call_every(COMMAND_POLL_INTERVAL, self.drain_commands)
        self.status = AutomationStatus.RUNNING
        self.activity_manager.send_status_update("running", f"{self.platform} automation running")
        logger.info(f"Session {self.session_id} started on {self.platform} (tab {self.search_tab_id})")

    def run(self):
        """Pump the scheduler until the session finishes"""
        self.scheduler.run_until(self.is_finished)
        logger.info(f"Session {self.session_id} loop exited with status {self.status.value}")

    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def finish(self, status: AutomationStatus, message: Optional[str] = None):
        if self.is_finished():
            return
        self.status = status
        if message:
            self.stop_reason = message
        self.activity_manager.send_status_update(status.value, message or status.value, self.get_results())

    def shutdown(self):
        """Release every tab, port, timer and the browser; safe to call twice"""
        self.scheduler.cancel(self._command_timer)
        self._command_timer = None
        for automation in list(self.automations.values()):
            try:
                automation.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up automation: {e}")
        self.automations.clear()
        self.handler.cleanup()

        if self.window_id is not None:
            self.window_manager.handle_window_closed(self.window_id)
        try:
            self.browser_operator.close()
        except Exception as e:
            logger.warning(f"Error closing browser for session {self.session_id}: {e}")
        self.scheduler.clear()
        if self.dev_mode:
            set_console_level(logging.INFO)

        if not self.is_finished():
            self.status = AutomationStatus.INTERRUPTED
        logger.info(f"Session {self.session_id} shut down ({self.status.value})")

    # ------------------------------------------------------------------
    # Cross-thread commands
    # ------------------------------------------------------------------

    def request_pause(self):
        self.commands.put("pause")

    def request_resume(self):
        self.commands.put("resume")

    def request_stop(self):
        self.commands.put("stop")

    def drain_commands(self):
        while True:
            try:
                command = self.commands.get_nowait()
            except queue.Empty:
                return
            logger.info(f"Session {self.session_id} command: {command}")
            if command == "pause":
                self.pause()
            elif command == "resume":
                self.resume()
            elif command == "stop":
                self.stop()

    def pause(self):
        if self.status != AutomationStatus.RUNNING:
            return
        for automation in list(self.automations.values()):
            automation.pause()
        self.status = AutomationStatus.PAUSED

    def resume(self):
        if self.status != AutomationStatus.PAUSED:
            return
        for automation in list(self.automations.values()):
            automation.resume()
        self.status = AutomationStatus.RUNNING

    def stop(self):
        for automation in list(self.automations.values()):
            automation.stop()
        self.stop_session("Stopped by user")

    # ------------------------------------------------------------------
    # Called by the background handler
    # ------------------------------------------------------------------

    def get_user_profile(self) -> Dict[str, Any]:
        """Server profile overlaid with the profile sent in the start request"""
        if self._profile is None:
            fetched = self.user_service.get_user_details()
            self._profile = merge_user_profiles(fetched, self.request_profile)
        return self._profile

    def create_automation(self, page, tab_id: int, mode: str):
        config = dict(self.session_config)
        config["userProfile"] = self.get_user_profile()
        config["submittedLinks"] = [link.to_message() for link in self.search_data.submitted_links]
        return self.platform_class(
            config,
            page,
            self.scheduler,
            self.hub,
            tab_id=tab_id,
            mode=mode,
            browser_operator=self.browser_operator,
            activity_manager=self.activity_manager,
            user_service=self.user_service,
        )

    def open_job_tab(self, url: str) -> int:
        tab_id, page = self.browser_operator.open_tab(self.platform_class.get_application_url(url))
        try:
            automation = self.create_automation(page, tab_id, APPLY)
            self.automations[tab_id] = automation
            automation.initialize()
        except Exception:
            self.close_job_tab(tab_id)
            raise
        return tab_id

    def close_job_tab(self, tab_id: int):
        automation = self.automations.pop(tab_id, None)
        if automation is not None:
            automation.cleanup()
        self.browser_operator.close_tab(tab_id)

    def update_progress(self, data: Optional[Dict[str, Any]]):
        data = data or {}
        with self._lock:
            self.progress = dict(data.get("progress") or data)

    def record_result(self, status: SubmissionStatus, data: Any = None):
        with self._lock:
            if status == SubmissionStatus.SUCCESS:
                self.results["submitted"] += 1
            elif status == SubmissionStatus.SKIP:
                self.results["skipped"] += 1
            else:
                self.results["failed"] += 1
        logger.info(f"Session {self.session_id} result {status.value}: {self.results}")

    def stop_session(self, reason: str):
        logger.warning(f"Stopping session {self.session_id}: {reason}")
        self.activity_manager.send_activity_message(reason, "result")
        self.finish(AutomationStatus.STOPPED, reason)

    def complete_session(self, message: str):
        self.activity_manager.send_activity_message(message, "result")
        self.scheduler.call_later(FINISH_GRACE_PERIOD, self.finish, AutomationStatus.COMPLETED, message)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_results(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self.results,
                "current": self.search_data.current,
                "limit": self.search_data.limit,
            }

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            progress = dict(self.progress)
        return {
            "sessionId": self.session_id,
            "platform": self.platform,
            "userId": self.user_id,
            "status": self.status.value,
            "stopReason": self.stop_reason,
            "windowId": self.window_id,
            "searchTabId": self.search_tab_id,
            "openTabs": len(self.automations),
            "progress": progress,
            "results": self.get_results(),
        }


class AutomationOrchestrator:
    """Registry of automation sessions keyed by session id"""

    def __init__(
        self,
        storage: Optional[StateStorage] = None,
        window_manager: Optional[WindowManager] = None,
    ):
        self.storage = storage or StateStorage()
        self.window_manager = window_manager or WindowManager(self.storage)
        self.sessions: Dict[str, AutomationSession] = {}
        self._lock = threading.Lock()

    def cleanup_stale_windows(self) -> int:
        """Drop persisted windows that belong to no live session (e.g. after a crash)"""
        with self._lock:
            live = [s.window_id for s in self.sessions.values() if s.window_id is not None]
        return self.window_manager.cleanup_invalid_windows(live)

    @staticmethod
    def validate_start_request(request: Dict[str, Any]) -> Dict[str, Any]:
        return validate_start_request(request)

    def create_session(
        self,
        request: Dict[str, Any],
        activity_callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        **session_kwargs,
    ) -> AutomationSession:
        request = validate_start_request(request)
        session_kwargs.setdefault("storage", self.storage)
        session_kwargs.setdefault("window_manager", self.window_manager)
        session = AutomationSession(request, activity_callback=activity_callback, **session_kwargs)
        with self._lock:
            self.sessions[session.session_id] = session
        logger.info(f"Created {session.platform} session {session.session_id}")
        return session

    def run_session(self, session: AutomationSession) -> AutomationStatus:
        """Start the session and pump it on the calling thread until it ends"""
        try:
            session.start()
            session.run()
        except Exception as e:
            logger.error(f"Session {session.session_id} failed: {e}", exc_info=True)
            session.finish(AutomationStatus.FAILED, f"Automation failed: {e}")
        finally:
            session.shutdown()
            self.remove_session(session.session_id)
        return session.status

    def get_session(self, session_id: str) -> Optional[AutomationSession]:
        with self._lock:
            return self.sessions.get(session_id)

    def remove_session(self, session_id: str):
        with self._lock:
            self.sessions.pop(session_id, None)

    def list_sessions(self) -> List[Dict[str, Any]]:
        with self._lock:
            sessions = list(self.sessions.values())
        return [session.get_status() for session in sessions]

    def stop_session(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.request_stop()
        return True

    def pause_session(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.request_pause()
        return True

    def resume_session(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.request_resume()
        return True
