#!/usr/bin/env python3
"""
Base Platform Automation for AutoApply
@file purpose: Port lifecycle, keepalive/health timers, the search loop and
the per-job application runner shared by every platform automation.

One automation is bound to one tab. A "search" automation walks the result
list and hands jobs to the background handler; an "apply" automation runs in
the tab the background handler opened for one job and reports the outcome.
Platforms that apply in the search tab set ``applies_in_page``.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from config import (
    DEFAULT_JOB_POSITION,
    DUPLICATE_RETRY_DELAY,
    ERROR_RETRY_DELAY,
    HEALTH_CHECK_INTERVAL,
    HEALTH_CHECK_STUCK_THRESHOLD,
    KEEPALIVE_INTERVAL,
    LOAD_MORE_RETRY_DELAY,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY,
    SEARCH_NEXT_DELAY,
    SEARCH_RETRY_DELAY,
    STATE_VERIFICATION_INTERVAL,
    STUCK_APPLICATION_TIMEOUT,
)
from constants import API_HOST
from exceptions import ApplicationTimeoutException, PortDisconnectedException
from logger import set_console_level
from platforms.base_platform import BasePlatform
from services.ai_service import AIService
from services.application_tracker_service import ApplicationTrackerService
from services.file_handler_service import FileHandlerService
from services.resume_service import ResumeService
from services.user_service import UserService
from shared.form_handler import FormHandler
from shared.messaging import MessageType, PortSender, make_message
from shared.models import (
    ApplicationPhase,
    ApplicationState,
    ApplicationStateMachine,
    JobRecord,
    SearchData,
    SubmissionStatus,
    merge_user_profiles,
)
from util.url_utils import (
    get_platform_domains,
    get_search_link_pattern,
    is_application_page,
    job_url_key,
    urls_match,
)

logger = logging.getLogger(__name__)

SEARCH = "search"
APPLY = "apply"

# (substring of the raw error, message shown to the user)
ERROR_MESSAGES = [
    ("timeout", "The application is taking longer than expected. Moving on to the next job."),
    ("not found", "Couldn't find the application form on this page. Skipping this job."),
    ("blocked", "This job board requires additional verification. Skipping this job."),
    ("verification", "This job board requires additional verification. Skipping this job."),
    ("duplicate", "You've already applied to this job. Skipping it."),
    ("already applied", "You've already applied to this job. Skipping it."),
    ("network", "There was a network issue. Trying the next job."),
]


def map_error_message(raw_message: Optional[str]) -> str:
    text = (raw_message or "").lower()
    for needle, user_message in ERROR_MESSAGES:
        if needle in text:
            return user_message
    return f"Application error: {raw_message or 'unknown error'}. Trying the next job."


def build_google_search_url(site: str, preferences: Dict[str, Any]) -> str:
    """
    Google "site:" query for boards that are searched through Google

    site:jobs.lever.co "position one" OR "position two" "location"
    """
    positions = preferences.get("positions") or [DEFAULT_JOB_POSITION]
    query = f"site:{site} " + " OR ".join(f'"{position}"' for position in positions)

    locations = preferences.get("location") or []
    if isinstance(locations, str):
        locations = [locations]
    if locations and not preferences.get("remoteOnly"):
        query += f' "{locations[0]}"'
    elif preferences.get("remoteOnly"):
        query += ' "remote"'
    return "https://www.google.com/search?" + urlencode({"q": query})


class BasePlatformAutomation(BasePlatform):
    """
    Base class of every platform automation

    Subclasses implement ``apply_to_job()`` and, where the board differs from
    a Google result page, the link discovery hooks: ``find_all_links_elements``,
    ``get_link_url``, ``find_load_more_element`` and ``build_search_url``.
    """

    applies_in_page = False
    max_form_steps = 10
    form_container_selectors: Optional[str] = None
    stuck_timeout_seconds = STUCK_APPLICATION_TIMEOUT
    google_site: Optional[str] = None
    fallback_answers: Dict[str, str] = {}

    def __init__(
        self,
        config: Dict[str, Any],
        page,
        scheduler,
        hub,
        tab_id: Optional[int] = None,
        mode: Optional[str] = None,
        browser_operator=None,
        activity_manager=None,
        ai_service: Optional[AIService] = None,
        user_service: Optional[UserService] = None,
        application_tracker: Optional[ApplicationTrackerService] = None,
        file_handler: Optional[FileHandlerService] = None,
        resume_service: Optional[ResumeService] = None,
    ):
        super().__init__(
            config,
            page=page,
            browser_operator=browser_operator,
            activity_manager=activity_manager,
        )
        self.scheduler = scheduler
        self.hub = hub
        self.tab_id = tab_id
        if mode is None:
            mode = APPLY if is_application_page(getattr(page, "url", "")) else SEARCH
        self.mode = mode

        api_host = self.config.get("apiHost") or API_HOST
        self.ai_service = ai_service or AIService(
            api_host=api_host, platform=self.platform, question_fallbacks=self.fallback_answers
        )
        self.user_service = user_service or UserService(self.user_id, api_host=api_host)
        self.application_tracker = application_tracker or ApplicationTrackerService(
            self.user_id, api_host=api_host
        )
        self.file_handler = file_handler or FileHandlerService(api_host=api_host)
        self.resume_service = resume_service or ResumeService()

        self.port = None
        self.reconnect_attempts = 0
        self.application_state = ApplicationState()
        self.state_machine = ApplicationStateMachine()
        self.search_data = SearchData(
            limit=self.jobs_to_apply or 10,
            domain=get_platform_domains(self.platform),
            search_link_pattern=get_search_link_pattern(self.platform),
        )
        self.job_description: Optional[str] = None

        self._timers: List[Any] = []
        self._stuck_timer = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def build_search_url(cls, preferences: Dict[str, Any]) -> str:
        if cls.google_site:
            return build_google_search_url(cls.google_site, preferences)
        return cls.base_url

    @classmethod
    def get_application_url(cls, job_url: str) -> str:
        """URL the apply tab is opened on"""
        return job_url

    def get_port_name(self) -> str:
        suffix = (self.session_id or "nosess")[-6:]
        return f"{self.platform}-{self.mode}-{int(time.time() * 1000)}-{suffix}"

    def initialize(self):
        """Connect the port, start the timers and ask for this tab's task"""
        self.is_running = True
        self.apply_dev_mode()
        self.initialize_port_connection()
        self.start_timers()
        self.scheduler.call_soon(self.request_task)
        logger.info(f"[{self.platform}] {self.mode} automation initialized on tab {self.tab_id}")

    def apply_dev_mode(self):
        if self.dev_mode:
            set_console_level(logging.DEBUG)
            logger.debug(f"[{self.platform}] Dev mode: verbose console logging on")

    def request_task(self):
        if not self.is_running:
            return
        if self.mode == APPLY:
            self.safe_send_port_message(make_message(MessageType.GET_APPLICATION_TASK))
        else:
            self.safe_send_port_message(make_message(MessageType.GET_SEARCH_TASK))

    def cleanup(self):
        """Cancel every timer and close the port"""
        self.is_running = False
        self.clear_timers()
        if self.port is not None:
            self.port.disconnect()
            self.port = None

    # ------------------------------------------------------------------
    # Port
    # ------------------------------------------------------------------

    def initialize_port_connection(self) -> bool:
        url = getattr(self.page, "url", "") if self.page else ""
        try:
            sender = PortSender(self.tab_id, url, getattr(self.browser_operator, "window_id", None))
            port = self.hub.connect(self.get_port_name(), sender)
        except PortDisconnectedException as e:
            logger.error(f"[{self.platform}] Could not connect port: {e.message}")
            self.port = None
            return False

        port.on_message(self._on_port_message)
        port.on_disconnect(self._on_port_disconnect)
        self.port = port
        self.reconnect_attempts = 0
        logger.debug(f"[{self.platform}] Port connected: {port.name}")
        return True

    def _on_port_disconnect(self, port):
        if port is not self.port:
            return
        self.port = None
        if self.is_running:
            logger.warning(f"[{self.platform}] Port disconnected: {port.name}")
            self.attempt_reconnect()

    def attempt_reconnect(self):
        if self.reconnect_attempts >= MAX_RECONNECT_ATTEMPTS:
            self.report_error(
                Exception("Lost connection to the background handler, automation stopped"),
                {"phase": "reconnect", "attempts": self.reconnect_attempts},
            )
            self.is_running = False
            self.clear_timers()
            return
        self.reconnect_attempts += 1
        logger.info(
            f"[{self.platform}] Reconnecting in {RECONNECT_DELAY}s "
            f"(attempt {self.reconnect_attempts}/{MAX_RECONNECT_ATTEMPTS})"
        )
        self.scheduler.call_later(RECONNECT_DELAY, self._reconnect)

    def _reconnect(self):
        if not self.is_running or self.port is not None:
            return
        attempts = self.reconnect_attempts
        if self.initialize_port_connection():
            logger.info(f"[{self.platform}] Reconnected after {attempts} attempt(s)")
        else:
            self.reconnect_attempts = attempts
            self.attempt_reconnect()

    def safe_send_port_message(self, message: Dict[str, Any]) -> bool:
        if self.port is None:
            logger.debug(f"[{self.platform}] No port, dropping {message.get('type')}")
            if self.is_running and self.reconnect_attempts == 0:
                self.attempt_reconnect()
            return False
        try:
            self.port.post_message(message)
            return True
        except PortDisconnectedException as e:
            logger.warning(f"[{self.platform}] {e.message}")
            self.port = None
            if self.is_running:
                self.attempt_reconnect()
            return False

    def send_report(self, message: Dict[str, Any]) -> bool:
        return self.safe_send_port_message(message)

    def _on_port_message(self, message: Dict[str, Any], port):
        try:
            self.handle_port_message(message)
        except Exception as e:
            logger.error(
                f"[{self.platform}] Error handling {message.get('type')}: {e}", exc_info=True
            )
            self.report_error(e, {"message_type": message.get("type")})

    def handle_port_message(self, message: Dict[str, Any]):
        message_type = message.get("type")
        data = message.get("data")

        if message_type == MessageType.SEARCH_NEXT:
            self.handle_search_next(data)
        elif message_type == MessageType.DUPLICATE:
            self.handle_duplicate_job(data)
        elif message_type == MessageType.ERROR:
            self.handle_error_message(message)
        elif message_type == MessageType.KEEPALIVE_RESPONSE:
            pass
        elif message_type == MessageType.CONNECTION_ESTABLISHED:
            logger.debug(f"[{self.platform}] Connection established: {data}")
        elif message_type == MessageType.SEARCH_TASK_DATA:
            self.handle_search_task_data(data or {})
        elif message_type == MessageType.APPLICATION_TASK_DATA:
            self.handle_application_task_data(data or {})
        elif message_type == MessageType.APPLICATION_STATUS:
            self.handle_application_status(data or {})
        elif message_type == MessageType.SUCCESS:
            logger.debug(f"[{self.platform}] Acknowledged: {message.get('message')}")
        elif message_type == MessageType.AUTOMATION_STOPPED:
            self.handle_automation_stopped(message)
        elif message_type == MessageType.AUTOMATION_COMPLETED:
            self.handle_automation_completed(message)
        else:
            self.handle_platform_specific_message(message_type, data)

    def handle_platform_specific_message(self, message_type: str, data: Any):
        logger.debug(f"[{self.platform}] Unhandled message type: {message_type}")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def start_timers(self):
        self.clear_timers()
        self._timers = [
            self.scheduler.call_every(KEEPALIVE_INTERVAL, self.send_keepalive),
            self.scheduler.call_every(HEALTH_CHECK_INTERVAL, self.check_health),
            self.scheduler.call_every(
                STATE_VERIFICATION_INTERVAL, self.verify_application_state
            ),
        ]

    def clear_timers(self):
        for timer in self._timers:
            self.scheduler.cancel(timer)
        self._timers = []
        self.clear_stuck_timeout()

    def send_keepalive(self):
        if self.port is not None:
            self.safe_send_port_message(make_message(MessageType.KEEPALIVE))
        elif self.is_running:
            self.initialize_port_connection()

    def check_health(self):
        state = self.application_state
        if not state.is_application_in_progress:
            return
        elapsed = state.elapsed()
        if elapsed > HEALTH_CHECK_STUCK_THRESHOLD:
            logger.warning(
                f"[{self.platform}] Application stuck for {elapsed:.0f}s, resetting"
            )
            self.reset_application_state()
            if self.mode == SEARCH:
                self.scheduler.call_later(1, self.search_next)

    def verify_application_state(self):
        if self.application_state.is_application_in_progress:
            self.safe_send_port_message(make_message(MessageType.CHECK_APPLICATION_STATUS))

    def set_stuck_timeout(self):
        self.clear_stuck_timeout()
        self._stuck_timer = self.scheduler.call_later(
            self.stuck_timeout_seconds, self._on_stuck_timeout
        )

    def clear_stuck_timeout(self):
        if self._stuck_timer is not None:
            self.scheduler.cancel(self._stuck_timer)
            self._stuck_timer = None

    def _on_stuck_timeout(self):
        self._stuck_timer = None
        if not self.application_state.is_application_in_progress:
            return
        logger.warning(
            f"[{self.platform}] No result for {self.application_state.application_url} "
            f"after {self.stuck_timeout_seconds}s, moving on"
        )
        self.reset_application_state()
        self.scheduler.call_later(2, self.search_next)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def set_phase(self, phase: ApplicationPhase):
        self.state_machine.transition(phase)
        self.application_state.phase = self.state_machine.phase

    def finish_phase(self, phase: ApplicationPhase):
        """Move to a terminal phase, skipping edges a board-specific flow never took"""
        if not self.state_machine.can_transition(phase):
            logger.debug(f"[{self.platform}] Forcing phase {self.state_machine.phase} -> {phase}")
            self.state_machine.phase = ApplicationPhase.SUBMITTING
        self.set_phase(phase)

    def reset_application_state(self):
        self.application_state.reset()
        self.state_machine.reset()

    def check_application_timeout(self):
        """Raise ApplicationTimeoutException once the current job ran too long"""
        elapsed = self.application_state.elapsed()
        if elapsed > self.stuck_timeout_seconds:
            raise ApplicationTimeoutException(
                f"Application timeout after {elapsed:.0f}s",
                self.application_state.application_url or "",
                self.stuck_timeout_seconds,
            )

    def handle_application_status(self, data: Dict[str, Any]):
        if self.applies_in_page or self.mode != SEARCH:
            return
        if data.get("inProgress") or not self.application_state.is_application_in_progress:
            return
        logger.info(f"[{self.platform}] Background has no application in progress, resyncing")
        self.clear_stuck_timeout()
        self.reset_application_state()
        self.scheduler.call_later(1, self.search_next)

    def handle_automation_stopped(self, message: Dict[str, Any]):
        reason = message.get("message") or (message.get("data") or {}).get("reason")
        logger.warning(f"[{self.platform}] Stopped by background handler: {reason}")
        self.send_activity(f"Automation stopped: {reason}", "result")
        self.is_running = False
        self.clear_timers()

    def handle_automation_completed(self, message: Dict[str, Any]):
        logger.info(f"[{self.platform}] {message.get('message') or 'Automation completed'}")
        self.send_activity(message.get("message") or "Automation completed", "result")
        self.is_running = False
        self.clear_timers()
        self.report_complete()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def pause(self):
        super().pause()
        self.safe_send_port_message(
            make_message(MessageType.AUTOMATION_PAUSED, {"sessionId": self.session_id})
        )

    def resume(self):
        super().resume()
        self.safe_send_port_message(
            make_message(MessageType.AUTOMATION_RESUMED, {"sessionId": self.session_id})
        )
        if self.mode == SEARCH and not self.application_state.is_application_in_progress:
            self.scheduler.call_later(1, self.search_next)

    def stop(self):
        self.safe_send_port_message(
            make_message(
                MessageType.AUTOMATION_STOPPED,
                {"sessionId": self.session_id, "reason": "user_requested"},
            )
        )
        super().stop()
        self.clear_timers()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def handle_search_task_data(self, data: Dict[str, Any]):
        search_data = SearchData.model_validate(data)
        if not search_data.domain:
            search_data.domain = get_platform_domains(self.platform)
        if not search_data.search_link_pattern:
            search_data.search_link_pattern = get_search_link_pattern(self.platform)
        self.search_data = search_data
        self.submitted_links = [link.to_message() for link in search_data.submitted_links]
        self.update_progress(total=search_data.limit)
        logger.info(
            f"[{self.platform}] Search task: {search_data.current}/{search_data.limit}, "
            f"{len(self.submitted_links)} known links"
        )
        self.scheduler.call_later(1, self.start_searching)

    def start_searching(self):
        self.send_activity(f"Searching {self.platform} for jobs...")
        self.search_next()

    def search_next(self):
        if not self.is_running or self.is_paused:
            return
        if self.application_state.is_application_in_progress:
            self.safe_send_port_message(make_message(MessageType.CHECK_APPLICATION_STATUS))
            return

        try:
            links = self.find_all_links_elements()
            link = self.find_unprocessed_link(links)
            if link:
                self.process_job_link(link)
            else:
                self.handle_no_unprocessed_links()
        except Exception as e:
            logger.error(f"[{self.platform}] Error in search_next: {e}", exc_info=True)
            self.reset_application_state()
            self.scheduler.call_later(SEARCH_RETRY_DELAY, self.search_next)

    def find_all_links_elements(self) -> List[Any]:
        """Google result links pointing at one of the search domains"""
        domains = self.search_data.domain or get_platform_domains(self.platform)
        links = []
        for domain in domains:
            host = re.sub(r"^https?://", "", domain)
            selector = f'#rso a[href*="{host}"], #botstuff a[href*="{host}"]'
            links.extend(self.page.locator(selector).all())
        return links

    def get_link_url(self, element) -> Optional[str]:
        try:
            return element.get_attribute("href")
        except Exception:
            return None

    def get_link_title(self, element) -> str:
        try:
            text = (element.inner_text() or "").strip()
        except Exception:
            return ""
        return text.split("\n")[0].strip()

    def is_link_processed(self, url: str) -> bool:
        if job_url_key(url) in self.application_state.processed_urls:
            return True
        return any(urls_match(link.get("url"), url) for link in self.submitted_links)

    def find_unprocessed_link(self, links: List[Any]) -> Optional[Dict[str, Any]]:
        pattern = self.search_data.search_link_pattern
        for element in links:
            url = self.get_link_url(element)
            if not url:
                continue
            if self.is_link_processed(url):
                self.mark_link_as_processed(element)
                continue
            if pattern and not re.match(pattern, url):
                self.application_state.processed_urls.add(job_url_key(url))
                self.submitted_links.append(
                    {
                        "url": url,
                        "status": SubmissionStatus.SKIP.value,
                        "message": "Link does not match pattern",
                    }
                )
                continue
            return {"element": element, "url": url, "title": self.get_link_title(element)}
        return None

    def mark_link_as_processed(self, element):
        """Hook for boards that flag handled cards; nothing to do by default"""

    def get_job_task_message_type(self) -> str:
        return MessageType.START_APPLICATION

    def process_job_link(self, link: Dict[str, Any]):
        url = link["url"]
        title = link.get("title") or "Job Application"
        normalized = job_url_key(url)

        self.reset_application_state()
        self.application_state.start(url, {"url": url, "title": title})
        self.application_state.processed_urls.add(normalized)
        self.set_phase(ApplicationPhase.JOB_SELECTED)
        self.set_stuck_timeout()
        self.update_progress(current=title)

        try:
            self.dispatch_job(link)
        except Exception:
            self.clear_stuck_timeout()
            self.reset_application_state()
            self.application_state.processed_urls.discard(normalized)
            raise

    def dispatch_job(self, link: Dict[str, Any]):
        """Hand the job to the background handler, or apply here for in-page boards"""
        if self.applies_in_page:
            self.run_application(link)
            return
        self.send_activity(f"Opening job: {link.get('title') or link['url']}")
        self.safe_send_port_message(
            make_message(
                self.get_job_task_message_type(),
                {
                    "url": link["url"],
                    "title": link.get("title") or "Job Application",
                    "description": link.get("description"),
                },
            )
        )

    def find_load_more_element(self):
        for selector in (
            'a:has-text("More results")',
            "#pnnext",
            "#botstuff table a[href^='/search?q=site:']",
        ):
            element = self.page.locator(selector).first
            if self.is_visible(element):
                return element
        return None

    def handle_no_unprocessed_links(self):
        load_more = self.find_load_more_element()
        if load_more is not None:
            logger.info(f"[{self.platform}] Loading more results")
            self.click(load_more)
            self.scheduler.call_later(LOAD_MORE_RETRY_DELAY, self.search_next)
            return

        logger.info(f"[{self.platform}] No more jobs to process")
        self.send_activity("No more jobs found for this search", "result")
        self.safe_send_port_message(make_message(MessageType.SEARCH_COMPLETED))
        self.report_complete()
        self.clear_timers()

    def handle_search_next(self, data: Optional[Dict[str, Any]]):
        self.clear_stuck_timeout()
        self.reset_application_state()
        self.application_state.processed_links_count += 1
        self.safe_send_port_message(make_message(MessageType.SEARCH_NEXT_READY))

        data = data or {}
        url = data.get("url")
        if url:
            status = data.get("status")
            self.update_link_status(url, status)
            self.record_submission(url, status, data.get("message"))
        self.scheduler.call_later(SEARCH_NEXT_DELAY, self.search_next)

    def update_link_status(self, url: str, status: Optional[str]):
        if status == SubmissionStatus.SUCCESS.value:
            self.search_data.current += 1
            self.progress["completed"] += 1
        elif status in (SubmissionStatus.ERROR.value, SubmissionStatus.TIMEOUT.value):
            self.progress["failed"] += 1
        else:
            self.progress["skipped"] += 1
        self.update_progress(current=None)

    def record_submission(self, url: str, status: Optional[str], message: Optional[str] = None):
        status = status or SubmissionStatus.SKIP.value
        for link in self.submitted_links:
            if urls_match(link.get("url"), url):
                link["status"] = status
                if message:
                    link["message"] = message
                return
        entry = {"url": url, "status": status, "timestamp": int(time.time() * 1000)}
        if message:
            entry["message"] = message
        self.submitted_links.append(entry)

    def handle_duplicate_job(self, data: Any = None):
        logger.info(f"[{self.platform}] Job already handled, moving on")
        self.clear_stuck_timeout()
        self.reset_application_state()
        self.scheduler.call_later(DUPLICATE_RETRY_DELAY, self.search_next)

    def handle_error_message(self, message: Dict[str, Any]):
        data = message.get("data")
        raw = message.get("message") or (data.get("message") if isinstance(data, dict) else data)
        user_message = map_error_message(raw)
        logger.warning(f"[{self.platform}] Background error: {raw}")
        self.send_activity(user_message, "result")

        if self.mode != SEARCH:
            return
        self.clear_stuck_timeout()
        self.reset_application_state()
        if not self.is_paused:
            self.scheduler.call_later(ERROR_RETRY_DELAY, self.search_next)

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def handle_application_task_data(self, data: Dict[str, Any]):
        self.user_profile = merge_user_profiles(self.user_profile, data.get("profile"))
        self.dev_mode = bool(data.get("devMode", self.dev_mode))
        self.apply_dev_mode()
        session = data.get("session") or {}
        self.job_description = session.get("jobDescription") or self.job_description
        self.scheduler.call_later(1, self.start_application_process)

    def start_application_process(self):
        if not self.is_running or self.application_state.is_application_in_progress:
            return
        url = self.page.url
        self.application_state.start(url)
        self.set_phase(ApplicationPhase.JOB_SELECTED)
        self.run_application()

    def open_job_card(self, link: Dict[str, Any]):
        """Bring the job of ``link`` into view; in-page boards click the card"""
        self.click(link["element"])
        self.sleep(2)

    def extract_job_details(self) -> JobRecord:
        return self.extract_job_data()

    def run_application(self, link: Optional[Dict[str, Any]] = None):
        """Apply to one job and report APPLICATION_SUCCESS / ERROR / SKIPPED"""
        job: Optional[JobRecord] = None
        try:
            if link is not None:
                self.open_job_card(link)
            job = self.extract_job_details()
            if link is not None and not job.job_url:
                job.job_url = link["url"]
            if self.activity_manager:
                self.activity_manager.start_application_thread(job.company, job.title)
            self.send_activity(f"Applying to {job.title} at {job.company}")

            skip_reason = self.get_skip_reason(job)
            if skip_reason:
                self.handle_job_completion(job, SubmissionStatus.SKIP, skip_reason)
                return

            if self.apply_to_job(job):
                self.handle_job_completion(job, SubmissionStatus.SUCCESS)
            else:
                self.handle_job_completion(
                    job, SubmissionStatus.ERROR, "Application could not be completed"
                )
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(f"[{self.platform}] Application failed: {message}")
            self.handle_job_completion(job, SubmissionStatus.ERROR, message, link=link)

    def is_already_applied(self) -> bool:
        """True when the job page itself shows the job as applied"""
        return False

    def get_skip_reason(self, job: JobRecord) -> Optional[str]:
        """Why ``job`` should not be applied to, or None to go ahead"""
        if self.is_already_applied() or self.application_tracker.check_if_already_applied(
            job.job_id
        ):
            return "Already applied"
        return None

    def apply_to_job(self, job: JobRecord) -> bool:
        """Submit the application for ``job``; True once it went through"""
        raise NotImplementedError(f"{type(self).__name__} must implement apply_to_job()")

    def handle_job_completion(
        self,
        job: Optional[JobRecord],
        status: SubmissionStatus,
        message: Optional[str] = None,
        link: Optional[Dict[str, Any]] = None,
    ):
        url = (job.job_url if job else None) or (link or {}).get("url") or self.page.url

        if status == SubmissionStatus.SUCCESS:
            self.finish_phase(ApplicationPhase.SUCCESS)
            self.save_application(job)
            payload = dict(job.to_message(), url=url)
            report = make_message(MessageType.APPLICATION_SUCCESS, payload, url=url)
            self.send_activity(f"Applied to {job.title} at {job.company}", "result")
            if self.activity_manager:
                self.activity_manager.update_application_status("Submitted")
        elif status == SubmissionStatus.SKIP:
            self.set_phase(ApplicationPhase.SKIPPED)
            report = make_message(MessageType.APPLICATION_SKIPPED, message, url=url)
            self.send_activity(f"Skipped: {message}", "result")
            if self.activity_manager:
                self.activity_manager.update_application_status("Skipped")
        else:
            self.set_phase(ApplicationPhase.ERROR)
            report = make_message(MessageType.APPLICATION_ERROR, message, url=url)
            self.send_activity(map_error_message(message), "result")
            if self.activity_manager:
                self.activity_manager.update_application_status("Failed")

        self.safe_send_port_message(report)
        if self.activity_manager:
            self.activity_manager.start_general_thread()

    def save_application(self, job: JobRecord):
        record = job.to_message()
        record.update({"platform": self.platform, "userId": self.user_id})
        self.application_tracker.save_applied_job(record)
        self.user_service.update_application_count()

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    def create_form_handler(self, job: Optional[JobRecord] = None) -> FormHandler:
        job_details = job.to_message() if job else {}
        return FormHandler(
            self.page,
            self.user_profile or {},
            ai_service=self.ai_service,
            file_handler=self.file_handler,
            resume_service=self.resume_service,
            browser_operator=self.browser_operator,
            job_description=(job.description if job else None) or self.job_description or "",
            job_details=job_details,
            platform=self.platform,
            activity_callback=self.send_activity,
            application_id=job.job_id if job else None,
        )

    def fill_application_form(self, job: JobRecord, max_steps: Optional[int] = None) -> bool:
        """Run the multi-step form loop on the current page"""
        self.check_application_timeout()
        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)
        submitted = handler.fill_complete_form(
            max_steps=max_steps or self.max_form_steps,
            container_selectors=self.form_container_selectors,
        )
        if submitted:
            self.set_phase(ApplicationPhase.SUBMITTING)
        return submitted

    def fill_single_page_form(self, form, job: JobRecord) -> FormHandler:
        """Fill every field of a one-page form, leaving submission to the caller"""
        self.check_application_timeout()
        self.set_phase(ApplicationPhase.FORM_DETECTED)
        self.set_phase(ApplicationPhase.FILLING)
        handler = self.create_form_handler(job)
        handler.fill_form_step(form)
        return handler

    def answer_screening_radios(self, defaults: Dict[str, str], root=None) -> int:
        """
        Tick the yes/no radio matching ``defaults`` for well-known screening
        questions (work authorization, sponsorship, background check)

        Returns:
            Number of questions answered
        """
        root = root if root is not None else self.page
        answered = 0
        groups = root.locator("fieldset")
        for i in range(groups.count()):
            group = groups.nth(i)
            try:
                question = group.inner_text().lower()
            except Exception:
                continue
            for keyword, answer in defaults.items():
                if keyword not in question:
                    continue
                option = group.locator(f'label:has-text("{answer}") input[type="radio"]').first
                if option.count() == 0:
                    option = group.locator(
                        f'input[type="radio"][value="{answer.lower()}" i]'
                    ).first
                if option.count() and not option.is_checked():
                    option.set_checked(True, force=True)
                    answered += 1
                break
        return answered

    def find_visible(self, selectors: List[str], root=None):
        """First visible match among ``selectors``"""
        root = root if root is not None else self.page
        for selector in selectors:
            try:
                matches = root.locator(selector)
                for i in range(matches.count()):
                    element = matches.nth(i)
                    if element.is_visible():
                        return element
            except Exception as e:
                logger.debug(f"Selector {selector} failed: {e}")
        return None

    def find_button_with_text(self, texts: List[str], root=None, tag: str = "button, a"):
        """Visible button or link whose text contains one of ``texts``"""
        root = root if root is not None else self.page
        buttons = root.locator(tag)
        for i in range(buttons.count()):
            button = buttons.nth(i)
            try:
                text = (button.inner_text() or "").strip().lower()
                if text and any(t in text for t in texts) and button.is_visible():
                    return button
            except Exception:
                continue
        return None

    def submit_form(self, form, selectors: List[str], texts: Optional[List[str]] = None) -> bool:
        button = self.find_visible(selectors, form)
        if button is None and texts:
            button = self.find_button_with_text(texts, form)
        if button is None:
            logger.warning(f"[{self.platform}] No submit button found")
            return False
        self.set_phase(ApplicationPhase.SUBMITTING)
        self.send_activity("Submitting application...")
        self.click(button)
        return True

    def wait_for_confirmation(
        self,
        selectors: List[str],
        texts: Optional[List[str]] = None,
        url_markers=("thank", "success", "confirmation"),
        timeout: float = 15,
        assume_success: bool = False,
    ) -> bool:
        """Poll the page for a confirmation element, URL or text"""
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.find_visible(selectors) is not None:
                return True
            url = (self.page.url or "").lower()
            if any(marker in url for marker in url_markers):
                return True
            if texts:
                try:
                    body = self.page.inner_text("body").lower()
                except Exception:
                    body = ""
                if any(text in body for text in texts):
                    return True
            self.sleep(1)

        if assume_success:
            logger.info(f"[{self.platform}] No confirmation found, assuming success")
        return assume_success

    def get_status(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "mode": self.mode,
            "tabId": self.tab_id,
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "progress": dict(self.progress),
            "phase": self.state_machine.phase.value,
            "currentUrl": self.application_state.application_url,
            "processedLinks": self.application_state.processed_links_count,
        }
