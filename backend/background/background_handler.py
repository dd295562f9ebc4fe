#!/usr/bin/env python3
"""
Background Handler for AutoApply
@file purpose: The coordinating end of every automation port for one
platform session. Hands out search and application tasks, opens one tab per
job, tracks submitted links and tells the search tab when to move on.

Port names look like ``{platform}-{type}-{timestamp}-{suffix}`` where type is
"search" or "apply".
"""

import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from config import (
    APPLICATION_TIMEOUT,
    DUPLICATE_MESSAGE_WINDOW,
    ERROR_BACKOFF_MAX_MS,
    ERROR_BACKOFF_STEP_MS,
    MAX_ERRORS_PER_SESSION,
    STALE_PORT_CHECK_INTERVAL,
    STALE_PORT_TIMEOUT,
)
from constants import JOB_DESCRIPTION_CACHE_KEY
from exceptions import PortDisconnectedException
from shared.messaging import (
    COMPLETION_MESSAGES,
    ERROR_COMPLETIONS,
    SUCCESS_COMPLETIONS,
    MessageType,
    make_message,
)
from shared.models import SearchData, SubmissionStatus, SubmittedLink
from util.url_utils import is_valid_job_url, job_url_key

logger = logging.getLogger(__name__)

CONNECTION_CONFIRM_DELAY = 0.1


class PlatformState(BaseModel):
    """What the background handler knows about the job being applied to"""

    search_data: SearchData = Field(default_factory=SearchData)
    search_tab_id: Optional[int] = None
    is_processing_job: bool = False
    current_job_url: Optional[str] = None
    current_job_tab_id: Optional[int] = None
    application_start_time: Optional[float] = None

    def reset_processing(self):
        self.is_processing_job = False
        self.current_job_url = None
        self.current_job_tab_id = None
        self.application_start_time = None


def parse_port_name(name: str) -> Dict[str, Optional[str]]:
    parts = (name or "").split("-")
    return {
        "platform": parts[0] if parts else None,
        "type": parts[1] if len(parts) > 1 else None,
        "timestamp": parts[2] if len(parts) > 2 else None,
        "suffix": parts[3] if len(parts) > 3 else None,
    }


class BackgroundHandler:
    """
    Message handler for all ports of one automation session

    ``session`` is the AutomationSession that owns this handler; it opens and
    closes tabs and holds the user's profile and session config.
    """

    def __init__(self, session, scheduler, hub, storage=None):
        self.session = session
        self.platform = session.platform
        self.scheduler = scheduler
        self.hub = hub
        self.storage = storage

        self.state = PlatformState(search_data=session.search_data)
        self.ports: Dict[str, Any] = {}
        self.ports_by_tab: Dict[tuple, Any] = {}
        self.last_activity: Dict[str, float] = {}
        self.recent_messages: Dict[tuple, float] = {}
        self.error_count = 0
        self.completed = False

        self._application_timer = None
        self._cleanup_timer = None

        hub.on_connect(self.handle_port_connection)

    def start(self):
        self._cleanup_timer = self.scheduler.call_every(
            STALE_PORT_CHECK_INTERVAL, self.cleanup_stale_ports
        )

    def cleanup(self):
        """Disconnect every port and cancel timers"""
        self.scheduler.cancel(self._cleanup_timer)
        self.scheduler.cancel(self._application_timer)
        self._cleanup_timer = None
        self._application_timer = None
        for port in list(self.ports.values()):
            port.disconnect()
        self.ports.clear()
        self.ports_by_tab.clear()
        self.last_activity.clear()
        self.recent_messages.clear()

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------

    def handle_port_connection(self, port):
        parts = parse_port_name(port.name)
        port_type = parts["type"]
        tab_id = port.sender.tab_id

        if parts["platform"] != self.platform:
            logger.warning(f"Rejecting {port.name}: not a {self.platform} port")
            port.disconnect()
            return

        if port.name in self.ports:
            logger.warning(f"Duplicate port connection attempt: {port.name}")
            port.disconnect()
            return

        existing = self.ports_by_tab.get((tab_id, port_type))
        if existing is not None:
            logger.info(f"Replacing {port_type} port for tab {tab_id}")
            self.unregister_port(existing)
            existing.disconnect()

        self.ports[port.name] = port
        self.ports_by_tab[(tab_id, port_type)] = port
        self.last_activity[port.name] = self.scheduler.clock()
        port.on_message(self.on_port_message)
        port.on_disconnect(self.unregister_port)
        logger.info(f"Registered {self.platform} {port_type} port for tab {tab_id}")

        self.scheduler.call_later(CONNECTION_CONFIRM_DELAY, self.confirm_connection, port)

    def confirm_connection(self, port):
        if port.name not in self.ports:
            return
        parts = parse_port_name(port.name)
        self.send(
            port,
            make_message(
                MessageType.CONNECTION_ESTABLISHED,
                {
                    "tabId": port.sender.tab_id,
                    "sessionId": self.session.session_id,
                    "portType": parts["type"],
                    "platform": self.platform,
                },
            ),
        )

    def unregister_port(self, port):
        if self.ports.get(port.name) is port:
            del self.ports[port.name]
        self.last_activity.pop(port.name, None)
        for key, registered in list(self.ports_by_tab.items()):
            if registered is port:
                del self.ports_by_tab[key]
        logger.debug(f"Port unregistered: {port.name}")

    def cleanup_stale_ports(self) -> int:
        now = self.scheduler.clock()
        stale = [
            name
            for name, last_seen in self.last_activity.items()
            if now - last_seen > STALE_PORT_TIMEOUT
        ]
        for name in stale:
            port = self.ports.get(name)
            logger.info(f"Cleaning up stale port: {name}")
            if port is not None:
                self.unregister_port(port)
                port.disconnect()
            else:
                self.last_activity.pop(name, None)

        for key, seen_at in list(self.recent_messages.items()):
            if now - seen_at > DUPLICATE_MESSAGE_WINDOW:
                del self.recent_messages[key]
        return len(stale)

    def send(self, port, message: Dict[str, Any]) -> bool:
        if port is None or port.name not in self.ports:
            logger.debug(f"Cannot send {message.get('type')}: port not registered")
            return False
        try:
            port.post_message(message)
        except PortDisconnectedException as e:
            logger.warning(f"Failed to send {message.get('type')}: {e.message}")
            self.unregister_port(port)
            return False
        self.last_activity[port.name] = self.scheduler.clock()
        return True

    def get_search_port(self):
        return self.ports_by_tab.get((self.state.search_tab_id, "search"))

    def is_duplicate_message(self, port, message_type: str) -> bool:
        key = (port.sender.tab_id, port.name, message_type)
        now = self.scheduler.clock()
        last_seen = self.recent_messages.get(key)
        self.recent_messages[key] = now
        return last_seen is not None and now - last_seen < DUPLICATE_MESSAGE_WINDOW

    def on_port_message(self, message: Dict[str, Any], port):
        message_type = message.get("type")
        self.last_activity[port.name] = self.scheduler.clock()

        if message_type != MessageType.KEEPALIVE and self.is_duplicate_message(port, message_type):
            logger.debug(f"Duplicate message ignored: {message_type} from {port.name}")
            return

        try:
            self.handle_port_message(message, port)
        except Exception as e:
            logger.error(f"Error handling message {message_type}: {e}", exc_info=True)
            self.send(
                port,
                make_message(MessageType.ERROR, message=f"Error processing {message_type}: {e}"),
            )

    def handle_port_message(self, message: Dict[str, Any], port):
        message_type = message.get("type")
        data = message.get("data")

        if message_type == MessageType.KEEPALIVE:
            self.send(
                port,
                make_message(MessageType.KEEPALIVE_RESPONSE, {"timestamp": int(time.time() * 1000)}),
            )
        elif message_type == MessageType.GET_SEARCH_TASK:
            self.handle_get_search_task(port)
        elif message_type in (MessageType.GET_APPLICATION_TASK, MessageType.GET_SEND_CV_TASK):
            self.handle_get_application_task(port)
        elif message_type == MessageType.START_APPLICATION:
            self.handle_start_application(port, data or {})
        elif message_type in COMPLETION_MESSAGES:
            self.handle_task_completion(port, message)
        elif message_type == MessageType.CHECK_APPLICATION_STATUS:
            self.handle_check_application_status(port)
        elif message_type == MessageType.SEARCH_NEXT_READY:
            self.send(port, make_message(MessageType.SUCCESS, message="Search next ready acknowledged"))
        elif message_type == MessageType.SEARCH_COMPLETED:
            self.handle_search_completed(port)
        elif message_type == MessageType.SEARCH_TASK_DONE:
            self.send(port, make_message(MessageType.SUCCESS, message="Search task done acknowledged"))
        elif message_type == MessageType.GET_PROFILE_DATA:
            self.send(port, make_message(MessageType.PROFILE_DATA, self.get_profile()))
        elif message_type == MessageType.PROGRESS_UPDATE:
            self.session.update_progress(data or {})
        elif message_type in (
            MessageType.AUTOMATION_PAUSED,
            MessageType.AUTOMATION_RESUMED,
            MessageType.AUTOMATION_STOPPED,
        ):
            logger.info(f"{port.name} reported {message_type}")
            self.send(port, make_message(MessageType.SUCCESS, message=f"{message_type} acknowledged"))
        else:
            logger.warning(f"Unknown message type from {port.name}: {message_type}")
            self.send(
                port, make_message(MessageType.ERROR, message=f"Unknown message type: {message_type}")
            )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def handle_get_search_task(self, port):
        self.state.search_tab_id = port.sender.tab_id
        data = {"tabId": port.sender.tab_id}
        data.update(self.state.search_data.to_message())
        self.send(port, make_message(MessageType.SEARCH_TASK_DATA, data))

    def get_profile(self) -> Optional[Dict[str, Any]]:
        return self.session.get_user_profile()

    def get_cached_job_description(self, url: Optional[str]) -> Optional[str]:
        if not self.storage or not url:
            return None
        cache = self.storage.get(JOB_DESCRIPTION_CACHE_KEY, {}) or {}
        return cache.get(job_url_key(url))

    def cache_job_description(self, url: str, description: Optional[str]):
        if not self.storage or not description:
            return
        cache = self.storage.get(JOB_DESCRIPTION_CACHE_KEY, {}) or {}
        cache[job_url_key(url)] = description
        self.storage.set(JOB_DESCRIPTION_CACHE_KEY, cache)

    def handle_get_application_task(self, port):
        session_config = dict(self.session.session_config or {})
        description = self.get_cached_job_description(
            self.state.current_job_url or port.sender.url
        )
        if description:
            session_config["jobDescription"] = description

        self.send(
            port,
            make_message(
                MessageType.APPLICATION_TASK_DATA,
                {
                    "devMode": self.session.dev_mode,
                    "profile": self.get_profile(),
                    "session": session_config,
                    "userId": self.session.user_id,
                    "sessionId": self.session.session_id,
                },
            ),
        )

    def find_submitted_link(self, url: Optional[str]) -> Optional[SubmittedLink]:
        normalized = job_url_key(url)
        if not normalized:
            return None
        for link in self.state.search_data.submitted_links:
            if job_url_key(link.url) == normalized:
                return link
        return None

    def handle_start_application(self, port, data: Dict[str, Any]):
        url = data.get("url")
        title = data.get("title") or "Job Application"

        if self.state.is_processing_job:
            self.send(
                port,
                make_message(
                    MessageType.DUPLICATE,
                    {"url": url},
                    message="Already processing another job",
                ),
            )
            return

        if self.find_submitted_link(url) is not None:
            self.send(
                port,
                make_message(
                    MessageType.DUPLICATE,
                    {"url": url},
                    message="This job has already been processed",
                ),
            )
            return

        if not is_valid_job_url(url):
            self.send(port, make_message(MessageType.ERROR, message=f"Invalid job URL: {url}"))
            return

        self.cache_job_description(url, data.get("description"))
        self.state.search_data.submitted_links.append(
            SubmittedLink(url=url, status=SubmissionStatus.PROCESSING)
        )
        self.state.is_processing_job = True
        self.state.current_job_url = url
        self.state.application_start_time = time.time()

        try:
            tab_id = self.session.open_job_tab(url)
        except Exception as e:
            logger.error(f"Failed to open {self.platform} job tab for {url}: {e}")
            self.handle_task_completion(
                port,
                make_message(
                    MessageType.APPLICATION_ERROR, f"Could not open job page: {e}", url=url
                ),
            )
            return
        self.state.current_job_tab_id = tab_id

        self.scheduler.cancel(self._application_timer)
        self._application_timer = self.scheduler.call_later(
            APPLICATION_TIMEOUT, self.handle_application_timeout, url
        )

        logger.info(f"Opened {self.platform} job tab {tab_id} for {title}: {url}")
        self.send(port, make_message(MessageType.SUCCESS, message="Apply tab will be created"))

    def handle_application_timeout(self, url: str):
        self._application_timer = None
        if not self.state.is_processing_job or self.state.current_job_url != url:
            return

        logger.warning(f"Application timed out after {APPLICATION_TIMEOUT}s: {url}")
        link = self.find_submitted_link(url)
        if link is not None:
            link.status = SubmissionStatus.TIMEOUT
            link.error = "Application timed out"

        self.close_job_tab()
        self.state.reset_processing()
        self.send_search_next(
            {
                "url": url,
                "status": SubmissionStatus.TIMEOUT.value,
                "message": "Application timed out",
            }
        )

    def close_job_tab(self):
        tab_id = self.state.current_job_tab_id
        # In-page boards report on the search port; never close the search tab
        if tab_id is None or tab_id == self.state.search_tab_id:
            return
        try:
            self.session.close_job_tab(tab_id)
        except Exception as e:
            logger.warning(f"Error closing job tab {tab_id}: {e}")

    def send_search_next(self, data: Dict[str, Any]):
        port = self.get_search_port()
        if port is None:
            logger.warning(f"No {self.platform} search tab to send SEARCH_NEXT to")
            return
        self.send(port, make_message(MessageType.SEARCH_NEXT, data))

    def handle_task_completion(self, port, message: Dict[str, Any]):
        message_type = message["type"]
        data = message.get("data")
        if message_type in SUCCESS_COMPLETIONS:
            status = SubmissionStatus.SUCCESS
        elif message_type in ERROR_COMPLETIONS:
            status = SubmissionStatus.ERROR
        else:
            status = SubmissionStatus.SKIP

        self.scheduler.cancel(self._application_timer)
        self._application_timer = None

        if status == SubmissionStatus.ERROR:
            self.error_count += 1
            if self.error_count >= MAX_ERRORS_PER_SESSION:
                reason = f"Too many errors ({self.error_count}), automation stopped"
                logger.error(f"{reason} for session {self.session.session_id}")
                self.close_job_tab()
                self.state.reset_processing()
                stop_message = make_message(MessageType.AUTOMATION_STOPPED, message=reason)
                self.send(port, stop_message)
                search_port = self.get_search_port()
                if search_port is not None and search_port is not port:
                    self.send(search_port, stop_message)
                self.session.stop_session(reason)
                return

        url = message.get("url") or self.state.current_job_url
        link = self.find_submitted_link(url)
        if link is None and url:
            link = SubmittedLink(url=url)
            self.state.search_data.submitted_links.append(link)
        if link is not None:
            link.status = status
            if status == SubmissionStatus.SUCCESS:
                link.details = data
            else:
                link.error = data if isinstance(data, str) or data is None else str(data)

        self.close_job_tab()
        self.state.reset_processing()

        if status == SubmissionStatus.SUCCESS:
            self.state.search_data.current += 1
        self.session.record_result(status, data)

        self.send(port, make_message(MessageType.SUCCESS, message=f"{status.value} acknowledged"))

        search_data = self.state.search_data
        if search_data.current >= search_data.limit:
            logger.info(f"Reached application limit {search_data.limit}, completing session")
            self.complete_session()
            return

        next_data = {"url": url, "status": status.value}
        if status == SubmissionStatus.SUCCESS:
            next_data["data"] = data
            delay_ms = 0
        else:
            next_data["message"] = data if isinstance(data, str) else "Application error"
            delay_ms = (
                min(ERROR_BACKOFF_STEP_MS * self.error_count, ERROR_BACKOFF_MAX_MS)
                if status == SubmissionStatus.ERROR
                else 0
            )
        self.scheduler.call_later(delay_ms / 1000, self.send_search_next, next_data)

    def handle_check_application_status(self, port):
        self.send(
            port,
            make_message(
                MessageType.APPLICATION_STATUS,
                {
                    "inProgress": self.state.is_processing_job,
                    "url": self.state.current_job_url,
                    "startTime": self.state.application_start_time,
                },
            ),
        )

    def handle_search_completed(self, port):
        self.send(port, make_message(MessageType.SUCCESS, message="Search completed acknowledged"))
        self.complete_session()

    def complete_session(self):
        if self.completed:
            return
        self.completed = True
        search_data = self.state.search_data
        message = f"Automation completed: {search_data.current}/{search_data.limit} applications"
        search_port = self.get_search_port()
        if search_port is not None:
            self.send(search_port, make_message(MessageType.AUTOMATION_COMPLETED, message=message))
        self.session.complete_session(message)
