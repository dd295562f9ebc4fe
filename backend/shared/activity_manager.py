#!/usr/bin/env python3
"""
Activity Manager for handling activity messages with thread support
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from activity.base_activity import ActivityMessage, ActivityType, StatusUpdateMessage

logger = logging.getLogger(__name__)


class ThreadType(str, Enum):
    """Types of activity threads"""

    APPLICATION = "application"
    GENERAL = "general"


class ActivityManager:
    """
    Routes activity and status messages to the bot's callback

    Messages logged while an application is being worked on are grouped
    under a "<company> - <title>" thread so the activity log reads per job.
    """

    def __init__(self, websocket_callback=None, bot_id: str = None, platform: str = None):
        self.websocket_callback = websocket_callback
        self.bot_id = bot_id
        self.platform = platform
        self.current_thread_title = None
        self.current_thread_type = ThreadType.GENERAL
        self.current_thread_status = None

    def start_application_thread(
        self, company_name: str, job_title: str, status: str = "Started"
    ):
        company_name = company_name or "Unknown company"
        job_title = job_title or "Untitled job"
        self.current_thread_title = f"{company_name} - {job_title}"
        self.current_thread_type = ThreadType.APPLICATION
        self.current_thread_status = status
        logger.debug(
            f"Started application thread: {self.current_thread_title} "
            f"with status: {status}"
        )

    def update_application_status(self, status: str):
        if self.current_thread_type == ThreadType.APPLICATION:
            self.current_thread_status = status
            logger.debug(f"Updated application thread status to: {status}")

    def start_general_thread(self, title: str = None):
        """Leave the current application thread"""
        self.current_thread_title = title
        self.current_thread_type = ThreadType.GENERAL
        self.current_thread_status = None

    def _emit(self, message_data: Dict[str, Any]) -> bool:
        if not self.websocket_callback:
            logger.debug(f"No callback set, dropping message: {message_data}")
            return False
        try:
            self.websocket_callback(message_data)
            return True
        except Exception as e:
            logger.error(f"Failed to send {message_data.get('type')} message: {e}")
            return False

    def send_activity_message(
        self,
        message: str,
        activity_type: str = ActivityType.ACTION,
        thread_title: Optional[str] = None,
    ):
        """
        Send an activity message with thread support

        Args:
            message: The message to send
            activity_type: Type of activity (action, thinking, result)
            thread_title: Override thread title (if None, uses current)
        """
        activity = ActivityMessage(
            message=message,
            activity_type=activity_type,
            bot_id=self.bot_id,
            platform=self.platform,
            thread_title=thread_title or self.current_thread_title,
            thread_status=self.current_thread_status,
        )
        if self._emit(activity.to_dict()):
            preview = message[:50] + "..." if len(message) > 50 else message
            logger.debug(f"Sent activity message: {preview}")

    def send_status_update(
        self, status: str, message: str, progress: Optional[Dict[str, Any]] = None
    ):
        update = StatusUpdateMessage(
            status=status, message=message, bot_id=self.bot_id, progress=progress
        )
        if self._emit(update.to_dict()):
            logger.debug(f"Sent status update: {status} - {message}")
