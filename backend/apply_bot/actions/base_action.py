#!/usr/bin/env python3
"""
Base Action class for Apply Bot actions
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from activity.base_activity import ActivityType
from shared.activity_manager import ActivityManager

logger = logging.getLogger(__name__)


class BaseAction(ABC):
    """
    Base class for all Apply Bot actions

    Actions never raise: ``execute()`` returns a dict with ``success``,
    ``message`` and ``status`` so the controller can hand it to the API as is.
    """

    def __init__(self, bot_instance):
        self.bot = bot_instance
        self.logger = logger
        self.activity_manager = ActivityManager(
            websocket_callback=getattr(self.bot, "websocket_callback", None),
            bot_id=getattr(self.bot, "bot_id", None),
            platform=getattr(self.bot, "platform", None),
        )

    def send_status_update(self, status: str, message: str):
        self.activity_manager.send_status_update(status, message)

    def send_activity_message(
        self,
        message: str,
        activity_type: str = ActivityType.ACTION,
        thread_title: Optional[str] = None,
    ):
        self.activity_manager.send_activity_message(message, activity_type, thread_title)

    @abstractmethod
    def execute(self, *args, **kwargs) -> Dict[str, Any]:
        """
        Execute the action

        Returns:
            Dict containing success status and relevant information
        """
        pass

    @property
    @abstractmethod
    def action_name(self) -> str:
        """Return the name of this action"""
        pass
