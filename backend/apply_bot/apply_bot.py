#!/usr/bin/env python3
"""
Apply Bot for AutoApply
@file purpose: One automation run for one user on one platform, driven by actions
"""

import logging
from typing import Any, Dict, Optional

from apply_bot.actions import (
    PauseAutomationAction,
    ResumeAutomationAction,
    StartAutomationAction,
    StopAutomationAction,
)
from background.automation_orchestrator import AutomationOrchestrator, AutomationSession
from browser.browser_operator import BrowserOperator

logger = logging.getLogger(__name__)


class ApplyBot:
    """
    Applies to jobs on one platform until the requested count is reached

    The bot thread runs ``start_automation()``, which blocks for the whole
    session. Stop, pause and resume arrive from the API thread and only
    queue commands on the session.
    """

    def __init__(
        self,
        bot_id: str,
        user_id: str,
        start_request: Dict[str, Any],
        orchestrator: AutomationOrchestrator,
        websocket_callback=None,
    ):
        self.bot_id = bot_id
        self.user_id = user_id
        self.start_request = start_request
        self.session_id: str = start_request.get("sessionId")
        self.platform: Optional[str] = start_request.get("platform")
        self.orchestrator = orchestrator
        self.websocket_callback = websocket_callback

        self.is_running = False
        self.browser_operator: Optional[BrowserOperator] = None
        self.automation_session: Optional[AutomationSession] = None

        # Bot thread reference (for cleanup)
        self.bot_thread = None

        self.status = "idle"  # idle, starting, running, paused, stopped, completed, error

    def start_automation(self) -> Dict[str, Any]:
        return StartAutomationAction(self).execute()

    def stop_automation(self) -> Dict[str, Any]:
        return StopAutomationAction(self).execute()

    def pause_automation(self) -> Dict[str, Any]:
        return PauseAutomationAction(self).execute()

    def resume_automation(self) -> Dict[str, Any]:
        return ResumeAutomationAction(self).execute()

    def get_status(self) -> Dict[str, Any]:
        """Get current bot status"""
        status = {
            "bot_id": self.bot_id,
            "session_id": self.session_id,
            "platform": self.platform,
            "is_running": self.is_running,
            "status": self.status,
            "has_browser": self.browser_operator is not None
            and self.browser_operator.is_ready(),
        }
        if self.automation_session is not None:
            status["session"] = self.automation_session.get_status()
        return status
